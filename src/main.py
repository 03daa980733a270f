# src/main.py — v3
"""CLI entry point — match, similar, version commands.

Usage:
    songmatch match <input.json> [--account ID] [--job ID] [-o out.json]
    songmatch similar <label> <candidate>... [--threshold T]
    songmatch version
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from songmatch.version import MATCHING_ALGO_VERSION, __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    _setup_logging(args.verbose)

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="songmatch",
        description=f"songmatch v{__version__} — song-to-playlist matching",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- match ---
    p_match = subparsers.add_parser(
        "match", help="Match songs against playlist profiles",
    )
    p_match.add_argument(
        "input", type=Path,
        help="JSON file with songs, profiles, song_embeddings and optional config",
    )
    p_match.add_argument(
        "--account", default=None,
        help="Account ID; enables the persistent cache tier",
    )
    p_match.add_argument(
        "--job", default=None,
        help="Job ID for progress events",
    )
    p_match.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Write results to this file (default: stdout)",
    )
    p_match.set_defaults(func=_cmd_match)

    # --- similar ---
    p_similar = subparsers.add_parser(
        "similar", help="Compare a mood/theme label against candidate labels",
    )
    p_similar.add_argument("label", help="Label to look up")
    p_similar.add_argument("candidates", nargs="+", help="Labels to compare against")
    p_similar.add_argument(
        "--threshold", type=float, default=None,
        help="Similarity threshold (default: SEMANTIC_THRESHOLD)",
    )
    p_similar.set_defaults(func=_cmd_similar)

    # --- version ---
    p_version = subparsers.add_parser(
        "version", help="Show package and algorithm versions",
    )
    p_version.set_defaults(func=_cmd_version)

    return parser


async def _cmd_match(args: argparse.Namespace) -> int:
    """Execute one cached matching request."""
    from songmatch.api.facade import build_match_cache, match_songs
    from songmatch.api.models import MatchRequest
    from songmatch.config.settings import Settings
    from songmatch.tracking.progress import RecordingProgressSink

    input_path: Path = args.input
    if not input_path.exists():
        logger.error("File not found: %s", input_path)
        return 1

    request = MatchRequest.model_validate_json(input_path.read_text(encoding="utf-8"))
    if args.account:
        request = request.model_copy(update={"account_id": args.account})

    settings = Settings()
    sink = RecordingProgressSink()
    cache = build_match_cache(settings, progress_sink=sink)

    logger.info(
        "Matching %d songs against %d playlists",
        len(request.songs), len(request.profiles),
    )
    response = await match_songs(request, cache, job_id=args.job)

    payload = response.model_dump_json(indent=2)
    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(payload, encoding="utf-8")
        _print_summary(response, args.output)
    else:
        print(payload)

    if args.job:
        last = sink.last_progress(args.job)
        if last is not None:
            logger.info(
                "Job %s: %d/%d done, %d failed",
                args.job, last.done, last.total, last.failed,
            )
    return 0


async def _cmd_similar(args: argparse.Namespace) -> int:
    """Score candidate labels against one label with the semantic matcher."""
    from songmatch.api.facade import build_semantic_matcher
    from songmatch.config.settings import Settings

    matcher = build_semantic_matcher(Settings())
    threshold = matcher.threshold if args.threshold is None else args.threshold
    rows = []
    for candidate in args.candidates:
        similarity = await matcher.get_similarity(args.label, candidate)
        rows.append({
            "candidate": candidate,
            "similarity": round(similarity, 4),
            "similar": await matcher.are_similar(args.label, candidate, threshold),
        })
    print(json.dumps({"label": args.label, "threshold": threshold, "matches": rows}, indent=2))
    return 0


async def _cmd_version(args: argparse.Namespace) -> int:
    print(json.dumps({"songmatch": __version__, "matching": MATCHING_ALGO_VERSION}))
    return 0


def _print_summary(response: object, output: Path) -> None:
    """Print a human-readable summary of a MatchResponse."""
    stats = response.result.stats
    print(f"\nMatching complete:")
    print(f"  Context:   {response.context_hash}")
    print(f"  Songs:     {stats.total}")
    print(f"  Matched:   {stats.matched}")
    print(f"  Cached:    {stats.cached}")
    print(f"  Failed:    {stats.failed}")
    print(f"  Output:    {output}")


def _setup_logging(verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from songmatch.config.settings import Settings
    from songmatch.logging.logger import setup_logging

    settings = Settings()
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
