# tests/unit/test_main.py — v2
"""Tests for main.py — CLI parsing and commands."""

from __future__ import annotations

import json
import logging

import pytest

from songmatch.api.models import MatchRequest
from songmatch.main import _build_parser, main
from songmatch.version import MATCHING_ALGO_VERSION, __version__


@pytest.fixture(autouse=True)
def _isolated_cwd(monkeypatch, tmp_path):
    # Keep Settings() away from any .env in the checkout.
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger("songmatch")
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def input_file(tmp_path, full_song, full_profile, full_embeddings):
    path = tmp_path / "request.json"
    request = MatchRequest(
        songs=[full_song], profiles=[full_profile], song_embeddings=full_embeddings
    )
    path.write_text(request.model_dump_json(), encoding="utf-8")
    return path


class TestParser:
    def test_match_args(self, tmp_path):
        args = _build_parser().parse_args(
            ["match", "in.json", "--account", "a1", "--job", "j1", "-o", "out.json"]
        )
        assert str(args.input) == "in.json"
        assert args.account == "a1"
        assert args.job == "j1"
        assert str(args.output) == "out.json"
        assert args.verbose is False

    def test_similar_args(self):
        args = _build_parser().parse_args(["similar", "happy", "joyful", "sad", "--threshold", "0.7"])
        assert args.label == "happy"
        assert args.candidates == ["joyful", "sad"]
        assert args.threshold == 0.7

    def test_version_flag(self, capsys):
        with pytest.raises(SystemExit) as exc:
            _build_parser().parse_args(["--version"])
        assert exc.value.code == 0
        assert __version__ in capsys.readouterr().out


class TestMain:
    def test_no_command(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_version_command(self, capsys):
        assert main(["version"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload == {"songmatch": __version__, "matching": MATCHING_ALGO_VERSION}

    def test_match_to_stdout(self, input_file, capsys):
        assert main(["match", str(input_file)]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["context_hash"].startswith("ctx_")
        assert payload["result"]["stats"]["matched"] == 1
        assert payload["cache"]["misses"] == 1

    def test_match_to_file(self, input_file, tmp_path, capsys):
        output = tmp_path / "out" / "result.json"
        assert main(["match", str(input_file), "--job", "j1", "-o", str(output)]) == 0
        payload = json.loads(output.read_text(encoding="utf-8"))
        assert payload["result"]["matches"]["song_full_0001"][0]["playlist_id"] == "pl_summer"
        assert "Matching complete" in capsys.readouterr().out

    def test_missing_input(self, tmp_path):
        assert main(["match", str(tmp_path / "nope.json")]) == 1

    def test_invalid_input(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        assert main(["match", str(bad)]) == 1

    def test_similar(self, fake_embedder, monkeypatch, capsys):
        monkeypatch.setattr("songmatch.api.facade.create_embedder", lambda settings: fake_embedder)
        assert main(["similar", "happy", "joyful", "sad"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["label"] == "happy"
        assert payload["threshold"] == 0.65
        rows = {r["candidate"]: r for r in payload["matches"]}
        assert rows["joyful"]["similar"] is True
        assert rows["sad"]["similar"] is False
        assert rows["sad"]["similarity"] == 0.0

    def test_similar_threshold_override(self, fake_embedder, monkeypatch, capsys):
        monkeypatch.setattr("songmatch.api.facade.create_embedder", lambda settings: fake_embedder)
        assert main(["similar", "happy", "joyful", "--threshold", "0.999"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["threshold"] == 0.999
        assert payload["matches"][0]["similar"] is False
