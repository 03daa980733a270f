# src/embeddings/__init__.py — v1
