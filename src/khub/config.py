"""Configuration management for the knowledge hub."""

import os
from pathlib import Path
from typing import Any

import yaml


DEFAULT_CONFIG = {
    "data_path": "~/.khub",
    "ingest_path": "~/.khub/ingest",
    "chroma_path": "~/.khub/chroma",
    "database_path": "~/.khub/khub.db",
    "storage_backend": "chromadb",  # chromadb | memory | none
    "record_backend": "sqlite",  # sqlite | memory
    "embedding_model": "intfloat/e5-large-v2",
    "embedding_dimensions": 1024,
    "claude_model": "claude-sonnet-4-20250514",
    "tenant_id": "local",
    "user_id": "local-user",
    "chunking": {"target_chars": 2000, "overlap_chars": 200},
    "retrieval": {"top_k": 15, "max_snippets": 6, "excerpt_chars": 800},
    "memory": {
        "summary_every_turns": 3,
        "summary_window": 6,
        "summary_min_messages": 4,
        "history_messages": 20,
    },
    "download": {"timeout": 30.0},
    # USD per million tokens
    "pricing": {
        "claude-sonnet-4-20250514": {"input": 3.0, "output": 15.0},
        "intfloat/e5-large-v2": {"input": 0.0},
    },
}

_PATH_KEYS = ("data_path", "ingest_path", "chroma_path", "database_path")


def _find_config_file() -> Path | None:
    """Look for config.yaml in standard locations."""
    candidates = [
        Path.cwd() / "config" / "config.yaml",
        Path.cwd() / "config.yaml",
        Path.home() / ".khub" / "config.yaml",
    ]
    for p in candidates:
        if p.exists():
            return p
    return None


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration, merging defaults with file and env vars."""
    cfg = deep_merge({}, DEFAULT_CONFIG)

    path = Path(config_path) if config_path else _find_config_file()
    if path and path.exists():
        with open(path) as f:
            file_cfg = yaml.safe_load(f) or {}
        deep_merge(cfg, file_cfg)

    # Env overrides
    if api_key := os.environ.get("ANTHROPIC_API_KEY"):
        cfg["claude_api_key"] = api_key
    if backend := os.environ.get("KHUB_STORAGE_BACKEND"):
        cfg["storage_backend"] = backend
    if tenant := os.environ.get("KHUB_TENANT_ID"):
        cfg["tenant_id"] = tenant

    for key in _PATH_KEYS:
        cfg[key] = str(Path(cfg[key]).expanduser().resolve())

    return cfg


def deep_merge(base: dict, override: dict) -> dict:
    """Merge override into base in-place and return base.

    New keys are added, existing keys are overwritten and keys missing from
    override are left alone. Nested dicts are merged recursively; other values
    (lists included) are replaced. Document metadata updates go through here.
    """
    for k, v in override.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, dict):
            deep_merge(base[k], v)
        elif isinstance(v, dict):
            base[k] = deep_merge({}, v)
        else:
            base[k] = v
    return base
