"""Tests for configuration loading."""

from khub.config import DEFAULT_CONFIG, deep_merge, load_config


def test_deep_merge_is_recursive():
    base = {"a": {"x": 1, "y": 2}, "b": [1, 2]}
    deep_merge(base, {"a": {"y": 3, "z": 4}, "b": [3], "c": "new"})
    assert base == {"a": {"x": 1, "y": 3, "z": 4}, "b": [3], "c": "new"}


def test_deep_merge_copies_nested_dicts():
    override = {"a": {"x": 1}}
    merged = deep_merge({}, override)
    merged["a"]["x"] = 2
    assert override["a"]["x"] == 1


def test_load_config_merges_file_over_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("KHUB_STORAGE_BACKEND", raising=False)
    monkeypatch.delenv("KHUB_TENANT_ID", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text("chunking:\n  target_chars: 1000\ndata_path: ~/khub-test\n")

    cfg = load_config(path)

    assert cfg["chunking"] == {"target_chars": 1000, "overlap_chars": 200}
    assert cfg["retrieval"] == DEFAULT_CONFIG["retrieval"]
    assert not cfg["data_path"].startswith("~")
    assert "claude_api_key" not in cfg
    # Defaults are never mutated by loading
    assert DEFAULT_CONFIG["chunking"]["target_chars"] == 2000


def test_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    monkeypatch.setenv("KHUB_STORAGE_BACKEND", "memory")
    monkeypatch.setenv("KHUB_TENANT_ID", "acme")
    path = tmp_path / "config.yaml"
    path.write_text("storage_backend: chromadb\n")

    cfg = load_config(path)

    assert cfg["claude_api_key"] == "sk-test"
    assert cfg["storage_backend"] == "memory"
    assert cfg["tenant_id"] == "acme"
