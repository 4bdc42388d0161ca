"""Tests for the command line interface."""

from click.testing import CliRunner

from khub.cli import cli


def _write_config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        f"data_path: {tmp_path}\n"
        f"ingest_path: {tmp_path / 'ingest'}\n"
        f"database_path: {tmp_path / 'khub.db'}\n"
        "storage_backend: memory\n"
        "embedding_model: ''\n"
    )
    return path


def test_route_command():
    result = CliRunner().invoke(cli, ["route", "How many people know Laravel?"])
    assert result.exit_code == 0
    assert "document" in result.output
    assert "person" in result.output


def test_init_writes_config(tmp_path):
    result = CliRunner().invoke(cli, ["init", "--path", str(tmp_path / "hub")])
    assert result.exit_code == 0
    assert (tmp_path / "hub" / "config.yaml").exists()
    assert (tmp_path / "hub" / "ingest").is_dir()


def test_ingest_reports_failures_without_embedder(tmp_path, monkeypatch):
    monkeypatch.delenv("KHUB_STORAGE_BACKEND", raising=False)
    monkeypatch.delenv("KHUB_TENANT_ID", raising=False)
    config = _write_config(tmp_path)
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "notes.txt").write_text("Plain notes about the launch.")

    result = CliRunner().invoke(cli, ["-c", str(config), "ingest", str(docs)])

    assert result.exit_code == 0
    assert "Ingested 0/1" in result.output


def test_stats_on_empty_store(tmp_path, monkeypatch):
    monkeypatch.delenv("KHUB_STORAGE_BACKEND", raising=False)
    monkeypatch.delenv("KHUB_TENANT_ID", raising=False)
    config = _write_config(tmp_path)

    result = CliRunner().invoke(cli, ["-c", str(config), "stats"])

    assert result.exit_code == 0
    assert "Documents: 0" in result.output


def test_route_only_reads_conversations_of_the_tenant(tmp_path, monkeypatch):
    from khub.models import Conversation, Message
    from khub.storage.sqlite import SqliteRecordStore

    monkeypatch.delenv("KHUB_STORAGE_BACKEND", raising=False)
    monkeypatch.delenv("KHUB_TENANT_ID", raising=False)
    config = _write_config(tmp_path)
    store = SqliteRecordStore(tmp_path / "khub.db")
    conversation = store.save_conversation(Conversation(tenant_id="other", user_id="u", title="Hiring"))
    store.add_message(Message(conversation_id=conversation.id, role="user", content="Who is Jane Doe?"))

    result = CliRunner().invoke(cli, ["-c", str(config), "route", "What about her?",
                                      "--conversation", conversation.id])
    assert result.exit_code == 0
    assert "not found" in result.output
    assert "Routing Decision" not in result.output

    result = CliRunner().invoke(cli, ["-c", str(config), "-t", "other", "route", "What about her?",
                                      "--conversation", conversation.id])
    assert result.exit_code == 0
    assert "hybrid" in result.output
