"""Tests for the ingest directory watcher."""

import threading

from khub.services import build_services
from khub.watcher import FileWatcher, IngestHandler

from conftest import TENANT, FakeEmbedder, FakeLLM


class _Event:
    def __init__(self, path, is_directory=False, dest_path=""):
        self.src_path = path
        self.dest_path = dest_path
        self.is_directory = is_directory


def test_handler_debounces_supported_files():
    handler = IngestHandler(debounce=0.05)
    done = threading.Event()
    batches = []

    def callback(paths):
        batches.append(paths)
        done.set()

    handler.set_callback(callback)
    handler.on_created(_Event("/in/a.txt"))
    handler.on_modified(_Event("/in/a.txt"))
    handler.on_created(_Event("/in/b.md"))
    handler.on_created(_Event("/in/image.png"))
    handler.on_created(_Event("/in/.hidden.txt"))
    handler.on_created(_Event("/in/sub", is_directory=True))

    assert done.wait(2)
    assert batches == [["/in/a.txt", "/in/b.md"]]


def test_handler_follows_renames_and_forgets_deleted_files():
    handler = IngestHandler(debounce=0.05)
    done = threading.Event()
    batches = []

    def callback(paths):
        batches.append(paths)
        done.set()

    handler.set_callback(callback)
    handler.on_created(_Event("/in/draft.txt"))
    handler.on_deleted(_Event("/in/draft.txt"))
    handler.on_moved(_Event("/in/.tmp123", dest_path="/in/report.md"))

    assert done.wait(2)
    assert batches == [["/in/report.md"]]


def test_process_batch_ingests_files(tmp_path, config, records):
    ingest = tmp_path / "ingest"
    ingest.mkdir()
    (ingest / "notes.txt").write_text("Launch notes for the spring release.")
    (ingest / "empty.txt").write_text("")

    cfg = dict(config, storage_backend="memory", ingest_path=str(ingest))
    services = build_services(cfg, records=records, embedder=FakeEmbedder(), llm=FakeLLM())
    watcher = FileWatcher(services, TENANT, debounce=0.01)

    watcher._process_batch([str(ingest / "notes.txt"), str(ingest / "empty.txt"), str(ingest / "gone.txt")])

    documents = records.list_documents(TENANT)
    assert [d.title for d in documents] == ["notes.txt"]
    assert documents[0].connector_id == "local-upload"

    # A second pass over the same file updates rather than duplicates
    watcher._process_batch([str(ingest / "notes.txt")])
    assert len(records.list_documents(TENANT)) == 1


def test_stopped_watcher_skips_pending_files(tmp_path, config, records):
    ingest = tmp_path / "ingest"
    ingest.mkdir()
    (ingest / "a.txt").write_text("Alpha notes.")
    (ingest / "b.txt").write_text("Beta notes.")

    cfg = dict(config, storage_backend="memory", ingest_path=str(ingest))
    services = build_services(cfg, records=records, embedder=FakeEmbedder(), llm=FakeLLM())
    watcher = FileWatcher(services, TENANT, debounce=0.01)
    watcher.stop_event.set()

    watcher._process_batch([str(ingest / "a.txt"), str(ingest / "b.txt")])

    assert records.list_documents(TENANT) == []
