"""Tests for the ingestion pipeline."""

import tempfile
import threading
from pathlib import Path

import httpx

from khub.ingest.extract import TextExtractor, raw_from_file
from khub.ingest.processor import IngestionPipeline, chunk_id_for, compute_hash
from khub.models import RawDocument

from conftest import TENANT, FakeEmbedder

LONG_TEXT = " ".join(f"Paragraph {i} describes the migration plan and its risks." for i in range(40))


def test_compute_hash():
    assert compute_hash("hello") == compute_hash("hello")
    assert compute_hash("hello") != compute_hash("world")


def test_chunk_ids_are_stable():
    assert chunk_id_for("doc", "hash", 0) == chunk_id_for("doc", "hash", 0)
    assert chunk_id_for("doc", "hash", 0) != chunk_id_for("doc", "hash", 1)


def test_process_text_document(pipeline, records, vector_store):
    raw = RawDocument(title="plan.txt", external_id="ext-1", extracted_text=LONG_TEXT)
    result = pipeline.process(raw, TENANT, connector_id="org-drive", connector_type="google_drive")

    assert result.success
    assert result.chunks_created > 1
    assert result.classification is not None
    document = records.get_document(TENANT, result.document_id)
    assert document.doc_type == "text_document"
    assert document.metadata["content_hash"] == compute_hash(LONG_TEXT)
    chunks = records.list_chunks(TENANT, document.id)
    assert len(chunks) == result.chunks_created
    assert all(LONG_TEXT[c.char_start:c.char_end] == c.text for c in chunks)
    assert vector_store.count(TENANT) == result.chunks_created


def test_reprocessing_is_idempotent(pipeline, records, vector_store):
    raw = RawDocument(title="plan.txt", external_id="ext-1", extracted_text=LONG_TEXT)
    first = pipeline.process(raw, TENANT, connector_id="org-drive", connector_type="google_drive")
    second = pipeline.process(raw, TENANT, connector_id="org-drive", connector_type="google_drive")

    assert first.document_id == second.document_id
    assert len(records.list_documents(TENANT)) == 1
    assert records.count_chunks(TENANT) == first.chunks_created
    assert sorted(vector_store.ids(TENANT)) == sorted(c.id for c in records.list_chunks(TENANT, first.document_id))


def test_changed_text_replaces_old_vectors(pipeline, records, vector_store):
    raw = RawDocument(title="plan.txt", external_id="ext-1", extracted_text=LONG_TEXT)
    first = pipeline.process(raw, TENANT, connector_id="org-drive", connector_type="google_drive")
    old_ids = set(vector_store.ids(TENANT))

    raw.extracted_text = "A much shorter replacement."
    second = pipeline.process(raw, TENANT, connector_id="org-drive", connector_type="google_drive")

    assert second.chunks_created == 1
    assert not old_ids & set(vector_store.ids(TENANT))
    assert vector_store.count(TENANT) == 1
    assert first.document_id == second.document_id


def test_empty_extraction_fails(pipeline, records):
    result = pipeline.process(RawDocument(title="blank.txt", extracted_text="   "), TENANT)
    assert not result.success
    assert result.error.startswith("no_text_extracted")
    assert records.list_documents(TENANT) == []


def test_unsupported_connector(pipeline):
    result = pipeline.process(RawDocument(title="x", extracted_text="hello"), TENANT, connector_type="fax")
    assert not result.success
    assert result.error.startswith("unsupported_connector")


def test_embedding_failure_is_reported(config, records, gateway):
    pipeline = IngestionPipeline(config, records, FakeEmbedder(fail=True), gateway)
    result = pipeline.process(RawDocument(title="a.txt", extracted_text=LONG_TEXT), TENANT)
    assert not result.success
    assert result.error.startswith("embedding_failed")
    assert result.document_id is not None


def test_metadata_is_deep_merged(pipeline, records):
    raw = RawDocument(
        title="a.txt",
        external_id="ext-9",
        extracted_text="Contact me at a@example.com about the plan.",
        metadata={"source": {"folder": "inbox", "owner": "ana"}},
    )
    first = pipeline.process(raw, TENANT, connector_id="org-drive", connector_type="google_drive")
    raw.metadata = {"source": {"folder": "archive"}}
    pipeline.process(raw, TENANT, connector_id="org-drive", connector_type="google_drive")

    metadata = records.get_document(TENANT, first.document_id).metadata
    assert metadata["source"] == {"folder": "archive", "owner": "ana"}
    assert metadata["emails"] == ["a@example.com"]
    assert "processed_at" in metadata


def test_batch_continues_past_failures(pipeline):
    raws = [
        RawDocument(title="ok.txt", extracted_text="First document text."),
        RawDocument(title="blank.txt", extracted_text=""),
        RawDocument(title="ok2.txt", extracted_text="Second document text."),
    ]
    result = pipeline.process_batch(raws, TENANT)
    assert result.succeeded == 2
    assert result.failed == 1
    assert result.errors[0]["title"] == "blank.txt"


def test_batch_cancellation(pipeline):
    cancel = threading.Event()
    cancel.set()
    raws = [RawDocument(title=f"{i}.txt", extracted_text="text") for i in range(3)]
    result = pipeline.process_batch(raws, TENANT, cancel_event=cancel)
    assert result.cancelled
    assert result.skipped == 3
    assert result.succeeded == 0


def test_process_uploaded_file(pipeline, records):
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "notes.md"
        path.write_text("---\ntitle: Notes\n---\n# Hello\n\nThis is a test document about Django.")
        result = pipeline.process(raw_from_file(path), TENANT)

    assert result.success
    document = records.get_document(TENANT, result.document_id)
    assert "django" in document.tags
    text = " ".join(c.text for c in records.list_chunks(TENANT, document.id))
    assert "title: Notes" not in text


def test_delete_document(pipeline, records, vector_store):
    result = pipeline.process(RawDocument(title="a.txt", extracted_text=LONG_TEXT), TENANT)
    assert pipeline.delete_document(TENANT, result.document_id)
    assert records.get_document(TENANT, result.document_id) is None
    assert records.count_chunks(TENANT) == 0
    assert vector_store.count(TENANT) == 0
    assert not pipeline.delete_document(TENANT, result.document_id)


def test_delete_is_tenant_scoped(pipeline):
    result = pipeline.process(RawDocument(title="a.txt", extracted_text=LONG_TEXT), TENANT)
    assert not pipeline.delete_document("other-tenant", result.document_id)


def test_extractor_downloads_source_url():
    def handler(request):
        return httpx.Response(200, text="<html><body><p>Remote report body</p></body></html>",
                              headers={"content-type": "text/html"})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    raw = RawDocument(title="report", mime_type="", source_url="https://files.example.com/report")
    text = TextExtractor(client=client).extract(raw, "dropbox")
    assert "Remote report body" in text


def test_extractor_download_error_is_empty():
    def handler(request):
        return httpx.Response(404)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    raw = RawDocument(title="gone.txt", source_url="https://files.example.com/gone")
    assert TextExtractor(client=client).extract(raw, "google_drive") == ""


def test_document_id_owned_by_another_tenant_is_rejected(pipeline, records, vector_store):
    first = pipeline.process(RawDocument(title="plan.txt", extracted_text=LONG_TEXT), TENANT)
    chunks_before = records.list_chunks(TENANT, first.document_id)

    raw = RawDocument(id=first.document_id, title="other.txt", extracted_text="Unrelated text for tenant b.")
    result = pipeline.process(raw, "tenant-b")

    assert not result.success
    assert result.error.startswith("document_conflict")
    assert records.get_document(TENANT, first.document_id).title == "plan.txt"
    assert records.list_chunks(TENANT, first.document_id) == chunks_before
    assert records.get_document("tenant-b", first.document_id) is None
    assert vector_store.count("tenant-b") == 0


def test_markdown_front_matter_lands_in_metadata(tmp_path, pipeline, records):
    note = tmp_path / "launch.md"
    note.write_text("---\nauthor: Dana\ndate: 2024-03-01\ntags: [launch]\n---\n# Launch\n\nShip it in spring.\n")

    raw = raw_from_file(note)
    assert raw.metadata == {"front_matter": {"author": "Dana", "date": "2024-03-01", "tags": ["launch"]}}

    result = pipeline.process(raw, TENANT)
    assert result.success
    document = records.get_document(TENANT, result.document_id)
    assert document.metadata["front_matter"]["author"] == "Dana"
    assert "author:" not in records.list_chunks(TENANT, document.id)[0].text


def test_plain_files_carry_no_front_matter(tmp_path):
    note = tmp_path / "notes.txt"
    note.write_text("---\nauthor: Dana\n---\nbody")
    assert raw_from_file(note).metadata == {}
