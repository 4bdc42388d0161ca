"""Document ingestion pipeline - extract, classify, chunk, embed, index."""

import hashlib
import logging
import threading
import time
from typing import Any

from ..config import deep_merge
from ..embeddings.embedder import Embedder
from ..errors import EmbeddingFailure, ExtractionEmpty, KhubError
from ..models import (
    BatchResult,
    Chunk,
    Classification,
    Document,
    IngestResult,
    RawDocument,
    VectorRecord,
    utcnow,
)
from ..storage.gateway import VectorGateway
from ..storage.records import RecordStore
from .chunker import chunk_text, estimate_tokens
from .classifier import classify
from .extract import TextExtractor

logger = logging.getLogger(__name__)


def compute_hash(content: str) -> str:
    """SHA256 hash of content for dedup."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def chunk_id_for(document_id: str, content_hash: str, index: int) -> str:
    """Stable chunk id, so reprocessing unchanged text rewrites the same vectors."""
    return hashlib.sha256(f"{document_id}:{content_hash}:{index}".encode()).hexdigest()[:32]


class IngestionPipeline:
    """Turns connector payloads into classified, chunked, indexed documents.

    Failures never escape ``process``; they come back as an IngestResult so a
    batch can keep going.
    """

    def __init__(
        self,
        config: dict[str, Any],
        records: RecordStore,
        embedder: Embedder,
        gateway: VectorGateway,
        extractor: TextExtractor | None = None,
    ):
        chunk_cfg = config.get("chunking", {})
        self.target_chars = chunk_cfg.get("target_chars", 2000)
        self.overlap_chars = chunk_cfg.get("overlap_chars", 200)
        self.records = records
        self.embedder = embedder
        self.gateway = gateway
        self.extractor = extractor or TextExtractor(
            timeout=config.get("download", {}).get("timeout", 30.0)
        )

    def process(
        self,
        raw: RawDocument,
        tenant_id: str,
        connector_id: str | None = None,
        connector_type: str = "manual_upload",
    ) -> IngestResult:
        """Ingest one document end to end.

        Args:
            raw: The connector payload.
            tenant_id: Owning tenant; also the vector namespace.
            connector_id: Source connector, used to match re-synced documents.
            connector_type: Selects the extraction adapter.

        Returns:
            IngestResult with the document id and chunk count on success, or
            an error code/message on failure.
        """
        started = time.perf_counter()

        def elapsed() -> int:
            return int((time.perf_counter() - started) * 1000)

        document_id = None
        try:
            text = self.extractor.extract(raw, connector_type)
            if not text.strip():
                raise ExtractionEmpty(f"No text extracted from {raw.title}")

            classification = classify(text, raw.title, raw.mime_type)
            document = self._upsert_document(raw, tenant_id, connector_id, text, classification)
            document_id = document.id

            chunks = self._replace_chunks(document, text)
            self._index(document, chunks)
        except KhubError as e:
            logger.warning(f"Ingestion of {raw.title!r} failed ({e.code}): {e}")
            return IngestResult(
                success=False,
                document_id=document_id,
                error=f"{e.code}: {e}",
                processing_time_ms=elapsed(),
            )
        except Exception as e:
            logger.exception(f"Unexpected error ingesting {raw.title!r}")
            return IngestResult(
                success=False,
                document_id=document_id,
                error=f"error: {e}",
                processing_time_ms=elapsed(),
            )

        logger.info(
            f"Ingested {raw.title!r} as {classification.doc_type} "
            f"({len(chunks)} chunks, tenant {tenant_id})"
        )
        return IngestResult(
            success=True,
            document_id=document.id,
            chunks_created=len(chunks),
            processing_time_ms=elapsed(),
            classification=classification,
        )

    def process_batch(
        self,
        raws: list[RawDocument],
        tenant_id: str,
        connector_id: str | None = None,
        connector_type: str = "manual_upload",
        cancel_event: threading.Event | None = None,
    ) -> BatchResult:
        """Process documents one after another, continuing past failures.

        Setting cancel_event stops the batch before the next document; the
        rest are reported as skipped.
        """
        result = BatchResult()
        for i, raw in enumerate(raws):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                result.skipped = len(raws) - i
                logger.info(f"Batch cancelled, {result.skipped} document(s) skipped")
                break

            outcome = self.process(raw, tenant_id, connector_id, connector_type)
            if outcome.success:
                result.succeeded += 1
                result.total_chunks += outcome.chunks_created
            else:
                result.failed += 1
                result.errors.append({"title": raw.title, "error": outcome.error or "unknown"})
        return result

    def delete_document(self, tenant_id: str, document_id: str) -> bool:
        """Remove a document with its chunks and vectors."""
        if self.records.get_document(tenant_id, document_id) is None:
            return False
        chunk_ids = self.records.delete_document(tenant_id, document_id)
        self.gateway.delete(chunk_ids, tenant_id)
        logger.info(f"Deleted document {document_id} ({len(chunk_ids)} chunks)")
        return True

    def _upsert_document(
        self,
        raw: RawDocument,
        tenant_id: str,
        connector_id: str | None,
        text: str,
        classification: Classification,
    ) -> Document:
        existing = None
        if raw.id:
            existing = self.records.get_document(tenant_id, raw.id)
        if existing is None and raw.external_id:
            existing = self.records.find_document(tenant_id, connector_id, raw.external_id)

        metadata_update = deep_merge({}, raw.metadata)
        deep_merge(metadata_update, classification.metadata)
        metadata_update["processed_at"] = utcnow().isoformat()
        metadata_update["content_hash"] = compute_hash(text)

        if existing is not None:
            document = existing
            deep_merge(document.metadata, metadata_update)
            document.updated_at = utcnow()
        else:
            document = Document(
                tenant_id=tenant_id,
                title=raw.title,
                external_id=raw.external_id,
                connector_id=connector_id,
                user_id=raw.user_id,
                owner_scope=raw.owner_scope,
                metadata=metadata_update,
            )
            if raw.id:
                document.id = raw.id

        document.title = raw.title
        document.mime_type = raw.mime_type
        document.size = raw.size or len(text.encode("utf-8"))
        document.source_locator = raw.source_url or raw.tmp_path or document.source_locator
        document.doc_type = classification.doc_type
        document.tags = list(classification.tags)
        return self.records.save_document(document)

    def _replace_chunks(self, document: Document, text: str) -> list[Chunk]:
        spans = chunk_text(text, self.target_chars, self.overlap_chars)
        content_hash = document.metadata["content_hash"]
        chunks = [
            Chunk(
                id=chunk_id_for(document.id, content_hash, i),
                document_id=document.id,
                tenant_id=document.tenant_id,
                index=i,
                text=span.text,
                char_start=span.char_start,
                char_end=span.char_end,
                token_count=estimate_tokens(span.text),
            )
            for i, span in enumerate(spans)
        ]
        old_ids = self.records.replace_chunks(document.tenant_id, document.id, chunks)
        if old_ids:
            self.gateway.delete(old_ids, document.tenant_id)
        return chunks

    def _index(self, document: Document, chunks: list[Chunk]) -> None:
        if not chunks:
            return
        try:
            vectors = self.embedder.embed_batch([c.text for c in chunks])
        except EmbeddingFailure:
            raise
        except Exception as e:
            raise EmbeddingFailure(str(e)) from e
        if len(vectors) != len(chunks):
            raise EmbeddingFailure(f"Expected {len(chunks)} embeddings, got {len(vectors)}")

        records = [
            VectorRecord(
                id=chunk.id,
                values=vector,
                metadata={
                    "chunk_id": chunk.id,
                    "document_id": document.id,
                    "tenant_id": document.tenant_id,
                },
            )
            for chunk, vector in zip(chunks, vectors)
        ]
        written = self.gateway.upsert(records, document.tenant_id)
        if self.gateway.enabled and len(written) != len(records):
            logger.warning(f"Only {len(written)}/{len(records)} vectors stored for {document.id}")
