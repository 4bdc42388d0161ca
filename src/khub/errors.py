"""Error taxonomy.

Ingestion turns these into structured results, query-time code degrades to
empty or best-effort answers, and permission checks fail closed.
"""


class KhubError(Exception):
    """Base class for knowledge hub errors."""

    code = "error"


class ExtractionEmpty(KhubError):
    """No text could be extracted from a document."""

    code = "no_text_extracted"


class UnsupportedConnector(KhubError):
    code = "unsupported_connector"


class EmbeddingFailure(KhubError):
    """The embedding service failed or is not configured."""

    code = "embedding_failed"


class VectorStoreUnavailable(KhubError):
    """The vector index could not be reached."""

    code = "vector_store_unavailable"


class CompletionFailure(KhubError):
    """The completion service failed or is not configured."""

    code = "completion_failed"


class ModelParseFailure(KhubError):
    """The model did not return the expected JSON."""

    code = "model_parse_failed"


class PermissionDenied(KhubError):
    code = "permission_denied"


class NotFound(KhubError):
    code = "not_found"


class DocumentConflict(KhubError):
    """A document id is already owned by another tenant."""

    code = "document_conflict"
