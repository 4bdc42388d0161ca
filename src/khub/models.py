"""Data models used throughout the knowledge hub."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChunkSpan:
    """A slice of a source document produced by the chunker."""
    text: str
    char_start: int
    char_end: int


@dataclass
class Classification:
    """Document type, tags and extracted metadata for a piece of text."""
    doc_type: str = "general_document"
    tags: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class RawDocument:
    """A document as handed over by a connector, before extraction."""
    title: str
    external_id: str | None = None
    id: str | None = None
    mime_type: str = "text/plain"
    extracted_text: str | None = None
    content: str | bytes | None = None
    tmp_path: str | None = None
    source_url: str | None = None
    size: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    user_id: str | None = None
    owner_scope: str = "organization"


@dataclass
class Document:
    """A tenant-owned document and its classification."""
    tenant_id: str
    title: str
    id: str = field(default_factory=new_id)
    mime_type: str = "text/plain"
    doc_type: str = "general_document"
    tags: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    size: int = 0
    source_locator: str | None = None
    external_id: str | None = None
    connector_id: str | None = None
    user_id: str | None = None
    owner_scope: str = "organization"  # personal | organization
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class Chunk:
    """A contiguous slice of a document's extracted text."""
    id: str
    document_id: str
    tenant_id: str
    index: int
    text: str
    char_start: int
    char_end: int
    token_count: int = 0
    embedding: list[float] | None = None


@dataclass
class Connector:
    """A configured source of documents for a tenant."""
    tenant_id: str
    type: str
    id: str = field(default_factory=new_id)
    label: str = ""
    scope: str = "organization"  # personal | organization


@dataclass
class VectorRecord:
    id: str
    values: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class VectorMatch:
    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class IngestResult:
    """Outcome of processing one document."""
    success: bool
    document_id: str | None = None
    chunks_created: int = 0
    error: str | None = None
    processing_time_ms: int = 0
    classification: Classification | None = None


@dataclass
class BatchResult:
    """Accumulated outcome of a batch of documents."""
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    total_chunks: int = 0
    cancelled: bool = False
    errors: list[dict[str, str]] = field(default_factory=list)


@dataclass
class RoutingDecision:
    """Which knowledge sources a query should consult."""
    search_documents: bool
    search_memory: bool
    attach_last_answer: bool
    route_type: str  # meta | refinement | hybrid | document
    confidence: float
    reasoning: str
    matched: list[str] = field(default_factory=list)


@dataclass
class Snippet:
    """A retrieved chunk, ready to be shown to the model."""
    chunk_id: str
    document_id: str
    text: str
    char_start: int
    char_end: int
    score: float = 0.0
    document_title: str = ""
    doc_type: str = ""


@dataclass
class Source:
    """A snippet cited in an answer. ``id`` is the 1-based prompt number."""
    id: int
    chunk_id: str
    document_id: str
    title: str
    excerpt: str
    char_start: int
    char_end: int
    score: float = 0.0


@dataclass
class Answer:
    answer: str
    sources: list[Source] = field(default_factory=list)
    raw_model_output: str | None = None
    model: str | None = None
    error: str | None = None


@dataclass
class EntityQuery:
    """Detection result for multi-document entity questions."""
    is_entity_query: bool
    entity_type: str | None = None  # person | company | product | entity
    intent: str | None = None
    keywords: list[str] = field(default_factory=list)
    is_count_query: bool = False
    confidence: float = 0.0


@dataclass
class EntityRecord:
    """One distinct entity found across documents."""
    name: str
    document_id: str
    document_title: str
    matched_attributes: list[str] = field(default_factory=list)
    all_attributes: list[str] = field(default_factory=list)
    email: str | None = None
    phone: str | None = None
    summary: str = ""
    source_type: str = ""


@dataclass
class EntitySearchResult:
    entities: list[EntityRecord]
    total: int
    entity_type: str | None = None

    @property
    def names(self) -> list[str]:
        return [e.name for e in self.entities]


@dataclass
class NameMatchResult:
    """Which requested-name matches exist in the caller's visible snippets."""
    requested_name: str
    exact_matches: list[str] = field(default_factory=list)
    partial_matches: list[str] = field(default_factory=list)
    all_found_names: list[str] = field(default_factory=list)
    confidence: float = 0.0

    @property
    def has_exact_match(self) -> bool:
        return bool(self.exact_matches)

    @property
    def has_partial_match(self) -> bool:
        return bool(self.partial_matches)

    @property
    def no_matches(self) -> bool:
        return not self.exact_matches and not self.partial_matches


@dataclass
class Conversation:
    tenant_id: str
    user_id: str
    id: str = field(default_factory=new_id)
    title: str = ""
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Message:
    conversation_id: str
    role: str  # user | assistant
    content: str
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class ConversationSummary:
    """An immutable digest of a window of conversation turns."""
    conversation_id: str
    tenant_id: str
    user_id: str
    summary_text: str
    id: str = field(default_factory=new_id)
    key_topics: list[str] = field(default_factory=list)
    entities: list[str] = field(default_factory=list)
    decisions: list[str] = field(default_factory=list)
    message_count: int = 0
    turn_start: int = 0
    turn_end: int = 0
    period_start: datetime | None = None
    period_end: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class SessionHit:
    """A past conversation summary matching a cross-session question."""
    summary: ConversationSummary
    relevance: int
    time_ago: str
    date: str


@dataclass
class QueryLog:
    """Analytics event recorded for every answered query."""
    tenant_id: str
    query_text: str
    id: str = field(default_factory=new_id)
    user_id: str | None = None
    top_k: int = 0
    result_chunk_ids: list[str] = field(default_factory=list)
    result_count: int = 0
    model: str | None = None
    created_at: datetime = field(default_factory=utcnow)
