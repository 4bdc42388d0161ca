"""Relational record store: documents, chunks, connectors, conversations.

Every document/chunk read takes the tenant id, so callers cannot reach
another tenant's rows by id alone.
"""

import threading
from abc import ABC, abstractmethod

from ..errors import DocumentConflict
from ..models import (
    Chunk,
    Connector,
    Conversation,
    ConversationSummary,
    Document,
    Message,
    QueryLog,
)


class RecordStore(ABC):
    """Persistence contract used by ingestion and querying."""

    # Documents

    @abstractmethod
    def save_document(self, document: Document) -> Document:
        """Insert or update a document by id.

        Raises:
            DocumentConflict: The id is already stored under another tenant.
        """

    @abstractmethod
    def get_document(self, tenant_id: str, document_id: str) -> Document | None:
        ...

    @abstractmethod
    def find_document(self, tenant_id: str, connector_id: str | None, external_id: str) -> Document | None:
        """Look up a document by its connector-side identifier."""

    @abstractmethod
    def list_documents(self, tenant_id: str) -> list[Document]:
        ...

    @abstractmethod
    def delete_document(self, tenant_id: str, document_id: str) -> list[str]:
        """Delete a document and its chunks. Returns the deleted chunk ids."""

    # Chunks

    @abstractmethod
    def replace_chunks(self, tenant_id: str, document_id: str, chunks: list[Chunk]) -> list[str]:
        """Swap a document's chunks for new ones. Returns the old chunk ids."""

    @abstractmethod
    def get_chunks(self, tenant_id: str, chunk_ids: list[str]) -> dict[str, Chunk]:
        """Fetch chunks by id; missing ids are absent from the result."""

    @abstractmethod
    def list_chunks(self, tenant_id: str, document_id: str) -> list[Chunk]:
        """A document's chunks in index order."""

    @abstractmethod
    def count_chunks(self, tenant_id: str) -> int:
        ...

    # Connectors and permissions

    @abstractmethod
    def save_connector(self, connector: Connector) -> Connector:
        ...

    @abstractmethod
    def get_connector(self, tenant_id: str, connector_id: str) -> Connector | None:
        ...

    @abstractmethod
    def grant_permission(self, connector_id: str, user_id: str) -> None:
        ...

    @abstractmethod
    def has_permission(self, connector_id: str, user_id: str) -> bool:
        ...

    # Conversations

    @abstractmethod
    def save_conversation(self, conversation: Conversation) -> Conversation:
        ...

    @abstractmethod
    def get_conversation(self, tenant_id: str, conversation_id: str) -> Conversation | None:
        ...

    @abstractmethod
    def add_message(self, message: Message) -> Message:
        ...

    @abstractmethod
    def list_messages(self, conversation_id: str) -> list[Message]:
        """Messages in chronological order."""

    @abstractmethod
    def add_summary(self, summary: ConversationSummary) -> ConversationSummary:
        ...

    @abstractmethod
    def list_summaries(self, conversation_id: str) -> list[ConversationSummary]:
        """Summaries of one conversation, oldest first."""

    @abstractmethod
    def list_user_summaries(self, tenant_id: str, user_id: str) -> list[ConversationSummary]:
        """All of a user's summaries, newest first."""

    # Analytics

    @abstractmethod
    def log_query(self, entry: QueryLog) -> None:
        ...

    @abstractmethod
    def list_query_logs(self, tenant_id: str) -> list[QueryLog]:
        ...


class MemoryRecordStore(RecordStore):
    """Dict-backed record store for tests and throwaway sessions."""

    def __init__(self):
        self._lock = threading.RLock()
        self.documents: dict[str, Document] = {}
        self.chunks: dict[str, Chunk] = {}
        self.connectors: dict[str, Connector] = {}
        self.permissions: set[tuple[str, str]] = set()
        self.conversations: dict[str, Conversation] = {}
        self.messages: list[Message] = []
        self.summaries: list[ConversationSummary] = []
        self.query_logs: list[QueryLog] = []

    def save_document(self, document: Document) -> Document:
        with self._lock:
            current = self.documents.get(document.id)
            if current is not None and current.tenant_id != document.tenant_id:
                raise DocumentConflict(f"Document id {document.id} belongs to another tenant")
            self.documents[document.id] = document
        return document

    def get_document(self, tenant_id, document_id):
        doc = self.documents.get(document_id)
        return doc if doc is not None and doc.tenant_id == tenant_id else None

    def find_document(self, tenant_id, connector_id, external_id):
        for doc in self.documents.values():
            if (doc.tenant_id == tenant_id and doc.connector_id == connector_id
                    and doc.external_id == external_id):
                return doc
        return None

    def list_documents(self, tenant_id):
        return [d for d in self.documents.values() if d.tenant_id == tenant_id]

    def delete_document(self, tenant_id, document_id):
        with self._lock:
            if self.get_document(tenant_id, document_id) is None:
                return []
            removed = self.replace_chunks(tenant_id, document_id, [])
            del self.documents[document_id]
        return removed

    def replace_chunks(self, tenant_id, document_id, chunks):
        with self._lock:
            old = [c.id for c in self.chunks.values()
                   if c.tenant_id == tenant_id and c.document_id == document_id]
            for chunk_id in old:
                del self.chunks[chunk_id]
            for chunk in chunks:
                self.chunks[chunk.id] = chunk
        return old

    def get_chunks(self, tenant_id, chunk_ids):
        found = {}
        for chunk_id in chunk_ids:
            chunk = self.chunks.get(chunk_id)
            if chunk is not None and chunk.tenant_id == tenant_id:
                found[chunk_id] = chunk
        return found

    def list_chunks(self, tenant_id, document_id):
        chunks = [c for c in self.chunks.values()
                  if c.tenant_id == tenant_id and c.document_id == document_id]
        return sorted(chunks, key=lambda c: c.index)

    def count_chunks(self, tenant_id):
        return sum(1 for c in self.chunks.values() if c.tenant_id == tenant_id)

    def save_connector(self, connector):
        self.connectors[connector.id] = connector
        return connector

    def get_connector(self, tenant_id, connector_id):
        connector = self.connectors.get(connector_id)
        return connector if connector is not None and connector.tenant_id == tenant_id else None

    def grant_permission(self, connector_id, user_id):
        self.permissions.add((connector_id, user_id))

    def has_permission(self, connector_id, user_id):
        return (connector_id, user_id) in self.permissions

    def save_conversation(self, conversation):
        self.conversations[conversation.id] = conversation
        return conversation

    def get_conversation(self, tenant_id, conversation_id):
        conv = self.conversations.get(conversation_id)
        return conv if conv is not None and conv.tenant_id == tenant_id else None

    def add_message(self, message):
        with self._lock:
            self.messages.append(message)
        return message

    def list_messages(self, conversation_id):
        return [m for m in self.messages if m.conversation_id == conversation_id]

    def add_summary(self, summary):
        with self._lock:
            self.summaries.append(summary)
        return summary

    def list_summaries(self, conversation_id):
        return [s for s in self.summaries if s.conversation_id == conversation_id]

    def list_user_summaries(self, tenant_id, user_id):
        mine = [s for s in self.summaries if s.tenant_id == tenant_id and s.user_id == user_id]
        return sorted(mine, key=lambda s: s.created_at, reverse=True)

    def log_query(self, entry):
        with self._lock:
            self.query_logs.append(entry)

    def list_query_logs(self, tenant_id):
        return [q for q in self.query_logs if q.tenant_id == tenant_id]
