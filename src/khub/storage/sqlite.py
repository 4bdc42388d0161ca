"""SQLite record store.

Rows keep the columns needed for lookups and the full record as JSON. A new
connection is opened per operation so one store can be shared by threads.
"""

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime
from pathlib import Path

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
from .records import RecordStore

_DATETIME_FIELDS = {"created_at", "updated_at", "period_start", "period_end"}

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    connector_id TEXT,
    external_id TEXT,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_documents_external ON documents (tenant_id, connector_id, external_id);

CREATE TABLE IF NOT EXISTS chunks (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    document_id TEXT NOT NULL,
    idx INTEGER NOT NULL,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks (tenant_id, document_id);

CREATE TABLE IF NOT EXISTS connectors (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    data TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS connector_permissions (
    connector_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    PRIMARY KEY (connector_id, user_id)
);

CREATE TABLE IF NOT EXISTS conversations (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    data TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL,
    conversation_id TEXT NOT NULL,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages (conversation_id);

CREATE TABLE IF NOT EXISTS summaries (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL,
    conversation_id TEXT NOT NULL,
    tenant_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    data TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS query_logs (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    data TEXT NOT NULL
);
"""


def _dump(record) -> str:
    def default(value):
        if isinstance(value, datetime):
            return value.isoformat()
        raise TypeError(f"Not JSON serializable: {type(value).__name__}")

    return json.dumps(asdict(record), default=default)


def _load(cls, payload: str):
    data = json.loads(payload)
    for key in _DATETIME_FIELDS & data.keys():
        if data[key]:
            data[key] = datetime.fromisoformat(data[key])
    return cls(**data)


class SqliteRecordStore(RecordStore):
    """Record store persisted in a single SQLite file."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    # Documents

    def save_document(self, document):
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO documents (id, tenant_id, connector_id, external_id, data) "
                "VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET connector_id = excluded.connector_id, "
                "external_id = excluded.external_id, data = excluded.data "
                "WHERE documents.tenant_id = excluded.tenant_id",
                (document.id, document.tenant_id, document.connector_id,
                 document.external_id, _dump(document)),
            )
            if cursor.rowcount == 0:
                raise DocumentConflict(f"Document id {document.id} belongs to another tenant")
        return document

    def get_document(self, tenant_id, document_id):
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM documents WHERE tenant_id = ? AND id = ?",
                (tenant_id, document_id),
            ).fetchone()
        return _load(Document, row[0]) if row else None

    def find_document(self, tenant_id, connector_id, external_id):
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM documents WHERE tenant_id = ? AND connector_id IS ? AND external_id = ?",
                (tenant_id, connector_id, external_id),
            ).fetchone()
        return _load(Document, row[0]) if row else None

    def list_documents(self, tenant_id):
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT data FROM documents WHERE tenant_id = ? ORDER BY rowid", (tenant_id,)
            ).fetchall()
        return [_load(Document, r[0]) for r in rows]

    def delete_document(self, tenant_id, document_id):
        with self._connect() as conn:
            found = conn.execute(
                "SELECT 1 FROM documents WHERE tenant_id = ? AND id = ?", (tenant_id, document_id)
            ).fetchone()
            if not found:
                return []
            ids = [r[0] for r in conn.execute(
                "SELECT id FROM chunks WHERE tenant_id = ? AND document_id = ?", (tenant_id, document_id)
            )]
            conn.execute("DELETE FROM chunks WHERE tenant_id = ? AND document_id = ?", (tenant_id, document_id))
            conn.execute("DELETE FROM documents WHERE tenant_id = ? AND id = ?", (tenant_id, document_id))
        return ids

    # Chunks

    def replace_chunks(self, tenant_id, document_id, chunks):
        with self._connect() as conn:
            old = [r[0] for r in conn.execute(
                "SELECT id FROM chunks WHERE tenant_id = ? AND document_id = ?", (tenant_id, document_id)
            )]
            conn.execute("DELETE FROM chunks WHERE tenant_id = ? AND document_id = ?", (tenant_id, document_id))
            conn.executemany(
                "INSERT OR REPLACE INTO chunks (id, tenant_id, document_id, idx, data) VALUES (?, ?, ?, ?, ?)",
                [(c.id, c.tenant_id, c.document_id, c.index, _dump(c)) for c in chunks],
            )
        return old

    def get_chunks(self, tenant_id, chunk_ids):
        if not chunk_ids:
            return {}
        placeholders = ",".join("?" for _ in chunk_ids)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT id, data FROM chunks WHERE tenant_id = ? AND id IN ({placeholders})",
                (tenant_id, *chunk_ids),
            ).fetchall()
        return {r[0]: _load(Chunk, r[1]) for r in rows}

    def list_chunks(self, tenant_id, document_id):
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT data FROM chunks WHERE tenant_id = ? AND document_id = ? ORDER BY idx",
                (tenant_id, document_id),
            ).fetchall()
        return [_load(Chunk, r[0]) for r in rows]

    def count_chunks(self, tenant_id):
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM chunks WHERE tenant_id = ?", (tenant_id,)).fetchone()[0]

    # Connectors

    def save_connector(self, connector):
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO connectors (id, tenant_id, data) VALUES (?, ?, ?)",
                (connector.id, connector.tenant_id, _dump(connector)),
            )
        return connector

    def get_connector(self, tenant_id, connector_id):
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM connectors WHERE tenant_id = ? AND id = ?", (tenant_id, connector_id)
            ).fetchone()
        return _load(Connector, row[0]) if row else None

    def grant_permission(self, connector_id, user_id):
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO connector_permissions (connector_id, user_id) VALUES (?, ?)",
                (connector_id, user_id),
            )

    def has_permission(self, connector_id, user_id):
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM connector_permissions WHERE connector_id = ? AND user_id = ?",
                (connector_id, user_id),
            ).fetchone()
        return row is not None

    # Conversations

    def save_conversation(self, conversation):
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO conversations (id, tenant_id, data) VALUES (?, ?, ?)",
                (conversation.id, conversation.tenant_id, _dump(conversation)),
            )
        return conversation

    def get_conversation(self, tenant_id, conversation_id):
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM conversations WHERE tenant_id = ? AND id = ?", (tenant_id, conversation_id)
            ).fetchone()
        return _load(Conversation, row[0]) if row else None

    def add_message(self, message):
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO messages (id, conversation_id, data) VALUES (?, ?, ?)",
                (message.id, message.conversation_id, _dump(message)),
            )
        return message

    def list_messages(self, conversation_id):
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT data FROM messages WHERE conversation_id = ? ORDER BY seq", (conversation_id,)
            ).fetchall()
        return [_load(Message, r[0]) for r in rows]

    def add_summary(self, summary):
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO summaries (id, conversation_id, tenant_id, user_id, created_at, data) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (summary.id, summary.conversation_id, summary.tenant_id, summary.user_id,
                 summary.created_at.isoformat(), _dump(summary)),
            )
        return summary

    def list_summaries(self, conversation_id):
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT data FROM summaries WHERE conversation_id = ? ORDER BY seq", (conversation_id,)
            ).fetchall()
        return [_load(ConversationSummary, r[0]) for r in rows]

    def list_user_summaries(self, tenant_id, user_id):
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT data FROM summaries WHERE tenant_id = ? AND user_id = ? "
                "ORDER BY created_at DESC, seq DESC",
                (tenant_id, user_id),
            ).fetchall()
        return [_load(ConversationSummary, r[0]) for r in rows]

    # Analytics

    def log_query(self, entry):
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO query_logs (id, tenant_id, data) VALUES (?, ?, ?)",
                (entry.id, entry.tenant_id, _dump(entry)),
            )

    def list_query_logs(self, tenant_id):
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT data FROM query_logs WHERE tenant_id = ? ORDER BY rowid", (tenant_id,)
            ).fetchall()
        return [_load(QueryLog, r[0]) for r in rows]
