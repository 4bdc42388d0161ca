"""Wiring: build the ingestion and query services from configuration."""

import logging
from dataclasses import dataclass, field
from typing import Any

from .chat import ChatService
from .embeddings.embedder import Embedder, EmbeddingUsage
from .ingest.processor import IngestionPipeline
from .llm import CompletionClient
from .memory.sessions import SessionMemory
from .models import Connector
from .qa import Answerer
from .query.access import DocumentAccess
from .query.entities import EntitySearch
from .query.names import NameMatcher
from .storage import VectorGateway, get_record_store, get_vector_store
from .storage.records import RecordStore

logger = logging.getLogger(__name__)

LOCAL_CONNECTOR_ID = "local-upload"


@dataclass
class UsageMeter:
    """Running embedding usage for this process."""
    calls: int = 0
    tokens: int = 0
    cost_usd: float = 0.0

    def record(self, usage: EmbeddingUsage) -> None:
        self.calls += 1
        self.tokens += usage.tokens
        self.cost_usd += usage.cost_usd
        logger.debug(f"Embedded ~{usage.tokens} tokens with {usage.model} (${usage.cost_usd:.6f})")


@dataclass
class Services:
    config: dict[str, Any]
    records: RecordStore
    embedder: Embedder
    gateway: VectorGateway
    llm: CompletionClient
    pipeline: IngestionPipeline
    answerer: Answerer
    entity_search: EntitySearch
    name_matcher: NameMatcher
    session_memory: SessionMemory
    chat: ChatService
    usage: UsageMeter = field(default_factory=UsageMeter)


def ensure_local_connector(records: RecordStore, tenant_id: str) -> Connector:
    """The organization-scoped connector that local files are ingested under."""
    connector = records.get_connector(tenant_id, LOCAL_CONNECTOR_ID)
    if connector is None:
        connector = records.save_connector(Connector(
            id=LOCAL_CONNECTOR_ID,
            tenant_id=tenant_id,
            type="manual_upload",
            label="Local files",
            scope="organization",
        ))
        logger.info(f"Created local upload connector for tenant {tenant_id}")
    return connector


def build_services(
    config: dict[str, Any],
    records: RecordStore | None = None,
    embedder: Embedder | None = None,
    llm: CompletionClient | None = None,
) -> Services:
    """Build every service from config; pass stores or clients to override them."""
    usage = UsageMeter()
    records = records or get_record_store(config)
    embedder = embedder or Embedder(config, on_usage=usage.record)
    llm = llm or CompletionClient(config)
    gateway = VectorGateway(get_vector_store(config), config.get("embedding_dimensions"))
    access = DocumentAccess(records)

    answerer = Answerer(config, records, embedder, gateway, llm)
    entity_search = EntitySearch(records, access)
    name_matcher = NameMatcher(records, access)
    session_memory = SessionMemory(config, records, llm)
    return Services(
        config=config,
        records=records,
        embedder=embedder,
        gateway=gateway,
        llm=llm,
        pipeline=IngestionPipeline(config, records, embedder, gateway),
        answerer=answerer,
        entity_search=entity_search,
        name_matcher=name_matcher,
        session_memory=session_memory,
        chat=ChatService(config, records, answerer, entity_search, name_matcher, session_memory),
        usage=usage,
    )
