"""Shared fixtures: deterministic embedder and completion fakes, in-memory stores."""

import re
import zlib

import pytest

from khub.errors import CompletionFailure, EmbeddingFailure
from khub.llm import Completion
from khub.models import Connector
from khub.qa import Answerer
from khub.ingest.processor import IngestionPipeline
from khub.storage.base import VectorStoreBase
from khub.storage.gateway import VectorGateway
from khub.storage.memory import InMemoryVectorStore
from khub.storage.records import MemoryRecordStore

DIMENSIONS = 64
TENANT = "tenant-a"
USER = "user-1"


class FakeEmbedder:
    """Bag-of-words hashing into a few buckets; similar text, similar vector."""

    configured = True

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = 0

    def _vector(self, text: str) -> list[float]:
        values = [0.0] * DIMENSIONS
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            values[zlib.crc32(word.encode()) % DIMENSIONS] += 1.0
        return values

    def embed(self, text: str) -> list[float]:
        self.calls += 1
        if self.fail:
            raise EmbeddingFailure("embedding service down")
        return self._vector(text)

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        if self.fail:
            raise EmbeddingFailure("embedding service down")
        return [self._vector(t) for t in texts]


class BrokenStore(VectorStoreBase):
    """A vector index that is always unreachable."""

    def upsert(self, namespace, records):
        raise ConnectionError("index down")

    def query(self, namespace, vector, top_k=10, where=None):
        raise ConnectionError("index down")

    def delete(self, namespace, ids):
        raise ConnectionError("index down")

    def count(self, namespace):
        raise ConnectionError("index down")


class FakeLLM:
    """Returns scripted replies in order and records the prompts it saw."""

    configured = True

    def __init__(self, replies: list[str] | None = None, fail: bool = False):
        self.replies = list(replies or [])
        self.fail = fail
        self.prompts: list[str] = []

    def complete(self, prompt, system=None, max_tokens=1500, json_mode=True) -> Completion:
        self.prompts.append(prompt)
        if self.fail:
            raise CompletionFailure("model unavailable")
        text = self.replies.pop(0) if self.replies else '{"answer": "", "sources": []}'
        return Completion(text=text, model="fake-model")


@pytest.fixture
def config():
    return {
        "embedding_dimensions": DIMENSIONS,
        "chunking": {"target_chars": 400, "overlap_chars": 50},
        "retrieval": {"top_k": 5, "max_snippets": 3, "excerpt_chars": 200},
        "memory": {"summary_every_turns": 3, "summary_window": 6, "summary_min_messages": 4},
    }


@pytest.fixture
def records():
    store = MemoryRecordStore()
    store.save_connector(Connector(id="org-drive", tenant_id=TENANT, type="google_drive", scope="organization"))
    store.save_connector(Connector(id="my-dropbox", tenant_id=TENANT, type="dropbox", scope="personal"))
    return store


@pytest.fixture
def vector_store():
    return InMemoryVectorStore()


@pytest.fixture
def gateway(vector_store):
    return VectorGateway(vector_store, DIMENSIONS)


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def pipeline(config, records, embedder, gateway):
    return IngestionPipeline(config, records, embedder, gateway)


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def answerer(config, records, embedder, gateway, llm):
    return Answerer(config, records, embedder, gateway, llm)
