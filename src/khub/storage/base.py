"""Abstract base class for vector stores and factory function."""

from abc import ABC, abstractmethod
from typing import Any

from ..models import VectorMatch, VectorRecord


class VectorStoreBase(ABC):
    """Common interface for vector index backends.

    Every call is scoped to a namespace (the tenant id). Backends raise
    VectorStoreUnavailable when the index cannot be reached.
    """

    configured = True

    @abstractmethod
    def upsert(self, namespace: str, records: list[VectorRecord]) -> None:
        """Insert or replace records by id."""

    @abstractmethod
    def query(
        self,
        namespace: str,
        vector: list[float],
        top_k: int = 10,
        where: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Return up to top_k matches, best first.

        ``where`` maps metadata keys to a value or to ``{"$in": [values]}``.
        """

    @abstractmethod
    def delete(self, namespace: str, ids: list[str]) -> None:
        """Delete records by id; unknown ids are ignored."""

    @abstractmethod
    def count(self, namespace: str) -> int:
        """Number of records in a namespace."""


class NullVectorStore(VectorStoreBase):
    """Stand-in used when no vector index is configured."""

    configured = False

    def upsert(self, namespace: str, records: list[VectorRecord]) -> None:
        return None

    def query(self, namespace, vector, top_k=10, where=None) -> list[VectorMatch]:
        return []

    def delete(self, namespace: str, ids: list[str]) -> None:
        return None

    def count(self, namespace: str) -> int:
        return 0


def matches_where(metadata: dict[str, Any], where: dict[str, Any] | None) -> bool:
    """Evaluate a simple metadata filter (equality and ``$in``)."""
    if not where:
        return True
    for key, cond in where.items():
        value = metadata.get(key)
        if isinstance(cond, dict) and "$in" in cond:
            if value not in cond["$in"]:
                return False
        elif value != cond:
            return False
    return True


def get_vector_store(config: dict[str, Any]) -> VectorStoreBase:
    """Factory: return the right vector store based on config."""
    backend = config.get("storage_backend", "chromadb")

    if backend == "chromadb":
        from .chromadb import ChromaVectorStore
        return ChromaVectorStore(config["chroma_path"])
    elif backend == "memory":
        from .memory import InMemoryVectorStore
        return InMemoryVectorStore()
    elif backend in (None, "", "none"):
        return NullVectorStore()
    else:
        raise ValueError(f"Unknown storage_backend: {backend}")
