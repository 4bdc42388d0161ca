"""ChromaDB vector store backend, one cosine collection per namespace."""

import hashlib
import re
from pathlib import Path
from typing import Any

import chromadb

from ..errors import VectorStoreUnavailable
from ..models import VectorMatch, VectorRecord
from .base import VectorStoreBase

_INVALID = re.compile(r"[^a-zA-Z0-9_-]")


def collection_name(namespace: str) -> str:
    """Map a namespace to a valid Chroma collection name (3-63 chars).

    Names that had to be rewritten carry a hash of the original namespace,
    so distinct namespaces never share a collection.
    """
    safe = _INVALID.sub("_", namespace)
    name = "ns-" + safe
    if safe == namespace and len(name) <= 63 and name == name.rstrip("_-"):
        return name
    digest = hashlib.sha256(namespace.encode("utf-8")).hexdigest()[:16]
    prefix = safe[:40].rstrip("_-")
    return f"ns-{prefix}-{digest}" if prefix else f"ns-{digest}"


def _to_chroma_where(where: dict[str, Any] | None) -> dict[str, Any] | None:
    if not where:
        return None
    clauses = [{k: v} for k, v in where.items()]
    return clauses[0] if len(clauses) == 1 else {"$and": clauses}


class ChromaVectorStore(VectorStoreBase):
    """ChromaDB-backed persistent vector store."""

    def __init__(self, chroma_path: str):
        self.chroma_path = Path(chroma_path)
        self.chroma_path.mkdir(parents=True, exist_ok=True)
        self.client = chromadb.PersistentClient(path=str(self.chroma_path))

    def _collection(self, namespace: str) -> chromadb.Collection:
        return self.client.get_or_create_collection(
            name=collection_name(namespace),
            metadata={"hnsw:space": "cosine"},
        )

    def upsert(self, namespace: str, records: list[VectorRecord]) -> None:
        if not records:
            return
        try:
            self._collection(namespace).upsert(
                ids=[r.id for r in records],
                embeddings=[r.values for r in records],
                metadatas=[r.metadata for r in records],
            )
        except Exception as e:
            raise VectorStoreUnavailable(f"Chroma upsert failed: {e}") from e

    def query(self, namespace, vector, top_k=10, where=None) -> list[VectorMatch]:
        try:
            collection = self._collection(namespace)
            total = collection.count()
            if total == 0:
                return []
            results = collection.query(
                query_embeddings=[vector],
                n_results=min(top_k, total),
                where=_to_chroma_where(where),
                include=["metadatas", "distances"],
            )
        except Exception as e:
            raise VectorStoreUnavailable(f"Chroma query failed: {e}") from e

        matches = []
        if results and results["ids"] and results["ids"][0]:
            metadatas = results["metadatas"][0] if results["metadatas"] else []
            distances = results["distances"][0] if results["distances"] else []
            for i, vec_id in enumerate(results["ids"][0]):
                distance = distances[i] if i < len(distances) else 1.0
                matches.append(VectorMatch(
                    id=vec_id,
                    score=1.0 - float(distance),
                    metadata=dict(metadatas[i] or {}) if i < len(metadatas) else {},
                ))
        return matches

    def delete(self, namespace: str, ids: list[str]) -> None:
        if not ids:
            return
        try:
            self._collection(namespace).delete(ids=ids)
        except Exception as e:
            raise VectorStoreUnavailable(f"Chroma delete failed: {e}") from e

    def count(self, namespace: str) -> int:
        try:
            return self._collection(namespace).count()
        except Exception as e:
            raise VectorStoreUnavailable(f"Chroma count failed: {e}") from e
