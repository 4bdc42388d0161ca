"""In-process vector store using numpy cosine similarity."""

import threading

import numpy as np

from ..models import VectorMatch, VectorRecord
from .base import VectorStoreBase, matches_where


class InMemoryVectorStore(VectorStoreBase):
    """Dict-backed vector store for tests and ephemeral runs."""

    def __init__(self):
        self._spaces: dict[str, dict[str, tuple[np.ndarray, dict]]] = {}
        self._lock = threading.Lock()

    def upsert(self, namespace: str, records: list[VectorRecord]) -> None:
        with self._lock:
            space = self._spaces.setdefault(namespace, {})
            for r in records:
                space[r.id] = (np.asarray(r.values, dtype=float), dict(r.metadata))

    def query(self, namespace, vector, top_k=10, where=None) -> list[VectorMatch]:
        with self._lock:
            items = list(self._spaces.get(namespace, {}).items())
        q = np.asarray(vector, dtype=float)
        q_norm = np.linalg.norm(q)

        scored = []
        for vec_id, (values, metadata) in items:
            if not matches_where(metadata, where):
                continue
            denom = q_norm * np.linalg.norm(values)
            score = float(np.dot(q, values) / denom) if denom else 0.0
            scored.append(VectorMatch(id=vec_id, score=score, metadata=dict(metadata)))

        scored.sort(key=lambda m: m.score, reverse=True)
        return scored[:top_k]

    def delete(self, namespace: str, ids: list[str]) -> None:
        with self._lock:
            space = self._spaces.get(namespace, {})
            for vec_id in ids:
                space.pop(vec_id, None)

    def count(self, namespace: str) -> int:
        return len(self._spaces.get(namespace, {}))

    def ids(self, namespace: str) -> list[str]:
        return list(self._spaces.get(namespace, {}))
