"""Tenant-namespaced access to the vector index."""

import logging
from typing import Any

from ..errors import VectorStoreUnavailable
from ..models import VectorMatch, VectorRecord
from .base import VectorStoreBase

logger = logging.getLogger(__name__)


def fit_dimensions(values: list[float], dimensions: int | None) -> list[float]:
    """Truncate or zero-pad a vector to the index width."""
    if not dimensions:
        return list(values)
    if len(values) >= dimensions:
        return list(values[:dimensions])
    return list(values) + [0.0] * (dimensions - len(values))


class VectorGateway:
    """Wraps a vector store with tenant isolation and graceful degradation.

    The namespace is always the tenant id. Writes that fail are logged and
    report nothing written; query failures raise VectorStoreUnavailable so
    callers can treat them as "no matches". A store that is not configured
    turns every call into a no-op.
    """

    def __init__(self, store: VectorStoreBase, dimensions: int | None = None):
        self.store = store
        self.dimensions = dimensions
        self.enabled = bool(getattr(store, "configured", True))
        if not self.enabled:
            logger.warning("Vector index not configured; vectors will not be stored or searched")

    def upsert(self, vectors: list[VectorRecord], namespace: str) -> list[str]:
        """Store vectors under a tenant namespace. Returns the ids written."""
        if not self.enabled or not vectors:
            return []
        if not namespace:
            logger.warning("Refusing vector upsert without a tenant namespace")
            return []

        records = []
        for v in vectors:
            metadata = dict(v.metadata)
            metadata["tenant_id"] = namespace
            records.append(VectorRecord(
                id=v.id,
                values=fit_dimensions(v.values, self.dimensions),
                metadata=metadata,
            ))
        try:
            self.store.upsert(namespace, records)
        except Exception as e:
            logger.error(f"Vector upsert failed for tenant {namespace} ({len(records)} vectors): {e}")
            return []
        return [r.id for r in records]

    def query(
        self,
        embedding: list[float],
        top_k: int,
        namespace: str,
        filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Nearest neighbours inside one tenant's namespace."""
        if not self.enabled:
            return []
        if not namespace:
            logger.warning("Refusing vector query without a tenant namespace")
            return []
        try:
            matches = self.store.query(
                namespace, fit_dimensions(embedding, self.dimensions), top_k, filter
            )
        except VectorStoreUnavailable:
            raise
        except Exception as e:
            raise VectorStoreUnavailable(f"Vector query failed: {e}") from e

        isolated = [m for m in matches if m.metadata.get("tenant_id") == namespace]
        if len(isolated) != len(matches):
            logger.error(
                f"Dropped {len(matches) - len(isolated)} foreign-tenant matches from namespace {namespace}"
            )
        return isolated

    def delete(self, ids: list[str], namespace: str) -> list[str]:
        """Remove vectors by id. Returns the ids requested for deletion."""
        if not self.enabled or not ids or not namespace:
            return []
        try:
            self.store.delete(namespace, ids)
        except Exception as e:
            logger.error(f"Vector delete failed for tenant {namespace} ({len(ids)} ids): {e}")
            return []
        return list(ids)

    def count(self, namespace: str) -> int:
        if not self.enabled:
            return 0
        try:
            return self.store.count(namespace)
        except Exception as e:
            logger.warning(f"Vector count failed for tenant {namespace}: {e}")
            return 0
