"""Storage: vector index backends and the relational record store."""

from .base import NullVectorStore, VectorStoreBase, get_vector_store
from .gateway import VectorGateway
from .records import MemoryRecordStore, RecordStore


def get_record_store(config: dict) -> RecordStore:
    """Factory: return the record store selected by ``record_backend``."""
    backend = config.get("record_backend", "sqlite")
    if backend == "sqlite":
        from .sqlite import SqliteRecordStore
        return SqliteRecordStore(config["database_path"])
    elif backend == "memory":
        return MemoryRecordStore()
    else:
        raise ValueError(f"Unknown record_backend: {backend}")


__all__ = [
    "VectorStoreBase", "NullVectorStore", "get_vector_store", "VectorGateway",
    "RecordStore", "MemoryRecordStore", "get_record_store",
]
