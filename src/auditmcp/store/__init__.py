"""Store domain — document store contract, Redis implementation, connection."""

from auditmcp.store.base import ASCENDING
from auditmcp.store.base import DESCENDING
from auditmcp.store.base import Document
from auditmcp.store.base import DocumentStore
from auditmcp.store.collections import CATALOG_COLLECTIONS
from auditmcp.store.collections import Collection
from auditmcp.store.connection import StoreConnection
from auditmcp.store.redis_store import RedisDocumentStore

__all__ = [
    "ASCENDING",
    "CATALOG_COLLECTIONS",
    "Collection",
    "DESCENDING",
    "Document",
    "DocumentStore",
    "RedisDocumentStore",
    "StoreConnection",
]
