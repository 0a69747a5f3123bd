"""Reference catalog facade.

Thin read/write access to the collections audits draw from (assets,
threats, vulnerabilities, safeguards, relations).  Collection names are
resolved through ``Collection.resolve``; audit collections are not
reachable from here.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from auditmcp.errors import NotFoundError
from auditmcp.errors import ValidationError
from auditmcp.store.base import Document
from auditmcp.store.base import DocumentStore
from auditmcp.store.collections import CATALOG_COLLECTIONS
from auditmcp.store.collections import Collection

logger = logging.getLogger(__name__)


def resolve_catalog(name: str) -> Collection:
    """Resolve *name* to a catalog collection or raise ``ValidationError``."""
    collection = Collection.resolve(name)
    if collection not in CATALOG_COLLECTIONS:
        raise ValidationError(f"{collection.value} is not a catalog collection")
    return collection


class CatalogService:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def list_items(self, name: str) -> list[Document]:
        collection = resolve_catalog(name)
        items = await self._store.find(collection.value)
        logger.debug("Listed %d items from %s", len(items), collection.value)
        return items

    async def create_item(self, name: str, item: Mapping[str, Any]) -> Document:
        if not isinstance(item, Mapping) or not item:
            raise ValidationError("item must be a non-empty object")
        collection = resolve_catalog(name)
        item_id = await self._store.insert(collection.value, dict(item))
        logger.info("Created item %s in %s", item_id, collection.value)
        return {**item, "id": item_id}

    async def update_item(
        self, name: str, item_id: str, fields: Mapping[str, Any]
    ) -> Document:
        """Overlay *fields* on the item; the id itself cannot change."""
        if not isinstance(fields, Mapping):
            raise ValidationError("fields must be an object")
        collection = resolve_catalog(name)
        patch = {key: value for key, value in fields.items() if key != "id"}
        matched = await self._store.update_one(collection.value, {"id": item_id}, patch)
        if not matched:
            raise NotFoundError(f"Item {item_id} not found in {collection.value}")
        updated = await self._store.find_one(collection.value, {"id": item_id})
        if updated is None:
            raise NotFoundError(f"Item {item_id} not found in {collection.value}")
        return updated

    async def delete_item(self, name: str, item_id: str) -> None:
        collection = resolve_catalog(name)
        deleted = await self._store.delete_one(collection.value, {"id": item_id})
        if not deleted:
            raise NotFoundError(f"Item {item_id} not found in {collection.value}")
        logger.info("Deleted item %s from %s", item_id, collection.value)

    async def overview(self) -> dict[str, int]:
        """Document count per known collection."""
        counts: dict[str, int] = {}
        for collection in Collection:
            if collection is Collection.COUNTERS:
                continue
            counts[collection.value] = await self._store.count_documents(
                collection.value
            )
        return counts
