"""Redis-backed document store.

Documents are stored as JSON strings keyed by
``{prefix}:{collection}:doc:{id}``.  A sorted set
``{prefix}:{collection}:ids`` tracks insertion order (score = insert time)
and is the source of truth for scans.  Counters live in one hash per
document, ``{prefix}:{collection}:counter:{id}``, so that increments are a
single atomic ``HINCRBY``.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from collections.abc import Iterator
from collections.abc import Mapping
from contextlib import contextmanager
from typing import Any

from redis.asyncio import Redis  # type: ignore[import-untyped]
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from auditmcp.errors import DuplicateKeyError
from auditmcp.errors import StoreUnavailableError
from auditmcp.store.base import Document
from auditmcp.store.base import Filter
from auditmcp.store.base import matches
from auditmcp.store.base import sort_documents
from auditmcp.store.base import SortSpec

logger = logging.getLogger(__name__)

_ID_FIELD = "id"


def _decode(raw: bytes | str) -> str:
    return raw.decode() if isinstance(raw, bytes) else raw


@contextmanager
def _store_errors(operation: str, collection: str) -> Iterator[None]:
    """Translate Redis connectivity failures into ``StoreUnavailableError``."""
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as exc:
        logger.warning(
            "Store unavailable during %s on %s: %s", operation, collection, exc
        )
        raise StoreUnavailableError(
            f"Document store unreachable during {operation} on {collection}"
        ) from exc


class RedisDocumentStore:
    """``DocumentStore`` implementation over ``redis.asyncio``."""

    def __init__(self, redis: Redis, *, prefix: str = "auditmcp") -> None:
        self._redis = redis
        self._prefix = prefix

    # -- keys --

    def _doc_key(self, collection: str, doc_id: str) -> str:
        return f"{self._prefix}:{collection}:doc:{doc_id}"

    def _ids_key(self, collection: str) -> str:
        return f"{self._prefix}:{collection}:ids"

    def _counter_key(self, collection: str, doc_id: str) -> str:
        return f"{self._prefix}:{collection}:counter:{doc_id}"

    # -- write --

    async def insert(self, collection: str, document: Document) -> str:
        """Insert *document* and return its id.

        An ``id`` is generated when the document has none.  Inserting an id
        that already exists raises ``DuplicateKeyError``.  The document and
        its index entry are written in one MULTI/EXEC transaction.
        """
        doc = dict(document)
        doc_id = str(doc.get(_ID_FIELD) or uuid.uuid4().hex)
        doc[_ID_FIELD] = doc_id
        data = json.dumps(doc, default=str)

        with _store_errors("insert", collection):
            pipe = self._redis.pipeline(transaction=True)
            pipe.set(self._doc_key(collection, doc_id), data, nx=True)
            # NX keeps an existing id at its original position.
            pipe.zadd(self._ids_key(collection), {doc_id: time.time()}, nx=True)
            created, _ = await pipe.execute()
        if not created:
            raise DuplicateKeyError(
                f"Document {doc_id!r} already exists in {collection}"
            )
        return doc_id

    async def update_one(
        self, collection: str, filter: Filter, patch: Mapping[str, Any]
    ) -> int:
        """Overlay *patch* on the first matching document (shallow ``$set``).

        Returns the number of matched documents (0 or 1).
        """
        current = await self.find_one(collection, filter)
        if current is None:
            return 0
        updated = {**current, **patch, _ID_FIELD: current[_ID_FIELD]}
        with _store_errors("update_one", collection):
            written = await self._redis.set(
                self._doc_key(collection, current[_ID_FIELD]),
                json.dumps(updated, default=str),
                xx=True,
            )
        return 1 if written else 0

    async def delete_one(self, collection: str, filter: Filter) -> int:
        current = await self.find_one(collection, filter)
        if current is None:
            return 0
        doc_id = current[_ID_FIELD]
        with _store_errors("delete_one", collection):
            pipe = self._redis.pipeline()
            pipe.delete(self._doc_key(collection, doc_id))
            pipe.zrem(self._ids_key(collection), doc_id)
            deleted, _ = await pipe.execute()
        return int(deleted)

    async def find_one_and_update(
        self,
        collection: str,
        filter: Filter,
        increment: Mapping[str, int],
        *,
        upsert: bool = False,
    ) -> Document | None:
        """Atomically increment counter fields and return the new values.

        Only id filters are supported: counters are addressed by id.  With
        ``upsert`` a missing counter is created starting from zero, so the
        first increment by one yields 1.
        """
        if set(filter) != {_ID_FIELD}:
            raise ValueError("find_one_and_update only supports filtering by id")
        doc_id = str(filter[_ID_FIELD])
        key = self._counter_key(collection, doc_id)
        fields = list(increment)

        with _store_errors("find_one_and_update", collection):
            if not upsert and not await self._redis.exists(key):
                return None
            pipe = self._redis.pipeline(transaction=True)
            for field in fields:
                pipe.hincrby(key, field, int(increment[field]))
            values = await pipe.execute()
        return {_ID_FIELD: doc_id, **dict(zip(fields, (int(v) for v in values)))}

    # -- read --

    async def find_one(
        self,
        collection: str,
        filter: Filter,
        sort: SortSpec | None = None,
    ) -> Document | None:
        if set(filter) == {_ID_FIELD}:
            with _store_errors("find_one", collection):
                raw = await self._redis.get(
                    self._doc_key(collection, str(filter[_ID_FIELD]))
                )
            return json.loads(raw) if raw is not None else None

        found = await self.find(collection, filter, sort)
        return found[0] if found else None

    async def find(
        self,
        collection: str,
        filter: Filter | None = None,
        sort: SortSpec | None = None,
    ) -> list[Document]:
        """Return all matching documents, in insertion order unless sorted."""
        with _store_errors("find", collection):
            raw_ids = await self._redis.zrange(self._ids_key(collection), 0, -1)
            if not raw_ids:
                return []
            ids = [_decode(raw_id) for raw_id in raw_ids]
            pipe = self._redis.pipeline()
            for doc_id in ids:
                pipe.get(self._doc_key(collection, doc_id))
            raw_docs = await pipe.execute()

        stale_ids: list[str] = []
        results: list[Document] = []
        for doc_id, raw in zip(ids, raw_docs):
            if raw is None:
                stale_ids.append(doc_id)
                continue
            document = json.loads(raw)
            if matches(document, filter):
                results.append(document)

        if stale_ids:
            with _store_errors("find", collection):
                await self._redis.zrem(self._ids_key(collection), *stale_ids)

        return sort_documents(results, sort)

    async def count_documents(
        self, collection: str, filter: Filter | None = None
    ) -> int:
        if filter:
            return len(await self.find(collection, filter))
        with _store_errors("count_documents", collection):
            return int(await self._redis.zcard(self._ids_key(collection)))

    async def ping(self) -> bool:
        with _store_errors("ping", "*"):
            return bool(await self._redis.ping())

    async def clear(self) -> None:
        """Remove every key under this store's prefix (test helper)."""
        batch: list = []
        async for key in self._redis.scan_iter(match=f"{self._prefix}:*"):
            batch.append(key)
            if len(batch) >= 100:
                await self._redis.delete(*batch)
                batch.clear()
        if batch:
            await self._redis.delete(*batch)
