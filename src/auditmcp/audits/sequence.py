"""Per-scope sequence numbers backed by an atomic store counter."""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable

from auditmcp.config import SequenceConfig
from auditmcp.errors import StoreUnavailableError
from auditmcp.journal import EventJournal
from auditmcp.journal import LifecycleEventType
from auditmcp.store.base import DocumentStore

logger = logging.getLogger(__name__)

AUDITS_SCOPE = "auditorias"
DRAFTS_SCOPE = "borradores"

_COUNTER_FIELD = "sequence_value"


class SequenceGenerator:
    """Hands out strictly increasing integers per scope.

    Each call is a single upsert-and-increment on the counters collection,
    so concurrent callers never share a value.  When the store is down the
    generator fails open with a clock-derived value (milliseconds times
    1000 plus a random suffix).  That value is larger than any counter in
    practice but is not guaranteed unique.
    """

    def __init__(
        self,
        store: DocumentStore,
        config: SequenceConfig | None = None,
        *,
        journal: EventJournal | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self.config = config or SequenceConfig()
        self._journal = journal
        self._clock = clock

    async def next_sequence(self, scope: str) -> int:
        """Increment the counter for *scope* and return the new value."""
        try:
            counter = await self._store.find_one_and_update(
                self.config.counters_collection,
                {"id": scope},
                {_COUNTER_FIELD: 1},
                upsert=True,
            )
            if counter is None:
                raise StoreUnavailableError(f"Counter upsert for {scope!r} returned nothing")
        except StoreUnavailableError:
            if not self.config.fallback_enabled:
                raise
            return await self._fallback(scope)
        return int(counter[_COUNTER_FIELD])

    async def current(self, scope: str) -> int:
        """Return the last value handed out for *scope* (0 if none)."""
        counter = await self._store.find_one_and_update(
            self.config.counters_collection,
            {"id": scope},
            {_COUNTER_FIELD: 0},
        )
        return int(counter[_COUNTER_FIELD]) if counter else 0

    async def _fallback(self, scope: str) -> int:
        suffix = secrets.randbelow(max(self.config.fallback_suffix_range, 1))
        value = int(self._clock() * 1000) * 1000 + suffix
        logger.warning(
            "Counter store unavailable for scope %s; using clock fallback %d",
            scope,
            value,
        )
        if self._journal is not None:
            await self._journal.record(
                LifecycleEventType.SEQUENCE_FALLBACK, scope=scope, sequence=value
            )
        return value
