"""Lifecycle event journal backed by a local JSONL file.

One line per event.  Writes and reads go through ``asyncio.to_thread``;
the journal lock orders them so a reader never sees a half-written line.
Readers tolerate damaged lines: they are logged and skipped.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from pydantic import ValidationError

from auditmcp.config import JournalConfig
from auditmcp.journal.schemas import LifecycleEvent
from auditmcp.journal.schemas import LifecycleEventType

logger = logging.getLogger(__name__)


def _write_line(path: Path, line: str) -> None:
    with path.open("a", encoding="utf-8") as fh:
        fh.write(line)


def _load(path: Path) -> list[LifecycleEvent]:
    if not path.exists():
        return []
    events: list[LifecycleEvent] = []
    with path.open(encoding="utf-8") as fh:
        for line_no, line in enumerate(fh, start=1):
            if not line.strip():
                continue
            try:
                events.append(LifecycleEvent.model_validate_json(line))
            except ValidationError:
                logger.warning("Skipping damaged journal line %d in %s", line_no, path)
    return events


class EventJournal:
    """Records what happened to each audit and sequence counter."""

    def __init__(self, config: JournalConfig | None = None) -> None:
        self.config = config or JournalConfig()
        self._path = Path(self.config.file_path)
        self._lock = asyncio.Lock()

    async def record(
        self,
        event_type: LifecycleEventType,
        *,
        record_id: str | None = None,
        **payload: object,
    ) -> LifecycleEvent:
        """Journal a new event and return it."""
        event = LifecycleEvent(
            event_type=event_type, record_id=record_id, payload=payload
        )
        await self.log(event)
        return event

    async def log(self, event: LifecycleEvent) -> None:
        if not self.config.enabled:
            return
        async with self._lock:
            line = event.model_dump_json() + "\n"
            await asyncio.to_thread(_write_line, self._path, line)

    async def read_events(
        self,
        *,
        event_type: LifecycleEventType | None = None,
        record_id: str | None = None,
        since: float | None = None,
    ) -> list[LifecycleEvent]:
        """Return journaled events in write order, optionally filtered."""
        async with self._lock:
            events = await asyncio.to_thread(_load, self._path)
        return [
            event
            for event in events
            if (event_type is None or event.event_type == event_type)
            and (record_id is None or event.record_id == record_id)
            and (since is None or event.timestamp >= since)
        ]

    async def history(self, record_id: str) -> list[LifecycleEvent]:
        """Everything journaled for one audit or draft, oldest first."""
        events = await self.read_events(record_id=record_id)
        return sorted(events, key=lambda event: event.timestamp)
