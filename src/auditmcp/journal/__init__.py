"""Journal subsystem — async JSONL log of audit lifecycle events."""

from auditmcp.journal.schemas import LifecycleEvent
from auditmcp.journal.schemas import LifecycleEventType
from auditmcp.journal.store import EventJournal

__all__ = [
    "EventJournal",
    "LifecycleEvent",
    "LifecycleEventType",
]
