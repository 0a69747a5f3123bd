"""Lifecycle event types and data models."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field


class LifecycleEventType(str, Enum):
    """Categories of journaled lifecycle events."""

    AUDIT_STARTED = "AUDIT_STARTED"
    DRAFT_SAVED = "DRAFT_SAVED"
    ANSWERS_MERGED = "ANSWERS_MERGED"
    AUDIT_FINALIZED = "AUDIT_FINALIZED"
    AUDIT_SUBMITTED = "AUDIT_SUBMITTED"
    SEQUENCE_FALLBACK = "SEQUENCE_FALLBACK"


class LifecycleEvent(BaseModel):
    """One immutable journal entry."""

    model_config = {"frozen": True}

    timestamp: float = Field(
        default_factory=time.time,
        description="Unix epoch when the event occurred.",
    )
    event_type: LifecycleEventType = Field(
        description="Kind of lifecycle event.",
    )
    record_id: str | None = Field(
        default=None,
        description="Audit or draft the event refers to, when there is one.",
    )
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Event-specific data (sequence, state, owner id...).",
    )
