"""Pydantic models returned by the MCP tools.

Every result carries ``status`` (``ok``, ``not_found``, ``rejected`` or
``unavailable``) plus ``error_code`` and ``message`` on failure.
FastMCP v2 serializes these models automatically.
"""

from __future__ import annotations

from typing import Any
from typing import Literal

from pydantic import BaseModel
from pydantic import Field

from auditmcp.audits.schemas import AuditRecord
from auditmcp.journal.schemas import LifecycleEvent

ToolStatus = Literal["ok", "not_found", "rejected", "unavailable"]


class ToolResult(BaseModel):
    """Fields shared by every tool result."""

    status: ToolStatus = Field(
        default="ok",
        description="Outcome of the call.",
    )
    error_code: str | None = Field(
        default=None,
        description="Machine-readable failure kind, set when status is not ok.",
    )
    message: str | None = Field(
        default=None,
        description="Human-readable failure detail.",
    )


class AuditResult(ToolResult):
    """Result of a single-record lifecycle operation."""

    audit: AuditRecord | None = None


class AuditListResult(ToolResult):
    """Result of a listing operation."""

    audits: list[AuditRecord] = Field(default_factory=list)
    total: int = 0


class AuditHistoryResult(ToolResult):
    """Journaled lifecycle events of one record, oldest first."""

    audit_id: str | None = None
    events: list[LifecycleEvent] = Field(default_factory=list)


class CatalogListResult(ToolResult):
    collection: str | None = None
    items: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0


class CatalogItemResult(ToolResult):
    collection: str | None = None
    item: dict[str, Any] | None = None


class StoreStatusResult(ToolResult):
    """Store readiness, collection sizes and counter positions."""

    ready: bool = False
    collections: dict[str, int] = Field(default_factory=dict)
    sequences: dict[str, int] = Field(default_factory=dict)
    latency: dict[str, dict[str, float | int]] = Field(default_factory=dict)
