"""Audit domain data models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import AliasChoices
from pydantic import BaseModel
from pydantic import Field
from pydantic import field_serializer
from pydantic import field_validator


class AuditState(str, Enum):
    """Lifecycle states, persisted verbatim."""

    in_progress = "en_progreso"
    draft = "borrador"
    completed = "completada"


class Owner(BaseModel):
    """Client that submitted an audit.

    Accepts both the English field names and the ``nombre``/``empresa``
    keys sent by the questionnaire front end.  Unknown keys are kept.
    """

    model_config = {"extra": "allow"}

    id: str | None = Field(
        default=None,
        description="Stable identifier of the client.",
    )
    name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("name", "nombre"),
    )
    email: str | None = None
    company: str | None = Field(
        default=None,
        validation_alias=AliasChoices("company", "empresa"),
    )

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)


class AuditSummary(BaseModel):
    """Figures derived when an audit is completed."""

    model_config = {"populate_by_name": True}

    total_assets: int = Field(
        default=0,
        alias="totalActivos",
        description="Sum of the ``cantidad`` field across answer categories.",
    )
    categories: list[str] = Field(
        default_factory=list,
        alias="categorias",
        description="Answer category names, in answer order.",
    )
    formatted_date: str | None = Field(
        default=None,
        alias="fechaFormateada",
        description="Completion date formatted for Spanish readers.",
    )


class AuditRecord(BaseModel):
    """An audit or draft as persisted in the document store."""

    id: str = Field(
        description="uuid4 hex for audits, BORRADOR_{millis}_{owner} for drafts.",
    )
    sequence: int = Field(
        description="Monotonic number unique within the record's scope.",
    )
    owner: Owner
    answers: dict[str, Any] = Field(
        default_factory=dict,
        description="Category name to response payload.",
    )
    state: AuditState
    created_at: str = Field(description="ISO-8601 UTC creation time.")
    last_modified_at: str = Field(description="ISO-8601 UTC time of last mutation.")
    timestamp: int = Field(description="Creation time in epoch milliseconds.")
    finalized: bool = False
    processed_by_ai: bool = Field(
        default=False,
        description="Reserved for a downstream analyzer; always false on write.",
    )
    metadata: dict[str, Any] = Field(default_factory=dict)
    summary: AuditSummary | None = Field(
        default=None,
        description="Computed at completion; serialized under its aliased keys.",
    )

    @field_serializer("summary")
    def _dump_summary(self, summary: AuditSummary | None) -> dict[str, Any] | None:
        if summary is None:
            return None
        return summary.model_dump(mode="json", by_alias=True)

    def to_document(self) -> dict[str, Any]:
        """Return the JSON-compatible document written to the store."""
        return self.model_dump(mode="json", by_alias=True)
