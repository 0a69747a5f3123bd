"""Audit lifecycle manager.

Creates, sequences, updates and finalizes audit records.  The manager keeps
no state between calls: every operation reloads what it needs from the
document store and persists its result before returning.

Audits live in the ``Auditorias`` collection and drafts in ``Borradores``.
Operations addressed by record id look in both.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from collections.abc import Mapping
from datetime import datetime
from datetime import timezone
from typing import Any

from pydantic import ValidationError as SchemaError

from auditmcp.audits.schemas import AuditRecord
from auditmcp.audits.schemas import AuditState
from auditmcp.audits.schemas import AuditSummary
from auditmcp.audits.schemas import Owner
from auditmcp.audits.sequence import AUDITS_SCOPE
from auditmcp.audits.sequence import DRAFTS_SCOPE
from auditmcp.audits.sequence import SequenceGenerator
from auditmcp.audits.states import can_merge
from auditmcp.audits.states import ensure_transition
from auditmcp.errors import DuplicateKeyError
from auditmcp.errors import InvalidTransitionError
from auditmcp.errors import NotFoundError
from auditmcp.errors import ValidationError
from auditmcp.journal import EventJournal
from auditmcp.journal import LifecycleEventType
from auditmcp.store.base import DESCENDING
from auditmcp.store.base import DocumentStore
from auditmcp.store.collections import Collection

logger = logging.getLogger(__name__)

QUANTITY_FIELD = "cantidad"
AUDIT_METADATA = {"version": "1.0", "kind": "auditoria_seguridad"}

_RECENCY_SORT = [("last_modified_at", DESCENDING), ("sequence", DESCENDING)]

_MONTHS_ES = (
    "enero",
    "febrero",
    "marzo",
    "abril",
    "mayo",
    "junio",
    "julio",
    "agosto",
    "septiembre",
    "octubre",
    "noviembre",
    "diciembre",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def format_spanish_date(moment: datetime) -> str:
    """Format like ``19 de octubre de 2026, 14:05``."""
    return (
        f"{moment.day} de {_MONTHS_ES[moment.month - 1]} de {moment.year}, "
        f"{moment.hour:02d}:{moment.minute:02d}"
    )


def _quantity(payload: Any) -> int:
    """Return the ``cantidad`` of one answer category, 0 when unusable."""
    if not isinstance(payload, Mapping):
        return 0
    value = payload.get(QUANTITY_FIELD)
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError:
        return 0


def summarize(answers: Mapping[str, Any], completed_at: datetime) -> AuditSummary:
    """Compute the completion summary for *answers*."""
    return AuditSummary(
        total_assets=sum(_quantity(payload) for payload in answers.values()),
        categories=list(answers),
        formatted_date=format_spanish_date(completed_at),
    )


def _require_owner(owner: Owner | Mapping[str, Any] | None) -> Owner:
    if owner is None:
        raise ValidationError("owner is required")
    if isinstance(owner, Owner):
        resolved = owner
    elif isinstance(owner, Mapping):
        try:
            resolved = Owner.model_validate(dict(owner))
        except SchemaError as exc:
            msg = exc.errors()[0]["msg"] if exc.errors() else "invalid owner"
            raise ValidationError(f"owner is malformed: {msg}") from exc
    else:
        raise ValidationError("owner must be an object")
    if not resolved.id or not resolved.id.strip():
        raise ValidationError("owner.id is required")
    return resolved


def _require_mapping(value: Any, name: str) -> dict[str, Any]:
    if value is None:
        raise ValidationError(f"{name} is required")
    if not isinstance(value, Mapping):
        raise ValidationError(f"{name} must be an object")
    return dict(value)


# ---------------------------------------------------------------------------
# AuditLifecycleManager
# ---------------------------------------------------------------------------


class AuditLifecycleManager:
    """Lifecycle operations over audits and drafts."""

    def __init__(
        self,
        store: DocumentStore,
        sequences: SequenceGenerator | None = None,
        *,
        journal: EventJournal | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._journal = journal
        self._sequences = sequences or SequenceGenerator(store, journal=journal)
        self._clock = clock

    # -- create --

    async def start_in_progress(
        self,
        owner: Owner | Mapping[str, Any] | None,
        initial_answers: Mapping[str, Any] | None = None,
    ) -> AuditRecord:
        """Open a new audit in progress for *owner*."""
        resolved = _require_owner(owner)
        answers = _require_mapping(initial_answers or {}, "answers")
        now = self._clock()
        record = AuditRecord(
            id=uuid.uuid4().hex,
            sequence=await self._sequences.next_sequence(AUDITS_SCOPE),
            owner=resolved,
            answers=answers,
            state=AuditState.in_progress,
            created_at=_iso(now),
            last_modified_at=_iso(now),
            timestamp=_millis(now),
            metadata={**AUDIT_METADATA, "user": resolved.id},
        )
        await self._store.insert(Collection.AUDITORIAS.value, record.to_document())
        logger.info(
            "Started audit %s (sequence %d) for owner %s",
            record.id,
            record.sequence,
            resolved.id,
        )
        await self._record_event(
            LifecycleEventType.AUDIT_STARTED,
            record,
            owner_id=resolved.id,
            sequence=record.sequence,
        )
        return record

    async def save_draft(
        self,
        owner: Owner | Mapping[str, Any] | None,
        answers: Mapping[str, Any] | None,
        metadata: Mapping[str, Any] | None,
    ) -> AuditRecord:
        """Store a draft snapshot of a questionnaire.

        The draft id is ``BORRADOR_{epoch_millis}_{owner_id}``; saving twice
        for the same owner within one millisecond is rejected.
        """
        missing = [
            name
            for name, value in (
                ("answers", answers),
                ("owner", owner),
                ("metadata", metadata),
            )
            if value is None
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        resolved = _require_owner(owner)
        draft_answers = _require_mapping(answers, "answers")
        draft_metadata = _require_mapping(metadata, "metadata")

        now = self._clock()
        timestamp = _millis(now)
        record = AuditRecord(
            id=f"BORRADOR_{timestamp}_{resolved.id}",
            sequence=await self._sequences.next_sequence(DRAFTS_SCOPE),
            owner=resolved,
            answers=draft_answers,
            state=AuditState.draft,
            created_at=_iso(now),
            last_modified_at=_iso(now),
            timestamp=timestamp,
            metadata={**draft_metadata, "last_modified_at": _iso(now)},
        )
        try:
            await self._store.insert(Collection.BORRADORES.value, record.to_document())
        except DuplicateKeyError as exc:
            raise ValidationError(f"Draft {record.id} already exists") from exc

        logger.info("Saved draft %s (sequence %d)", record.id, record.sequence)
        await self._record_event(
            LifecycleEventType.DRAFT_SAVED,
            record,
            owner_id=resolved.id,
            sequence=record.sequence,
        )
        return record

    async def submit_completed(
        self,
        owner: Owner | Mapping[str, Any] | None,
        answers: Mapping[str, Any] | None,
    ) -> AuditRecord:
        """Create an audit that is completed on arrival, summary included."""
        if owner is None or answers is None:
            raise ValidationError("answers and owner are required")
        resolved = _require_owner(owner)
        submitted = _require_mapping(answers, "answers")
        now = self._clock()
        record = AuditRecord(
            id=uuid.uuid4().hex,
            sequence=await self._sequences.next_sequence(AUDITS_SCOPE),
            owner=resolved,
            answers=submitted,
            state=AuditState.completed,
            created_at=_iso(now),
            last_modified_at=_iso(now),
            timestamp=_millis(now),
            finalized=True,
            metadata={**AUDIT_METADATA, "user": resolved.id},
            summary=summarize(submitted, now),
        )
        await self._store.insert(Collection.AUDITORIAS.value, record.to_document())
        logger.info(
            "Submitted completed audit %s (sequence %d, %d assets)",
            record.id,
            record.sequence,
            record.summary.total_assets if record.summary else 0,
        )
        await self._record_event(
            LifecycleEventType.AUDIT_SUBMITTED,
            record,
            owner_id=resolved.id,
            sequence=record.sequence,
        )
        return record

    async def snapshot_to_draft(
        self,
        record_id: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> AuditRecord:
        """Copy an audit in progress or a completed audit out as a new draft."""
        _, record = await self._locate(record_id)
        ensure_transition(record.state, AuditState.draft)
        return await self.save_draft(
            record.owner,
            record.answers,
            {**(metadata or {}), "source_id": record.id},
        )

    # -- mutate --

    async def merge_answers(
        self,
        record_id: str,
        new_answers: Mapping[str, Any] | None,
    ) -> AuditRecord:
        """Overlay *new_answers* onto the record's answers (shallow union).

        Categories absent from *new_answers* are kept.  This is a plain
        read-modify-write: concurrent merges on one record can lose updates.
        """
        incoming = _require_mapping(new_answers, "answers")
        collection, record = await self._locate(record_id)
        if not can_merge(record.state):
            raise InvalidTransitionError(
                f"Audit {record_id} is {record.state.value}; answers can no longer change"
            )

        merged = {**record.answers, **incoming}
        modified_at = _iso(self._clock())
        patch: dict[str, Any] = {"answers": merged, "last_modified_at": modified_at}
        # Drafts mirror the modification time in their metadata.
        if "last_modified_at" in record.metadata:
            patch["metadata"] = {**record.metadata, "last_modified_at": modified_at}
        matched = await self._store.update_one(collection, {"id": record.id}, patch)
        if not matched:
            raise NotFoundError(f"Audit {record_id} not found")

        logger.debug("Merged %d categories into %s", len(incoming), record_id)
        updated = record.model_copy(update=patch)
        await self._record_event(
            LifecycleEventType.ANSWERS_MERGED,
            updated,
            categories=list(incoming),
        )
        return updated

    async def finalize(self, record_id: str) -> AuditRecord:
        """Mark the audit completed and compute its summary."""
        collection, record = await self._locate(record_id)
        ensure_transition(record.state, AuditState.completed)

        now = self._clock()
        summary = summarize(record.answers, now)
        patch = {
            "state": AuditState.completed.value,
            "finalized": True,
            "processed_by_ai": False,
            "summary": summary.model_dump(mode="json", by_alias=True),
            "last_modified_at": _iso(now),
        }
        matched = await self._store.update_one(collection, {"id": record.id}, patch)
        if not matched:
            raise NotFoundError(f"Audit {record_id} not found")

        updated = record.model_copy(
            update={
                "state": AuditState.completed,
                "finalized": True,
                "processed_by_ai": False,
                "summary": summary,
                "last_modified_at": patch["last_modified_at"],
            }
        )
        logger.info(
            "Finalized audit %s: %d assets in %d categories",
            record_id,
            summary.total_assets,
            len(summary.categories),
        )
        await self._record_event(
            LifecycleEventType.AUDIT_FINALIZED,
            updated,
            total_assets=summary.total_assets,
        )
        return updated

    # -- read --

    async def get(self, record_id: str) -> AuditRecord:
        _, record = await self._locate(record_id)
        return record

    async def list_by_owner(
        self, owner_id: str, state: AuditState | str
    ) -> list[AuditRecord]:
        """Return the owner's records in *state*, most recent first."""
        try:
            wanted = AuditState(state)
        except ValueError:
            raise ValidationError(f"Unknown audit state: {state!r}") from None

        collection = (
            Collection.BORRADORES if wanted is AuditState.draft else Collection.AUDITORIAS
        )
        documents = await self._store.find(
            collection.value,
            {"owner.id": owner_id, "state": wanted.value},
            sort=_RECENCY_SORT,
        )
        return [AuditRecord.model_validate(doc) for doc in documents]

    async def find_in_progress(self, owner_id: str) -> AuditRecord | None:
        """Return the owner's most recently modified audit in progress."""
        records = await self.list_by_owner(owner_id, AuditState.in_progress)
        return records[0] if records else None

    async def list_audits(self) -> list[AuditRecord]:
        """Return every audit (drafts excluded), highest sequence first."""
        documents = await self._store.find(
            Collection.AUDITORIAS.value, sort=[("sequence", DESCENDING)]
        )
        return [AuditRecord.model_validate(doc) for doc in documents]

    # -- internal --

    async def _locate(self, record_id: str) -> tuple[str, AuditRecord]:
        """Find *record_id* among audits, then drafts."""
        if not record_id:
            raise ValidationError("record id is required")
        for collection in (Collection.AUDITORIAS, Collection.BORRADORES):
            document = await self._store.find_one(collection.value, {"id": record_id})
            if document is not None:
                return collection.value, AuditRecord.model_validate(document)
        raise NotFoundError(f"Audit {record_id} not found")

    async def _record_event(
        self,
        event_type: LifecycleEventType,
        record: AuditRecord,
        **payload: object,
    ) -> None:
        if self._journal is None:
            return
        await self._journal.record(
            event_type,
            record_id=record.id,
            state=record.state.value,
            **payload,
        )
