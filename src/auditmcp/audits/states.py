"""Audit state machine.

Records only move forward: an audit in progress is completed, and either
an audit in progress or a completed one may be copied out as a draft.
Re-finalizing a completed audit is allowed and recomputes its summary.
"""

from __future__ import annotations

from auditmcp.audits.schemas import AuditState
from auditmcp.errors import InvalidTransitionError

ALLOWED_TRANSITIONS: dict[AuditState, frozenset[AuditState]] = {
    AuditState.in_progress: frozenset({AuditState.completed, AuditState.draft}),
    AuditState.completed: frozenset({AuditState.completed, AuditState.draft}),
    AuditState.draft: frozenset(),
}


def can_transition(current: AuditState, target: AuditState) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: AuditState, target: AuditState) -> None:
    """Raise ``InvalidTransitionError`` unless *current* may move to *target*."""
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Cannot move an audit from {current.value!r} to {target.value!r}"
        )


def can_merge(state: AuditState) -> bool:
    """Answers are accepted until the audit is completed."""
    return state is not AuditState.completed
