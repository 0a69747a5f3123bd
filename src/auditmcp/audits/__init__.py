"""Audit domain — records, sequencing, state machine and lifecycle."""

from auditmcp.audits.lifecycle import AuditLifecycleManager
from auditmcp.audits.lifecycle import summarize
from auditmcp.audits.schemas import AuditRecord
from auditmcp.audits.schemas import AuditState
from auditmcp.audits.schemas import AuditSummary
from auditmcp.audits.schemas import Owner
from auditmcp.audits.sequence import AUDITS_SCOPE
from auditmcp.audits.sequence import DRAFTS_SCOPE
from auditmcp.audits.sequence import SequenceGenerator
from auditmcp.audits.states import ALLOWED_TRANSITIONS
from auditmcp.audits.states import can_merge
from auditmcp.audits.states import can_transition
from auditmcp.audits.states import ensure_transition

__all__ = [
    "ALLOWED_TRANSITIONS",
    "AUDITS_SCOPE",
    "AuditLifecycleManager",
    "AuditRecord",
    "AuditState",
    "AuditSummary",
    "DRAFTS_SCOPE",
    "Owner",
    "SequenceGenerator",
    "can_merge",
    "can_transition",
    "ensure_transition",
    "summarize",
]
