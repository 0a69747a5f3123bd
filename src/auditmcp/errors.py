"""Typed failures raised by the audit lifecycle and catalog services."""

from __future__ import annotations


class AuditMCPError(Exception):
    """Base class for every failure surfaced to callers.

    Carries a machine-readable ``code`` and a human-readable ``detail``.
    """

    code = "error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(AuditMCPError):
    """Required caller input is missing or malformed."""

    code = "validation_error"


class InvalidTransitionError(ValidationError):
    """Requested state change is not an allowed lifecycle path."""

    code = "invalid_transition"


class NotFoundError(AuditMCPError):
    """Referenced record does not exist."""

    code = "not_found"


class StoreUnavailableError(AuditMCPError):
    """The document store could not be reached."""

    code = "store_unavailable"


class DuplicateKeyError(AuditMCPError):
    """A document with the same id already exists in the collection."""

    code = "duplicate_key"
