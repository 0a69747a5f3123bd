"""AuditMCP — audit lifecycle service over a Redis document store."""

__version__ = "0.1.0"
