"""Application configuration dataclasses.

Frozen dataclasses with sensible defaults for each subsystem.
Values are plain defaults that can be overridden at construction time;
``from_env`` helpers are only used by the server entry point.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class StoreConfig:
    """Redis document store settings."""

    redis_url: str = "redis://localhost:6379"
    key_prefix: str = "auditmcp"
    socket_timeout_seconds: float = 5.0

    @classmethod
    def from_env(cls) -> StoreConfig:
        return cls(
            redis_url=os.getenv("AUDITMCP_REDIS_URL", cls.redis_url),
            key_prefix=os.getenv("AUDITMCP_KEY_PREFIX", cls.key_prefix),
        )


@dataclass(frozen=True)
class ReconnectConfig:
    """Exponential backoff used when (re)connecting to the store."""

    max_attempts: int = 5
    initial_delay_seconds: float = 0.5
    max_delay_seconds: float = 8.0


@dataclass(frozen=True)
class SequenceConfig:
    """Sequence allocation behaviour."""

    counters_collection: str = "counters"
    # When the counter store is unreachable, hand out a clock-derived value
    # instead of failing the whole operation.
    fallback_enabled: bool = True
    fallback_suffix_range: int = 1000


@dataclass(frozen=True)
class JournalConfig:
    """Settings for the JSONL lifecycle event journal."""

    file_path: str = "auditmcp_journal.jsonl"
    enabled: bool = True

    @classmethod
    def from_env(cls) -> JournalConfig:
        path = os.getenv("AUDITMCP_JOURNAL_PATH", "").strip()
        return cls(file_path=path or cls.file_path)
