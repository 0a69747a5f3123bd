"""Unit test fixtures — fake Redis, document store, clock and lifecycle wiring."""

from __future__ import annotations

from datetime import datetime
from datetime import timedelta
from datetime import timezone
from pathlib import Path

import pytest
from fakeredis import FakeAsyncRedis
from fakeredis import FakeServer
from fastmcp import Client

from auditmcp.audits import AuditLifecycleManager
from auditmcp.audits import SequenceGenerator
from auditmcp.config import JournalConfig
from auditmcp.journal import EventJournal
from auditmcp.store import RedisDocumentStore


class FakeClock:
    """Deterministic UTC clock advancing by ``step`` on every call."""

    def __init__(
        self,
        start: datetime = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc),
        step: timedelta = timedelta(seconds=1),
    ) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        self.now = self.now + self.step
        return self.now


@pytest.fixture()
async def redis_client():
    """Yield an isolated async fake Redis client."""
    client = FakeAsyncRedis(server=FakeServer())
    yield client
    await client.aclose()


@pytest.fixture()
def store(redis_client) -> RedisDocumentStore:
    return RedisDocumentStore(redis_client, prefix="test")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def journal(tmp_path: Path) -> EventJournal:
    return EventJournal(JournalConfig(file_path=str(tmp_path / "journal.jsonl")))


@pytest.fixture()
def sequences(store, journal) -> SequenceGenerator:
    return SequenceGenerator(store, journal=journal)


@pytest.fixture()
def manager(store, sequences, journal, clock) -> AuditLifecycleManager:
    return AuditLifecycleManager(store, sequences, journal=journal, clock=clock)


@pytest.fixture()
async def mcp_client(redis_client, tmp_path: Path):
    """Yield a FastMCP Client wired to the AuditMCP server over fake Redis."""
    from auditmcp.server import configure
    from auditmcp.server import mcp
    from auditmcp.server import shutdown

    await configure(
        client=redis_client,
        journal_config=JournalConfig(file_path=str(tmp_path / "server.jsonl")),
    )
    async with Client(mcp) as client:
        yield client
    await shutdown()
