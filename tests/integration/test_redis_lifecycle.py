"""End-to-end lifecycle against a real Redis 7 container."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastmcp import Client

from auditmcp.audits import AUDITS_SCOPE
from auditmcp.audits import AuditLifecycleManager
from auditmcp.audits import AuditState
from auditmcp.audits import SequenceGenerator
from auditmcp.config import JournalConfig
from auditmcp.config import StoreConfig
from auditmcp.server import _reset_store
from auditmcp.server import configure
from auditmcp.server import mcp
from auditmcp.server import shutdown
from auditmcp.store import StoreConnection


@pytest.fixture()
async def connection(redis_container):
    conn = StoreConnection(StoreConfig(redis_url=redis_container, key_prefix="it"))
    store = await conn.connect()
    await store.clear()
    yield conn
    await store.clear()
    await conn.close()


@pytest.fixture()
async def _server(redis_container, tmp_path):
    await configure(
        redis_url=redis_container,
        journal_config=JournalConfig(file_path=str(tmp_path / "journal.jsonl")),
    )
    await _reset_store()
    yield
    await _reset_store()
    await shutdown()


def _parse(result) -> dict:
    return json.loads(result.content[0].text)


class TestRealRedis:
    async def test_concurrent_sequences_are_unique(self, connection):
        sequences = SequenceGenerator(connection.store)
        values = await asyncio.gather(
            *(sequences.next_sequence(AUDITS_SCOPE) for _ in range(100))
        )
        assert sorted(values) == list(range(1, 101))

    async def test_lifecycle_roundtrip(self, connection):
        manager = AuditLifecycleManager(connection.store)
        started = await manager.start_in_progress({"id": "u1"}, {"A": {"cantidad": 3}})
        await manager.merge_answers(started.id, {"B": {"cantidad": 5}})
        finalized = await manager.finalize(started.id)

        assert finalized.state is AuditState.completed
        assert finalized.summary.total_assets == 8

        stored = await manager.get(started.id)
        assert stored.state is AuditState.completed
        assert stored.summary.categories == ["A", "B"]
        assert await manager.find_in_progress("u1") is None


class TestMcpOverRealRedis:
    @pytest.mark.usefixtures("_server")
    async def test_start_finalize_and_status(self):
        async with Client(mcp) as client:
            started = _parse(
                await client.call_tool(
                    "start_audit",
                    {"owner": {"id": "u9"}, "answers": {"A": {"cantidad": 2}}},
                )
            )
            assert started["status"] == "ok"

            finalized = _parse(
                await client.call_tool(
                    "finalize_audit", {"audit_id": started["audit"]["id"]}
                )
            )
            assert finalized["audit"]["state"] == "completada"

            status = _parse(await client.call_tool("store_status", {}))
            assert status["ready"] is True
            assert status["sequences"]["auditorias"] == 1
