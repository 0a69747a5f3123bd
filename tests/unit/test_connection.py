"""Store connection and reconnection policy tests."""

from __future__ import annotations

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from auditmcp.config import ReconnectConfig
from auditmcp.config import StoreConfig
from auditmcp.errors import StoreUnavailableError
from auditmcp.store import RedisDocumentStore
from auditmcp.store import StoreConnection


class _FlakyClient:
    """Fails ``failures`` pings before answering."""

    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.pings = 0

    async def ping(self) -> bool:
        self.pings += 1
        if self.pings <= self.failures:
            raise RedisConnectionError("connection refused")
        return True

    async def aclose(self) -> None:
        return None


_FAST = ReconnectConfig(max_attempts=3, initial_delay_seconds=0.0, max_delay_seconds=0.0)


async def test_connect_returns_store(redis_client):
    connection = StoreConnection(StoreConfig(key_prefix="t"), client=redis_client)
    store = await connection.connect()
    assert isinstance(store, RedisDocumentStore)
    assert await connection.ready() is True


async def test_connect_retries_with_backoff():
    client = _FlakyClient(failures=2)
    connection = StoreConnection(reconnect=_FAST, client=client)
    await connection.connect()
    assert client.pings == 3


async def test_connect_gives_up():
    client = _FlakyClient(failures=10)
    connection = StoreConnection(reconnect=_FAST, client=client)
    with pytest.raises(StoreUnavailableError):
        await connection.connect()
    assert client.pings == 3


async def test_ready_false_when_unreachable():
    connection = StoreConnection(client=_FlakyClient(failures=1))
    assert await connection.ready() is False
    assert await connection.ready() is True


async def test_close_drops_client():
    connection = StoreConnection(client=_FlakyClient(failures=0))
    await connection.close()
    assert connection._client is None
