"""Store connection management.

``StoreConnection`` owns the Redis client and the single reconnection
policy: exponential backoff (tenacity) around an initial ping.  The rest of
the service only ever asks whether the store is ``ready()``.
"""

from __future__ import annotations

import logging

from redis.asyncio import Redis  # type: ignore[import-untyped]
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from tenacity import AsyncRetrying
from tenacity import RetryCallState
from tenacity import retry_if_exception_type
from tenacity import RetryError
from tenacity import stop_after_attempt
from tenacity import wait_exponential

from auditmcp.config import ReconnectConfig
from auditmcp.config import StoreConfig
from auditmcp.errors import StoreUnavailableError
from auditmcp.store.redis_store import RedisDocumentStore

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (RedisConnectionError, RedisTimeoutError)


def _log_attempt(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Store not ready (attempt %d): %s",
        retry_state.attempt_number,
        exc,
    )


class StoreConnection:
    """Lazily connected Redis client plus the document store built on it."""

    def __init__(
        self,
        config: StoreConfig | None = None,
        reconnect: ReconnectConfig | None = None,
        *,
        client: Redis | None = None,
    ) -> None:
        self.config = config or StoreConfig()
        self.reconnect = reconnect or ReconnectConfig()
        self._client = client
        self._store: RedisDocumentStore | None = None

    @property
    def client(self) -> Redis:
        if self._client is None:
            self._client = Redis.from_url(
                self.config.redis_url,
                socket_timeout=self.config.socket_timeout_seconds,
            )
        return self._client

    @property
    def store(self) -> RedisDocumentStore:
        if self._store is None:
            self._store = RedisDocumentStore(self.client, prefix=self.config.key_prefix)
        return self._store

    async def connect(self) -> RedisDocumentStore:
        """Ping the store with exponential backoff and return it when ready.

        Raises ``StoreUnavailableError`` once every attempt has failed.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.reconnect.max_attempts),
            wait=wait_exponential(
                multiplier=self.reconnect.initial_delay_seconds,
                max=self.reconnect.max_delay_seconds,
            ),
            retry=retry_if_exception_type(_TRANSIENT_ERRORS),
            before_sleep=_log_attempt,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    await self.client.ping()
        except RetryError as exc:
            raise StoreUnavailableError(
                f"Document store at {self.config.redis_url} not reachable after "
                f"{self.reconnect.max_attempts} attempts"
            ) from exc
        logger.info("Connected to document store at %s", self.config.redis_url)
        return self.store

    async def ready(self) -> bool:
        """Return whether the store currently answers a ping."""
        try:
            return bool(await self.client.ping())
        except _TRANSIENT_ERRORS:
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._store = None
