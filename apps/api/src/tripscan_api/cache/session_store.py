"""Session persistence backends keyed by opaque token."""

from __future__ import annotations

import abc
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from tripscan_core.schemas import SearchSession

from .cache_keys import session_key, session_lock_key

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from contextlib import AbstractAsyncContextManager

    import redis.asyncio as redis

logger = logging.getLogger(__name__)


class SessionStore(abc.ABC):
    """Storage contract for search sessions.

    ``lock(token)`` serializes read-modify-write cycles on one token;
    different tokens never contend.
    """

    @abc.abstractmethod
    async def get(self, token: str) -> SearchSession | None: ...

    @abc.abstractmethod
    async def put(self, session: SearchSession, ttl: int) -> None: ...

    @abc.abstractmethod
    async def delete(self, token: str) -> None: ...

    @abc.abstractmethod
    async def exists(self, token: str) -> bool: ...

    @abc.abstractmethod
    def lock(self, token: str) -> AbstractAsyncContextManager[None]: ...


class InMemorySessionStore(SessionStore):
    """Process-local store holding serialized records and per-token locks.

    Records expire ``ttl`` seconds after their last ``put``; expired records
    are swept on every write, and a token's lock goes away with its record.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._records: dict[str, tuple[str, float]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._records)

    async def get(self, token: str) -> SearchSession | None:
        entry = self._records.get(token)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at <= self._clock():
            self._drop(token)
            return None
        return SearchSession.model_validate_json(raw)

    async def put(self, session: SearchSession, ttl: int) -> None:
        now = self._clock()
        expired = [t for t, (_, until) in self._records.items() if until <= now]
        for token in expired:
            self._drop(token)
        if expired:
            logger.debug("Evicted %d expired sessions", len(expired))
        self._records[session.token] = (session.model_dump_json(), now + ttl)

    async def delete(self, token: str) -> None:
        self._drop(token)

    async def exists(self, token: str) -> bool:
        entry = self._records.get(token)
        return entry is not None and entry[1] > self._clock()

    @asynccontextmanager
    async def lock(self, token: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(token, asyncio.Lock())
        try:
            async with lock:
                yield
        finally:
            if token not in self._records and not lock.locked():
                self._locks.pop(token, None)

    def _drop(self, token: str) -> None:
        self._records.pop(token, None)
        lock = self._locks.get(token)
        if lock is not None and not lock.locked():
            del self._locks[token]


class RedisSessionStore(SessionStore):
    """Redis-backed store; records expire with the session TTL."""

    def __init__(self, client: redis.Redis, *, lock_timeout: float = 10.0) -> None:
        self._client = client
        self._lock_timeout = lock_timeout

    async def get(self, token: str) -> SearchSession | None:
        raw = await self._client.get(session_key(token))
        if raw is None:
            return None
        return SearchSession.model_validate_json(raw)

    async def put(self, session: SearchSession, ttl: int) -> None:
        await self._client.set(
            session_key(session.token), session.model_dump_json(), ex=ttl
        )

    async def delete(self, token: str) -> None:
        await self._client.delete(session_key(token))

    async def exists(self, token: str) -> bool:
        return bool(await self._client.exists(session_key(token)))

    @asynccontextmanager
    async def lock(self, token: str) -> AsyncIterator[None]:
        lock = self._client.lock(
            session_lock_key(token),
            timeout=self._lock_timeout,
            blocking_timeout=self._lock_timeout,
        )
        async with lock:
            yield
