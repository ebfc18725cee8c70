"""
Key/value cache port and its backends.

RedisCache talks to Redis through redis.asyncio; MemoryCache keeps the same
semantics in-process for local runs and tests. Both store opaque strings:
callers serialise their own payloads before handing them over.

One instance is built per process by build_cache() during app startup and
closed on shutdown.
"""
import asyncio
import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Protocol, runtime_checkable
from urllib.parse import urlsplit

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.config import Settings
from app.errors import TransientIOError

logger = logging.getLogger(__name__)


@runtime_checkable
class CachePort(Protocol):
    """Scalar get/set with expiry plus the list operations the ledger needs."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl: int | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def exists(self, key: str) -> bool: ...

    async def list_remove_all(self, key: str, value: str) -> int: ...

    async def list_push_head(self, key: str, value: str) -> int: ...

    async def list_trim(self, key: str, start: int, stop: int) -> None: ...

    async def list_range(self, key: str, start: int, stop: int) -> list[str]: ...

    async def list_push_unique(self, key: str, value: str, capacity: int) -> None:
        """Remove every occurrence of value, push it to the head, trim to capacity."""
        ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


def _redacted(url: str) -> str:
    parts = urlsplit(url)
    host = parts.hostname or ""
    port = f":{parts.port}" if parts.port else ""
    return f"{parts.scheme}://{host}{port}{parts.path}"


class RedisCache:
    def __init__(
        self,
        url: str,
        *,
        socket_timeout: float = 5.0,
        connect_timeout: float = 5.0,
        retry_attempts: int = 3,
        backoff_base: float = 0.05,
        backoff_cap: float = 2.0,
        default_ttl: int | None = None,
    ) -> None:
        self._url = url
        self._socket_timeout = socket_timeout
        self._connect_timeout = connect_timeout
        self._retry_attempts = retry_attempts
        self._backoff_base = backoff_base
        self._backoff_cap = backoff_cap
        self._default_ttl = default_ttl
        self._client: redis.Redis | None = None

    def _ensure_client(self) -> redis.Redis:
        # The pool connects on the first command and reconnects on its own.
        if self._client is None:
            retry = Retry(
                ExponentialBackoff(cap=self._backoff_cap, base=self._backoff_base),
                self._retry_attempts,
            )
            self._client = redis.Redis.from_url(
                self._url,
                decode_responses=True,
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=self._connect_timeout,
                retry=retry,
                retry_on_error=[RedisConnectionError, RedisTimeoutError],
                health_check_interval=30,
            )
            logger.info("Redis client created for %s", _redacted(self._url))
        return self._client

    @contextmanager
    def _transient(self, op: str, key: str) -> Iterator[None]:
        try:
            yield
        except (RedisConnectionError, RedisTimeoutError) as exc:
            logger.error("Redis %s failed for key %s: %s", op, key, exc)
            raise TransientIOError(f"Cache unavailable during {op}") from exc

    async def get(self, key: str) -> str | None:
        client = self._ensure_client()
        with self._transient("GET", key):
            return await client.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        client = self._ensure_client()
        expiry = ttl if ttl is not None else self._default_ttl
        with self._transient("SET", key):
            if expiry and expiry > 0:
                await client.set(key, value, ex=expiry)
            else:
                await client.set(key, value)
        logger.debug("Set key %s with TTL %s", key, expiry)

    async def delete(self, key: str) -> None:
        client = self._ensure_client()
        with self._transient("DEL", key):
            await client.delete(key)

    async def exists(self, key: str) -> bool:
        client = self._ensure_client()
        with self._transient("EXISTS", key):
            return await client.exists(key) == 1

    async def list_remove_all(self, key: str, value: str) -> int:
        client = self._ensure_client()
        with self._transient("LREM", key):
            return await client.lrem(key, 0, value)

    async def list_push_head(self, key: str, value: str) -> int:
        client = self._ensure_client()
        with self._transient("LPUSH", key):
            return await client.lpush(key, value)

    async def list_trim(self, key: str, start: int, stop: int) -> None:
        client = self._ensure_client()
        with self._transient("LTRIM", key):
            await client.ltrim(key, start, stop)

    async def list_range(self, key: str, start: int, stop: int) -> list[str]:
        client = self._ensure_client()
        with self._transient("LRANGE", key):
            return await client.lrange(key, start, stop)

    async def list_push_unique(self, key: str, value: str, capacity: int) -> None:
        client = self._ensure_client()
        # MULTI/EXEC: the three commands apply together or not at all.
        with self._transient("MULTI", key):
            async with client.pipeline(transaction=True) as pipe:
                await (
                    pipe.lrem(key, 0, value)
                    .lpush(key, value)
                    .ltrim(key, 0, capacity - 1)
                    .execute()
                )

    async def ping(self) -> bool:
        client = self._ensure_client()
        with self._transient("PING", "-"):
            return bool(await client.ping())

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Redis client closed")


class MemoryCache:
    """In-process cache with Redis list semantics. Not shared across processes."""

    def __init__(
        self,
        default_ttl: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl = default_ttl
        self._clock = clock
        self._values: dict[str, str] = {}
        self._expires: dict[str, float] = {}
        self._lists: dict[str, list[str]] = {}
        self._lock = asyncio.Lock()

    def _purge_if_expired(self, key: str) -> None:
        deadline = self._expires.get(key)
        if deadline is not None and self._clock() >= deadline:
            self._values.pop(key, None)
            self._expires.pop(key, None)

    @staticmethod
    def _bounds(length: int, start: int, stop: int) -> tuple[int, int]:
        if start < 0:
            start = max(length + start, 0)
        if stop < 0:
            stop = length + stop
        return start, min(stop, length - 1)

    async def get(self, key: str) -> str | None:
        async with self._lock:
            self._purge_if_expired(key)
            return self._values.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        expiry = ttl if ttl is not None else self._default_ttl
        async with self._lock:
            self._lists.pop(key, None)
            self._values[key] = value
            if expiry and expiry > 0:
                self._expires[key] = self._clock() + expiry
            else:
                self._expires.pop(key, None)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._values.pop(key, None)
            self._expires.pop(key, None)
            self._lists.pop(key, None)

    async def exists(self, key: str) -> bool:
        async with self._lock:
            self._purge_if_expired(key)
            return key in self._values or key in self._lists

    def _remove_all(self, key: str, value: str) -> int:
        items = self._lists.get(key, [])
        kept = [item for item in items if item != value]
        removed = len(items) - len(kept)
        if kept:
            self._lists[key] = kept
        else:
            self._lists.pop(key, None)
        return removed

    def _push_head(self, key: str, value: str) -> int:
        items = self._lists.setdefault(key, [])
        items.insert(0, value)
        return len(items)

    def _trim(self, key: str, start: int, stop: int) -> None:
        items = self._lists.get(key, [])
        first, last = self._bounds(len(items), start, stop)
        kept = items[first:last + 1] if first <= last else []
        if kept:
            self._lists[key] = kept
        else:
            self._lists.pop(key, None)

    async def list_remove_all(self, key: str, value: str) -> int:
        async with self._lock:
            return self._remove_all(key, value)

    async def list_push_head(self, key: str, value: str) -> int:
        async with self._lock:
            return self._push_head(key, value)

    async def list_trim(self, key: str, start: int, stop: int) -> None:
        async with self._lock:
            self._trim(key, start, stop)

    async def list_range(self, key: str, start: int, stop: int) -> list[str]:
        async with self._lock:
            items = self._lists.get(key, [])
            first, last = self._bounds(len(items), start, stop)
            return list(items[first:last + 1]) if first <= last else []

    async def list_push_unique(self, key: str, value: str, capacity: int) -> None:
        async with self._lock:
            self._remove_all(key, value)
            self._push_head(key, value)
            self._trim(key, 0, capacity - 1)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        async with self._lock:
            self._values.clear()
            self._expires.clear()
            self._lists.clear()


def build_cache(settings: Settings) -> CachePort:
    backend = settings.CACHE_BACKEND.strip().lower()
    if backend == "memory":
        logger.info("Using in-process memory cache")
        return MemoryCache(default_ttl=settings.REDIS_EXPIRY_TIME)
    if backend == "redis":
        return RedisCache(
            settings.REDIS_URL,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            connect_timeout=settings.REDIS_CONNECT_TIMEOUT,
            retry_attempts=settings.REDIS_RETRY_ATTEMPTS,
            backoff_base=settings.REDIS_BACKOFF_BASE,
            backoff_cap=settings.REDIS_BACKOFF_CAP,
            default_ttl=settings.REDIS_EXPIRY_TIME,
        )
    raise ValueError(f"Unknown cache backend: {settings.CACHE_BACKEND}")
