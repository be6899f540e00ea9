"""Redis document cache for compliance records.

Values are stored as JSON text with a TTL. Callers treat the cache as
best-effort: a :class:`redis.RedisError` from any operation means "fall back
to the record store".
"""

import json
from datetime import timedelta
from typing import Any

import redis.asyncio as redis
from attrs import field, frozen
from beartype import beartype

from .config import Settings, get_settings
from .logging_utils import get_logger

__all__ = [
    "Cache",
    "CacheConfig",
    "get_cache",
]

logger = get_logger(__name__)


@frozen
class CacheConfig:
    """Connection and expiry settings snapshot."""

    url: str = field()
    default_ttl: timedelta = field(default=timedelta(minutes=5))
    max_connections: int = field(default=10)


class Cache:
    """JSON document cache on top of ``redis.asyncio``.

    A ready client may be injected (tests pass a ``fakeredis`` instance); in
    that case :meth:`connect` leaves it alone.
    """

    def __init__(
        self, redis_client: redis.Redis | None = None, settings: Settings | None = None
    ) -> None:
        settings = settings or get_settings()
        self._client: redis.Redis | None = redis_client
        self._config = CacheConfig(
            url=settings.redis_url,
            default_ttl=timedelta(seconds=settings.redis_ttl_seconds),
        )

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def _require_client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Cache not connected")
        return self._client

    @staticmethod
    def _encode(value: Any) -> str:
        if isinstance(value, str):
            return value
        return json.dumps(value, default=str)

    @staticmethod
    def _decode(raw: Any) -> Any:
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return raw

    @beartype
    async def connect(self) -> None:
        """Open a pooled client unless one was injected."""
        if self._client is not None:
            return
        self._client = redis.from_url(
            self._config.url,
            max_connections=self._config.max_connections,
            decode_responses=True,
        )
        logger.info("Redis cache client created")

    @beartype
    async def disconnect(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None

    @beartype
    async def get(self, key: str) -> Any | None:
        """Decoded value under ``key``, or None on a miss."""
        raw = await self._require_client().get(key)
        return None if raw is None else self._decode(raw)

    @beartype
    async def set(
        self, key: str, value: Any, ttl: int | timedelta | None = None
    ) -> bool:
        """Store ``value`` as JSON; ``ttl`` in seconds or as a timedelta."""
        if ttl is None:
            ttl = self._config.default_ttl
        elif isinstance(ttl, int):
            ttl = timedelta(seconds=ttl)
        return bool(
            await self._require_client().setex(key, ttl, self._encode(value))
        )

    @beartype
    async def delete(self, *keys: str) -> bool:
        """Drop the given keys; True when at least one existed."""
        if not keys:
            return False
        return bool(await self._require_client().delete(*keys))

    @beartype
    async def health_check(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except redis.RedisError:
            logger.exception("Redis health check failed")
            return False


_cache: Cache | None = None


@beartype
def get_cache() -> Cache:
    """Process-wide cache instance; not connected until :meth:`Cache.connect`."""
    global _cache
    if _cache is None:
        _cache = Cache()
    return _cache
