"""Database connection management with asyncpg and connection pooling.

The ledger stores its documents in PostgreSQL ``jsonb`` columns; this module
owns the pool, the JSON codecs and the retry policy for read-only queries.
Writes go through :meth:`Database.execute` / :meth:`Database.transaction`
without automatic retry: only version-checked writes may be retried, and
that decision belongs to the caller.
"""

import asyncio
import contextlib
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, TypeVar

import asyncpg
from attrs import field, frozen
from beartype import beartype

from .config import Settings, get_settings
from .errors import StoreUnavailableError
from .logging_utils import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Errors that indicate the server or network is unavailable rather than a
# problem with the statement itself.
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.PostgresConnectionError,
    asyncpg.CannotConnectNowError,
    asyncpg.TooManyConnectionsError,
    ConnectionError,
    OSError,
    asyncio.TimeoutError,
)


@frozen
class PoolConfig:
    """Immutable pool configuration."""

    url: str = field()
    min_size: int = field(default=2)
    max_size: int = field(default=10)
    acquire_timeout: float = field(default=10.0)
    command_timeout: float = field(default=30.0)


@frozen
class RecoveryConfig:
    """Retry policy for read-only queries."""

    max_retry_attempts: int = field(default=3)
    retry_delay_seconds: float = field(default=0.5)
    exponential_backoff: bool = field(default=True)

    @beartype
    def delay_for(self, attempt: int) -> float:
        """Delay before the retry that follows ``attempt`` (0-based)."""
        if self.exponential_backoff:
            return self.retry_delay_seconds * (2**attempt)
        return self.retry_delay_seconds


class Database:
    """Connection pool wrapper used by the Postgres record store."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._pool: asyncpg.Pool | None = None
        self._pool_config = PoolConfig(
            url=self._settings.database_url,
            min_size=self._settings.database_pool_min,
            max_size=self._settings.database_pool_max,
            acquire_timeout=self._settings.database_pool_timeout,
            command_timeout=self._settings.database_command_timeout,
        )
        self._recovery_config = RecoveryConfig(
            max_retry_attempts=self._settings.database_retry_attempts,
            retry_delay_seconds=self._settings.database_retry_delay_seconds,
        )

    @staticmethod
    async def _init_connection(conn: asyncpg.Connection) -> None:
        """Register JSON codecs so documents round-trip as Python objects."""
        for type_name in ("jsonb", "json"):
            await conn.set_type_codec(
                type_name,
                encoder=lambda v: json.dumps(v, default=str),
                decoder=json.loads,
                schema="pg_catalog",
            )

    @beartype
    async def connect(self) -> None:
        """Create the connection pool."""
        if self._pool is not None:
            return

        config = self._pool_config
        try:
            self._pool = await asyncpg.create_pool(
                config.url,
                min_size=config.min_size,
                max_size=config.max_size,
                command_timeout=config.command_timeout,
                init=self._init_connection,
            )
        except TRANSIENT_ERRORS as e:
            raise StoreUnavailableError("connect", e) from e
        logger.info(
            "Database pool ready (min=%d, max=%d)", config.min_size, config.max_size
        )

    @beartype
    async def disconnect(self) -> None:
        """Close the connection pool."""
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("Database pool closed")

    @property
    def is_connected(self) -> bool:
        """Check if database is connected."""
        return self._pool is not None

    @contextlib.asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a pooled connection."""
        if self._pool is None:
            raise StoreUnavailableError("acquire", RuntimeError("Database not connected"))

        try:
            async with self._pool.acquire(
                timeout=self._pool_config.acquire_timeout
            ) as conn:
                yield conn
        except TRANSIENT_ERRORS as e:
            raise StoreUnavailableError("query", e) from e

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Create a database transaction context."""
        async with self.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def _with_retry(
        self, operation: str, call: Callable[[asyncpg.Connection], Awaitable[T]]
    ) -> T:
        """Run a read-only call, retrying transient failures with backoff."""
        attempts = self._recovery_config.max_retry_attempts
        last_error: StoreUnavailableError | None = None

        for attempt in range(attempts):
            try:
                async with self.acquire() as conn:
                    return await call(conn)
            except StoreUnavailableError as e:
                last_error = e
                if attempt < attempts - 1:
                    delay = self._recovery_config.delay_for(attempt)
                    logger.warning(
                        "%s failed (attempt %d/%d), retrying in %.2fs",
                        operation,
                        attempt + 1,
                        attempts,
                        delay,
                    )
                    await asyncio.sleep(delay)

        assert last_error is not None
        raise last_error

    @beartype
    async def execute(self, query: str, *args: Any) -> str:
        """Execute a write statement once; never retried."""
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    @beartype
    async def fetch(self, query: str, *args: Any) -> list[Any]:
        """Execute a read query and fetch all rows."""
        return await self._with_retry("fetch", lambda conn: conn.fetch(query, *args))

    @beartype
    async def fetchrow(self, query: str, *args: Any) -> Any:
        """Execute a read query and fetch a single row."""
        return await self._with_retry(
            "fetchrow", lambda conn: conn.fetchrow(query, *args)
        )

    @beartype
    async def fetchval(self, query: str, *args: Any) -> Any:
        """Execute a read query and fetch a single value."""
        return await self._with_retry(
            "fetchval", lambda conn: conn.fetchval(query, *args)
        )

    @beartype
    async def write_returning(self, query: str, *args: Any) -> Any:
        """Execute a single write statement and return its first row."""
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    @beartype
    async def health_check(self) -> bool:
        """Return True when a trivial query succeeds."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except StoreUnavailableError:
            logger.exception("Database health check failed")
            return False


_database: Database | None = None


@beartype
def get_database() -> Database:
    """Get global database instance."""
    global _database
    if _database is None:
        _database = Database()
    return _database

