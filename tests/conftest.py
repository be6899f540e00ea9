"""Test configuration and fixtures for the compliance ledger.

Provides a frozen clock, an in-memory record store, services wired to both,
a fakeredis-backed cache and a mocked database for the Postgres store.
"""

import logging
import os
from collections.abc import AsyncGenerator, Callable, Generator
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from fakeredis import aioredis as fake_aioredis

# Keep the test run independent of the developer's shell.
os.environ.setdefault("LEDGER_API_ENV", "development")
os.environ.setdefault("LEDGER_STORE_BACKEND", "memory")

from compliance_ledger.core.cache import Cache
from compliance_ledger.core.clock import FixedClock
from compliance_ledger.core.config import Settings
from compliance_ledger.models.compliance import (
    AuditTrail,
    ComplianceRecord,
    ComplianceRecordCreate,
    DataProcessingAgreement,
    DataRetention,
)
from compliance_ledger.models.enums import DPAStatus, Region
from compliance_ledger.services.audit_service import AuditService
from compliance_ledger.services.compliance_service import ComplianceService
from compliance_ledger.store.memory import InMemoryRecordStore

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """The instant every test clock starts at."""
    return NOW


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def settings() -> Settings:
    """Settings built in isolation from the environment's defaults."""
    return Settings(api_env="development", store_backend="memory")


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def make_create() -> Callable[..., ComplianceRecordCreate]:
    """Factory for onboarding payloads that are compliant at ``NOW``."""

    def _make(
        client_id: str = "client-001",
        *,
        region: Region = Region.US,
        dpa_status: DPAStatus = DPAStatus.ACTIVE,
        dpa_expires_in: timedelta = timedelta(days=365),
        next_audit_in: timedelta = timedelta(days=180),
        next_review_in: timedelta = timedelta(days=365),
        score: int = 95,
    ) -> ComplianceRecordCreate:
        return ComplianceRecordCreate(
            client_id=client_id,
            preferred_region=region,
            data_processing_agreement=DataProcessingAgreement(
                status=dpa_status,
                effective_date=NOW - timedelta(days=30),
                expiration_date=NOW + dpa_expires_in,
            ),
            audit_trail=AuditTrail(
                next_audit=NOW + next_audit_in,
                compliance_score=score,
            ),
            data_retention=DataRetention(next_review=NOW + next_review_in),
        )

    return _make


@pytest.fixture
def make_record(
    make_create: Callable[..., ComplianceRecordCreate],
) -> Callable[..., ComplianceRecord]:
    """Factory for first-revision records created at ``NOW``."""

    def _make(client_id: str = "client-001", **kwargs: Any) -> ComplianceRecord:
        return ComplianceRecord.new(make_create(client_id, **kwargs), NOW)

    return _make


@pytest.fixture
def audit_service(
    store: InMemoryRecordStore, clock: FixedClock, settings: Settings
) -> AuditService:
    return AuditService(store, clock=clock, settings=settings)


@pytest_asyncio.fixture
async def fake_redis() -> AsyncGenerator[Any, None]:
    """In-process Redis replacement."""
    client = fake_aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def cache(fake_redis: Any, settings: Settings) -> Cache:
    """Cache wrapper around the fakeredis client."""
    return Cache(redis_client=fake_redis, settings=settings)


@pytest.fixture
def compliance_service(
    store: InMemoryRecordStore,
    audit_service: AuditService,
    cache: Cache,
    clock: FixedClock,
    settings: Settings,
) -> ComplianceService:
    return ComplianceService(
        store, audit_service, cache=cache, clock=clock, settings=settings
    )


@pytest.fixture
def mock_db() -> MagicMock:
    """Mock of :class:`~compliance_ledger.core.database.Database`."""
    db = MagicMock()
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    db.fetchval = AsyncMock(return_value=None)
    db.execute = AsyncMock(return_value="UPDATE 1")
    db.write_returning = AsyncMock(return_value=None)
    return db


@pytest.fixture
def root_log_level() -> Generator[logging.Logger, None, None]:
    """Root logger, with its level restored after the test."""
    root = logging.getLogger()
    level = root.level
    yield root
    root.setLevel(level)
