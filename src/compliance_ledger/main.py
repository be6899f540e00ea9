# ComplianceLedger - Audit Retention and Compliance Tracking
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Compliance Ledger - Main Application Module."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from beartype import beartype
from fastapi import FastAPI
from pydantic import Field

from . import __version__
from .api.dependencies import get_audit_service, get_clock, get_store
from .api.v1 import router as v1_router
from .core.cache import get_cache
from .core.config import get_settings
from .core.database import get_database
from .core.logging_utils import configure_logging, get_logger
from .models.base import BaseModelConfig
from .models.enums import AuditEventType

logger = get_logger(__name__)


class HealthStatus(BaseModelConfig):
    """Liveness and backend reachability."""

    status: str = Field(...)
    store_backend: str = Field(...)
    database: bool | None = Field(default=None)
    cache: bool | None = Field(default=None)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle - startup and shutdown."""
    settings = get_settings()
    configure_logging(level=settings.log_level_value)
    logger.info("Starting %s in %s mode", settings.app_name, settings.api_env)

    uses_postgres = settings.store_backend == "postgres"
    if uses_postgres:
        await get_database().connect()
        await get_cache().connect()

    audit = get_audit_service(get_store(), get_clock(), settings)
    await audit.log_system_event(
        AuditEventType.SERVER_STARTUP, component="api", version=__version__
    )

    yield

    logger.info("Shutting down %s", settings.app_name)
    await audit.log_system_event(AuditEventType.SERVER_SHUTDOWN, component="api")
    if uses_postgres:
        await get_cache().disconnect()
        await get_database().disconnect()


@beartype
def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance
    """
    settings = get_settings()

    app = FastAPI(
        title="Compliance Ledger",
        description="Audit log retention and client compliance tracking",
        version=__version__,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.include_router(v1_router)

    @app.get("/health")
    async def health() -> HealthStatus:
        database = cache = None
        if settings.store_backend == "postgres":
            database = await get_database().health_check()
            cache = await get_cache().health_check()
        healthy = database is not False and cache is not False
        return HealthStatus(
            status="ok" if healthy else "degraded",
            store_backend=settings.store_backend,
            database=database,
            cache=cache,
        )

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "compliance_ledger.main:app",
        host="0.0.0.0",
        port=8000,
        log_level=get_settings().log_level.lower(),
    )
