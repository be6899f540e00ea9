# ComplianceLedger - Audit Retention and Compliance Tracking
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""FastAPI dependencies for the record store, cache, clock and services.

Identity is established upstream; endpoints receive the acting user as an
opaque ``X-User-Id`` header value.
"""

from beartype import beartype
from fastapi import Depends, Header, Request

from ..core.cache import Cache
from ..core.cache import get_cache as get_cache_instance
from ..core.clock import Clock, SystemClock
from ..core.config import Settings, get_settings
from ..services.audit_service import AuditService, RequestContext
from ..services.compliance_service import ComplianceService
from ..store import RecordStore, create_store

_store: RecordStore | None = None
_clock: Clock = SystemClock()


@beartype
def get_store() -> RecordStore:
    """Provide the process-wide record store."""
    global _store
    if _store is None:
        _store = create_store(get_settings())
    return _store


@beartype
def get_clock() -> Clock:
    return _clock


@beartype
async def get_cache() -> Cache | None:
    """Provide the cache when a Redis connection has been opened."""
    cache = get_cache_instance()
    return cache if cache.is_connected else None


@beartype
def get_acting_user(x_user_id: str | None = Header(default=None)) -> str | None:
    """Opaque identifier of the caller, if one was supplied."""
    return x_user_id or None


@beartype
def get_request_context(request: Request) -> RequestContext:
    return RequestContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        request_id=request.headers.get("x-request-id"),
    )


@beartype
def get_audit_service(
    store: RecordStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> AuditService:
    """Provide the audit service."""
    return AuditService(store, clock=clock, settings=settings)


@beartype
def get_compliance_service(
    store: RecordStore = Depends(get_store),
    audit: AuditService = Depends(get_audit_service),
    cache: Cache | None = Depends(get_cache),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> ComplianceService:
    """Provide the compliance service."""
    return ComplianceService(store, audit, cache=cache, clock=clock, settings=settings)
