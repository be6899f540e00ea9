"""Audit log endpoints: recording, search, dashboards, export and archival."""

from datetime import datetime
from typing import Any
from uuid import UUID

from beartype import beartype
from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import Field, ValidationError

from ...core.result_types import Err, Ok
from ...models.audit import AuditEvent, AuditEventCreate, AuditEventQuery, AuditStats
from ...models.base import BaseModelConfig, UtcDatetime
from ...models.enums import (
    AuditEventType,
    ExportFormat,
    Regulation,
    ResourceType,
    ThreatLevel,
)
from ...services.audit_service import AuditService, RequestContext
from ..dependencies import get_acting_user, get_audit_service, get_request_context
from ..response_patterns import ErrorResponse, handle_result

router = APIRouter(prefix="/audit")


class ExportRequest(BaseModelConfig):
    """Filters and output format for an audit log export."""

    event_type: AuditEventType | None = Field(default=None)
    user_id: str | None = Field(default=None)
    resource_type: ResourceType | None = Field(default=None)
    resource_id: str | None = Field(default=None)
    threat_level: ThreatLevel | None = Field(default=None)
    success: bool | None = Field(default=None)
    regulation: Regulation | None = Field(default=None)
    start: UtcDatetime | None = Field(default=None)
    end: UtcDatetime | None = Field(default=None)
    format: ExportFormat = Field(default=ExportFormat.JSON)

    def to_query(self) -> AuditEventQuery:
        return AuditEventQuery(**self.model_dump(exclude={"format"}))


class ArchiveResponse(BaseModelConfig):
    archived: int = Field(..., ge=0)


@router.post("/events", status_code=status.HTTP_201_CREATED)
@beartype
async def record_event(
    payload: AuditEventCreate,
    response: Response,
    service: AuditService = Depends(get_audit_service),
) -> AuditEvent | ErrorResponse:
    """Persist a fully described event; retention is assigned here."""
    result = await service.record_event(payload)
    return handle_result(result, response, success_status=status.HTTP_201_CREATED)


@router.get("/events")
@beartype
async def search_events(
    response: Response,
    event_type: AuditEventType | None = None,
    user_id: str | None = None,
    resource_type: ResourceType | None = None,
    resource_id: str | None = None,
    threat_level: ThreatLevel | None = None,
    success: bool | None = None,
    regulation: Regulation | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    service: AuditService = Depends(get_audit_service),
) -> list[AuditEvent] | ErrorResponse:
    """Filtered audit log search, newest first."""
    try:
        query = AuditEventQuery(
            event_type=event_type,
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            threat_level=threat_level,
            success=success,
            regulation=regulation,
            start=start,
            end=end,
            skip=skip,
            limit=limit,
        )
    except ValidationError as e:
        return handle_result(Err(f"Validation failed: {e}"), response)
    return handle_result(await service.search(query), response)


@router.get("/events/{event_id}")
@beartype
async def get_event(
    event_id: UUID,
    response: Response,
    service: AuditService = Depends(get_audit_service),
) -> AuditEvent | ErrorResponse:
    return handle_result(await service.get_event(event_id), response)


@router.get("/stats")
@beartype
async def get_stats(
    response: Response,
    days: int = Query(default=30, ge=1),
    user_id: str | None = Depends(get_acting_user),
    service: AuditService = Depends(get_audit_service),
) -> AuditStats | ErrorResponse:
    """Per-type event counts; ``days`` is capped at one year."""
    return handle_result(await service.stats(days, accessed_by=user_id), response)


@router.get("/security")
@beartype
async def get_security_events(
    response: Response,
    days: int | None = Query(default=None, ge=1, le=3650),
    threat_level: ThreatLevel | None = None,
    service: AuditService = Depends(get_audit_service),
) -> list[AuditEvent] | ErrorResponse:
    result = await service.security_events(days, threat_level=threat_level)
    return handle_result(result, response)


@router.get("/compliance")
@beartype
async def get_compliance_events(
    response: Response,
    days: int | None = Query(default=None, ge=1, le=3650),
    regulation: Regulation | None = None,
    user_id: str | None = Depends(get_acting_user),
    service: AuditService = Depends(get_audit_service),
) -> list[AuditEvent] | ErrorResponse:
    result = await service.compliance_events(
        days, regulation=regulation, accessed_by=user_id
    )
    return handle_result(result, response)


@router.get("/failed")
@beartype
async def get_failed_events(
    response: Response,
    days: int | None = Query(default=None, ge=1, le=3650),
    service: AuditService = Depends(get_audit_service),
) -> list[AuditEvent] | ErrorResponse:
    return handle_result(await service.failed_events(days), response)


@router.get("/users/{user_id}")
@beartype
async def get_user_activity(
    user_id: str,
    response: Response,
    days: int = Query(default=30, ge=1),
    event_type: AuditEventType | None = None,
    service: AuditService = Depends(get_audit_service),
) -> list[AuditEvent] | ErrorResponse:
    result = await service.user_activity(user_id, days=days, event_type=event_type)
    return handle_result(result, response)


@router.post("/export", response_model=None)
@beartype
async def export_events(
    payload: ExportRequest,
    response: Response,
    user_id: str | None = Depends(get_acting_user),
    context: RequestContext = Depends(get_request_context),
    service: AuditService = Depends(get_audit_service),
) -> Any:
    """Export up to the configured row limit over a window of at most 90 days."""
    try:
        query = payload.to_query()
    except ValidationError as e:
        return handle_result(Err(f"Validation failed: {e}"), response)

    result = await service.export(
        query, payload.format, requested_by=user_id, context=context
    )
    if result.is_err() or payload.format is not ExportFormat.CSV:
        return handle_result(result, response)

    filename = f"audit_logs_{query.start:%Y%m%d}_{query.end:%Y%m%d}.csv"
    return Response(
        content=result.unwrap(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/archive")
@beartype
async def archive_expired(
    response: Response,
    user_id: str | None = Depends(get_acting_user),
    context: RequestContext = Depends(get_request_context),
    service: AuditService = Depends(get_audit_service),
) -> ArchiveResponse | ErrorResponse:
    """Archive every event whose retention period has passed."""
    result = await service.archive_expired(requested_by=user_id, context=context)
    if result.is_err():
        return handle_result(result, response)
    return handle_result(Ok(ArchiveResponse(archived=result.unwrap())), response)
