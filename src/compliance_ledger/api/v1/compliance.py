"""Client compliance record endpoints."""

from typing import Any

from beartype import beartype
from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import Field

from ...models.base import BaseModelConfig, UtcDatetime
from ...models.compliance import AuditReport, ComplianceRecord, ComplianceRecordCreate
from ...models.enums import RecordStatus, Region
from ...policy.compliance import ComplianceStatus
from ...services.compliance_service import ComplianceService
from ..dependencies import get_acting_user, get_compliance_service
from ..response_patterns import ErrorResponse, handle_result

router = APIRouter(prefix="/compliance")


class FieldUpdateRequest(BaseModelConfig):
    """Set one dotted field path on a record."""

    field: str = Field(..., min_length=1, max_length=200)
    value: Any = Field(default=None)
    reason: str | None = Field(default=None, max_length=1000)


class NoteRequest(BaseModelConfig):
    content: str = Field(..., min_length=1, max_length=5000)


class AuditRecordRequest(BaseModelConfig):
    """Completed audit plus the date of the next one."""

    report: AuditReport = Field(...)
    next_audit: UtcDatetime = Field(...)


class DeactivateRequest(BaseModelConfig):
    reason: str | None = Field(default=None, max_length=1000)
    status: RecordStatus = Field(default=RecordStatus.INACTIVE)


@router.post("", status_code=status.HTTP_201_CREATED)
@beartype
async def onboard_client(
    payload: ComplianceRecordCreate,
    response: Response,
    user_id: str | None = Depends(get_acting_user),
    service: ComplianceService = Depends(get_compliance_service),
) -> ComplianceRecord | ErrorResponse:
    """Create the compliance record for a new client."""
    result = await service.onboard(payload, user_id)
    return handle_result(result, response, success_status=status.HTTP_201_CREATED)


@router.get("/non-compliant")
@beartype
async def list_non_compliant(
    response: Response,
    service: ComplianceService = Depends(get_compliance_service),
) -> list[ComplianceRecord] | ErrorResponse:
    return handle_result(await service.non_compliant(), response)


@router.get("/expiring")
@beartype
async def list_expiring(
    response: Response,
    days: int | None = Query(default=None, ge=1, le=3650),
    service: ComplianceService = Depends(get_compliance_service),
) -> list[ComplianceRecord] | ErrorResponse:
    """Records with a DPA, audit or review deadline within ``days``."""
    return handle_result(await service.expiring_soon(days), response)


@router.get("/region/{region}")
@beartype
async def list_by_region(
    region: Region,
    response: Response,
    service: ComplianceService = Depends(get_compliance_service),
) -> list[ComplianceRecord] | ErrorResponse:
    return handle_result(await service.by_region(region), response)


@router.get("/{client_id}")
@beartype
async def get_record(
    client_id: str,
    response: Response,
    service: ComplianceService = Depends(get_compliance_service),
) -> ComplianceRecord | ErrorResponse:
    return handle_result(await service.get(client_id), response)


@router.get("/{client_id}/status")
@beartype
async def get_status(
    client_id: str,
    response: Response,
    service: ComplianceService = Depends(get_compliance_service),
) -> ComplianceStatus | ErrorResponse:
    """Compliance status evaluated at request time."""
    return handle_result(await service.status(client_id), response)


@router.patch("/{client_id}")
@beartype
async def update_field(
    client_id: str,
    payload: FieldUpdateRequest,
    response: Response,
    user_id: str | None = Depends(get_acting_user),
    service: ComplianceService = Depends(get_compliance_service),
) -> ComplianceRecord | ErrorResponse:
    """Update one field; the change is appended to the record's history."""
    result = await service.update_field(
        client_id, payload.field, payload.value, user_id, payload.reason
    )
    return handle_result(result, response)


@router.post("/{client_id}/notes", status_code=status.HTTP_201_CREATED)
@beartype
async def add_note(
    client_id: str,
    payload: NoteRequest,
    response: Response,
    user_id: str | None = Depends(get_acting_user),
    service: ComplianceService = Depends(get_compliance_service),
) -> ComplianceRecord | ErrorResponse:
    result = await service.add_note(client_id, payload.content, user_id)
    return handle_result(result, response, success_status=status.HTTP_201_CREATED)


@router.post("/{client_id}/audits", status_code=status.HTTP_201_CREATED)
@beartype
async def record_audit(
    client_id: str,
    payload: AuditRecordRequest,
    response: Response,
    user_id: str | None = Depends(get_acting_user),
    service: ComplianceService = Depends(get_compliance_service),
) -> ComplianceRecord | ErrorResponse:
    result = await service.record_audit(
        client_id, payload.report, payload.next_audit, user_id
    )
    return handle_result(result, response, success_status=status.HTTP_201_CREATED)


@router.post("/{client_id}/deactivate")
@beartype
async def deactivate(
    client_id: str,
    payload: DeactivateRequest,
    response: Response,
    user_id: str | None = Depends(get_acting_user),
    service: ComplianceService = Depends(get_compliance_service),
) -> ComplianceRecord | ErrorResponse:
    """Soft-deactivate a record; records are never deleted."""
    result = await service.deactivate(
        client_id, user_id, payload.reason, payload.status
    )
    return handle_result(result, response)
