# ComplianceLedger - Audit Retention and Compliance Tracking
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Audit logging service.

Category helpers build a validated :class:`AuditEventCreate` with a generated
action label, description and threat level, then persist it through the
record store. Retention is assigned once by
:func:`~compliance_ledger.policy.retention.create_audit_event` and never
recomputed afterwards.
"""

import csv
import io
from datetime import timedelta
from typing import Any
from uuid import UUID

from attrs import field, frozen
from beartype import beartype
from pydantic import ValidationError

from ..core.clock import Clock, SystemClock
from ..core.config import Settings, get_settings
from ..core.errors import LedgerError, RecordValidationError, validation_summary
from ..core.logging_utils import get_audit_logger, get_logger
from ..core.result_types import Err, Ok, Result
from ..models.audit import (
    AuditEvent,
    AuditEventCreate,
    AuditEventQuery,
    AuditStats,
    window_start,
)
from ..models.enums import (
    AuditEventType,
    EventCategory,
    ExportFormat,
    Regulation,
    ResourceType,
    ThreatLevel,
)
from ..policy.archival import archive_event
from ..policy.retention import create_audit_event
from ..policy.threat import classify_threat_level
from ..store.base import AuditEventStore
from .audit_descriptions import action_for, describe

logger = get_logger(__name__)
audit_logger = get_audit_logger()

CSV_HEADERS: tuple[str, ...] = (
    "Timestamp",
    "Event Type",
    "Action",
    "Description",
    "User ID",
    "IP Address",
    "User Agent",
    "Success",
    "Threat Level",
    "Resource Type",
    "Resource ID",
    "Failure Reason",
)

ARCHIVE_BATCH_SIZE = 1000


@frozen
class RequestContext:
    """Where a request came from; every field is optional."""

    ip_address: str | None = field(default=None)
    user_agent: str | None = field(default=None)
    request_id: str | None = field(default=None)


_NO_CONTEXT = RequestContext()


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


class AuditService:
    """Records audit events and answers audit log queries."""

    def __init__(
        self,
        store: AuditEventStore,
        clock: Clock | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize with a record store and an optional clock."""
        if store is None:
            raise ValueError("Record store required")
        self._store = store
        self._clock = clock or SystemClock()
        self._settings = settings or get_settings()

    # Recording

    @beartype
    async def record_event(self, data: AuditEventCreate) -> Result[AuditEvent, str]:
        """Stamp and persist a validated event."""
        event = create_audit_event(data, self._clock.now())
        try:
            stored = await self._store.insert_event(event)
        except LedgerError as e:
            logger.exception("Failed to persist %s audit event", data.event_type.value)
            return Err(str(e))

        audit_logger.info(
            "%s id=%s user=%s success=%s threat=%s retention_days=%d",
            stored.action,
            stored.id,
            stored.user_id or "-",
            stored.success,
            stored.threat_level.value,
            stored.retention_period_days,
        )
        return Ok(stored)

    async def _log(
        self,
        category: EventCategory,
        event_type: AuditEventType,
        *,
        user_id: str | None,
        details: dict[str, Any],
        context: RequestContext,
        success: bool,
        failure_reason: str | None,
        description_details: dict[str, Any] | None = None,
        threat_level: ThreatLevel | None = None,
        **fields: Any,
    ) -> Result[AuditEvent, str]:
        if event_type.category is not category:
            error = RecordValidationError(
                f"{event_type.value} is not a {category.value} event"
            )
            logger.warning("Rejected audit event: %s", error.message)
            return Err(str(error))

        describe_with = {"user_id": user_id, **details, **(description_details or {})}
        try:
            data = AuditEventCreate(
                event_type=event_type,
                user_id=user_id,
                action=action_for(event_type),
                description=describe(event_type, describe_with),
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                request_id=context.request_id,
                success=success,
                failure_reason=failure_reason,
                threat_level=threat_level or classify_threat_level(event_type, details),
                metadata=details,
                **fields,
            )
        except ValidationError as e:
            logger.warning(
                "Invalid %s audit event: %s", event_type.value, validation_summary(e)
            )
            return Err(f"Validation failed: {e}")

        return await self.record_event(data)

    @beartype
    async def log_authentication(
        self,
        event_type: AuditEventType,
        user_id: str | None,
        *,
        context: RequestContext = _NO_CONTEXT,
        success: bool = True,
        failure_reason: str | None = None,
        **details: Any,
    ) -> Result[AuditEvent, str]:
        """Log a login, logout, password or MFA event.

        ``details["attempts"]`` above five escalates a failed login to high.
        """
        return await self._log(
            EventCategory.AUTHENTICATION,
            event_type,
            user_id=user_id,
            details=details,
            context=context,
            success=success,
            failure_reason=failure_reason,
        )

    @beartype
    async def log_authorization(
        self,
        event_type: AuditEventType,
        user_id: str | None,
        *,
        resource_type: ResourceType | None = None,
        resource_id: str | None = None,
        context: RequestContext = _NO_CONTEXT,
        success: bool = True,
        failure_reason: str | None = None,
        **details: Any,
    ) -> Result[AuditEvent, str]:
        """Log an access decision or a permission change."""
        return await self._log(
            EventCategory.AUTHORIZATION,
            event_type,
            user_id=user_id,
            details=details,
            context=context,
            success=success,
            failure_reason=failure_reason,
            description_details={"resource_type": _enum_value(resource_type)},
            resource_type=resource_type,
            resource_id=resource_id,
        )

    @beartype
    async def log_file_operation(
        self,
        event_type: AuditEventType,
        file_id: str,
        user_id: str | None,
        *,
        duration_ms: int | None = None,
        context: RequestContext = _NO_CONTEXT,
        success: bool = True,
        failure_reason: str | None = None,
        **details: Any,
    ) -> Result[AuditEvent, str]:
        """Log an upload, download, delete, scan or encryption of a file."""
        return await self._log(
            EventCategory.FILE_OPERATION,
            event_type,
            user_id=user_id,
            details=details,
            context=context,
            success=success,
            failure_reason=failure_reason,
            resource_type=ResourceType.FILE,
            resource_id=file_id,
            duration_ms=duration_ms,
        )

    @beartype
    async def log_admin_action(
        self,
        event_type: AuditEventType,
        user_id: str | None,
        *,
        resource_type: ResourceType | None = None,
        resource_id: str | None = None,
        old_value: Any = None,
        new_value: Any = None,
        changes: Any = None,
        context: RequestContext = _NO_CONTEXT,
        success: bool = True,
        failure_reason: str | None = None,
        **details: Any,
    ) -> Result[AuditEvent, str]:
        """Log an administrative action; always medium threat."""
        return await self._log(
            EventCategory.ADMIN_ACTION,
            event_type,
            user_id=user_id,
            details=details,
            context=context,
            success=success,
            failure_reason=failure_reason,
            threat_level=ThreatLevel.MEDIUM,
            resource_type=resource_type,
            resource_id=resource_id,
            old_value=old_value,
            new_value=new_value,
            changes=changes,
        )

    @beartype
    async def log_security_event(
        self,
        event_type: AuditEventType,
        *,
        user_id: str | None = None,
        resource_type: ResourceType | None = None,
        resource_id: str | None = None,
        context: RequestContext = _NO_CONTEXT,
        success: bool = True,
        failure_reason: str | None = None,
        **details: Any,
    ) -> Result[AuditEvent, str]:
        return await self._log(
            EventCategory.SECURITY,
            event_type,
            user_id=user_id,
            details=details,
            context=context,
            success=success,
            failure_reason=failure_reason,
            description_details={
                "ip_address": context.ip_address,
                "resource_id": resource_id,
            },
            resource_type=resource_type,
            resource_id=resource_id,
        )

    @beartype
    async def log_compliance_event(
        self,
        event_type: AuditEventType,
        *,
        user_id: str | None = None,
        client_id: str | None = None,
        policy_id: str | None = None,
        regulation: Regulation | None = None,
        old_value: Any = None,
        new_value: Any = None,
        context: RequestContext = _NO_CONTEXT,
        success: bool = True,
        failure_reason: str | None = None,
        **details: Any,
    ) -> Result[AuditEvent, str]:
        """Log a compliance event; these are always flagged as required."""
        return await self._log(
            EventCategory.COMPLIANCE,
            event_type,
            user_id=user_id,
            details={"client_id": client_id, "policy_id": policy_id, **details},
            context=context,
            success=success,
            failure_reason=failure_reason,
            description_details={"regulation": _enum_value(regulation)},
            threat_level=ThreatLevel.LOW,
            resource_type=ResourceType.COMPLIANCE,
            resource_id=client_id or policy_id,
            regulation=regulation,
            compliance_required=True,
            old_value=old_value,
            new_value=new_value,
        )

    @beartype
    async def log_system_event(
        self,
        event_type: AuditEventType,
        *,
        system_id: str | None = None,
        duration_ms: int | None = None,
        success: bool = True,
        failure_reason: str | None = None,
        **details: Any,
    ) -> Result[AuditEvent, str]:
        """Log a system event. System events never carry a user."""
        return await self._log(
            EventCategory.SYSTEM,
            event_type,
            user_id=None,
            details=details,
            context=_NO_CONTEXT,
            success=success,
            failure_reason=failure_reason,
            resource_type=ResourceType.SYSTEM,
            resource_id=system_id,
            duration_ms=duration_ms,
        )

    # Queries

    @beartype
    async def get_event(self, event_id: UUID) -> Result[AuditEvent, str]:
        try:
            return Ok(await self._store.get_event(event_id))
        except LedgerError as e:
            return Err(str(e))

    @beartype
    async def search(self, query: AuditEventQuery) -> Result[list[AuditEvent], str]:
        """Filtered search over the audit log, newest first."""
        try:
            return Ok(await self._store.search_events(query))
        except LedgerError as e:
            logger.exception("Audit search failed")
            return Err(str(e))

    @beartype
    async def stats(
        self, days: int = 30, *, accessed_by: str | None = None
    ) -> Result[AuditStats, str]:
        """Per-type totals over the last ``days`` days (capped)."""
        if days < 1:
            return Err(str(RecordValidationError("days must be positive")))
        days = min(days, self._settings.stats_max_days)

        try:
            counts = await self._store.aggregate_event_counts(
                days, as_of=self._clock.now()
            )
        except LedgerError as e:
            logger.exception("Audit stats query failed")
            return Err(str(e))

        stats = AuditStats(
            period_days=days,
            total_events=sum(c.count for c in counts),
            failed_events=sum(c.failure_count for c in counts),
            by_event_type=tuple(counts),
        )
        if accessed_by is not None:
            await self._log_trail_access(accessed_by, stats_requested=True, days=days)
        return Ok(stats)

    @beartype
    async def security_events(
        self, days: int | None = None, *, threat_level: ThreatLevel | None = None
    ) -> Result[list[AuditEvent], str]:
        if days is None:
            days = self._settings.security_window_days
        try:
            events = await self._store.find_security_events(
                days, as_of=self._clock.now()
            )
        except LedgerError as e:
            return Err(str(e))
        if threat_level is not None:
            events = [e for e in events if e.threat_level == threat_level]
        return Ok(events)

    @beartype
    async def compliance_events(
        self,
        days: int | None = None,
        *,
        regulation: Regulation | None = None,
        accessed_by: str | None = None,
    ) -> Result[list[AuditEvent], str]:
        """Compliance events in the window, optionally for one regulation."""
        if days is None:
            days = self._settings.compliance_window_days
        try:
            events = await self._store.find_compliance_events(
                days, as_of=self._clock.now()
            )
        except LedgerError as e:
            return Err(str(e))
        if regulation is not None:
            events = [e for e in events if e.regulation == regulation]

        if accessed_by is not None:
            await self._log_trail_access(
                accessed_by,
                days=days,
                regulation_filter=_enum_value(regulation),
                event_count=len(events),
            )
        return Ok(events)

    @beartype
    async def failed_events(
        self, days: int | None = None
    ) -> Result[list[AuditEvent], str]:
        if days is None:
            days = self._settings.failed_window_days
        try:
            return Ok(
                await self._store.find_failed_events(days, as_of=self._clock.now())
            )
        except LedgerError as e:
            return Err(str(e))

    @beartype
    async def user_activity(
        self,
        user_id: str,
        *,
        days: int = 30,
        event_type: AuditEventType | None = None,
        limit: int | None = None,
    ) -> Result[list[AuditEvent], str]:
        """Recent events for one user."""
        now = self._clock.now()
        days = min(max(days, 1), self._settings.stats_max_days)
        query = AuditEventQuery(
            user_id=user_id,
            event_type=event_type,
            start=window_start(now, days),
            end=now,
            limit=self._settings.query_default_limit if limit is None else limit,
        )
        return await self.search(query)

    async def _log_trail_access(self, user_id: str, **details: Any) -> None:
        result = await self.log_compliance_event(
            AuditEventType.AUDIT_TRAIL_ACCESSED, user_id=user_id, **details
        )
        if result.is_err():
            logger.warning("Could not record audit trail access: %s", result.err_value)

    # Export

    @beartype
    async def export(
        self,
        query: AuditEventQuery,
        fmt: ExportFormat = ExportFormat.JSON,
        *,
        requested_by: str | None = None,
        context: RequestContext = _NO_CONTEXT,
    ) -> Result[str | list[dict[str, Any]], str]:
        """Export a bounded window of the audit log as JSON documents or CSV."""
        if query.start is None or query.end is None:
            return Err(
                str(RecordValidationError("start and end are required for export"))
            )
        max_days = self._settings.export_max_days
        if query.end - query.start > timedelta(days=max_days):
            error = RecordValidationError(
                f"export period cannot exceed {max_days} days"
            )
            return Err(str(error))

        bounded = query.model_copy(
            update={"skip": 0, "limit": self._settings.export_max_rows}
        )
        search_result = await self.search(bounded)
        if search_result.is_err():
            return search_result
        events = search_result.unwrap()

        logged = await self.log_compliance_event(
            AuditEventType.DATA_EXPORT,
            user_id=requested_by,
            context=context,
            export_format=fmt.value,
            start=query.start.isoformat(),
            end=query.end.isoformat(),
            record_count=len(events),
        )
        if logged.is_err():
            return logged

        logger.info("Exported %d audit events as %s", len(events), fmt.value)
        if fmt is ExportFormat.CSV:
            return Ok(events_to_csv(events))
        return Ok([event.to_document() for event in events])

    # Archival

    @beartype
    async def archive_expired(
        self,
        *,
        requested_by: str | None = None,
        context: RequestContext = _NO_CONTEXT,
    ) -> Result[int, str]:
        """Archive every unarchived event past its retention period.

        The run itself is recorded as an ``audit_cleanup`` admin action with the
        number of events archived.
        """
        now = self._clock.now()
        archived = 0
        try:
            while True:
                batch = await self._store.find_retention_expired(
                    now, ARCHIVE_BATCH_SIZE
                )
                for event in batch:
                    await self._store.update_event_archival(archive_event(event, now))
                archived += len(batch)
                if len(batch) < ARCHIVE_BATCH_SIZE:
                    break
        except LedgerError as e:
            logger.exception("Archival stopped after %d events", archived)
            return Err(str(e))

        logger.info("Archived %d expired audit events", archived)
        logged = await self.log_admin_action(
            AuditEventType.AUDIT_CLEANUP,
            requested_by,
            context=context,
            archived_count=archived,
        )
        if logged.is_err():
            logger.warning("Could not record audit cleanup: %s", logged.err_value)
        return Ok(archived)


@beartype
def events_to_csv(events: list[AuditEvent]) -> str:
    """Render events as CSV with a fixed header row."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for event in events:
        writer.writerow(
            [
                event.timestamp.isoformat(),
                event.event_type.value,
                event.action,
                event.description,
                event.user_id or "",
                event.ip_address or "",
                event.user_agent or "",
                "true" if event.success else "false",
                event.threat_level.value,
                _enum_value(event.resource_type) or "",
                event.resource_id or "",
                event.failure_reason or "",
            ]
        )
    return buffer.getvalue()
