"""Audit event models.

An :class:`AuditEvent` is immutable after creation except for its archival
flags. Its ``retention_period_days`` is assigned once when the event is
created and is carried verbatim through every later read.
"""

from datetime import datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

from beartype import beartype
from pydantic import Field, model_validator

from .base import BaseModelConfig, UtcDatetime
from .enums import AuditEventType, Regulation, ResourceType, ThreatLevel


class AuditEventCreate(BaseModelConfig):
    """Validated input for a new audit event."""

    event_type: AuditEventType = Field(...)
    user_id: str | None = Field(default=None, max_length=100)
    resource_type: ResourceType | None = Field(default=None)
    resource_id: str | None = Field(default=None, max_length=200)
    action: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    request_id: str | None = Field(default=None, max_length=100)
    ip_address: str | None = Field(default=None, max_length=64)
    user_agent: str | None = Field(default=None, max_length=500)
    threat_level: ThreatLevel = Field(default=ThreatLevel.LOW)
    success: bool = Field(default=True)
    failure_reason: str | None = Field(default=None, max_length=1000)
    old_value: Any = Field(default=None)
    new_value: Any = Field(default=None)
    changes: Any = Field(default=None)
    duration_ms: int | None = Field(default=None, ge=0)
    regulation: Regulation | None = Field(default=None)
    compliance_required: bool = Field(default=False)
    metadata: dict[str, Any] = Field(default_factory=dict)


class AuditEvent(AuditEventCreate):
    """Persisted audit event."""

    id: UUID = Field(default_factory=uuid4)
    timestamp: UtcDatetime = Field(...)
    retention_period_days: int = Field(..., ge=1)
    archived: bool = Field(default=False)
    archived_at: UtcDatetime | None = Field(default=None)

    @model_validator(mode="after")
    def check_archival(self) -> "AuditEvent":
        """An archival timestamp only exists on archived events."""
        if self.archived_at is not None and not self.archived:
            raise ValueError("archived_at set on an event that is not archived")
        return self

    @classmethod
    @beartype
    def from_document(cls, document: dict[str, Any]) -> "AuditEvent":
        """Rehydrate a stored document without touching its retention."""
        return cls.model_validate(document)


class AuditEventQuery(BaseModelConfig):
    """Filters for searching the audit log; every filter is optional."""

    event_type: AuditEventType | None = Field(default=None)
    user_id: str | None = Field(default=None)
    resource_type: ResourceType | None = Field(default=None)
    resource_id: str | None = Field(default=None)
    threat_level: ThreatLevel | None = Field(default=None)
    success: bool | None = Field(default=None)
    regulation: Regulation | None = Field(default=None)
    start: UtcDatetime | None = Field(default=None)
    end: UtcDatetime | None = Field(default=None)
    skip: int = Field(default=0, ge=0)
    limit: int = Field(default=100, ge=1, le=10000)

    @model_validator(mode="after")
    def check_range(self) -> "AuditEventQuery":
        """Start must not fall after end."""
        if self.start and self.end and self.start > self.end:
            raise ValueError("start must be on or before end")
        return self

    @beartype
    def matches(self, event: AuditEvent) -> bool:
        """Whether an event passes every filter set on this query."""
        checks: list[tuple[Any, Any]] = [
            (self.event_type, event.event_type),
            (self.user_id, event.user_id),
            (self.resource_type, event.resource_type),
            (self.resource_id, event.resource_id),
            (self.threat_level, event.threat_level),
            (self.success, event.success),
            (self.regulation, event.regulation),
        ]
        if any(wanted is not None and wanted != actual for wanted, actual in checks):
            return False
        if self.start is not None and event.timestamp < self.start:
            return False
        if self.end is not None and event.timestamp > self.end:
            return False
        return True


class EventCount(BaseModelConfig):
    """Per-event-type totals over a time window."""

    event_type: AuditEventType = Field(...)
    count: int = Field(..., ge=0)
    success_count: int = Field(..., ge=0)
    failure_count: int = Field(..., ge=0)


@beartype
def window_start(as_of: datetime, since_days: int) -> datetime:
    """Start of a trailing window of ``since_days`` ending at ``as_of``."""
    return as_of - timedelta(days=since_days)


class AuditStats(BaseModelConfig):
    """Aggregate view of the audit log over a trailing window."""

    period_days: int = Field(..., ge=1)
    total_events: int = Field(..., ge=0)
    failed_events: int = Field(..., ge=0)
    by_event_type: tuple[EventCount, ...] = Field(default=())
