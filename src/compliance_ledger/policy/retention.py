"""Retention classification for audit events.

Retention is a property of the event type and is stamped onto the event at
creation. Events already in the store keep the value they were created
with, even after this table changes.
"""

from datetime import datetime, timedelta
from uuid import UUID, uuid4

from beartype import beartype

from ..models.audit import AuditEvent, AuditEventCreate
from ..models.enums import AuditEventType

COMPLIANCE_CRITICAL_DAYS = 2555  # 7 years
ELEVATED_DAYS = 730  # 2 years
STANDARD_DAYS = 365
TRANSIENT_DAYS = 90
DEFAULT_RETENTION_DAYS = STANDARD_DAYS

RETENTION_PERIODS: dict[AuditEventType, int] = {
    # Compliance events are kept longest
    AuditEventType.POLICY_UPDATED: COMPLIANCE_CRITICAL_DAYS,
    AuditEventType.COMPLIANCE_CHECK: COMPLIANCE_CRITICAL_DAYS,
    AuditEventType.DATA_EXPORT: COMPLIANCE_CRITICAL_DAYS,
    AuditEventType.DATA_DELETION: COMPLIANCE_CRITICAL_DAYS,
    AuditEventType.AUDIT_TRAIL_ACCESSED: COMPLIANCE_CRITICAL_DAYS,
    # Security and admin events
    AuditEventType.SUSPICIOUS_ACTIVITY: ELEVATED_DAYS,
    AuditEventType.MALWARE_DETECTED: ELEVATED_DAYS,
    AuditEventType.ACCESS_DENIED: ELEVATED_DAYS,
    AuditEventType.RATE_LIMIT_EXCEEDED: ELEVATED_DAYS,
    AuditEventType.USER_CREATED: ELEVATED_DAYS,
    AuditEventType.USER_DELETED: ELEVATED_DAYS,
    AuditEventType.SYSTEM_CONFIG_CHANGED: ELEVATED_DAYS,
    # Authentication and file operations
    AuditEventType.LOGIN_FAILED: STANDARD_DAYS,
    AuditEventType.PASSWORD_CHANGE: STANDARD_DAYS,
    AuditEventType.MFA_ENABLED: STANDARD_DAYS,
    AuditEventType.MFA_DISABLED: STANDARD_DAYS,
    AuditEventType.FILE_UPLOAD: STANDARD_DAYS,
    AuditEventType.FILE_DOWNLOAD: STANDARD_DAYS,
    AuditEventType.FILE_DELETE: STANDARD_DAYS,
    # Routine system events
    AuditEventType.SERVER_STARTUP: TRANSIENT_DAYS,
    AuditEventType.SERVER_SHUTDOWN: TRANSIENT_DAYS,
    AuditEventType.MAINTENANCE_MODE: TRANSIENT_DAYS,
}


@beartype
def classify_retention(event_type: AuditEventType) -> int:
    """Number of days an event of this type must be preserved."""
    return RETENTION_PERIODS.get(event_type, DEFAULT_RETENTION_DAYS)


@beartype
def create_audit_event(
    data: AuditEventCreate, now: datetime, *, event_id: UUID | None = None
) -> AuditEvent:
    """Stamp a validated payload with its id, timestamp and retention."""
    return AuditEvent.model_validate(
        {
            **data.model_dump(),
            "id": event_id or uuid4(),
            "timestamp": now,
            "retention_period_days": classify_retention(data.event_type),
        }
    )


@beartype
def retention_expires_at(event: AuditEvent) -> datetime:
    """Instant after which the event is no longer required to be kept."""
    return event.timestamp + timedelta(days=event.retention_period_days)


@beartype
def is_retention_expired(event: AuditEvent, now: datetime) -> bool:
    """True once ``now`` is strictly past the retention deadline."""
    return now > retention_expires_at(event)
