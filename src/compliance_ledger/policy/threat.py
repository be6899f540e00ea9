"""Threat-level classification for audit events.

Levels depend on the event type and, for repeated failed logins, on the
attempt count reported by the caller.
"""

from collections.abc import Mapping
from typing import Any

from beartype import beartype

from ..models.enums import AuditEventType, EventCategory, ThreatLevel

FAILED_LOGIN_ESCALATION_ATTEMPTS = 5

_AUTHENTICATION_LEVELS: dict[AuditEventType, ThreatLevel] = {
    AuditEventType.LOGIN_FAILED: ThreatLevel.MEDIUM,
    AuditEventType.PASSWORD_CHANGE: ThreatLevel.MEDIUM,
    AuditEventType.PASSWORD_RESET: ThreatLevel.MEDIUM,
    AuditEventType.MFA_DISABLED: ThreatLevel.HIGH,
}

_AUTHORIZATION_LEVELS: dict[AuditEventType, ThreatLevel] = {
    AuditEventType.ACCESS_DENIED: ThreatLevel.MEDIUM,
    AuditEventType.PERMISSION_CHANGED: ThreatLevel.HIGH,
    AuditEventType.ROLE_CHANGED: ThreatLevel.HIGH,
}

_SECURITY_LEVELS: dict[AuditEventType, ThreatLevel] = {
    AuditEventType.SUSPICIOUS_ACTIVITY: ThreatLevel.MEDIUM,
    AuditEventType.RATE_LIMIT_EXCEEDED: ThreatLevel.LOW,
    AuditEventType.MALWARE_DETECTED: ThreatLevel.HIGH,
    AuditEventType.ENCRYPTION_ERROR: ThreatLevel.HIGH,
    AuditEventType.DECRYPTION_ERROR: ThreatLevel.HIGH,
    AuditEventType.INTEGRITY_CHECK_FAILED: ThreatLevel.HIGH,
}

_SYSTEM_LEVELS: dict[AuditEventType, ThreatLevel] = {
    AuditEventType.SERVER_SHUTDOWN: ThreatLevel.MEDIUM,
    AuditEventType.CERTIFICATE_EXPIRED: ThreatLevel.HIGH,
    AuditEventType.DISK_SPACE_LOW: ThreatLevel.MEDIUM,
}


@beartype
def classify_threat_level(
    event_type: AuditEventType, details: Mapping[str, Any] | None = None
) -> ThreatLevel:
    """Threat level for an event of ``event_type``."""
    details = details or {}
    category = event_type.category

    if category is EventCategory.AUTHENTICATION:
        if event_type is AuditEventType.LOGIN_FAILED:
            attempts = details.get("attempts") or 0
            if isinstance(attempts, int) and attempts > FAILED_LOGIN_ESCALATION_ATTEMPTS:
                return ThreatLevel.HIGH
        return _AUTHENTICATION_LEVELS.get(event_type, ThreatLevel.LOW)
    if category is EventCategory.AUTHORIZATION:
        return _AUTHORIZATION_LEVELS.get(event_type, ThreatLevel.LOW)
    if category is EventCategory.ADMIN_ACTION:
        return ThreatLevel.MEDIUM
    if category is EventCategory.SECURITY:
        return _SECURITY_LEVELS.get(event_type, ThreatLevel.MEDIUM)
    if category is EventCategory.SYSTEM:
        return _SYSTEM_LEVELS.get(event_type, ThreatLevel.LOW)
    return ThreatLevel.LOW
