"""Human-readable descriptions for audit events.

Templates reference caller-supplied details by name. Missing or empty
details render as ``unknown`` unless a more specific fallback is listed in
:data:`FALLBACKS`.
"""

from collections.abc import Mapping
from typing import Any

from beartype import beartype

from ..models.enums import AuditEventType, EventCategory

FALLBACKS: dict[str, str] = {
    "resource_type": "resource",
    "pattern": "unknown pattern",
    "regulation": "unknown regulation",
    "schedule": "unknown time",
}

_T = AuditEventType

TEMPLATES: dict[AuditEventType, str] = {
    # Authentication
    _T.LOGIN_SUCCESS: "User {user_id} successfully logged in",
    _T.LOGIN_FAILED: "Failed login attempt for user {email}",
    _T.LOGOUT: "User {user_id} logged out",
    _T.PASSWORD_CHANGE: "Password changed for user {user_id}",
    _T.PASSWORD_RESET: "Password reset for user {user_id}",
    _T.MFA_ENABLED: "MFA enabled for user {user_id}",
    _T.MFA_DISABLED: "MFA disabled for user {user_id}",
    _T.MFA_USED: "MFA used for login by user {user_id}",
    _T.SESSION_CREATED: "New session created for user {user_id}",
    _T.SESSION_DESTROYED: "Session destroyed for user {user_id}",
    # Authorization
    _T.ACCESS_GRANTED: "Access granted to {resource_type} for user {user_id}",
    _T.ACCESS_DENIED: "Access denied to {resource_type} for user {user_id}",
    _T.PERMISSION_CHANGED: "Permissions changed for user {user_id}",
    _T.ROLE_CHANGED: "Role changed for user {user_id}",
    # File operations
    _T.FILE_UPLOAD: "File {file_name} uploaded by user {user_id}",
    _T.FILE_DOWNLOAD: "File {file_name} downloaded by user {user_id}",
    _T.FILE_DELETE: "File {file_name} deleted by user {user_id}",
    _T.FILE_SCAN: "File {file_name} scanned for malware",
    _T.FILE_ENCRYPTED: "File {file_name} encrypted",
    # Admin actions
    _T.USER_CREATED: "User {target_user} created by admin {user_id}",
    _T.USER_UPDATED: "User {target_user} updated by admin {user_id}",
    _T.USER_DELETED: "User {target_user} deleted by admin {user_id}",
    _T.SYSTEM_CONFIG_CHANGED: "System configuration changed by admin {user_id}",
    _T.BACKUP_CREATED: "Backup created by admin {user_id}",
    _T.BACKUP_RESTORED: "Backup restored by admin {user_id}",
    _T.AUDIT_CLEANUP: "Audit log cleanup by admin {user_id}: {archived_count} archived",
    # Security
    _T.SUSPICIOUS_ACTIVITY: "Suspicious activity detected: {pattern}",
    _T.RATE_LIMIT_EXCEEDED: "Rate limit exceeded for IP {ip_address}",
    _T.MALWARE_DETECTED: "Malware detected in file {file_name}",
    _T.ENCRYPTION_ERROR: "Encryption error occurred",
    _T.DECRYPTION_ERROR: "Decryption error occurred",
    _T.INTEGRITY_CHECK_FAILED: "Integrity check failed for resource {resource_id}",
    # Compliance
    _T.POLICY_UPDATED: "Policy {policy_id} updated",
    _T.COMPLIANCE_CHECK: "Compliance check performed for {regulation}",
    _T.DATA_EXPORT: "Data export requested for client {client_id}",
    _T.DATA_DELETION: "Data deletion requested for client {client_id}",
    _T.AUDIT_TRAIL_ACCESSED: "Audit trail accessed by user {user_id}",
    _T.PRIVACY_SETTINGS_CHANGED: "Privacy settings changed for client {client_id}",
    # System
    _T.SERVER_STARTUP: "Server started successfully",
    _T.SERVER_SHUTDOWN: "Server shutdown initiated",
    _T.MAINTENANCE_MODE: "Maintenance mode {maintenance_state}",
    _T.BACKUP_SCHEDULED: "Backup scheduled for {schedule}",
    _T.CERTIFICATE_EXPIRED: "SSL certificate expired",
    _T.DISK_SPACE_LOW: "Low disk space detected: {available_space} available",
}

_CATEGORY_LABELS: dict[EventCategory, str] = {
    EventCategory.AUTHENTICATION: "Authentication",
    EventCategory.AUTHORIZATION: "Authorization",
    EventCategory.FILE_OPERATION: "File operation",
    EventCategory.ADMIN_ACTION: "Admin action",
    EventCategory.SECURITY: "Security event",
    EventCategory.COMPLIANCE: "Compliance",
    EventCategory.SYSTEM: "System event",
}


class _Details(dict):
    def __missing__(self, key: str) -> str:
        return FALLBACKS.get(key, "unknown")


@beartype
def action_for(event_type: AuditEventType) -> str:
    """Short action label, e.g. ``Authentication: login_failed``."""
    return f"{_CATEGORY_LABELS[event_type.category]}: {event_type.value}"


@beartype
def describe(event_type: AuditEventType, details: Mapping[str, Any]) -> str:
    """Render the description template for ``event_type``."""
    template = TEMPLATES.get(event_type)
    if template is None:
        return action_for(event_type)

    values = _Details(
        (key, value) for key, value in details.items() if value not in (None, "")
    )
    values["maintenance_state"] = "enabled" if details.get("enabled") else "disabled"
    return template.format_map(values)
