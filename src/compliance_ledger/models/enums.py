"""Closed enumerations shared by compliance records and audit events."""

from enum import Enum

from beartype import beartype


class Region(str, Enum):
    """Data residency regions the company can host client data in."""

    US = "US"
    UK = "UK"
    EU = "EU"
    CA = "CA"


class DPAStatus(str, Enum):
    """Lifecycle of a data processing agreement."""

    ACTIVE = "Active"
    PENDING = "Pending"
    EXPIRED = "Expired"
    TERMINATED = "Terminated"


class RecordStatus(str, Enum):
    """Status of a client compliance record."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"
    SUSPENDED = "Suspended"
    PENDING_REVIEW = "Pending Review"


class SecurityCertification(str, Enum):
    """Certifications a client engagement may require."""

    SOC2_TYPE_II = "SOC 2 Type II"
    ISO_27001 = "ISO 27001"
    GDPR = "GDPR"
    CCPA = "CCPA"
    HIPAA = "HIPAA"
    PCI_DSS = "PCI DSS"


class TransferMechanism(str, Enum):
    """Legal basis for cross-border data transfers."""

    SCCS = "SCCs"
    ADEQUACY_DECISION = "Adequacy Decision"
    BINDING_CORPORATE_RULES = "Binding Corporate Rules"
    CONSENT = "Consent"
    LEGITIMATE_INTEREST = "Legitimate Interest"


class EventCategory(str, Enum):
    """Semantic grouping of audit event types."""

    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    FILE_OPERATION = "file_operation"
    ADMIN_ACTION = "admin_action"
    SECURITY = "security"
    COMPLIANCE = "compliance"
    SYSTEM = "system"


class AuditEventType(str, Enum):
    """Every action the audit log accepts."""

    # Authentication
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"
    PASSWORD_CHANGE = "password_change"
    PASSWORD_RESET = "password_reset"
    MFA_ENABLED = "mfa_enabled"
    MFA_DISABLED = "mfa_disabled"
    MFA_USED = "mfa_used"
    SESSION_CREATED = "session_created"
    SESSION_DESTROYED = "session_destroyed"

    # Authorization
    ACCESS_GRANTED = "access_granted"
    ACCESS_DENIED = "access_denied"
    PERMISSION_CHANGED = "permission_changed"
    ROLE_CHANGED = "role_changed"

    # File operations
    FILE_UPLOAD = "file_upload"
    FILE_DOWNLOAD = "file_download"
    FILE_DELETE = "file_delete"
    FILE_SCAN = "file_scan"
    FILE_ENCRYPTED = "file_encrypted"

    # Admin actions
    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    USER_DELETED = "user_deleted"
    USER_ACTIVATED = "user_activated"
    USER_DEACTIVATED = "user_deactivated"
    SYSTEM_CONFIG_CHANGED = "system_config_changed"
    BACKUP_CREATED = "backup_created"
    BACKUP_RESTORED = "backup_restored"
    AUDIT_CLEANUP = "audit_cleanup"

    # Security
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    MALWARE_DETECTED = "malware_detected"
    ENCRYPTION_ERROR = "encryption_error"
    DECRYPTION_ERROR = "decryption_error"
    INTEGRITY_CHECK_FAILED = "integrity_check_failed"

    # Compliance
    POLICY_UPDATED = "policy_updated"
    COMPLIANCE_CHECK = "compliance_check"
    DATA_EXPORT = "data_export"
    DATA_DELETION = "data_deletion"
    AUDIT_TRAIL_ACCESSED = "audit_trail_accessed"
    PRIVACY_SETTINGS_CHANGED = "privacy_settings_changed"

    # System
    SERVER_STARTUP = "server_startup"
    SERVER_SHUTDOWN = "server_shutdown"
    MAINTENANCE_MODE = "maintenance_mode"
    BACKUP_SCHEDULED = "backup_scheduled"
    CERTIFICATE_EXPIRED = "certificate_expired"
    DISK_SPACE_LOW = "disk_space_low"

    @property
    @beartype
    def category(self) -> EventCategory:
        """Category this event type belongs to."""
        return EVENT_CATEGORIES[self]


_CATEGORY_MEMBERS: dict[EventCategory, tuple[AuditEventType, ...]] = {
    EventCategory.AUTHENTICATION: (
        AuditEventType.LOGIN_SUCCESS,
        AuditEventType.LOGIN_FAILED,
        AuditEventType.LOGOUT,
        AuditEventType.PASSWORD_CHANGE,
        AuditEventType.PASSWORD_RESET,
        AuditEventType.MFA_ENABLED,
        AuditEventType.MFA_DISABLED,
        AuditEventType.MFA_USED,
        AuditEventType.SESSION_CREATED,
        AuditEventType.SESSION_DESTROYED,
    ),
    EventCategory.AUTHORIZATION: (
        AuditEventType.ACCESS_GRANTED,
        AuditEventType.ACCESS_DENIED,
        AuditEventType.PERMISSION_CHANGED,
        AuditEventType.ROLE_CHANGED,
    ),
    EventCategory.FILE_OPERATION: (
        AuditEventType.FILE_UPLOAD,
        AuditEventType.FILE_DOWNLOAD,
        AuditEventType.FILE_DELETE,
        AuditEventType.FILE_SCAN,
        AuditEventType.FILE_ENCRYPTED,
    ),
    EventCategory.ADMIN_ACTION: (
        AuditEventType.USER_CREATED,
        AuditEventType.USER_UPDATED,
        AuditEventType.USER_DELETED,
        AuditEventType.USER_ACTIVATED,
        AuditEventType.USER_DEACTIVATED,
        AuditEventType.SYSTEM_CONFIG_CHANGED,
        AuditEventType.BACKUP_CREATED,
        AuditEventType.BACKUP_RESTORED,
        AuditEventType.AUDIT_CLEANUP,
    ),
    EventCategory.SECURITY: (
        AuditEventType.SUSPICIOUS_ACTIVITY,
        AuditEventType.RATE_LIMIT_EXCEEDED,
        AuditEventType.MALWARE_DETECTED,
        AuditEventType.ENCRYPTION_ERROR,
        AuditEventType.DECRYPTION_ERROR,
        AuditEventType.INTEGRITY_CHECK_FAILED,
    ),
    EventCategory.COMPLIANCE: (
        AuditEventType.POLICY_UPDATED,
        AuditEventType.COMPLIANCE_CHECK,
        AuditEventType.DATA_EXPORT,
        AuditEventType.DATA_DELETION,
        AuditEventType.AUDIT_TRAIL_ACCESSED,
        AuditEventType.PRIVACY_SETTINGS_CHANGED,
    ),
    EventCategory.SYSTEM: (
        AuditEventType.SERVER_STARTUP,
        AuditEventType.SERVER_SHUTDOWN,
        AuditEventType.MAINTENANCE_MODE,
        AuditEventType.BACKUP_SCHEDULED,
        AuditEventType.CERTIFICATE_EXPIRED,
        AuditEventType.DISK_SPACE_LOW,
    ),
}

EVENT_CATEGORIES: dict[AuditEventType, EventCategory] = {
    event_type: category
    for category, members in _CATEGORY_MEMBERS.items()
    for event_type in members
}


@beartype
def event_types_in(category: EventCategory) -> tuple[AuditEventType, ...]:
    """Event types belonging to a category, in declaration order."""
    return _CATEGORY_MEMBERS[category]


# Event types surfaced by the security and compliance dashboards.
SECURITY_EVENT_TYPES: frozenset[AuditEventType] = frozenset(
    {
        AuditEventType.SUSPICIOUS_ACTIVITY,
        AuditEventType.MALWARE_DETECTED,
        AuditEventType.ACCESS_DENIED,
        AuditEventType.RATE_LIMIT_EXCEEDED,
        AuditEventType.LOGIN_FAILED,
        AuditEventType.ENCRYPTION_ERROR,
    }
)

COMPLIANCE_EVENT_TYPES: frozenset[AuditEventType] = frozenset(
    {
        AuditEventType.POLICY_UPDATED,
        AuditEventType.COMPLIANCE_CHECK,
        AuditEventType.DATA_EXPORT,
        AuditEventType.DATA_DELETION,
        AuditEventType.AUDIT_TRAIL_ACCESSED,
    }
)


class ResourceType(str, Enum):
    """Kinds of resources an audit event can target."""

    USER = "user"
    FILE = "file"
    BLOG = "blog"
    SYSTEM = "system"
    COMPLIANCE = "compliance"
    SECURITY = "security"


class ThreatLevel(str, Enum):
    """Qualitative severity attached to an audit event."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Regulation(str, Enum):
    """Regulations an audit event can be filed under."""

    GDPR = "GDPR"
    CCPA = "CCPA"
    HIPAA = "HIPAA"
    SOX = "SOX"
    PCI_DSS = "PCI-DSS"


class ExportFormat(str, Enum):
    """Output formats for audit log exports."""

    JSON = "json"
    CSV = "csv"
