"""Domain models for compliance records and audit events."""

from .audit import (
    AuditEvent,
    AuditEventCreate,
    AuditEventQuery,
    AuditStats,
    EventCount,
    window_start,
)
from .compliance import (
    AuditReport,
    AuditTrail,
    ChangeRecord,
    ComplianceFlags,
    ComplianceRecord,
    ComplianceRecordCreate,
    DataProcessingAgreement,
    DataRetention,
    Note,
    RegionalCompliance,
    RegionalStatus,
    read_field,
    replace_field,
)
from .enums import (
    COMPLIANCE_EVENT_TYPES,
    SECURITY_EVENT_TYPES,
    AuditEventType,
    DPAStatus,
    EventCategory,
    ExportFormat,
    RecordStatus,
    Region,
    Regulation,
    ResourceType,
    SecurityCertification,
    ThreatLevel,
    TransferMechanism,
    event_types_in,
)

__all__ = [
    "COMPLIANCE_EVENT_TYPES",
    "SECURITY_EVENT_TYPES",
    "AuditEvent",
    "AuditEventCreate",
    "AuditEventQuery",
    "AuditEventType",
    "AuditStats",
    "AuditReport",
    "AuditTrail",
    "ChangeRecord",
    "ComplianceFlags",
    "ComplianceRecord",
    "ComplianceRecordCreate",
    "DPAStatus",
    "DataProcessingAgreement",
    "DataRetention",
    "EventCategory",
    "EventCount",
    "ExportFormat",
    "Note",
    "RecordStatus",
    "Region",
    "RegionalCompliance",
    "RegionalStatus",
    "Regulation",
    "ResourceType",
    "SecurityCertification",
    "ThreatLevel",
    "TransferMechanism",
    "event_types_in",
    "read_field",
    "replace_field",
    "window_start",
]
