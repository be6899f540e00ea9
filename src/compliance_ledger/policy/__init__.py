"""Pure policy functions: retention, compliance status, archival, threat level.

Nothing in this package performs I/O or reads the wall clock; every
time-dependent function takes the current instant as an argument.
"""

from .archival import archive_event
from .compliance import (
    DEFAULT_SCORE_THRESHOLD,
    ComplianceStatus,
    compliance_issues,
    compute_compliance_status,
    days_until_dpa_expiration,
    days_until_next_audit,
    is_compliant,
    is_expiring_within,
)
from .retention import (
    DEFAULT_RETENTION_DAYS,
    classify_retention,
    create_audit_event,
    is_retention_expired,
    retention_expires_at,
)
from .threat import classify_threat_level

__all__ = [
    "DEFAULT_RETENTION_DAYS",
    "DEFAULT_SCORE_THRESHOLD",
    "ComplianceStatus",
    "archive_event",
    "classify_retention",
    "classify_threat_level",
    "compliance_issues",
    "compute_compliance_status",
    "create_audit_event",
    "days_until_dpa_expiration",
    "days_until_next_audit",
    "is_compliant",
    "is_expiring_within",
    "is_retention_expired",
    "retention_expires_at",
]
