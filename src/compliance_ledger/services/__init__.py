"""Business services for the compliance ledger."""

from .audit_service import AuditService, RequestContext, events_to_csv
from .cache_keys import CacheKeys
from .compliance_service import ComplianceService

__all__ = [
    "AuditService",
    "CacheKeys",
    "ComplianceService",
    "RequestContext",
    "events_to_csv",
]
