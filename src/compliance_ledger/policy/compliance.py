"""Compliance status derivation for client records.

Every check runs on every call, so one record can report several issues at
once. :func:`is_compliant` is defined in terms of
:func:`compute_compliance_status` so the two can never disagree.
"""

import math
from datetime import datetime, timedelta

from beartype import beartype
from pydantic import Field

from ..models.base import BaseModelConfig, UtcDatetime
from ..models.compliance import ComplianceRecord
from ..models.enums import DPAStatus

DEFAULT_SCORE_THRESHOLD = 80

ISSUE_DPA_INACTIVE = "Data Processing Agreement is not active"
ISSUE_DPA_EXPIRED = "Data Processing Agreement has expired"
ISSUE_AUDIT_OVERDUE = "Audit is overdue"
ISSUE_LOW_SCORE = "Compliance score is below acceptable threshold"

_ONE_DAY = timedelta(days=1)


class ComplianceStatus(BaseModelConfig):
    """Derived compliance view of a record at a given instant."""

    client_id: str = Field(...)
    is_compliant: bool = Field(...)
    issues: tuple[str, ...] = Field(default=())
    score: int = Field(..., ge=0, le=100)
    next_audit: UtcDatetime = Field(...)
    dpa_expiration: UtcDatetime = Field(...)
    days_until_next_audit: int = Field(...)
    days_until_dpa_expiration: int = Field(...)
    evaluated_at: UtcDatetime = Field(...)


@beartype
def days_until(target: datetime, now: datetime) -> int:
    """Whole days from ``now`` to ``target``, rounded up; negative if past."""
    return math.ceil((target - now) / _ONE_DAY)


@beartype
def days_until_next_audit(record: ComplianceRecord, now: datetime) -> int:
    return days_until(record.audit_trail.next_audit, now)


@beartype
def days_until_dpa_expiration(record: ComplianceRecord, now: datetime) -> int:
    return days_until(record.data_processing_agreement.expiration_date, now)


@beartype
def compliance_issues(
    record: ComplianceRecord,
    now: datetime,
    *,
    score_threshold: int = DEFAULT_SCORE_THRESHOLD,
) -> list[str]:
    """Ordered list of failed checks; empty when the record is compliant."""
    dpa = record.data_processing_agreement
    issues: list[str] = []

    if dpa.status != DPAStatus.ACTIVE:
        issues.append(ISSUE_DPA_INACTIVE)
    if dpa.expiration_date < now:
        issues.append(ISSUE_DPA_EXPIRED)
    if record.audit_trail.next_audit < now:
        issues.append(ISSUE_AUDIT_OVERDUE)
    if record.audit_trail.compliance_score < score_threshold:
        issues.append(ISSUE_LOW_SCORE)

    return issues


@beartype
def compute_compliance_status(
    record: ComplianceRecord,
    now: datetime,
    *,
    score_threshold: int = DEFAULT_SCORE_THRESHOLD,
) -> ComplianceStatus:
    """Evaluate all compliance checks for ``record`` as of ``now``."""
    issues = compliance_issues(record, now, score_threshold=score_threshold)
    return ComplianceStatus(
        client_id=record.client_id,
        is_compliant=not issues,
        issues=tuple(issues),
        score=record.audit_trail.compliance_score,
        next_audit=record.audit_trail.next_audit,
        dpa_expiration=record.data_processing_agreement.expiration_date,
        days_until_next_audit=days_until_next_audit(record, now),
        days_until_dpa_expiration=days_until_dpa_expiration(record, now),
        evaluated_at=now,
    )


@beartype
def is_compliant(
    record: ComplianceRecord,
    now: datetime,
    *,
    score_threshold: int = DEFAULT_SCORE_THRESHOLD,
) -> bool:
    return compute_compliance_status(
        record, now, score_threshold=score_threshold
    ).is_compliant


@beartype
def is_expiring_within(
    record: ComplianceRecord, as_of: datetime, horizon_days: int
) -> bool:
    """True when any tracked deadline falls inside ``[as_of, as_of + horizon]``."""
    horizon_end = as_of + timedelta(days=horizon_days)
    deadlines = (
        record.data_processing_agreement.expiration_date,
        record.audit_trail.next_audit,
        record.data_retention.next_review,
    )
    return any(as_of <= deadline <= horizon_end for deadline in deadlines)
