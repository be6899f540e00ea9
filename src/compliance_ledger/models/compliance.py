# ComplianceLedger - Audit Retention and Compliance Tracking
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Client data-storage compliance records.

One :class:`ComplianceRecord` exists per client. Records are never edited in
place: every mutation yields a new value carrying an extra
:class:`ChangeRecord`, and records are never deleted, only moved to an
inactive status.
"""

from datetime import datetime
from typing import Any

from beartype import beartype
from pydantic import Field, model_validator

from .base import BaseModelConfig, TimestampedModel, UtcDatetime
from .enums import (
    DPAStatus,
    RecordStatus,
    Region,
    SecurityCertification,
    TransferMechanism,
)

DEFAULT_RETENTION_POLICY = "7 years after service termination"
DEFAULT_DATA_RETENTION_DAYS = 2555


class ComplianceFlags(BaseModelConfig):
    """Regulations that apply to the client."""

    gdpr: bool = Field(default=False)
    ccpa: bool = Field(default=False)
    hipaa: bool = Field(default=False)
    sox: bool = Field(default=False)
    pci: bool = Field(default=False)


class DataProcessingAgreement(BaseModelConfig):
    """Data processing agreement between the company and the client."""

    status: DPAStatus = Field(default=DPAStatus.PENDING)
    effective_date: UtcDatetime = Field(...)
    expiration_date: UtcDatetime = Field(...)
    version: str = Field(default="1.0", min_length=1, max_length=20)
    document_url: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def check_dates(self) -> "DataProcessingAgreement":
        """Effective date must not fall after the expiration date."""
        if self.effective_date > self.expiration_date:
            raise ValueError("effective_date must be on or before expiration_date")
        return self


class AuditReport(BaseModelConfig):
    """Outcome of one external or internal compliance audit."""

    date: UtcDatetime = Field(...)
    score: int = Field(..., ge=0, le=100)
    findings: tuple[str, ...] = Field(default=())
    recommendations: tuple[str, ...] = Field(default=())
    report_url: str | None = Field(default=None, max_length=2000)


class AuditTrail(BaseModelConfig):
    """Audit schedule and latest score for a client."""

    last_audit: UtcDatetime | None = Field(default=None)
    next_audit: UtcDatetime = Field(...)
    compliance_score: int = Field(default=100, ge=0, le=100)
    audit_reports: tuple[AuditReport, ...] = Field(default=())


class DataRetention(BaseModelConfig):
    """Retention policy for the client's stored data."""

    policy: str = Field(default=DEFAULT_RETENTION_POLICY, min_length=1)
    next_review: UtcDatetime = Field(...)
    retention_period_days: int = Field(default=DEFAULT_DATA_RETENTION_DAYS, ge=1)
    auto_delete: bool = Field(default=True)


class RegionalStatus(BaseModelConfig):
    """Compliance status of one hosting region."""

    compliant: bool = Field(default=True)
    certifications: tuple[str, ...] = Field(default=())
    last_verified: UtcDatetime | None = Field(default=None)


class RegionalCompliance(BaseModelConfig):
    """Per-region status for all four hosting regions."""

    us: RegionalStatus = Field(default_factory=RegionalStatus)
    uk: RegionalStatus = Field(default_factory=RegionalStatus)
    eu: RegionalStatus = Field(default_factory=RegionalStatus)
    ca: RegionalStatus = Field(default_factory=RegionalStatus)


class ChangeRecord(BaseModelConfig):
    """One immutable entry of a record's change history."""

    field: str = Field(..., min_length=1, max_length=200)
    old_value: Any = Field(default=None)
    new_value: Any = Field(default=None)
    changed_by: str | None = Field(default=None)
    changed_at: UtcDatetime = Field(...)
    reason: str | None = Field(default=None, max_length=1000)


class Note(BaseModelConfig):
    """Free-text note attached to a record."""

    content: str = Field(..., min_length=1, max_length=5000)
    added_by: str | None = Field(default=None)
    added_at: UtcDatetime = Field(...)


class ComplianceRecordCreate(BaseModelConfig):
    """Onboarding payload for a new client."""

    client_id: str = Field(..., min_length=1, max_length=100)
    preferred_region: Region = Field(default=Region.US)
    backup_region: Region = Field(default=Region.UK)
    compliance_flags: ComplianceFlags = Field(default_factory=ComplianceFlags)
    data_processing_agreement: DataProcessingAgreement = Field(...)
    security_certifications: tuple[SecurityCertification, ...] = Field(default=())
    data_transfer_mechanisms: tuple[TransferMechanism, ...] = Field(default=())
    audit_trail: AuditTrail = Field(...)
    data_retention: DataRetention = Field(...)
    regional_compliance: RegionalCompliance = Field(default_factory=RegionalCompliance)
    status: RecordStatus = Field(default=RecordStatus.ACTIVE)


class ComplianceRecord(ComplianceRecordCreate, TimestampedModel):
    """Persisted compliance record with history and revision counter."""

    change_history: tuple[ChangeRecord, ...] = Field(default=())
    notes: tuple[Note, ...] = Field(default=())
    version: int = Field(default=1, ge=1)

    @classmethod
    @beartype
    def new(cls, data: ComplianceRecordCreate, now: datetime) -> "ComplianceRecord":
        """Build the first revision of a record from an onboarding payload."""
        audit_trail = data.audit_trail
        if audit_trail.last_audit is None:
            audit_trail = audit_trail.model_copy(update={"last_audit": now})
        return cls.model_validate(
            {
                **data.model_dump(),
                "audit_trail": audit_trail.model_dump(),
                "created_at": now,
                "updated_at": now,
            }
        )

    @classmethod
    @beartype
    def from_document(cls, document: dict[str, Any]) -> "ComplianceRecord":
        """Rehydrate a stored document."""
        return cls.model_validate(document)

    @beartype
    def with_change(self, change: ChangeRecord) -> "ComplianceRecord":
        """Copy of this record with one more change-history entry."""
        return self.model_copy(
            update={
                "change_history": (*self.change_history, change),
                "updated_at": change.changed_at,
            }
        )

    @beartype
    def with_note(self, note: Note) -> "ComplianceRecord":
        """Copy of this record with one more note."""
        return self.model_copy(
            update={"notes": (*self.notes, note), "updated_at": note.added_at}
        )


# Fields that only the store itself may change.
PROTECTED_FIELDS: frozenset[str] = frozenset(
    {
        "client_id",
        "change_history",
        "notes",
        "version",
        "created_at",
        "updated_at",
    }
)


@beartype
def read_field(record: ComplianceRecord, path: str) -> Any:
    """Read a dotted snake_case path, returning its JSON representation."""
    node: Any = record.to_document()
    for part in path.split("."):
        if not isinstance(node, dict) or part not in node:
            raise KeyError(path)
        node = node[part]
    return node


@beartype
def replace_field(record: ComplianceRecord, path: str, value: Any) -> ComplianceRecord:
    """Return a re-validated copy of ``record`` with ``path`` set to ``value``.

    Raises ``KeyError`` for unknown paths or protected fields and
    ``pydantic.ValidationError`` when the new value breaks the model.
    """
    parts = path.split(".")
    if parts[0] in PROTECTED_FIELDS:
        raise KeyError(path)

    document = record.to_document()
    node: Any = document
    for part in parts[:-1]:
        if not isinstance(node, dict) or part not in node:
            raise KeyError(path)
        node = node[part]
    if not isinstance(node, dict) or parts[-1] not in node:
        raise KeyError(path)
    node[parts[-1]] = value
    return ComplianceRecord.model_validate(document)
