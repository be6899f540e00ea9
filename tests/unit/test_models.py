"""Unit tests for ledger models and field-path helpers."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from compliance_ledger.models.audit import AuditEventQuery
from compliance_ledger.models.base import ensure_utc
from compliance_ledger.models.compliance import (
    ChangeRecord,
    ComplianceRecord,
    DataProcessingAgreement,
    Note,
    read_field,
    replace_field,
)
from compliance_ledger.models.enums import (
    COMPLIANCE_EVENT_TYPES,
    SECURITY_EVENT_TYPES,
    AuditEventType,
    EventCategory,
    Region,
    event_types_in,
)


class TestBaseModel:
    """Shared model configuration."""

    def test_naive_datetimes_become_utc(self) -> None:
        """Test naive timestamps are read as UTC."""
        value = ensure_utc(datetime(2025, 1, 1, 8, 30))
        assert value.tzinfo is timezone.utc
        assert value.hour == 8

    def test_aware_datetimes_are_converted(self) -> None:
        """Test offsets are normalised to UTC."""
        plus_two = timezone(timedelta(hours=2))
        value = ensure_utc(datetime(2025, 1, 1, 8, 30, tzinfo=plus_two))
        assert value.hour == 6

    def test_records_are_frozen(self, make_record) -> None:
        """Test records cannot be mutated in place."""
        record = make_record()
        with pytest.raises(ValidationError):
            record.status = "Inactive"

    def test_extra_fields_rejected(self, make_create) -> None:
        """Test unknown keys fail validation."""
        document = make_create().model_dump()
        document["unexpected"] = True
        with pytest.raises(ValidationError):
            type(make_create()).model_validate(document)


class TestComplianceRecord:
    """Record construction and append helpers."""

    def test_new_sets_timestamps_and_last_audit(self, make_create, now) -> None:
        """Test the first revision is stamped with the onboarding time."""
        record = ComplianceRecord.new(make_create(), now)

        assert record.created_at == now
        assert record.updated_at == now
        assert record.audit_trail.last_audit == now
        assert record.version == 1
        assert record.change_history == ()
        assert record.notes == ()

    def test_defaults(self, make_record) -> None:
        """Test onboarding defaults."""
        record = make_record()
        assert record.backup_region is Region.UK
        assert record.data_retention.retention_period_days == 2555
        assert record.data_retention.policy == "7 years after service termination"

    def test_dpa_dates_must_be_ordered(self, now) -> None:
        """Test an agreement cannot expire before it takes effect."""
        with pytest.raises(ValidationError):
            DataProcessingAgreement(
                effective_date=now, expiration_date=now - timedelta(days=1)
            )

    def test_document_roundtrip(self, make_record) -> None:
        """Test a stored document rehydrates to an equal record."""
        record = make_record()
        assert ComplianceRecord.from_document(record.to_document()) == record

    def test_with_change_appends(self, make_record, now) -> None:
        """Test change entries are appended, never replaced."""
        record = make_record()
        first = ChangeRecord(
            field="status", old_value="Active", new_value="Inactive", changed_at=now
        )
        second = ChangeRecord(
            field="status", old_value="Inactive", new_value="Active", changed_at=now
        )

        updated = record.with_change(first).with_change(second)

        assert updated.change_history == (first, second)
        assert record.change_history == ()

    def test_with_note_updates_timestamp(self, make_record, now) -> None:
        """Test adding a note moves updated_at."""
        later = now + timedelta(hours=2)
        updated = make_record().with_note(Note(content="Call client", added_at=later))
        assert updated.updated_at == later
        assert updated.notes[0].content == "Call client"


class TestFieldPaths:
    """Dotted snake_case field paths."""

    def test_read_nested(self, make_record) -> None:
        """Test nested values are read in their JSON form."""
        record = make_record()
        assert read_field(record, "data_processing_agreement.status") == "Active"
        assert read_field(record, "audit_trail.compliance_score") == 95

    def test_read_unknown_path(self, make_record) -> None:
        """Test unknown paths raise KeyError."""
        with pytest.raises(KeyError):
            read_field(make_record(), "audit_trail.nope")

    def test_replace_revalidates(self, make_record) -> None:
        """Test replacement produces a validated copy."""
        record = make_record()
        updated = replace_field(record, "audit_trail.compliance_score", 70)

        assert updated.audit_trail.compliance_score == 70
        assert record.audit_trail.compliance_score == 95

    def test_replace_rejects_invalid_value(self, make_record) -> None:
        """Test values outside a closed enumeration fail validation."""
        with pytest.raises(ValidationError):
            replace_field(make_record(), "data_processing_agreement.status", "Lapsed")

    @pytest.mark.parametrize(
        "path", ["client_id", "version", "change_history", "notes", "created_at"]
    )
    def test_replace_rejects_protected_fields(self, make_record, path: str) -> None:
        """Test fields owned by the store cannot be set."""
        with pytest.raises(KeyError):
            replace_field(make_record(), path, "x")

    def test_replace_rejects_unknown_path(self, make_record) -> None:
        """Test unknown leaves are not created."""
        with pytest.raises(KeyError):
            replace_field(make_record(), "audit_trail.owner", "x")


class TestEnums:
    """Event type groupings."""

    def test_every_event_type_has_a_category(self) -> None:
        """Test the category table covers the whole enumeration."""
        for event_type in AuditEventType:
            assert isinstance(event_type.category, EventCategory)

    def test_category_members(self) -> None:
        """Test category lookups agree with membership lists."""
        for category in EventCategory:
            for event_type in event_types_in(category):
                assert event_type.category is category

    def test_dashboard_groups(self) -> None:
        """Test dashboard sets hold the expected types."""
        assert AuditEventType.LOGIN_FAILED in SECURITY_EVENT_TYPES
        assert AuditEventType.DATA_EXPORT in COMPLIANCE_EVENT_TYPES
        assert AuditEventType.PRIVACY_SETTINGS_CHANGED not in COMPLIANCE_EVENT_TYPES


class TestAuditEventQuery:
    """Search query validation."""

    def test_start_after_end_rejected(self, now) -> None:
        """Test an inverted range fails validation."""
        with pytest.raises(ValidationError):
            AuditEventQuery(start=now, end=now - timedelta(days=1))

    def test_limit_bounds(self) -> None:
        """Test the page size is bounded."""
        with pytest.raises(ValidationError):
            AuditEventQuery(limit=0)
