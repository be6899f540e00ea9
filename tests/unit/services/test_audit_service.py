"""Unit tests for the audit logging service."""

from datetime import timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from compliance_ledger.core.errors import StoreUnavailableError
from compliance_ledger.models.audit import AuditEventCreate, AuditEventQuery
from compliance_ledger.models.enums import (
    AuditEventType,
    ExportFormat,
    Regulation,
    ResourceType,
    ThreatLevel,
)
from compliance_ledger.policy.retention import create_audit_event
from compliance_ledger.services import audit_service as audit_module
from compliance_ledger.services.audit_descriptions import action_for, describe
from compliance_ledger.services.audit_service import (
    CSV_HEADERS,
    AuditService,
    RequestContext,
    events_to_csv,
)


class TestDescriptions:
    """Action labels and description templates."""

    def test_action_label(self) -> None:
        """Test labels combine category and event type."""
        assert action_for(AuditEventType.LOGIN_FAILED) == (
            "Authentication: login_failed"
        )
        assert action_for(AuditEventType.DISK_SPACE_LOW) == (
            "System event: disk_space_low"
        )

    def test_template_with_details(self) -> None:
        """Test placeholders are filled from details."""
        text = describe(
            AuditEventType.FILE_UPLOAD, {"file_name": "a.pdf", "user_id": "u-1"}
        )
        assert text == "File a.pdf uploaded by user u-1"

    def test_missing_details_fall_back(self) -> None:
        """Test missing or empty details render as placeholders."""
        assert describe(AuditEventType.SUSPICIOUS_ACTIVITY, {}) == (
            "Suspicious activity detected: unknown pattern"
        )
        assert describe(AuditEventType.ACCESS_DENIED, {"resource_type": ""}) == (
            "Access denied to resource for user unknown"
        )
        assert describe(AuditEventType.FILE_SCAN, {"file_name": None}) == (
            "File unknown scanned for malware"
        )

    def test_maintenance_state(self) -> None:
        """Test the maintenance template reflects the flag."""
        assert describe(AuditEventType.MAINTENANCE_MODE, {"enabled": True}) == (
            "Maintenance mode enabled"
        )
        assert describe(AuditEventType.MAINTENANCE_MODE, {}) == (
            "Maintenance mode disabled"
        )

    def test_untemplated_type_uses_action(self) -> None:
        """Test types without a template describe themselves by action."""
        assert describe(AuditEventType.USER_ACTIVATED, {}) == (
            "Admin action: user_activated"
        )


class TestCategoryLogging:
    """Category helpers build and persist events."""

    async def test_failed_login(self, audit_service: AuditService, now) -> None:
        """Test a failed login is described, classified and stamped."""
        result = await audit_service.log_authentication(
            AuditEventType.LOGIN_FAILED,
            None,
            context=RequestContext(ip_address="10.0.0.1", user_agent="curl/8"),
            success=False,
            failure_reason="bad password",
            email="a@example.com",
            attempts=6,
        )

        event = result.unwrap()
        assert event.description == "Failed login attempt for user a@example.com"
        assert event.action == "Authentication: login_failed"
        assert event.threat_level is ThreatLevel.HIGH
        assert event.retention_period_days == 365
        assert event.timestamp == now
        assert event.ip_address == "10.0.0.1"
        assert event.metadata["attempts"] == 6
        assert event.success is False

    async def test_category_mismatch(self, audit_service: AuditService) -> None:
        """Test an event type from another category is rejected."""
        result = await audit_service.log_authentication(
            AuditEventType.FILE_UPLOAD, "u-1"
        )
        assert result.is_err()
        assert "Validation failed" in result.unwrap_err()

    async def test_file_operation(self, audit_service: AuditService) -> None:
        """Test file events target the file resource."""
        result = await audit_service.log_file_operation(
            AuditEventType.FILE_UPLOAD, "f-1", "u-1", duration_ms=120, file_name="a.pdf"
        )

        event = result.unwrap()
        assert event.resource_type is ResourceType.FILE
        assert event.resource_id == "f-1"
        assert event.duration_ms == 120
        assert event.description == "File a.pdf uploaded by user u-1"

    async def test_authorization(self, audit_service: AuditService) -> None:
        """Test the resource type appears in the description."""
        result = await audit_service.log_authorization(
            AuditEventType.ACCESS_DENIED,
            "u-1",
            resource_type=ResourceType.COMPLIANCE,
            resource_id="c-1",
            success=False,
        )

        event = result.unwrap()
        assert event.description == "Access denied to compliance for user u-1"
        assert event.threat_level is ThreatLevel.MEDIUM
        assert event.retention_period_days == 730

    async def test_admin_action(self, audit_service: AuditService) -> None:
        """Test admin actions carry before and after values."""
        result = await audit_service.log_admin_action(
            AuditEventType.USER_UPDATED,
            "admin-1",
            resource_type=ResourceType.USER,
            resource_id="u-5",
            old_value={"role": "viewer"},
            new_value={"role": "editor"},
            target_user="u-5",
        )

        event = result.unwrap()
        assert event.description == "User u-5 updated by admin admin-1"
        assert event.threat_level is ThreatLevel.MEDIUM
        assert event.new_value == {"role": "editor"}

    async def test_security_event_uses_context_ip(
        self, audit_service: AuditService
    ) -> None:
        """Test the request address fills the rate-limit template."""
        result = await audit_service.log_security_event(
            AuditEventType.RATE_LIMIT_EXCEEDED,
            context=RequestContext(ip_address="192.0.2.7"),
        )
        assert result.unwrap().description == "Rate limit exceeded for IP 192.0.2.7"

    async def test_compliance_event(self, audit_service: AuditService) -> None:
        """Test compliance events are low threat, required and kept longest."""
        result = await audit_service.log_compliance_event(
            AuditEventType.COMPLIANCE_CHECK,
            user_id="u-1",
            client_id="c-1",
            regulation=Regulation.GDPR,
        )

        event = result.unwrap()
        assert event.description == "Compliance check performed for GDPR"
        assert event.compliance_required is True
        assert event.threat_level is ThreatLevel.LOW
        assert event.resource_type is ResourceType.COMPLIANCE
        assert event.resource_id == "c-1"
        assert event.retention_period_days == 2555

    async def test_system_event(self, audit_service: AuditService) -> None:
        """Test system events have no user and a short retention."""
        result = await audit_service.log_system_event(
            AuditEventType.MAINTENANCE_MODE, system_id="api-1", enabled=True
        )

        event = result.unwrap()
        assert event.user_id is None
        assert event.description == "Maintenance mode enabled"
        assert event.retention_period_days == 90

    async def test_store_failure(self, now) -> None:
        """Test persistence errors are returned, not raised."""
        store = AsyncMock()
        store.insert_event.side_effect = StoreUnavailableError("insert")
        service = AuditService(store)

        result = await service.log_system_event(AuditEventType.SERVER_STARTUP)

        assert result.is_err()
        assert "unavailable" in result.unwrap_err()

    def test_store_required(self) -> None:
        """Test construction without a store fails."""
        with pytest.raises(ValueError, match="Record store required"):
            AuditService(None)


class TestQueries:
    """Dashboard and search queries."""

    async def test_stats(self, audit_service: AuditService) -> None:
        """Test per-type totals and failure counts."""
        await audit_service.log_authentication(
            AuditEventType.LOGIN_FAILED, "u-1", success=False
        )
        await audit_service.log_authentication(AuditEventType.LOGIN_SUCCESS, "u-1")
        await audit_service.log_authentication(AuditEventType.LOGIN_SUCCESS, "u-2")

        stats = (await audit_service.stats(7)).unwrap()

        assert stats.period_days == 7
        assert stats.total_events == 3
        assert stats.failed_events == 1
        assert stats.by_event_type[0].event_type is AuditEventType.LOGIN_SUCCESS

    async def test_stats_window_capped(self, audit_service: AuditService) -> None:
        """Test oversized windows are capped at the configured maximum."""
        stats = (await audit_service.stats(5000)).unwrap()
        assert stats.period_days == 365

    async def test_stats_rejects_non_positive(
        self, audit_service: AuditService
    ) -> None:
        """Test a zero-day window is invalid."""
        result = await audit_service.stats(0)
        assert "Validation failed" in result.unwrap_err()

    async def test_stats_access_is_audited(self, audit_service, store) -> None:
        """Test reading stats on behalf of a user leaves a trail."""
        await audit_service.stats(30, accessed_by="auditor-1")

        accessed = await store.find_by_event_type(AuditEventType.AUDIT_TRAIL_ACCESSED)
        assert len(accessed) == 1
        assert accessed[0].user_id == "auditor-1"

    async def test_security_events_by_threat(self, audit_service: AuditService) -> None:
        """Test the threat filter narrows dashboard results."""
        await audit_service.log_security_event(AuditEventType.MALWARE_DETECTED)
        await audit_service.log_security_event(AuditEventType.RATE_LIMIT_EXCEEDED)

        high = (
            await audit_service.security_events(threat_level=ThreatLevel.HIGH)
        ).unwrap()

        assert [e.event_type for e in high] == [AuditEventType.MALWARE_DETECTED]

    async def test_zero_day_windows(self, audit_service: AuditService, clock) -> None:
        """Test an explicit zero-day window is not widened to the default."""
        await audit_service.log_security_event(AuditEventType.MALWARE_DETECTED)
        await audit_service.log_system_event(
            AuditEventType.BACKUP_SCHEDULED, success=False, failure_reason="disk"
        )
        clock.advance(timedelta(hours=1))

        assert len((await audit_service.security_events()).unwrap()) == 1
        assert (await audit_service.security_events(0)).unwrap() == []
        assert (await audit_service.failed_events(0)).unwrap() == []

    async def test_compliance_events_by_regulation(
        self, audit_service: AuditService, store
    ) -> None:
        """Test the regulation filter and access logging."""
        await audit_service.log_compliance_event(
            AuditEventType.POLICY_UPDATED, regulation=Regulation.HIPAA
        )
        await audit_service.log_compliance_event(
            AuditEventType.POLICY_UPDATED, regulation=Regulation.GDPR
        )

        events = (
            await audit_service.compliance_events(
                regulation=Regulation.HIPAA, accessed_by="auditor-1"
            )
        ).unwrap()

        assert [e.regulation for e in events] == [Regulation.HIPAA]
        accessed = await store.find_by_event_type(AuditEventType.AUDIT_TRAIL_ACCESSED)
        assert accessed[0].metadata["regulation_filter"] == "HIPAA"
        assert accessed[0].metadata["event_count"] == 1

    async def test_failed_events(self, audit_service: AuditService) -> None:
        """Test only failures are returned."""
        await audit_service.log_system_event(
            AuditEventType.BACKUP_SCHEDULED, success=False, failure_reason="disk"
        )
        await audit_service.log_system_event(AuditEventType.SERVER_STARTUP)

        failed = (await audit_service.failed_events()).unwrap()

        assert [e.event_type for e in failed] == [AuditEventType.BACKUP_SCHEDULED]

    async def test_user_activity(self, audit_service: AuditService) -> None:
        """Test activity is scoped to one user."""
        await audit_service.log_authentication(AuditEventType.LOGIN_SUCCESS, "u-1")
        await audit_service.log_authentication(AuditEventType.LOGOUT, "u-1")
        await audit_service.log_authentication(AuditEventType.LOGIN_SUCCESS, "u-2")

        events = (await audit_service.user_activity("u-1")).unwrap()
        logouts = (
            await audit_service.user_activity("u-1", event_type=AuditEventType.LOGOUT)
        ).unwrap()

        assert {e.user_id for e in events} == {"u-1"}
        assert len(events) == 2
        assert len(logouts) == 1

    async def test_get_event_missing(self, audit_service: AuditService) -> None:
        """Test unknown ids map to a not-found error."""
        result = await audit_service.get_event(uuid4())
        assert "not found" in result.unwrap_err()


class TestExport:
    """Bounded exports."""

    async def _seed(self, audit_service: AuditService) -> None:
        await audit_service.log_file_operation(
            AuditEventType.FILE_DOWNLOAD, "f-1", "u-1", file_name="a.csv"
        )
        await audit_service.log_authentication(
            AuditEventType.LOGIN_FAILED,
            None,
            success=False,
            failure_reason="locked, contact admin",
            email="x@example.com",
        )

    async def test_requires_range(self, audit_service: AuditService) -> None:
        """Test exports need both ends of the window."""
        result = await audit_service.export(AuditEventQuery())
        assert "required" in result.unwrap_err()

    async def test_window_limit(self, audit_service: AuditService, now) -> None:
        """Test windows longer than the limit are refused."""
        query = AuditEventQuery(start=now - timedelta(days=91), end=now)
        result = await audit_service.export(query)
        assert "cannot exceed 90 days" in result.unwrap_err()

    async def test_json_export(self, audit_service: AuditService, store, now) -> None:
        """Test JSON exports return documents and are themselves audited."""
        await self._seed(audit_service)
        query = AuditEventQuery(start=now - timedelta(days=1), end=now)

        documents = (
            await audit_service.export(query, requested_by="auditor-1")
        ).unwrap()

        assert len(documents) == 2
        assert {d["event_type"] for d in documents} == {"file_download", "login_failed"}
        exports = await store.find_by_event_type(AuditEventType.DATA_EXPORT)
        assert exports[0].user_id == "auditor-1"
        assert exports[0].metadata["record_count"] == 2
        assert exports[0].metadata["export_format"] == "json"

    async def test_csv_export(self, audit_service: AuditService, now) -> None:
        """Test CSV exports carry the header row and quote embedded commas."""
        await self._seed(audit_service)
        query = AuditEventQuery(start=now - timedelta(days=1), end=now)

        text = (await audit_service.export(query, ExportFormat.CSV)).unwrap()
        lines = text.strip().split("\n")

        assert lines[0] == ",".join(CSV_HEADERS)
        assert len(lines) == 3
        assert '"locked, contact admin"' in text

    async def test_row_limit(
        self, audit_service: AuditService, store, clock, settings, now
    ) -> None:
        """Test exports never exceed the configured row count."""
        limited = AuditService(
            store,
            clock=clock,
            settings=settings.model_copy(update={"export_max_rows": 1}),
        )
        await self._seed(audit_service)
        query = AuditEventQuery(start=now - timedelta(days=1), end=now, limit=500)

        documents = (await limited.export(query)).unwrap()

        assert len(documents) == 1

    def test_csv_empty(self) -> None:
        """Test an empty export is just the header."""
        assert events_to_csv([]) == ",".join(CSV_HEADERS) + "\n"


class TestArchival:
    """Archiving events past their retention."""

    async def _insert(self, store, event_type: AuditEventType, at) -> None:
        await store.insert_event(
            create_audit_event(
                AuditEventCreate(
                    event_type=event_type,
                    action=action_for(event_type),
                    description="seeded",
                ),
                at,
            )
        )

    async def test_archives_expired_only(self, audit_service, store, now) -> None:
        """Test only events past their own retention are archived."""
        long_ago = now - timedelta(days=91)
        await self._insert(store, AuditEventType.SERVER_STARTUP, long_ago)
        await self._insert(store, AuditEventType.DATA_EXPORT, long_ago)
        await self._insert(store, AuditEventType.LOGOUT, now - timedelta(days=400))

        assert (await audit_service.archive_expired()).unwrap() == 2
        assert (await audit_service.archive_expired()).unwrap() == 0

        exports = await store.find_by_event_type(AuditEventType.DATA_EXPORT)
        assert exports[0].archived is False

    async def test_archives_in_batches(
        self, audit_service, store, now, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test archival keeps going until a short batch."""
        monkeypatch.setattr(audit_module, "ARCHIVE_BATCH_SIZE", 2)
        for days in range(100, 105):
            await self._insert(
                store, AuditEventType.SERVER_STARTUP, now - timedelta(days=days)
            )

        assert (await audit_service.archive_expired()).unwrap() == 5
        assert await store.find_retention_expired(now) == []

    async def test_cleanup_is_audited(self, audit_service, store, now) -> None:
        """Test each archival run records who ran it and how much it archived."""
        await self._insert(
            store, AuditEventType.SERVER_STARTUP, now - timedelta(days=91)
        )

        await audit_service.archive_expired(requested_by="admin-1")

        cleanups = await store.find_by_event_type(AuditEventType.AUDIT_CLEANUP)
        assert len(cleanups) == 1
        assert cleanups[0].user_id == "admin-1"
        assert cleanups[0].metadata["archived_count"] == 1
        assert cleanups[0].threat_level is ThreatLevel.MEDIUM
        assert "admin-1" in cleanups[0].description
