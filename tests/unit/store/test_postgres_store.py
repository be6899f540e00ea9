"""Unit tests for the PostgreSQL record store against a mocked database."""

import contextlib
from collections.abc import AsyncIterator
from datetime import timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from compliance_ledger.core.errors import (
    ConcurrentModificationError,
    RecordAlreadyExistsError,
    RecordNotFoundError,
    RecordValidationError,
)
from compliance_ledger.models.audit import AuditEventCreate, AuditEventQuery
from compliance_ledger.models.compliance import ComplianceRecord, Note, replace_field
from compliance_ledger.models.enums import AuditEventType, Region, ThreatLevel
from compliance_ledger.policy.archival import archive_event
from compliance_ledger.policy.retention import create_audit_event
from compliance_ledger.store.postgres import PostgresRecordStore


def _record_row(record: ComplianceRecord) -> dict[str, Any]:
    document = record.to_document()
    for name in ("version", "created_at", "updated_at"):
        document.pop(name)
    return {
        "client_id": record.client_id,
        "version": record.version,
        "document": document,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    }


def _event_row(event) -> dict[str, Any]:
    return {
        "id": event.id,
        "archived": event.archived,
        "archived_at": event.archived_at,
        "document": event.to_document(),
    }


@pytest.fixture
def pg_store(mock_db: MagicMock) -> PostgresRecordStore:
    return PostgresRecordStore(mock_db, score_threshold=80)


@pytest.fixture
def event(now):
    return create_audit_event(
        AuditEventCreate(
            event_type=AuditEventType.DATA_EXPORT,
            action="Compliance: data_export",
            description="Data export requested for client c-1",
            user_id="u-1",
        ),
        now,
    )


class TestConstruction:
    """Store construction."""

    def test_requires_database(self) -> None:
        """Test a missing database is rejected."""
        with pytest.raises(ValueError, match="Database connection required"):
            PostgresRecordStore(None)


class TestRecordQueries:
    """Record reads and inserts."""

    async def test_get_overlays_columns(self, pg_store, mock_db, make_record) -> None:
        """Test column-only fields are merged into the document."""
        record = make_record().model_copy(update={"version": 4})
        mock_db.fetchrow.return_value = _record_row(record)

        loaded = await pg_store.get("client-001")

        assert loaded == record
        assert mock_db.fetchrow.call_args.args[1] == "client-001"

    async def test_get_missing(self, pg_store, mock_db) -> None:
        """Test a missing row raises."""
        mock_db.fetchrow.return_value = None
        with pytest.raises(RecordNotFoundError):
            await pg_store.get("nobody")

    async def test_insert_params(self, pg_store, mock_db, make_record) -> None:
        """Test promoted columns and the document are written."""
        record = make_record()
        mock_db.write_returning.return_value = _record_row(record)

        stored = await pg_store.insert_record(record)

        args = mock_db.write_returning.call_args.args
        assert "INSERT INTO compliance_records" in args[0]
        assert args[1:4] == ("client-001", "US", "Active")
        assert args[8] == 95
        assert "version" not in args[10]
        assert len(args) == 13
        assert stored == record

    async def test_insert_duplicate(self, pg_store, mock_db, make_record) -> None:
        """Test unique violations surface as already-exists errors."""
        mock_db.write_returning.side_effect = asyncpg.UniqueViolationError("dup")
        with pytest.raises(RecordAlreadyExistsError):
            await pg_store.insert_record(make_record())

    async def test_find_by_region(self, pg_store, mock_db, make_record) -> None:
        """Test region filter parameter."""
        mock_db.fetch.return_value = [_record_row(make_record(region=Region.EU))]

        found = await pg_store.find_by_region(Region.EU)

        assert mock_db.fetch.call_args.args[1] == "EU"
        assert found[0].preferred_region is Region.EU

    async def test_find_non_compliant_rechecks_rows(
        self, pg_store, mock_db, make_record, now
    ) -> None:
        """Test rows returned by the prefilter are re-evaluated in Python."""
        mock_db.fetch.return_value = [
            _record_row(make_record("good")),
            _record_row(make_record("bad", score=20)),
        ]

        found = await pg_store.find_non_compliant(now)

        assert [r.client_id for r in found] == ["bad"]
        assert mock_db.fetch.call_args.args[1:] == ("Active", now, 80)


class TestRecordWrites:
    """Appends and version-checked saves."""

    async def test_append_change(self, pg_store, mock_db, make_record, now) -> None:
        """Test a single UPDATE appends to change_history."""
        record = make_record().model_copy(update={"version": 2})
        mock_db.write_returning.return_value = _record_row(record)

        await pg_store.append_change(
            "client-001", "status", "Active", "Inactive", "u-1", None, changed_at=now
        )

        args = mock_db.write_returning.call_args.args
        assert "'{change_history}'" in args[0]
        assert "jsonb_build_array" in args[0]
        assert args[1] == "client-001"
        assert args[2]["field"] == "status"
        assert args[2]["new_value"] == "Inactive"
        assert args[3] == now
        assert args[4] is None

    async def test_append_note_missing(self, pg_store, mock_db, now) -> None:
        """Test an UPDATE touching no row on an unknown client raises not found."""
        mock_db.write_returning.return_value = None
        mock_db.fetchval.return_value = None

        with pytest.raises(RecordNotFoundError):
            await pg_store.append_note("nobody", "hello", None, added_at=now)

    async def test_append_note_stale(self, pg_store, mock_db, now) -> None:
        """Test an UPDATE touching no row on a newer revision raises a conflict."""
        mock_db.write_returning.return_value = None
        mock_db.fetchval.return_value = 7

        with pytest.raises(ConcurrentModificationError) as exc_info:
            await pg_store.append_note(
                "client-001", "hello", None, added_at=now, expected_version=6
            )
        assert exc_info.value.actual_version == 7

    @staticmethod
    def _with_transaction(mock_db: MagicMock, *rows: Any) -> AsyncMock:
        conn = MagicMock()
        conn.fetchrow = AsyncMock(side_effect=list(rows))

        @contextlib.asynccontextmanager
        async def transaction() -> AsyncIterator[Any]:
            yield conn

        mock_db.transaction = transaction
        return conn.fetchrow

    async def test_save(self, pg_store, mock_db, make_record, now) -> None:
        """Test a save locks the row, checks the version and writes."""
        current = make_record()
        later = now + timedelta(hours=1)
        updated = replace_field(current, "status", "Suspended")
        saved_row = _record_row(
            updated.model_copy(update={"version": 2, "updated_at": later})
        )
        fetchrow = self._with_transaction(mock_db, _record_row(current), saved_row)

        saved = await pg_store.save(updated, now=later)

        assert saved.version == 2
        assert "FOR UPDATE" in fetchrow.call_args_list[0].args[0]
        write_args = fetchrow.call_args_list[1].args
        assert write_args[3] == "Suspended"
        assert write_args[-1] == later

    async def test_save_stale(self, pg_store, mock_db, make_record, now) -> None:
        """Test a stale revision is rejected before writing."""
        current = make_record().model_copy(update={"version": 3})
        fetchrow = self._with_transaction(mock_db, _record_row(current))

        with pytest.raises(ConcurrentModificationError):
            await pg_store.save(make_record(), now=now)
        assert fetchrow.await_count == 1

    async def test_save_rejects_history_rewrite(
        self, pg_store, mock_db, make_record, now
    ) -> None:
        """Test saves that drop history entries are refused."""
        current = make_record().with_note(Note(content="kept", added_at=now))
        self._with_transaction(mock_db, _record_row(current))

        with pytest.raises(RecordValidationError):
            await pg_store.save(make_record(), now=now)


class TestEventQueries:
    """Audit event reads and writes."""

    async def test_insert_event(self, pg_store, mock_db, event) -> None:
        """Test promoted columns include the stamped retention."""
        mock_db.write_returning.return_value = _event_row(event)

        stored = await pg_store.insert_event(event)

        args = mock_db.write_returning.call_args.args
        assert args[1] == event.id
        assert args[2] == "data_export"
        assert args[7] == ThreatLevel.LOW.value
        assert args[12] == 2555
        assert stored == event

    async def test_row_archival_columns_win(
        self, pg_store, mock_db, event, now
    ) -> None:
        """Test archival columns override the document copy."""
        row = _event_row(event)
        row.update(archived=True, archived_at=now)
        mock_db.fetchrow.return_value = row

        loaded = await pg_store.get_event(event.id)

        assert loaded.archived is True
        assert loaded.archived_at == now
        assert loaded.retention_period_days == 2555

    async def test_security_events_use_type_array(self, pg_store, mock_db, now) -> None:
        """Test dashboard queries pass event types as a text array."""
        await pg_store.find_security_events(30, as_of=now)

        args = mock_db.fetch.call_args.args
        assert "ANY($1::text[])" in args[0]
        assert "login_failed" in args[1]
        assert args[2] == now - timedelta(days=30)
        assert args[3] == now

    async def test_aggregate(self, pg_store, mock_db, now) -> None:
        """Test failure counts are derived from totals."""
        mock_db.fetch.return_value = [
            {"event_type": "login_failed", "count": 5, "success_count": 1}
        ]

        counts = await pg_store.aggregate_event_counts(7, as_of=now)

        assert counts[0].event_type is AuditEventType.LOGIN_FAILED
        assert counts[0].failure_count == 4

    async def test_search_builds_numbered_params(self, pg_store, mock_db, now) -> None:
        """Test only set filters become clauses, followed by limit and offset."""
        query = AuditEventQuery(
            user_id="u-1", success=False, start=now, skip=20, limit=10
        )

        await pg_store.search_events(query)

        sql, *params = mock_db.fetch.call_args.args
        assert "user_id = $1" in sql
        assert "success = $2" in sql
        assert "timestamp >= $3" in sql
        assert "LIMIT $4 OFFSET $5" in sql
        assert params == ["u-1", False, now, 10, 20]

    async def test_search_without_filters(self, pg_store, mock_db) -> None:
        """Test an empty query matches everything."""
        await pg_store.search_events(AuditEventQuery())

        sql, *params = mock_db.fetch.call_args.args
        assert "WHERE TRUE" in sql
        assert params == [100, 0]

    async def test_retention_expired_query(self, pg_store, mock_db, now) -> None:
        """Test expiry is computed from each row's stored retention."""
        await pg_store.find_retention_expired(now, 50)

        sql, *params = mock_db.fetch.call_args.args
        assert "make_interval(days => retention_period_days)" in sql
        assert "ORDER BY timestamp ASC" in sql
        assert params == [now, 50]

    async def test_update_archival(self, pg_store, mock_db, event, now) -> None:
        """Test only archival columns are written."""
        archived = archive_event(event, now)
        mock_db.write_returning.return_value = _event_row(archived)

        await pg_store.update_event_archival(archived)

        args = mock_db.write_returning.call_args.args
        assert "SET archived = $2, archived_at = $3" in args[0]
        assert args[1:] == (event.id, True, now)

    async def test_update_archival_missing(self, pg_store, mock_db, event, now) -> None:
        """Test archiving an unknown event raises."""
        mock_db.write_returning.return_value = None
        with pytest.raises(RecordNotFoundError):
            await pg_store.update_event_archival(archive_event(event, now))
