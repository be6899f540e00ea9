# ComplianceLedger - Audit Retention and Compliance Tracking
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""PostgreSQL record store.

Each entity is kept as a ``jsonb`` document next to a handful of promoted
columns used for filtering. ``version``, ``created_at`` and ``updated_at``
live only in columns and are overlaid on the document when a row is read.
Appends use a single ``UPDATE`` so concurrent writers never lose entries.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

import asyncpg
from beartype import beartype

from ..core.database import Database
from ..core.errors import (
    ConcurrentModificationError,
    RecordAlreadyExistsError,
    RecordNotFoundError,
)
from ..models.audit import AuditEvent, AuditEventQuery, EventCount, window_start
from ..models.compliance import ChangeRecord, ComplianceRecord, Note
from ..models.enums import (
    COMPLIANCE_EVENT_TYPES,
    SECURITY_EVENT_TYPES,
    AuditEventType,
    DPAStatus,
    Region,
)
from ..policy.compliance import (
    DEFAULT_SCORE_THRESHOLD,
    is_compliant,
    is_expiring_within,
)
from .base import AUDIT_EVENT_ENTITY, COMPLIANCE_ENTITY, check_append_only

_RECORD_COLUMNS = "client_id, version, document, created_at, updated_at"
_EVENT_COLUMNS = "id, archived, archived_at, document"
_COLUMN_ONLY_FIELDS = ("version", "created_at", "updated_at")

_APPEND_SQL = """
    UPDATE compliance_records
    SET document = jsonb_set(
            document,
            '{{{key}}}',
            COALESCE(document->'{key}', '[]'::jsonb) || jsonb_build_array($2::jsonb)
        ),
        version = version + 1,
        updated_at = $3
    WHERE client_id = $1 AND ($4::integer IS NULL OR version = $4)
    RETURNING {columns}
"""


@beartype
def _record_document(record: ComplianceRecord) -> dict[str, Any]:
    document = record.to_document()
    for name in _COLUMN_ONLY_FIELDS:
        document.pop(name, None)
    return document


@beartype
def _row_to_record(row: Any) -> ComplianceRecord:
    document = dict(row["document"])
    document.update(
        version=row["version"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
    return ComplianceRecord.from_document(document)


@beartype
def _row_to_event(row: Any) -> AuditEvent:
    document = dict(row["document"])
    document.update(archived=row["archived"], archived_at=row["archived_at"])
    return AuditEvent.from_document(document)


def _values(members: frozenset[AuditEventType]) -> list[str]:
    return sorted(member.value for member in members)


class PostgresRecordStore:
    """Record store on top of :class:`Database`."""

    def __init__(
        self, db: Database, score_threshold: int = DEFAULT_SCORE_THRESHOLD
    ) -> None:
        """Initialize with a connected database wrapper."""
        if not db or not hasattr(db, "fetchrow"):
            raise ValueError("Database connection required")
        self._db = db
        self._score_threshold = score_threshold

    # Compliance records

    @beartype
    async def get(self, client_id: str) -> ComplianceRecord:
        row = await self._db.fetchrow(
            f"SELECT {_RECORD_COLUMNS} FROM compliance_records WHERE client_id = $1",
            client_id,
        )
        if row is None:
            raise RecordNotFoundError(COMPLIANCE_ENTITY, client_id)
        return _row_to_record(row)

    @beartype
    async def insert_record(self, record: ComplianceRecord) -> ComplianceRecord:
        query = f"""
            INSERT INTO compliance_records (
                client_id, preferred_region, status, dpa_status, dpa_expiration,
                next_audit, next_review, compliance_score, version, document,
                created_at, updated_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
            RETURNING {_RECORD_COLUMNS}
        """
        try:
            row = await self._db.write_returning(
                query,
                *self._record_params(record),
                record.created_at,
                record.updated_at,
            )
        except asyncpg.UniqueViolationError as e:
            raise RecordAlreadyExistsError(COMPLIANCE_ENTITY, record.client_id) from e
        return _row_to_record(row)

    @staticmethod
    def _record_params(record: ComplianceRecord) -> tuple[Any, ...]:
        """Column values shared by insert and save, in table order."""
        dpa = record.data_processing_agreement
        return (
            record.client_id,
            record.preferred_region.value,
            record.status.value,
            dpa.status.value,
            dpa.expiration_date,
            record.audit_trail.next_audit,
            record.data_retention.next_review,
            record.audit_trail.compliance_score,
            record.version,
            _record_document(record),
        )

    @beartype
    async def find_by_region(self, region: Region) -> list[ComplianceRecord]:
        rows = await self._db.fetch(
            f"""
            SELECT {_RECORD_COLUMNS} FROM compliance_records
            WHERE preferred_region = $1
            ORDER BY client_id
            """,
            region.value,
        )
        return [_row_to_record(row) for row in rows]

    @beartype
    async def find_non_compliant(self, as_of: datetime) -> list[ComplianceRecord]:
        rows = await self._db.fetch(
            f"""
            SELECT {_RECORD_COLUMNS} FROM compliance_records
            WHERE dpa_status <> $1
               OR dpa_expiration < $2
               OR next_audit < $2
               OR compliance_score < $3
            ORDER BY client_id
            """,
            DPAStatus.ACTIVE.value,
            as_of,
            self._score_threshold,
        )
        records = [_row_to_record(row) for row in rows]
        return [
            r for r in records
            if not is_compliant(r, as_of, score_threshold=self._score_threshold)
        ]

    @beartype
    async def find_expiring_soon(
        self, as_of: datetime, horizon_days: int
    ) -> list[ComplianceRecord]:
        rows = await self._db.fetch(
            f"""
            SELECT {_RECORD_COLUMNS} FROM compliance_records
            WHERE dpa_expiration BETWEEN $1 AND $1 + make_interval(days => $2)
               OR next_audit BETWEEN $1 AND $1 + make_interval(days => $2)
               OR next_review BETWEEN $1 AND $1 + make_interval(days => $2)
            ORDER BY client_id
            """,
            as_of,
            horizon_days,
        )
        records = [_row_to_record(row) for row in rows]
        return [r for r in records if is_expiring_within(r, as_of, horizon_days)]

    async def _append(
        self,
        key: str,
        client_id: str,
        entry: dict[str, Any],
        at: datetime,
        expected_version: int | None,
    ) -> ComplianceRecord:
        query = _APPEND_SQL.format(key=key, columns=_RECORD_COLUMNS)
        row = await self._db.write_returning(
            query, client_id, entry, at, expected_version
        )
        if row is None:
            await self._raise_missing_or_stale(client_id, expected_version)
        return _row_to_record(row)

    async def _raise_missing_or_stale(
        self, client_id: str, expected_version: int | None
    ) -> None:
        actual = await self._db.fetchval(
            "SELECT version FROM compliance_records WHERE client_id = $1", client_id
        )
        if actual is None:
            raise RecordNotFoundError(COMPLIANCE_ENTITY, client_id)
        raise ConcurrentModificationError(
            COMPLIANCE_ENTITY, client_id, expected_version or 0, actual
        )

    @beartype
    async def append_change(
        self,
        client_id: str,
        field: str,
        old_value: Any,
        new_value: Any,
        user_id: str | None,
        reason: str | None,
        *,
        changed_at: datetime,
        expected_version: int | None = None,
    ) -> ComplianceRecord:
        change = ChangeRecord(
            field=field,
            old_value=old_value,
            new_value=new_value,
            changed_by=user_id,
            changed_at=changed_at,
            reason=reason,
        )
        return await self._append(
            "change_history",
            client_id,
            change.to_document(),
            changed_at,
            expected_version,
        )

    @beartype
    async def append_note(
        self,
        client_id: str,
        content: str,
        user_id: str | None,
        *,
        added_at: datetime,
        expected_version: int | None = None,
    ) -> ComplianceRecord:
        note = Note(content=content, added_by=user_id, added_at=added_at)
        return await self._append(
            "notes", client_id, note.to_document(), added_at, expected_version
        )

    @beartype
    async def save(self, record: ComplianceRecord, *, now: datetime) -> ComplianceRecord:
        async with self._db.transaction() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_RECORD_COLUMNS} FROM compliance_records
                WHERE client_id = $1
                FOR UPDATE
                """,
                record.client_id,
            )
            if row is None:
                raise RecordNotFoundError(COMPLIANCE_ENTITY, record.client_id)

            current = _row_to_record(row)
            if current.version != record.version:
                raise ConcurrentModificationError(
                    COMPLIANCE_ENTITY, record.client_id, record.version, current.version
                )
            check_append_only(current, record)

            updated = await conn.fetchrow(
                f"""
                UPDATE compliance_records
                SET preferred_region = $2, status = $3, dpa_status = $4,
                    dpa_expiration = $5, next_audit = $6, next_review = $7,
                    compliance_score = $8, version = $9 + 1, document = $10,
                    updated_at = $11
                WHERE client_id = $1 AND version = $9
                RETURNING {_RECORD_COLUMNS}
                """,
                *self._record_params(record),
                now,
            )
        return _row_to_record(updated)

    # Audit events

    @beartype
    async def insert_event(self, event: AuditEvent) -> AuditEvent:
        query = f"""
            INSERT INTO audit_events (
                id, event_type, user_id, timestamp, success, regulation,
                threat_level, resource_type, resource_id, archived, archived_at,
                retention_period_days, document
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
            RETURNING {_EVENT_COLUMNS}
        """
        try:
            row = await self._db.write_returning(
                query,
                event.id,
                event.event_type.value,
                event.user_id,
                event.timestamp,
                event.success,
                event.regulation.value if event.regulation else None,
                event.threat_level.value,
                event.resource_type.value if event.resource_type else None,
                event.resource_id,
                event.archived,
                event.archived_at,
                event.retention_period_days,
                event.to_document(),
            )
        except asyncpg.UniqueViolationError as e:
            raise RecordAlreadyExistsError(AUDIT_EVENT_ENTITY, event.id) from e
        return _row_to_event(row)

    @beartype
    async def get_event(self, event_id: UUID) -> AuditEvent:
        row = await self._db.fetchrow(
            f"SELECT {_EVENT_COLUMNS} FROM audit_events WHERE id = $1", event_id
        )
        if row is None:
            raise RecordNotFoundError(AUDIT_EVENT_ENTITY, event_id)
        return _row_to_event(row)

    async def _fetch_events(self, where: str, *args: Any) -> list[AuditEvent]:
        rows = await self._db.fetch(
            f"SELECT {_EVENT_COLUMNS} FROM audit_events WHERE {where}", *args
        )
        return [_row_to_event(row) for row in rows]

    @beartype
    async def find_by_event_type(
        self, event_type: AuditEventType, limit: int = 100
    ) -> list[AuditEvent]:
        return await self._fetch_events(
            "event_type = $1 ORDER BY timestamp DESC LIMIT $2", event_type.value, limit
        )

    @beartype
    async def find_by_user(self, user_id: str, limit: int = 100) -> list[AuditEvent]:
        return await self._fetch_events(
            "user_id = $1 ORDER BY timestamp DESC LIMIT $2", user_id, limit
        )

    async def _find_types_since(
        self, types: frozenset[AuditEventType], since_days: int, as_of: datetime
    ) -> list[AuditEvent]:
        return await self._fetch_events(
            """
            event_type = ANY($1::text[])
              AND timestamp >= $2 AND timestamp <= $3
            ORDER BY timestamp DESC
            """,
            _values(types),
            window_start(as_of, since_days),
            as_of,
        )

    @beartype
    async def find_security_events(
        self, since_days: int = 30, *, as_of: datetime
    ) -> list[AuditEvent]:
        return await self._find_types_since(SECURITY_EVENT_TYPES, since_days, as_of)

    @beartype
    async def find_compliance_events(
        self, since_days: int = 365, *, as_of: datetime
    ) -> list[AuditEvent]:
        return await self._find_types_since(COMPLIANCE_EVENT_TYPES, since_days, as_of)

    @beartype
    async def find_failed_events(
        self, since_days: int = 30, *, as_of: datetime
    ) -> list[AuditEvent]:
        return await self._fetch_events(
            """
            NOT success AND timestamp >= $1 AND timestamp <= $2
            ORDER BY timestamp DESC
            """,
            window_start(as_of, since_days),
            as_of,
        )

    @beartype
    async def aggregate_event_counts(
        self, since_days: int = 30, *, as_of: datetime
    ) -> list[EventCount]:
        rows = await self._db.fetch(
            """
            SELECT event_type,
                   COUNT(*) AS count,
                   COUNT(*) FILTER (WHERE success) AS success_count
            FROM audit_events
            WHERE timestamp >= $1 AND timestamp <= $2
            GROUP BY event_type
            ORDER BY count DESC, event_type
            """,
            window_start(as_of, since_days),
            as_of,
        )
        return [
            EventCount(
                event_type=AuditEventType(row["event_type"]),
                count=row["count"],
                success_count=row["success_count"],
                failure_count=row["count"] - row["success_count"],
            )
            for row in rows
        ]

    @beartype
    async def search_events(self, query: AuditEventQuery) -> list[AuditEvent]:
        clauses: list[str] = []
        args: list[Any] = []

        def add(clause: str, value: Any) -> None:
            args.append(value)
            clauses.append(clause.format(n=len(args)))

        filters: dict[str, Any] = {
            "event_type": query.event_type,
            "user_id": query.user_id,
            "resource_type": query.resource_type,
            "resource_id": query.resource_id,
            "threat_level": query.threat_level,
            "success": query.success,
            "regulation": query.regulation,
        }
        for column, value in filters.items():
            if value is not None:
                add(f"{column} = ${{n}}", getattr(value, "value", value))
        if query.start is not None:
            add("timestamp >= ${n}", query.start)
        if query.end is not None:
            add("timestamp <= ${n}", query.end)

        where = " AND ".join(clauses) or "TRUE"
        args.extend([query.limit, query.skip])
        return await self._fetch_events(
            f"{where} ORDER BY timestamp DESC LIMIT ${len(args) - 1} OFFSET ${len(args)}",
            *args,
        )

    @beartype
    async def find_retention_expired(
        self, as_of: datetime, limit: int = 1000
    ) -> list[AuditEvent]:
        return await self._fetch_events(
            """
            NOT archived
              AND timestamp + make_interval(days => retention_period_days) < $1
            ORDER BY timestamp ASC
            LIMIT $2
            """,
            as_of,
            limit,
        )

    @beartype
    async def update_event_archival(self, event: AuditEvent) -> AuditEvent:
        row = await self._db.write_returning(
            f"""
            UPDATE audit_events
            SET archived = $2, archived_at = $3
            WHERE id = $1
            RETURNING {_EVENT_COLUMNS}
            """,
            event.id,
            event.archived,
            event.archived_at,
        )
        if row is None:
            raise RecordNotFoundError(AUDIT_EVENT_ENTITY, event.id)
        return _row_to_event(row)

