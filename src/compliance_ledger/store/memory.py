"""Process-local record store.

Documents are held as JSON-mode dicts and rehydrated on every read, so
callers never share mutable state with the store. A single
:class:`asyncio.Lock` serialises read-modify-write sequences.
"""

import asyncio
from collections import Counter
from datetime import datetime
from typing import Any
from uuid import UUID

from beartype import beartype

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
    Region,
)
from ..policy.compliance import (
    DEFAULT_SCORE_THRESHOLD,
    is_compliant,
    is_expiring_within,
)
from ..policy.retention import is_retention_expired
from .base import AUDIT_EVENT_ENTITY, COMPLIANCE_ENTITY, check_append_only


class InMemoryRecordStore:
    """Record store backed by dictionaries."""

    def __init__(self, score_threshold: int = DEFAULT_SCORE_THRESHOLD) -> None:
        self._score_threshold = score_threshold
        self._records: dict[str, dict[str, Any]] = {}
        self._events: dict[UUID, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    # Compliance records

    def _load(self, client_id: str) -> ComplianceRecord:
        document = self._records.get(client_id)
        if document is None:
            raise RecordNotFoundError(COMPLIANCE_ENTITY, client_id)
        return ComplianceRecord.from_document(document)

    def _all_records(self) -> list[ComplianceRecord]:
        return [ComplianceRecord.from_document(doc) for doc in self._records.values()]

    @staticmethod
    def _check_version(record: ComplianceRecord, expected_version: int | None) -> None:
        if expected_version is not None and record.version != expected_version:
            raise ConcurrentModificationError(
                COMPLIANCE_ENTITY, record.client_id, expected_version, record.version
            )

    def _store(self, record: ComplianceRecord) -> ComplianceRecord:
        document = record.to_document()
        self._records[record.client_id] = document
        return ComplianceRecord.from_document(document)

    @beartype
    async def get(self, client_id: str) -> ComplianceRecord:
        return self._load(client_id)

    @beartype
    async def insert_record(self, record: ComplianceRecord) -> ComplianceRecord:
        async with self._lock:
            if record.client_id in self._records:
                raise RecordAlreadyExistsError(COMPLIANCE_ENTITY, record.client_id)
            return self._store(record)

    @beartype
    async def find_by_region(self, region: Region) -> list[ComplianceRecord]:
        return [r for r in self._all_records() if r.preferred_region == region]

    @beartype
    async def find_non_compliant(self, as_of: datetime) -> list[ComplianceRecord]:
        return [
            r for r in self._all_records()
            if not is_compliant(r, as_of, score_threshold=self._score_threshold)
        ]

    @beartype
    async def find_expiring_soon(
        self, as_of: datetime, horizon_days: int
    ) -> list[ComplianceRecord]:
        return [
            r for r in self._all_records() if is_expiring_within(r, as_of, horizon_days)
        ]

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
        async with self._lock:
            current = self._load(client_id)
            self._check_version(current, expected_version)
            updated = current.with_change(change).model_copy(
                update={"version": current.version + 1}
            )
            return self._store(updated)

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
        async with self._lock:
            current = self._load(client_id)
            self._check_version(current, expected_version)
            updated = current.with_note(note).model_copy(
                update={"version": current.version + 1}
            )
            return self._store(updated)

    @beartype
    async def save(self, record: ComplianceRecord, *, now: datetime) -> ComplianceRecord:
        async with self._lock:
            current = self._load(record.client_id)
            self._check_version(current, record.version)
            check_append_only(current, record)
            updated = record.model_copy(
                update={"version": current.version + 1, "updated_at": now}
            )
            return self._store(updated)

    # Audit events

    def _all_events(self) -> list[AuditEvent]:
        events = [AuditEvent.from_document(doc) for doc in self._events.values()]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events

    def _since(self, since_days: int, as_of: datetime) -> list[AuditEvent]:
        start = window_start(as_of, since_days)
        return [e for e in self._all_events() if start <= e.timestamp <= as_of]

    @beartype
    async def insert_event(self, event: AuditEvent) -> AuditEvent:
        async with self._lock:
            if event.id in self._events:
                raise RecordAlreadyExistsError(AUDIT_EVENT_ENTITY, event.id)
            document = event.to_document()
            self._events[event.id] = document
        return AuditEvent.from_document(document)

    @beartype
    async def get_event(self, event_id: UUID) -> AuditEvent:
        document = self._events.get(event_id)
        if document is None:
            raise RecordNotFoundError(AUDIT_EVENT_ENTITY, event_id)
        return AuditEvent.from_document(document)

    @beartype
    async def find_by_event_type(
        self, event_type: AuditEventType, limit: int = 100
    ) -> list[AuditEvent]:
        return [e for e in self._all_events() if e.event_type == event_type][:limit]

    @beartype
    async def find_by_user(self, user_id: str, limit: int = 100) -> list[AuditEvent]:
        return [e for e in self._all_events() if e.user_id == user_id][:limit]

    @beartype
    async def find_security_events(
        self, since_days: int = 30, *, as_of: datetime
    ) -> list[AuditEvent]:
        return [
            e for e in self._since(since_days, as_of)
            if e.event_type in SECURITY_EVENT_TYPES
        ]

    @beartype
    async def find_compliance_events(
        self, since_days: int = 365, *, as_of: datetime
    ) -> list[AuditEvent]:
        return [
            e for e in self._since(since_days, as_of)
            if e.event_type in COMPLIANCE_EVENT_TYPES
        ]

    @beartype
    async def find_failed_events(
        self, since_days: int = 30, *, as_of: datetime
    ) -> list[AuditEvent]:
        return [e for e in self._since(since_days, as_of) if not e.success]

    @beartype
    async def aggregate_event_counts(
        self, since_days: int = 30, *, as_of: datetime
    ) -> list[EventCount]:
        totals: Counter[AuditEventType] = Counter()
        successes: Counter[AuditEventType] = Counter()
        for event in self._since(since_days, as_of):
            totals[event.event_type] += 1
            if event.success:
                successes[event.event_type] += 1
        return [
            EventCount(
                event_type=event_type,
                count=count,
                success_count=successes[event_type],
                failure_count=count - successes[event_type],
            )
            for event_type, count in totals.most_common()
        ]

    @beartype
    async def search_events(self, query: AuditEventQuery) -> list[AuditEvent]:
        matches = [e for e in self._all_events() if query.matches(e)]
        return matches[query.skip : query.skip + query.limit]

    @beartype
    async def find_retention_expired(
        self, as_of: datetime, limit: int = 1000
    ) -> list[AuditEvent]:
        expired = [
            e for e in reversed(self._all_events())
            if not e.archived and is_retention_expired(e, as_of)
        ]
        return expired[:limit]

    @beartype
    async def update_event_archival(self, event: AuditEvent) -> AuditEvent:
        async with self._lock:
            document = self._events.get(event.id)
            if document is None:
                raise RecordNotFoundError(AUDIT_EVENT_ENTITY, event.id)
            archived = event.to_document()
            document["archived"] = archived["archived"]
            document["archived_at"] = archived["archived_at"]
            return AuditEvent.from_document(document)

