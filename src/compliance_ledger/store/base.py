"""Record store port.

Both implementations honour the same contract:

- single-entity lookups raise :class:`RecordNotFoundError`;
- bulk queries return an empty list when nothing matches;
- appends to ``change_history`` and ``notes`` are atomic per document and
  never rewrite earlier entries;
- :meth:`RecordStore.save` is version-checked and raises
  :class:`ConcurrentModificationError` on a stale revision.
"""

from datetime import datetime
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from beartype import beartype

from ..core.errors import RecordValidationError
from ..core.logging_utils import get_logger
from ..models.audit import AuditEvent, AuditEventQuery, EventCount
from ..models.compliance import ComplianceRecord
from ..models.enums import AuditEventType, Region

COMPLIANCE_ENTITY = "ComplianceRecord"
AUDIT_EVENT_ENTITY = "AuditEvent"

logger = get_logger(__name__)


@runtime_checkable
class ComplianceRecordStore(Protocol):
    """Persistence port for compliance records."""

    async def get(self, client_id: str) -> ComplianceRecord:
        """Fetch a record by client id."""
        ...

    async def insert_record(self, record: ComplianceRecord) -> ComplianceRecord:
        """Store a brand new record.

        Raises:
            RecordAlreadyExistsError: If the client id is taken.
        """
        ...

    async def find_by_region(self, region: Region) -> list[ComplianceRecord]:
        ...

    async def find_non_compliant(self, as_of: datetime) -> list[ComplianceRecord]:
        """Records failing any compliance check at ``as_of``."""
        ...

    async def find_expiring_soon(
        self, as_of: datetime, horizon_days: int
    ) -> list[ComplianceRecord]:
        """Records with a deadline inside ``[as_of, as_of + horizon_days]``."""
        ...

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
        """Append one change-history entry and return the updated record."""
        ...

    async def append_note(
        self,
        client_id: str,
        content: str,
        user_id: str | None,
        *,
        added_at: datetime,
        expected_version: int | None = None,
    ) -> ComplianceRecord:
        """Append one note and return the updated record."""
        ...

    async def save(self, record: ComplianceRecord, *, now: datetime) -> ComplianceRecord:
        """Version-checked full write; returns the stored revision."""
        ...


@runtime_checkable
class AuditEventStore(Protocol):
    """Persistence port for audit events."""

    async def insert_event(self, event: AuditEvent) -> AuditEvent:
        ...

    async def get_event(self, event_id: UUID) -> AuditEvent:
        ...

    async def find_by_event_type(
        self, event_type: AuditEventType, limit: int = 100
    ) -> list[AuditEvent]:
        ...

    async def find_by_user(self, user_id: str, limit: int = 100) -> list[AuditEvent]:
        ...

    async def find_security_events(
        self, since_days: int = 30, *, as_of: datetime
    ) -> list[AuditEvent]:
        ...

    async def find_compliance_events(
        self, since_days: int = 365, *, as_of: datetime
    ) -> list[AuditEvent]:
        ...

    async def find_failed_events(
        self, since_days: int = 30, *, as_of: datetime
    ) -> list[AuditEvent]:
        ...

    async def aggregate_event_counts(
        self, since_days: int = 30, *, as_of: datetime
    ) -> list[EventCount]:
        """Per-type counts in the window, most frequent first."""
        ...

    async def search_events(self, query: AuditEventQuery) -> list[AuditEvent]:
        """Filtered search, newest first."""
        ...

    async def find_retention_expired(
        self, as_of: datetime, limit: int = 1000
    ) -> list[AuditEvent]:
        """Unarchived events whose retention deadline has passed, oldest first."""
        ...

    async def update_event_archival(self, event: AuditEvent) -> AuditEvent:
        """Persist ``archived`` and ``archived_at`` only."""
        ...


@runtime_checkable
class RecordStore(ComplianceRecordStore, AuditEventStore, Protocol):
    """Combined store for both entity kinds."""


@beartype
def check_append_only(stored: ComplianceRecord, incoming: ComplianceRecord) -> None:
    """Stored history and notes must be a prefix of the incoming ones."""
    for name in ("change_history", "notes"):
        old = getattr(stored, name)
        if tuple(getattr(incoming, name)[: len(old)]) != tuple(old):
            logger.warning(
                "Rejected save of %s: %s would rewrite existing entries",
                stored.client_id,
                name,
            )
            raise RecordValidationError(
                f"{name} is append-only", client_id=stored.client_id
            )
