"""Record store implementations and backend selection."""

from beartype import beartype

from ..core.config import Settings, get_settings
from ..core.database import Database, get_database
from .base import AuditEventStore, ComplianceRecordStore, RecordStore
from .memory import InMemoryRecordStore
from .postgres import PostgresRecordStore

__all__ = [
    "AuditEventStore",
    "ComplianceRecordStore",
    "InMemoryRecordStore",
    "PostgresRecordStore",
    "RecordStore",
    "create_store",
]


@beartype
def create_store(
    settings: Settings | None = None, db: Database | None = None
) -> RecordStore:
    """Build the store selected by ``settings.store_backend``."""
    settings = settings or get_settings()
    if settings.store_backend == "postgres":
        return PostgresRecordStore(
            db or get_database(),
            score_threshold=settings.compliance_score_threshold,
        )
    return InMemoryRecordStore(score_threshold=settings.compliance_score_threshold)
