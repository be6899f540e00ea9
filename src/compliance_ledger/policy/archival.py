"""Archival of audit events."""

from datetime import datetime

from beartype import beartype

from ..models.audit import AuditEvent


@beartype
def archive_event(event: AuditEvent, now: datetime) -> AuditEvent:
    """Archived copy of ``event``.

    Archiving an already archived event moves ``archived_at`` to ``now``;
    callers that need a stable timestamp should check ``event.archived``
    first.
    """
    return event.model_copy(update={"archived": True, "archived_at": now})
