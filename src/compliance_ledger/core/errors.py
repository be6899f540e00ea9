"""Error kinds raised by the record store and the write boundary.

Services convert these into ``Err`` values; the message text carries the
phrases the API layer maps onto HTTP status codes.
"""

from typing import Any

from beartype import beartype
from pydantic import ValidationError


class LedgerError(Exception):
    """Base class for all compliance ledger errors."""

    code = "ledger_error"

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize with a human readable message and optional context."""
        self.message = message
        self.context = context
        super().__init__(message)

    @beartype
    def to_dict(self) -> dict[str, Any]:
        """Convert to an error payload."""
        payload: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.context:
            payload["context"] = {k: str(v) for k, v in self.context.items()}
        return payload


class RecordNotFoundError(LedgerError):
    """Lookup by identifier matched nothing."""

    code = "not_found"

    def __init__(self, entity: str, identifier: Any) -> None:
        super().__init__(f"{entity} not found: {identifier}", entity=entity)
        self.entity = entity
        self.identifier = identifier


class RecordAlreadyExistsError(LedgerError):
    """A record with the same unique key is already stored."""

    code = "already_exists"

    def __init__(self, entity: str, identifier: Any) -> None:
        super().__init__(f"{entity} already exists: {identifier}", entity=entity)
        self.entity = entity
        self.identifier = identifier


class RecordValidationError(LedgerError):
    """Value outside a closed enumeration or a required field is missing."""

    code = "validation_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(f"Validation failed: {message}", **context)


class ConcurrentModificationError(LedgerError):
    """Stored revision differs from the one the caller read."""

    code = "concurrent_modification"

    def __init__(
        self, entity: str, identifier: Any, expected_version: int, actual_version: int
    ) -> None:
        super().__init__(
            f"Concurrent modification of {entity} {identifier}: "
            f"expected version {expected_version}, found {actual_version}",
            entity=entity,
        )
        self.entity = entity
        self.identifier = identifier
        self.expected_version = expected_version
        self.actual_version = actual_version


class StoreUnavailableError(LedgerError):
    """Transient infrastructure failure talking to the backing store."""

    code = "store_unavailable"

    def __init__(self, operation: str, cause: Exception | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Record store unavailable during {operation}{detail}")
        self.operation = operation
        self.__cause__ = cause


@beartype
def validation_summary(error: ValidationError) -> str:
    """Field locations and error kinds of a pydantic error, without input values."""
    return "; ".join(
        f"{'.'.join(str(part) for part in detail['loc']) or '<root>'}: {detail['type']}"
        for detail in error.errors()
    )
