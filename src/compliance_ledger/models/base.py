# ComplianceLedger - Audit Retention and Compliance Tracking
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Base Pydantic model configuration for all ledger models.

All persisted entities are immutable values: a change produces a new model
instance which is then written back through the record store.
"""

from datetime import datetime, timezone
from typing import Annotated, Any

from beartype import beartype
from pydantic import AfterValidator, BaseModel, ConfigDict, Field


@beartype
def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class BaseModelConfig(BaseModel):
    """Base model with strict configuration for all domain entities.

    Enforces:
    - Immutability (frozen=True)
    - No extra fields allowed (extra="forbid")
    - Validation on assignment
    - Automatic whitespace stripping
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    @beartype
    def to_document(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible document for storage or transport."""
        return self.model_dump(mode="json")


class TimestampedModel(BaseModelConfig):
    """Base model with creation and modification timestamps."""

    created_at: UtcDatetime = Field(
        ..., description="Timestamp when the entity was created"
    )
    updated_at: UtcDatetime = Field(
        ..., description="Timestamp when the entity was last updated"
    )
