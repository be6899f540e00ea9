"""Client compliance record service."""

from collections.abc import Callable
from datetime import datetime
from typing import Any

from beartype import beartype
from pydantic import ValidationError
from redis.exceptions import RedisError

from ..core.cache import Cache
from ..core.clock import Clock, SystemClock
from ..core.config import Settings, get_settings
from ..core.errors import (
    ConcurrentModificationError,
    LedgerError,
    RecordValidationError,
    validation_summary,
)
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..models.compliance import (
    AuditReport,
    ChangeRecord,
    ComplianceRecord,
    ComplianceRecordCreate,
    read_field,
    replace_field,
)
from ..models.enums import AuditEventType, RecordStatus, Region
from ..policy.compliance import ComplianceStatus, compute_compliance_status
from ..store.base import ComplianceRecordStore
from .audit_service import AuditService
from .cache_keys import CacheKeys

logger = get_logger(__name__)

# Maps the current record to the dotted-path updates to apply to it.
ChangePlan = Callable[[ComplianceRecord], dict[str, Any]]


class ComplianceService:
    """Service for client compliance business logic."""

    def __init__(
        self,
        store: ComplianceRecordStore,
        audit: AuditService,
        cache: Cache | None = None,
        clock: Clock | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize compliance service with dependency validation."""
        if store is None:
            raise ValueError("Record store required")
        if audit is None:
            raise ValueError("Audit service required")

        self._store = store
        self._audit = audit
        self._cache = cache
        self._clock = clock or SystemClock()
        self._settings = settings or get_settings()

    # Cache helpers

    async def _cached(self, client_id: str) -> ComplianceRecord | None:
        if self._cache is None:
            return None
        try:
            cached = await self._cache.get(CacheKeys.compliance_record(client_id))
        except RedisError:
            logger.warning("Cache read failed for %s", client_id, exc_info=True)
            return None
        if not cached:
            return None
        return ComplianceRecord.from_document(cached)

    async def _remember(self, record: ComplianceRecord) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.set(
                CacheKeys.compliance_record(record.client_id),
                record.to_document(),
                self._settings.redis_ttl_seconds,
            )
        except RedisError:
            logger.warning("Cache write failed for %s", record.client_id, exc_info=True)

    async def _invalidate(self, client_id: str) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.delete(*CacheKeys.keys_for_client(client_id))
        except RedisError:
            logger.warning("Cache invalidation failed for %s", client_id, exc_info=True)

    async def _audit_change(
        self,
        event_type: AuditEventType,
        client_id: str,
        user_id: str | None,
        **details: Any,
    ) -> None:
        result = await self._audit.log_compliance_event(
            event_type, user_id=user_id, client_id=client_id, **details
        )
        if result.is_err():
            logger.warning(
                "Could not record %s for %s: %s",
                event_type.value,
                client_id,
                result.err_value,
            )

    # Writes

    @beartype
    async def onboard(
        self, data: ComplianceRecordCreate, user_id: str | None = None
    ) -> Result[ComplianceRecord, str]:
        """Create the compliance record for a new client."""
        try:
            record = ComplianceRecord.new(data, self._clock.now())
            stored = await self._store.insert_record(record)
        except ValidationError as e:
            logger.warning(
                "Invalid onboarding payload for %s: %s",
                data.client_id,
                validation_summary(e),
            )
            return Err(f"Validation failed: {e}")
        except LedgerError as e:
            return Err(str(e))

        logger.info("Onboarded compliance record for %s", stored.client_id)
        await self._invalidate(stored.client_id)
        await self._audit_change(
            AuditEventType.COMPLIANCE_CHECK, stored.client_id, user_id, onboarding=True
        )
        return Ok(stored)

    async def _apply(
        self,
        client_id: str,
        plan: ChangePlan,
        user_id: str | None,
        reason: str | None,
    ) -> Result[tuple[ComplianceRecord, list[ChangeRecord]], str]:
        """Apply ``plan`` with one change entry per field, retrying stale saves."""
        attempts = self._settings.store_append_retries
        last_conflict: ConcurrentModificationError | None = None

        for attempt in range(attempts):
            now = self._clock.now()
            try:
                current = await self._store.get(client_id)
            except LedgerError as e:
                return Err(str(e))

            updated = current
            changes: list[ChangeRecord] = []
            try:
                for path, value in plan(current).items():
                    old_value = read_field(updated, path)
                    updated = replace_field(updated, path, value)
                    changes.append(
                        ChangeRecord(
                            field=path,
                            old_value=old_value,
                            new_value=read_field(updated, path),
                            changed_by=user_id,
                            changed_at=now,
                            reason=reason,
                        )
                    )
            except KeyError as e:
                error = RecordValidationError(f"unknown or protected field {e.args[0]}")
                logger.warning("Rejected update of %s: %s", client_id, error.message)
                return Err(str(error))
            except ValidationError as e:
                logger.warning(
                    "Rejected update of %s: %s", client_id, validation_summary(e)
                )
                return Err(f"Validation failed: {e}")

            for change in changes:
                updated = updated.with_change(change)

            try:
                saved = await self._store.save(updated, now=now)
            except ConcurrentModificationError as e:
                last_conflict = e
                logger.warning(
                    "Version conflict updating %s (attempt %d/%d)",
                    client_id,
                    attempt + 1,
                    attempts,
                )
                continue
            except LedgerError as e:
                return Err(str(e))

            await self._invalidate(client_id)
            return Ok((saved, changes))

        assert last_conflict is not None
        return Err(str(last_conflict))

    @beartype
    async def update_field(
        self,
        client_id: str,
        field_path: str,
        new_value: Any,
        user_id: str | None,
        reason: str | None = None,
    ) -> Result[ComplianceRecord, str]:
        """Set one dotted field path and record the change.

        Example paths: ``data_processing_agreement.status``,
        ``audit_trail.compliance_score``, ``status``.
        """
        result = await self._apply(
            client_id, lambda _: {field_path: new_value}, user_id, reason
        )
        if result.is_err():
            return result

        saved, changes = result.unwrap()
        change = changes[0]
        logger.info("Updated %s on %s", field_path, client_id)
        await self._audit_change(
            AuditEventType.POLICY_UPDATED,
            client_id,
            user_id,
            policy_id=field_path,
            old_value=change.old_value,
            new_value=change.new_value,
            field=field_path,
            reason=reason,
        )
        return Ok(saved)

    @beartype
    async def record_audit(
        self,
        client_id: str,
        report: AuditReport,
        next_audit: datetime,
        user_id: str | None,
    ) -> Result[ComplianceRecord, str]:
        """File an audit report and move the audit schedule forward."""

        def plan(current: ComplianceRecord) -> dict[str, Any]:
            reports = [r.to_document() for r in current.audit_trail.audit_reports]
            return {
                "audit_trail.audit_reports": [*reports, report.to_document()],
                "audit_trail.last_audit": report.date,
                "audit_trail.next_audit": next_audit,
                "audit_trail.compliance_score": report.score,
            }

        result = await self._apply(client_id, plan, user_id, "Audit completed")
        if result.is_err():
            return result

        saved, _ = result.unwrap()
        logger.info("Recorded audit for %s with score %d", client_id, report.score)
        await self._audit_change(
            AuditEventType.COMPLIANCE_CHECK,
            client_id,
            user_id,
            score=report.score,
            findings=len(report.findings),
        )
        return Ok(saved)

    @beartype
    async def deactivate(
        self,
        client_id: str,
        user_id: str | None,
        reason: str | None = None,
        status: RecordStatus = RecordStatus.INACTIVE,
    ) -> Result[ComplianceRecord, str]:
        """Move a record out of the Active status; records are never deleted."""
        if status is RecordStatus.ACTIVE:
            error = RecordValidationError("deactivation requires a non-active status")
            return Err(str(error))
        return await self.update_field(
            client_id, "status", status.value, user_id, reason
        )

    @beartype
    async def add_note(
        self, client_id: str, content: str, user_id: str | None
    ) -> Result[ComplianceRecord, str]:
        if not content.strip():
            return Err(str(RecordValidationError("note content is required")))
        try:
            record = await self._store.append_note(
                client_id, content, user_id, added_at=self._clock.now()
            )
        except ValidationError as e:
            logger.warning(
                "Rejected note for %s: %s", client_id, validation_summary(e)
            )
            return Err(f"Validation failed: {e}")
        except LedgerError as e:
            return Err(str(e))

        logger.info("Added note to %s", client_id)
        await self._invalidate(client_id)
        return Ok(record)

    # Reads

    @beartype
    async def get(self, client_id: str) -> Result[ComplianceRecord, str]:
        """Fetch a record, reading through the cache."""
        cached = await self._cached(client_id)
        if cached is not None:
            return Ok(cached)

        try:
            record = await self._store.get(client_id)
        except LedgerError as e:
            return Err(str(e))

        await self._remember(record)
        return Ok(record)

    @beartype
    async def status(self, client_id: str) -> Result[ComplianceStatus, str]:
        """Evaluate the record's compliance as of now."""
        result = await self.get(client_id)
        if result.is_err():
            return result
        return Ok(
            compute_compliance_status(
                result.unwrap(),
                self._clock.now(),
                score_threshold=self._settings.compliance_score_threshold,
            )
        )

    @beartype
    async def by_region(self, region: Region) -> Result[list[ComplianceRecord], str]:
        try:
            return Ok(await self._store.find_by_region(region))
        except LedgerError as e:
            return Err(str(e))

    @beartype
    async def non_compliant(self) -> Result[list[ComplianceRecord], str]:
        try:
            return Ok(await self._store.find_non_compliant(self._clock.now()))
        except LedgerError as e:
            return Err(str(e))

    @beartype
    async def expiring_soon(
        self, horizon_days: int | None = None
    ) -> Result[list[ComplianceRecord], str]:
        """Records with a DPA, audit or review deadline inside the horizon."""
        horizon = horizon_days
        if horizon is None:
            horizon = self._settings.expiring_soon_days
        try:
            return Ok(
                await self._store.find_expiring_soon(self._clock.now(), horizon)
            )
        except LedgerError as e:
            return Err(str(e))
