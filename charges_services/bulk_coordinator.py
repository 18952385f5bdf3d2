"""
BulkOperationCoordinator -- per-item isolated bulk actions on charges.

Contract:
    ``apply(charge_ids, operation, payload)`` runs one ledger action per
    charge id and reports every item's outcome.  Operations: approve,
    reject, delete, submit, mark_paid.

Architecture: charges_services.  Composes ChargeLedger; optionally wraps
    each item in a SAVEPOINT when the ledger runs over a SQL session.

Invariants enforced:
    - One item's failure never aborts the run: domain errors are recorded
      with their ``code``; anything else as UNHANDLED_EXCEPTION.
    - With a session, each item runs in its own SAVEPOINT, so a failed
      item leaves no partial writes behind.
    - Cancellation is checked between items only.  Items already applied
      stay applied; items not reached are reported as skipped.
    - All timestamps come from the injected Clock.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterable
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from charges_kernel.domain.clock import Clock, SystemClock
from charges_kernel.exceptions import ChargesKernelError, InvalidInputError
from charges_kernel.logging_config import LogContext, get_logger
from charges_services.charge_ledger import ChargeLedger

logger = get_logger("services.bulk")


class BulkOperation(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    DELETE = "delete"
    SUBMIT = "submit"
    MARK_PAID = "mark_paid"


class BulkItemStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class BulkRunStatus(str, Enum):
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class BulkItemResult:
    """Outcome of one charge in a bulk run."""

    item_index: int
    charge_id: UUID | str
    status: BulkItemStatus
    error_code: str | None = None
    error_message: str | None = None
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return self.status == BulkItemStatus.SUCCEEDED


@dataclass(frozen=True)
class BulkOperationResult:
    """Aggregate outcome of a bulk run."""

    operation_id: UUID
    operation: BulkOperation
    status: BulkRunStatus
    total: int
    succeeded: int
    failed: int
    skipped: int
    items: tuple[BulkItemResult, ...]
    started_at: datetime
    completed_at: datetime
    duration_ms: int

    def as_contract(self) -> dict[str, Any]:
        """``{succeeded: [id], failed: [{id, error}]}`` for API callers."""
        return {
            "succeeded": [str(i.charge_id) for i in self.items if i.success],
            "failed": [
                {
                    "id": str(i.charge_id),
                    "error": {"code": i.error_code, "message": i.error_message},
                }
                for i in self.items
                if i.status == BulkItemStatus.FAILED
            ],
        }


class CancellationToken:
    """Best-effort stop signal, safe to set from another thread."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


def _as_uuid(value: UUID | str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise InvalidInputError("charge_id", value, "not a valid charge id") from None


class BulkOperationCoordinator:
    """Applies one approval-workflow action to many charges.

    Contract:
        - ``apply()`` never raises for per-item problems; it raises only for
          a malformed request (unknown operation, reject without reason).
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(
        self,
        ledger: ChargeLedger,
        clock: Clock | None = None,
        session: Session | None = None,
    ):
        self._ledger = ledger
        self._clock = clock or SystemClock()
        self._session = session

    def _action(
        self, operation: BulkOperation, payload: dict[str, Any], actor: str | None
    ) -> Callable[[UUID], Any]:
        notes = payload.get("notes")
        actions: dict[BulkOperation, Callable[[UUID], Any]] = {
            BulkOperation.APPROVE: lambda cid: self._ledger.approve(cid, actor=actor, notes=notes),
            BulkOperation.REJECT: lambda cid: self._ledger.reject(
                cid, reason=payload["reason"], actor=actor
            ),
            BulkOperation.DELETE: lambda cid: self._ledger.delete(cid, actor=actor),
            BulkOperation.SUBMIT: lambda cid: self._ledger.submit(cid, actor=actor, notes=notes),
            BulkOperation.MARK_PAID: lambda cid: self._ledger.mark_paid(
                cid, actor=actor, notes=notes
            ),
        }
        return actions[operation]

    def apply(
        self,
        charge_ids: Iterable[UUID | str],
        operation: BulkOperation | str,
        payload: dict[str, Any] | None = None,
        *,
        actor: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> BulkOperationResult:
        """Run ``operation`` on each charge id, isolating every item.

        Raises:
            InvalidInputError: unknown operation, or reject without a reason.
        """
        try:
            operation = BulkOperation(operation)
        except ValueError:
            raise InvalidInputError(
                "operation", operation, f"must be one of {[o.value for o in BulkOperation]}"
            ) from None
        payload = dict(payload or {})
        if operation == BulkOperation.REJECT:
            reason = payload.get("reason")
            if not isinstance(reason, str) or not reason.strip():
                raise InvalidInputError("reason", reason, "bulk reject requires a reason")

        charge_ids = list(charge_ids)
        action = self._action(operation, payload, actor)
        operation_id = uuid4()
        start_time = time.monotonic()
        started_at = self._clock.now()

        succeeded = 0
        failed = 0
        skipped = 0
        cancelled = False
        item_results: list[BulkItemResult] = []

        with LogContext.bind(operation_id=str(operation_id), actor_id=actor):
            logger.info("bulk_operation_started", extra={
                "operation": operation.value,
                "total_items": len(charge_ids),
            })

            for index, raw_id in enumerate(charge_ids):
                if not cancelled and cancellation is not None and cancellation.is_cancelled:
                    cancelled = True
                    logger.warning("bulk_operation_cancelled", extra={
                        "processed_items": index,
                        "remaining_items": len(charge_ids) - index,
                    })
                if cancelled:
                    skipped += 1
                    item_results.append(BulkItemResult(
                        item_index=index,
                        charge_id=raw_id,
                        status=BulkItemStatus.SKIPPED,
                    ))
                    continue

                item_start = time.monotonic()
                savepoint = self._session.begin_nested() if self._session is not None else None
                try:
                    charge_id = _as_uuid(raw_id)
                    action(charge_id)
                    if savepoint is not None:
                        savepoint.commit()
                    succeeded += 1
                    item_result = BulkItemResult(
                        item_index=index,
                        charge_id=charge_id,
                        status=BulkItemStatus.SUCCEEDED,
                        duration_ms=int((time.monotonic() - item_start) * 1000),
                    )
                except ChargesKernelError as exc:
                    if savepoint is not None:
                        savepoint.rollback()
                    failed += 1
                    item_result = BulkItemResult(
                        item_index=index,
                        charge_id=raw_id,
                        status=BulkItemStatus.FAILED,
                        error_code=exc.code,
                        error_message=str(exc),
                        duration_ms=int((time.monotonic() - item_start) * 1000),
                    )
                    logger.warning("bulk_item_failed", extra={
                        "charge_id": str(raw_id),
                        "error_code": exc.code,
                    })
                except Exception as exc:
                    if savepoint is not None:
                        savepoint.rollback()
                    failed += 1
                    item_result = BulkItemResult(
                        item_index=index,
                        charge_id=raw_id,
                        status=BulkItemStatus.FAILED,
                        error_code="UNHANDLED_EXCEPTION",
                        error_message=str(exc),
                        duration_ms=int((time.monotonic() - item_start) * 1000),
                    )
                    logger.error("bulk_item_unhandled_exception", extra={
                        "charge_id": str(raw_id),
                    }, exc_info=True)
                item_results.append(item_result)

            if cancelled:
                status = BulkRunStatus.CANCELLED
            elif failed == 0:
                status = BulkRunStatus.COMPLETED
            elif succeeded == 0:
                status = BulkRunStatus.FAILED
            else:
                status = BulkRunStatus.PARTIALLY_COMPLETED

            completed_at = self._clock.now()
            total_duration = int((time.monotonic() - start_time) * 1000)
            logger.info("bulk_operation_completed", extra={
                "operation": operation.value,
                "status": status.value,
                "succeeded": succeeded,
                "failed": failed,
                "skipped": skipped,
                "duration_ms": total_duration,
            })

        return BulkOperationResult(
            operation_id=operation_id,
            operation=operation,
            status=status,
            total=len(charge_ids),
            succeeded=succeeded,
            failed=failed,
            skipped=skipped,
            items=tuple(item_results),
            started_at=started_at,
            completed_at=completed_at,
            duration_ms=total_duration,
        )
