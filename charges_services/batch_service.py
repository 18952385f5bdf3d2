"""
charges_services.batch_service -- Packaging batch execution.

Responsibility:
    Owns the ``PackagingBatch`` lifecycle: create, start, record packing
    progress, complete with quality and efficiency scores, cancel.  Each
    step loads the batch, applies the pure transition from
    ``charges_kernel.domain.packaging_batch`` and persists it through a
    BatchStore compare-and-set.

Architecture position:
    Services -- orchestration over kernel domain + BatchStore port.
    Batch costing is the ledger's job (``ChargeLedger.record_batch_cost``);
    this service never touches charges.

Invariants enforced:
    - Writes carry the status and version the transition was computed
      from, so a stale or concurrent request fails instead of
      double-applying or overwriting another progress update.
    - Score bounds come from ``BoxingConstants``.

Failure modes:
    - BatchNotFoundError for an unknown id.
    - InvalidStateTransitionError / BatchIncompleteError from the domain.
    - OptimisticLockError when another writer saved the batch first.
    - InvalidInputError for bad quantities, durations or event payloads.
"""

from __future__ import annotations

import inspect
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any, Callable
from uuid import UUID

from charges_config import ChargesConfig, get_active_config
from charges_kernel.domain.clock import Clock, SystemClock
from charges_kernel.domain.packaging_batch import (
    BatchEvent,
    BatchProduct,
    BatchStatus,
    PackagingBatch,
    cancel_batch,
    complete_batch,
    new_batch,
    start_batch,
    update_progress,
)
from charges_kernel.exceptions import (
    BatchNotFoundError,
    ChargesKernelError,
    InvalidInputError,
    InvalidStateTransitionError,
)
from charges_kernel.logging_config import LogContext, get_logger
from charges_services.protocols import BatchStore

logger = get_logger("services.batch")


class PackagingBatchService:
    def __init__(
        self,
        store: BatchStore,
        clock: Clock | None = None,
        config: ChargesConfig | None = None,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._config = config
        self._events: dict[BatchEvent, Callable[..., PackagingBatch]] = {
            BatchEvent.START: self.start,
            BatchEvent.COMPLETE: self.complete,
            BatchEvent.CANCEL: self.cancel,
        }
        missing = set(BatchEvent) - set(self._events)
        if missing:
            raise RuntimeError(f"No handler for batch events {sorted(e.value for e in missing)}")

    @property
    def config(self) -> ChargesConfig:
        return self._config or get_active_config()

    def get(self, batch_id: UUID) -> PackagingBatch:
        batch = self._store.get(batch_id)
        if batch is None:
            raise BatchNotFoundError(str(batch_id))
        return batch

    def list_batches(self, company_id: str | None = None) -> list[PackagingBatch]:
        return self._store.list_batches(company_id)

    def create_batch(
        self,
        batch_name: str,
        batch_date: date,
        planned_duration: Decimal,
        products: list[BatchProduct] | tuple[BatchProduct, ...],
        *,
        assigned_workers: frozenset[str] | set[str] = frozenset(),
        supervised_by: str | None = None,
        company_id: str | None = None,
    ) -> PackagingBatch:
        batch = new_batch(
            batch_name=batch_name,
            batch_date=batch_date,
            planned_duration=planned_duration,
            products=products,
            now=self._clock.now(),
            assigned_workers=assigned_workers,
            supervised_by=supervised_by,
            company_id=company_id,
        )
        with LogContext.bind(batch_id=str(batch.id), company_id=company_id):
            self._store.save(batch, expected_status=None)
            logger.info("batch_created", extra={
                "batch_name": batch.batch_name,
                "product_count": len(batch.products),
                "total_items": batch.total_items,
            })
        return batch

    def _apply(
        self,
        batch_id: UUID,
        action: str,
        step: Callable[[PackagingBatch], PackagingBatch],
        expected_status: BatchStatus | None,
    ) -> PackagingBatch:
        batch = self.get(batch_id)
        with LogContext.bind(batch_id=str(batch_id), company_id=batch.company_id):
            try:
                if expected_status is not None and batch.status != expected_status:
                    raise InvalidStateTransitionError(
                        entity_type="packaging_batch",
                        entity_id=str(batch_id),
                        current_state=batch.status.value,
                        requested_state=expected_status.value,
                        action=action,
                        reason="stale expected status",
                    )
                updated = replace(step(batch), version=batch.version + 1)
                self._store.save(
                    updated, expected_status=batch.status, expected_version=batch.version
                )
            except ChargesKernelError as exc:
                logger.warning("batch_transition_rejected", extra={
                    "action": action,
                    "current_status": batch.status.value,
                    "error_code": exc.code,
                })
                raise
        return updated

    def start(
        self, batch_id: UUID, *, expected_status: BatchStatus | None = None
    ) -> PackagingBatch:
        updated = self._apply(
            batch_id,
            "start",
            lambda b: start_batch(b, now=self._clock.now()),
            expected_status,
        )
        logger.info("batch_started", extra={"batch_id": str(batch_id)})
        return updated

    def update_progress(
        self, batch_id: UUID, product_id: str, completed_quantity: int
    ) -> PackagingBatch:
        updated = self._apply(
            batch_id,
            "update_progress",
            lambda b: update_progress(b, product_id, completed_quantity, now=self._clock.now()),
            None,
        )
        logger.debug("batch_progress_updated", extra={
            "batch_id": str(batch_id),
            "product_id": product_id,
            "completed_quantity": completed_quantity,
            "completion_percentage": str(updated.completion_percentage),
        })
        return updated

    def complete(
        self,
        batch_id: UUID,
        *,
        actual_duration: Decimal,
        defect_count: int = 0,
        rework_count: int = 0,
        quality_notes: str | None = None,
        expected_status: BatchStatus | None = None,
    ) -> PackagingBatch:
        constants = self.config.boxing
        updated = self._apply(
            batch_id,
            "complete",
            lambda b: complete_batch(
                b,
                actual_duration=actual_duration,
                now=self._clock.now(),
                defect_count=defect_count,
                rework_count=rework_count,
                quality_notes=quality_notes,
                score_floor=constants.quality_score_floor,
                max_score=constants.max_score,
            ),
            expected_status,
        )
        logger.info("batch_completed", extra={
            "batch_id": str(batch_id),
            "quality_score": str(updated.overall_quality_score),
            "efficiency_score": str(updated.efficiency_score),
            "actual_duration": str(updated.actual_duration),
        })
        return updated

    def cancel(
        self,
        batch_id: UUID,
        *,
        reason: str | None = None,
        expected_status: BatchStatus | None = None,
    ) -> PackagingBatch:
        updated = self._apply(
            batch_id,
            "cancel",
            lambda b: cancel_batch(b, now=self._clock.now(), reason=reason),
            expected_status,
        )
        logger.info("batch_cancelled", extra={"batch_id": str(batch_id), "reason": reason})
        return updated

    def transition_batch(
        self, batch_id: UUID, event: BatchEvent | str, **payload: Any
    ) -> PackagingBatch:
        """
        Apply a lifecycle event by name.

        ``payload`` is passed to the matching method: ``complete`` needs
        ``actual_duration``; ``cancel`` accepts ``reason``.
        """
        try:
            event = BatchEvent(event)
        except ValueError:
            raise InvalidInputError(
                "event", event, f"must be one of {[e.value for e in BatchEvent]}"
            ) from None
        handler = self._events[event]
        try:
            inspect.signature(handler).bind(batch_id, **payload)
        except TypeError as exc:
            raise InvalidInputError("payload", sorted(payload), str(exc)) from exc
        return handler(batch_id, **payload)
