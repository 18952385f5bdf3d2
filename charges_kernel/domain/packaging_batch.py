"""
Packaging batch domain (``charges_kernel.domain.packaging_batch``).

Responsibility
--------------
Value objects and the pure state machine for packaging batch execution.
The batch tracks physical packing progress; its cost is recorded on the
ledger only after completion, and only the charge points back at the
batch.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  Callers pass ``now``.

Invariants enforced
-------------------
* ``completion_percentage`` is a property over the product lines; it is
  never stored and so never stale.
* ``BATCH_TRANSITIONS`` is the only source of legal moves::

      planned --start--> in_progress --complete--> completed
         \\                  \\
          \\--cancel-->       \\--cancel--> cancelled

* ``update_progress`` is legal only while in progress, and a product's
  ``completed_quantity`` stays within ``[0, quantity]``.
* ``complete`` requires 100 % completion and ``actual_duration >= 0``.
* completed and cancelled are terminal.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from charges_kernel.domain.values import HUNDRED, ZERO, non_negative
from charges_kernel.exceptions import (
    BatchIncompleteError,
    InvalidInputError,
    InvalidStateTransitionError,
)


class BatchStatus(str, Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ProductPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ProductStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class BatchEvent(str, Enum):
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


BATCH_TRANSITIONS: dict[BatchStatus, frozenset[BatchStatus]] = {
    BatchStatus.PLANNED: frozenset({BatchStatus.IN_PROGRESS, BatchStatus.CANCELLED}),
    BatchStatus.IN_PROGRESS: frozenset({BatchStatus.COMPLETED, BatchStatus.CANCELLED}),
    BatchStatus.COMPLETED: frozenset(),
    BatchStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class BatchProduct:
    product_id: str
    quantity: int
    completed_quantity: int = 0
    priority: ProductPriority = ProductPriority.MEDIUM
    packaging_template_id: str | None = None

    @property
    def status(self) -> ProductStatus:
        if self.completed_quantity <= 0:
            return ProductStatus.PENDING
        if self.completed_quantity >= self.quantity:
            return ProductStatus.COMPLETED
        return ProductStatus.IN_PROGRESS


@dataclass(frozen=True)
class PackagingBatch:
    """A group of packaging work items processed and tracked together."""

    id: UUID
    batch_name: str
    batch_date: date
    planned_duration: Decimal
    products: tuple[BatchProduct, ...]
    created_at: datetime
    updated_at: datetime
    company_id: str | None = None
    status: BatchStatus = BatchStatus.PLANNED
    assigned_workers: frozenset[str] = frozenset()
    supervised_by: str | None = None
    actual_duration: Decimal | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    defect_count: int = 0
    rework_count: int = 0
    overall_quality_score: Decimal | None = None
    efficiency_score: Decimal | None = None
    quality_notes: str | None = None
    cancellation_reason: str | None = None
    version: int = 0

    @property
    def total_items(self) -> int:
        return sum(p.quantity for p in self.products)

    @property
    def completed_items(self) -> int:
        return sum(p.completed_quantity for p in self.products)

    @property
    def completion_percentage(self) -> Decimal:
        total = self.total_items
        if total <= 0:
            return ZERO
        return Decimal(self.completed_items) / Decimal(total) * HUNDRED

    @property
    def is_terminal(self) -> bool:
        return not BATCH_TRANSITIONS[self.status]


def _reject(batch: PackagingBatch, requested: BatchStatus | str, action: str) -> None:
    raise InvalidStateTransitionError(
        entity_type="packaging_batch",
        entity_id=str(batch.id),
        current_state=batch.status.value,
        requested_state=requested.value if isinstance(requested, BatchStatus) else requested,
        action=action,
    )


def _require_transition(batch: PackagingBatch, target: BatchStatus, action: str) -> None:
    if target not in BATCH_TRANSITIONS[batch.status]:
        _reject(batch, target, action)


def _non_negative_int(value: int, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInputError(field, value, "must be a non-negative integer")
    return value


def new_batch(
    *,
    batch_name: str,
    batch_date: date,
    planned_duration: Decimal,
    products: list[BatchProduct] | tuple[BatchProduct, ...],
    now: datetime,
    assigned_workers: frozenset[str] | set[str] = frozenset(),
    supervised_by: str | None = None,
    company_id: str | None = None,
    batch_id: UUID | None = None,
) -> PackagingBatch:
    """Create a batch in ``planned`` status after validating its product lines."""
    if not batch_name or not batch_name.strip():
        raise InvalidInputError("batch_name", batch_name, "must not be blank")
    if not products:
        raise InvalidInputError("products", products, "a batch needs at least one product")
    seen: set[str] = set()
    for product in products:
        if product.product_id in seen:
            raise InvalidInputError(
                "products", product.product_id, "duplicate product in batch"
            )
        seen.add(product.product_id)
        if isinstance(product.quantity, bool) or not isinstance(product.quantity, int) \
                or product.quantity <= 0:
            raise InvalidInputError(
                f"products[{product.product_id}].quantity",
                product.quantity,
                "must be a positive integer",
            )
        _non_negative_int(product.completed_quantity, f"products[{product.product_id}].completed_quantity")
        if product.completed_quantity > product.quantity:
            raise InvalidInputError(
                f"products[{product.product_id}].completed_quantity",
                product.completed_quantity,
                f"must not exceed quantity {product.quantity}",
            )
    return PackagingBatch(
        id=batch_id or uuid4(),
        batch_name=batch_name,
        batch_date=batch_date,
        planned_duration=non_negative(planned_duration, "planned_duration"),
        products=tuple(products),
        created_at=now,
        updated_at=now,
        company_id=company_id,
        assigned_workers=frozenset(assigned_workers),
        supervised_by=supervised_by,
    )


def start_batch(batch: PackagingBatch, *, now: datetime) -> PackagingBatch:
    if batch.status != BatchStatus.PLANNED:
        _reject(batch, BatchStatus.IN_PROGRESS, "start")
    return replace(
        batch, status=BatchStatus.IN_PROGRESS, start_time=now, updated_at=now
    )


def update_progress(
    batch: PackagingBatch,
    product_id: str,
    completed_quantity: int,
    *,
    now: datetime,
) -> PackagingBatch:
    """Set one product line's ``completed_quantity``."""
    if batch.status != BatchStatus.IN_PROGRESS:
        _reject(batch, batch.status, "update_progress")
    _non_negative_int(completed_quantity, "completed_quantity")

    products = list(batch.products)
    for index, product in enumerate(products):
        if product.product_id == product_id:
            if completed_quantity > product.quantity:
                raise InvalidInputError(
                    "completed_quantity",
                    completed_quantity,
                    f"must not exceed quantity {product.quantity}",
                )
            products[index] = replace(product, completed_quantity=completed_quantity)
            break
    else:
        raise InvalidInputError("product_id", product_id, "not part of this batch")

    return replace(batch, products=tuple(products), updated_at=now)


def quality_score(
    defect_count: int,
    rework_count: int,
    total_items: int,
    *,
    floor: Decimal = ZERO,
    max_score: Decimal = HUNDRED,
) -> Decimal:
    """``100 - (defects + rework) / total_items * 100``, floored."""
    if total_items <= 0:
        return max_score
    score = max_score - Decimal(defect_count + rework_count) / Decimal(total_items) * HUNDRED
    return max(score, floor)


def efficiency_score(
    planned_duration: Decimal, actual_duration: Decimal, *, max_score: Decimal = HUNDRED
) -> Decimal:
    """``planned / actual * 100`` capped at ``max_score``; an instant batch scores the max."""
    if actual_duration <= 0:
        return max_score
    return min(planned_duration / actual_duration * HUNDRED, max_score)


def complete_batch(
    batch: PackagingBatch,
    *,
    actual_duration: Decimal,
    now: datetime,
    defect_count: int = 0,
    rework_count: int = 0,
    quality_notes: str | None = None,
    score_floor: Decimal = ZERO,
    max_score: Decimal = HUNDRED,
) -> PackagingBatch:
    """Close a fully packed batch and derive its quality and efficiency scores."""
    _require_transition(batch, BatchStatus.COMPLETED, "complete")
    if batch.completion_percentage < HUNDRED:
        raise BatchIncompleteError(
            str(batch.id), batch.status.value, str(batch.completion_percentage)
        )
    duration = non_negative(actual_duration, "actual_duration")
    _non_negative_int(defect_count, "defect_count")
    _non_negative_int(rework_count, "rework_count")

    return replace(
        batch,
        status=BatchStatus.COMPLETED,
        actual_duration=duration,
        end_time=now,
        updated_at=now,
        defect_count=defect_count,
        rework_count=rework_count,
        quality_notes=quality_notes,
        overall_quality_score=quality_score(
            defect_count,
            rework_count,
            batch.total_items,
            floor=score_floor,
            max_score=max_score,
        ),
        efficiency_score=efficiency_score(
            batch.planned_duration, duration, max_score=max_score
        ),
    )


def cancel_batch(
    batch: PackagingBatch, *, now: datetime, reason: str | None = None
) -> PackagingBatch:
    _require_transition(batch, BatchStatus.CANCELLED, "cancel")
    return replace(
        batch,
        status=BatchStatus.CANCELLED,
        end_time=now,
        updated_at=now,
        cancellation_reason=reason,
    )
