"""
Charge domain types (``charges_kernel.domain.charge``).

Responsibility
--------------
The ``Charge`` entity and its type-tagged detail payload.  Each charge
type carries exactly one detail variant holding the calculator input and
the breakdown derived from it; ``Charge.amount`` is the breakdown's
``total_cost`` in currency minor units.

Architecture position
---------------------
**Kernel domain layer** -- pure frozen dataclasses.  ZERO I/O.  Lifecycle
rules live next door in ``charge_lifecycle``.

Invariants enforced
-------------------
* ``Charge.type`` is derived from the detail variant, so a shipping charge
  can never hold a salary breakdown.
* ``amount`` is set only by the ledger from a calculator result.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar
from uuid import UUID

from charges_kernel.domain.costs import (
    BoxingBreakdown,
    BoxingInput,
    ExchangeBreakdown,
    ExchangeInput,
    GenericBreakdown,
    GenericInput,
    ReturnsBreakdown,
    ReturnsInput,
    SalaryBreakdown,
    SalaryInput,
    ShippingBreakdown,
    ShippingInput,
)
from charges_kernel.domain.values import ChargeCurrency


class ChargeType(str, Enum):
    SHIPPING = "shipping"
    BOXING = "boxing"
    SALARY = "salary"
    EXCHANGE = "exchange"
    RETURNS = "returns"
    GENERIC = "generic"


class ChargeStatus(str, Enum):
    """Charge approval lifecycle states."""

    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class ChargePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


# =========================================================================
# Detail variants
# =========================================================================


@dataclass(frozen=True)
class ShippingDetail:
    type: ClassVar[ChargeType] = ChargeType.SHIPPING
    input: ShippingInput
    breakdown: ShippingBreakdown


@dataclass(frozen=True)
class BoxingDetail:
    type: ClassVar[ChargeType] = ChargeType.BOXING
    input: BoxingInput
    breakdown: BoxingBreakdown


@dataclass(frozen=True)
class SalaryDetail:
    type: ClassVar[ChargeType] = ChargeType.SALARY
    input: SalaryInput
    breakdown: SalaryBreakdown


@dataclass(frozen=True)
class ExchangeDetail:
    type: ClassVar[ChargeType] = ChargeType.EXCHANGE
    input: ExchangeInput
    breakdown: ExchangeBreakdown


@dataclass(frozen=True)
class ReturnsDetail:
    type: ClassVar[ChargeType] = ChargeType.RETURNS
    input: ReturnsInput
    breakdown: ReturnsBreakdown


@dataclass(frozen=True)
class GenericDetail:
    type: ClassVar[ChargeType] = ChargeType.GENERIC
    input: GenericInput
    breakdown: GenericBreakdown


ChargeDetail = (
    ShippingDetail
    | BoxingDetail
    | SalaryDetail
    | ExchangeDetail
    | ReturnsDetail
    | GenericDetail
)

DETAIL_TYPES: dict[ChargeType, type] = {
    ChargeType.SHIPPING: ShippingDetail,
    ChargeType.BOXING: BoxingDetail,
    ChargeType.SALARY: SalaryDetail,
    ChargeType.EXCHANGE: ExchangeDetail,
    ChargeType.RETURNS: ReturnsDetail,
    ChargeType.GENERIC: GenericDetail,
}


# =========================================================================
# Charge entity
# =========================================================================


@dataclass(frozen=True)
class ChargeHistoryEntry:
    """One audited lifecycle step of a charge."""

    action: str
    previous_status: ChargeStatus | None
    new_status: ChargeStatus
    performed_at: datetime
    performed_by: str | None = None
    comment: str | None = None


@dataclass(frozen=True)
class Charge:
    """
    A recorded operating cost subject to the approval workflow.

    Instances are immutable; every lifecycle step produces a new ``Charge``
    via ``dataclasses.replace`` in ``charge_lifecycle``.
    """

    id: UUID
    company_id: str
    title: str
    detail: ChargeDetail
    amount: int
    currency: ChargeCurrency
    status: ChargeStatus
    created_at: datetime
    updated_at: datetime
    priority: ChargePriority = ChargePriority.MEDIUM
    category: str | None = None
    description: str | None = None
    reference_number: str | None = None
    notes: str | None = None
    tags: tuple[str, ...] = ()
    charge_date: date | None = None
    created_by: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    paid_at: datetime | None = None
    approval_notes: str | None = None
    batch_id: UUID | None = None
    history: tuple[ChargeHistoryEntry, ...] = ()

    @property
    def type(self) -> ChargeType:
        return self.detail.type

    @property
    def breakdown(self):
        return self.detail.breakdown

    @property
    def total_cost(self) -> Decimal:
        return self.detail.breakdown.total_cost
