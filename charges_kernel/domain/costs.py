"""
Cost calculator value objects (``charges_kernel.domain.costs``).

Responsibility
--------------
Typed inputs and breakdowns for the five cost calculators, plus the
``ShippingRate`` reference record.  A ``Charge`` embeds one input and
the breakdown derived from it, so these types live in the kernel domain
rather than beside the calculators.

Architecture position
---------------------
**Kernel domain layer** -- pure frozen dataclasses.  ZERO I/O.  The
calculators in ``charges_engines`` consume and produce these; they never
validate on construction (validation is the calculator's job, so a
malformed input surfaces as ``InvalidInputError`` from the calculation
call and not from a constructor deep in a persistence adapter).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

# =========================================================================
# Shipping
# =========================================================================


class DimensionUnit(str, Enum):
    CM = "cm"
    INCH = "inch"


@dataclass(frozen=True)
class PackageDimensions:
    length: Decimal
    width: Decimal
    height: Decimal
    unit: DimensionUnit = DimensionUnit.CM


@dataclass(frozen=True)
class ShippingRate:
    """
    Carrier tariff for one provider and service level.

    Immutable reference data.  ``fuel_surcharge_rate`` and
    ``insurance_rate`` are percentages (15 means 15 %).  The zone fields
    are only used by rate sources to answer route lookups.
    """

    provider_id: str
    service_type: str
    base_rate: Decimal
    rate_per_kg: Decimal
    minimum_charge: Decimal
    fuel_surcharge_rate: Decimal = Decimal("0")
    insurance_rate: Decimal = Decimal("0")
    estimated_days: int = 0
    origin_zone: str | None = None
    destination_zone: str | None = None


@dataclass(frozen=True)
class ShippingInput:
    origin_zone: str
    destination_zone: str
    weight: Decimal
    dimensions: PackageDimensions
    rate: ShippingRate | None = None
    insurance_value: Decimal | None = None
    cash_on_delivery: bool = False
    cod_amount: Decimal | None = None
    ship_date: date | None = None


@dataclass(frozen=True)
class ShippingBreakdown:
    provider_id: str
    service_type: str
    volumetric_weight: Decimal
    billable_weight: Decimal
    base_cost: Decimal
    fuel_surcharge: Decimal
    insurance_cost: Decimal
    cod_fee: Decimal
    total_cost: Decimal
    estimated_delivery_days: int
    estimated_delivery_date: date | None = None


# =========================================================================
# Boxing
# =========================================================================


@dataclass(frozen=True)
class BoxingMaterial:
    """One packaging material consumed per packed item."""

    material_id: str
    quantity_per_item: Decimal
    cost_per_unit: Decimal
    name: str | None = None


@dataclass(frozen=True)
class BoxingInput:
    batch_size: int
    materials: tuple[BoxingMaterial, ...]
    labor_hours: Decimal
    labor_rate: Decimal


@dataclass(frozen=True)
class MaterialCostLine:
    material_id: str
    quantity_per_item: Decimal
    cost_per_unit: Decimal
    total_quantity: Decimal
    cost: Decimal


@dataclass(frozen=True)
class BoxingBreakdown:
    batch_size: int
    material_cost: Decimal
    labor_cost: Decimal
    total_cost: Decimal
    cost_per_unit_output: Decimal
    material_lines: tuple[MaterialCostLine, ...] = ()


# =========================================================================
# Returns
# =========================================================================


class ReturnCondition(str, Enum):
    NEW = "new"
    LIKE_NEW = "like_new"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    DAMAGED = "damaged"
    DEFECTIVE = "defective"


class ReturnReason(str, Enum):
    DEFECTIVE = "defective"
    WRONG_ITEM = "wrong_item"
    NOT_AS_DESCRIBED = "not_as_described"
    CUSTOMER_CHANGED_MIND = "customer_changed_mind"
    DAMAGED_IN_SHIPPING = "damaged_in_shipping"
    LATE_DELIVERY = "late_delivery"
    OTHER = "other"


class ReturnMethod(str, Enum):
    PICKUP = "pickup"
    DROP_OFF = "drop_off"
    MAIL = "mail"
    IN_STORE = "in_store"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Resolution(str, Enum):
    FULL_REFUND = "full_refund"
    PARTIAL_REFUND = "partial_refund"


@dataclass(frozen=True)
class ReturnItem:
    product_id: str
    quantity: int
    original_price: Decimal
    condition: ReturnCondition


@dataclass(frozen=True)
class ReturnsInput:
    items: tuple[ReturnItem, ...]
    reason: ReturnReason
    method: ReturnMethod = ReturnMethod.PICKUP
    include_shipping_refund: bool = True
    apply_restocking_fee: bool = False
    inspection_required: bool = True
    refurbishment_needed: bool = False
    vendor_claim_possible: bool = False


@dataclass(frozen=True)
class ReturnItemBreakdown:
    product_id: str
    quantity: int
    condition: ReturnCondition
    refund_rate: Decimal
    item_value: Decimal
    refund_price: Decimal
    inspection_cost: Decimal
    restocking_cost: Decimal
    refurbishment_cost: Decimal
    disposal_cost: Decimal
    processing_cost: Decimal
    condition_impact: Decimal


@dataclass(frozen=True)
class ReturnsBreakdown:
    total_return_value: Decimal
    refund_amount: Decimal
    total_processing_cost: Decimal
    shipping_cost: Decimal
    administrative_cost: Decimal
    shipping_refund: Decimal
    restocking_fee: Decimal
    processing_fee: Decimal
    net_loss: Decimal
    vendor_claim_potential: Decimal
    risk_factors: tuple[str, ...]
    risk_level: RiskLevel
    approve_return: bool
    suggested_resolution: Resolution
    items: tuple[ReturnItemBreakdown, ...] = ()
    cost_optimization_tips: tuple[str, ...] = ()

    @property
    def total_cost(self) -> Decimal:
        """The amount a returns charge records is the net loss."""
        return self.net_loss


# =========================================================================
# Salary
# =========================================================================


class PayFrequency(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


ALLOWANCE_KEYS = (
    "transport",
    "meal",
    "housing",
    "performance_bonus",
    "special_bonus",
    "commission",
)
DEDUCTION_KEYS = ("social_security", "tax", "insurance", "advance", "other")


@dataclass(frozen=True)
class SalaryInput:
    """
    Pay-period input for one employee.

    ``work_days`` / ``work_hours`` default to the pay frequency's canonical
    values and ``overtime_rate`` is derived from the base salary when
    omitted.
    """

    employee_id: str
    base_salary: Decimal
    pay_frequency: PayFrequency = PayFrequency.MONTHLY
    overtime_hours: Decimal = Decimal("0")
    overtime_rate: Decimal | None = None
    overtime_multiplier: Decimal | None = None
    work_days: Decimal | None = None
    work_hours: Decimal | None = None
    absent_days: Decimal = Decimal("0")
    late_days: Decimal = Decimal("0")
    allowances: dict[str, Decimal] = field(default_factory=dict)
    deductions: dict[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class SalaryBreakdown:
    employee_id: str
    pay_frequency: PayFrequency
    base_amount: Decimal
    overtime_rate: Decimal
    overtime_amount: Decimal
    allowances: dict[str, Decimal]
    deductions: dict[str, Decimal]
    total_allowances: Decimal
    total_deductions: Decimal
    gross_amount: Decimal
    net_amount: Decimal
    work_days: Decimal
    work_hours: Decimal
    days_worked: Decimal
    hours_worked: Decimal
    effective_hourly_rate: Decimal

    @property
    def total_cost(self) -> Decimal:
        """A salary charge records the gross cost to the company."""
        return self.gross_amount


@dataclass(frozen=True)
class OvertimeResult:
    hourly_rate: Decimal
    overtime_rate: Decimal
    overtime_amount: Decimal


# =========================================================================
# Exchange
# =========================================================================


@dataclass(frozen=True)
class ExchangeInput:
    from_currency: str
    to_currency: str
    source_amount: Decimal
    fee_percentage: Decimal = Decimal("0")
    rate: Decimal | None = None
    expected_rate: Decimal | None = None


@dataclass(frozen=True)
class LossGain:
    expected_rate: Decimal
    loss_gain_amount: Decimal
    loss_gain_percentage: Decimal
    is_gain: bool


@dataclass(frozen=True)
class ExchangeBreakdown:
    from_currency: str
    to_currency: str
    rate: Decimal
    source_amount: Decimal
    target_amount: Decimal
    fee_amount: Decimal
    total_cost: Decimal
    loss_gain: LossGain | None = None


# =========================================================================
# Generic
# =========================================================================


@dataclass(frozen=True)
class GenericInput:
    """A charge with no calculator: the caller states the amount."""

    amount: Decimal


@dataclass(frozen=True)
class GenericBreakdown:
    total_cost: Decimal
