"""
Charges configuration schema.

Every business constant used by the cost calculators and the ledger lives
here as a named, overridable field.  Defaults are the values the charges
back-office has always used; override them per deployment through
``charges_config.loader`` or by constructing the dataclasses directly:

    config = ChargesConfig(
        returns=ReturnsConstants(inspection_cost=Decimal("250")),
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from charges_kernel.exceptions import ConfigurationError
from charges_kernel.logging_config import get_logger

logger = get_logger("config.schema")

RETURN_CONDITIONS = (
    "new",
    "like_new",
    "good",
    "fair",
    "poor",
    "damaged",
    "defective",
)
RETURN_METHODS = ("pickup", "drop_off", "mail", "in_store")
PAY_FREQUENCIES = ("weekly", "biweekly", "monthly", "quarterly")


def _require_positive(section: str, name: str, value: Decimal) -> None:
    if value <= 0:
        raise ConfigurationError(f"{section}.{name}", f"must be positive, got {value}")


def _require_non_negative(section: str, name: str, value: Decimal) -> None:
    if value < 0:
        raise ConfigurationError(f"{section}.{name}", f"must not be negative, got {value}")


@dataclass(frozen=True)
class ShippingConstants:
    """Volumetric and cash-on-delivery constants."""

    volumetric_divisor: Decimal = Decimal("5000")
    cubic_inch_to_cm3: Decimal = Decimal("16.387")
    cod_fee_rate: Decimal = Decimal("0.02")

    def __post_init__(self):
        _require_positive("shipping", "volumetric_divisor", self.volumetric_divisor)
        _require_positive("shipping", "cubic_inch_to_cm3", self.cubic_inch_to_cm3)
        _require_non_negative("shipping", "cod_fee_rate", self.cod_fee_rate)


@dataclass(frozen=True)
class BoxingConstants:
    """Quality-score bounds for completed packaging batches."""

    quality_score_floor: Decimal = Decimal("0")
    max_score: Decimal = Decimal("100")

    def __post_init__(self):
        if self.quality_score_floor > self.max_score:
            raise ConfigurationError(
                "boxing.quality_score_floor",
                f"must not exceed max_score {self.max_score}",
            )


def _default_refund_rates() -> dict[str, Decimal]:
    return {
        "new": Decimal("1.0"),
        "like_new": Decimal("0.95"),
        "good": Decimal("0.85"),
        "fair": Decimal("0.70"),
        "poor": Decimal("0.50"),
        "damaged": Decimal("0.30"),
        "defective": Decimal("1.0"),
    }


def _default_method_costs() -> dict[str, Decimal]:
    return {
        "pickup": Decimal("800"),
        "drop_off": Decimal("0"),
        "mail": Decimal("1200"),
        "in_store": Decimal("0"),
    }


@dataclass(frozen=True)
class ReturnsConstants:
    """
    Refund rates, per-item processing costs and fraud-risk thresholds.

    ``restocking_cost_rate`` is the store's per-item restocking expense;
    ``restocking_fee_rate`` is what the customer is charged on the total
    return value.
    """

    refund_rates: dict[str, Decimal] = field(default_factory=_default_refund_rates)
    inspection_cost: Decimal = Decimal("200")
    restocking_cost_rate: Decimal = Decimal("0.15")
    refurbishment_cost: Decimal = Decimal("500")
    disposal_cost: Decimal = Decimal("300")
    disposal_conditions: tuple[str, ...] = ("damaged", "defective")
    administrative_cost: Decimal = Decimal("150")
    processing_fee: Decimal = Decimal("300")
    restocking_fee_rate: Decimal = Decimal("0.10")
    shipping_refund: Decimal = Decimal("1000")
    return_method_costs: dict[str, Decimal] = field(default_factory=_default_method_costs)
    high_value_threshold: Decimal = Decimal("50000")
    approval_net_loss_ceiling: Decimal = Decimal("100000")
    partial_refund_threshold: Decimal = Decimal("50000")
    vendor_claim_rate: Decimal = Decimal("0.50")
    risky_conditions: tuple[str, ...] = ("poor", "damaged")
    high_risk_factor_threshold: int = 2
    medium_risk_factor_threshold: int = 0

    def __post_init__(self):
        missing = set(RETURN_CONDITIONS) - set(self.refund_rates)
        if missing:
            raise ConfigurationError(
                "returns.refund_rates", f"missing conditions {sorted(missing)}"
            )
        for condition, rate in self.refund_rates.items():
            if condition not in RETURN_CONDITIONS:
                raise ConfigurationError(
                    f"returns.refund_rates.{condition}", "unknown condition"
                )
            if not Decimal("0") <= rate <= Decimal("1"):
                raise ConfigurationError(
                    f"returns.refund_rates.{condition}",
                    f"must be within [0, 1], got {rate}",
                )
        missing_methods = set(RETURN_METHODS) - set(self.return_method_costs)
        if missing_methods:
            raise ConfigurationError(
                "returns.return_method_costs",
                f"missing methods {sorted(missing_methods)}",
            )
        if self.medium_risk_factor_threshold > self.high_risk_factor_threshold:
            raise ConfigurationError(
                "returns.medium_risk_factor_threshold",
                "must not exceed high_risk_factor_threshold",
            )


@dataclass(frozen=True)
class PayFrequencyDefaults:
    work_days: Decimal
    work_hours: Decimal

    def __post_init__(self):
        _require_positive("salary.pay_frequencies", "work_days", self.work_days)
        _require_positive("salary.pay_frequencies", "work_hours", self.work_hours)


def _default_pay_frequencies() -> dict[str, PayFrequencyDefaults]:
    return {
        "weekly": PayFrequencyDefaults(Decimal("5"), Decimal("40")),
        "biweekly": PayFrequencyDefaults(Decimal("10"), Decimal("80")),
        "monthly": PayFrequencyDefaults(Decimal("22"), Decimal("176")),
        "quarterly": PayFrequencyDefaults(Decimal("66"), Decimal("528")),
    }


@dataclass(frozen=True)
class SalaryConstants:
    overtime_multiplier: Decimal = Decimal("1.5")
    pay_frequencies: dict[str, PayFrequencyDefaults] = field(
        default_factory=_default_pay_frequencies
    )

    def __post_init__(self):
        _require_positive("salary", "overtime_multiplier", self.overtime_multiplier)
        missing = set(PAY_FREQUENCIES) - set(self.pay_frequencies)
        if missing:
            raise ConfigurationError(
                "salary.pay_frequencies", f"missing frequencies {sorted(missing)}"
            )


@dataclass(frozen=True)
class ExchangeConstants:
    rounding_places: int = 2
    base_currency: str = "DZD"
    invertible_currencies: tuple[str, ...] = ("EUR", "USD")

    def __post_init__(self):
        if self.rounding_places < 0:
            raise ConfigurationError(
                "exchange.rounding_places", f"must not be negative, got {self.rounding_places}"
            )


@dataclass(frozen=True)
class LedgerConstants:
    default_currency: str = "DZD"
    overdue_after_days: int = 7

    def __post_init__(self):
        if self.default_currency not in ("DZD", "EUR", "USD"):
            raise ConfigurationError(
                "ledger.default_currency",
                f"unsupported currency {self.default_currency!r}",
            )
        if self.overdue_after_days < 0:
            raise ConfigurationError(
                "ledger.overdue_after_days", "must not be negative"
            )


@dataclass(frozen=True)
class ChargesConfig:
    """Every business constant, grouped by calculator."""

    shipping: ShippingConstants = field(default_factory=ShippingConstants)
    boxing: BoxingConstants = field(default_factory=BoxingConstants)
    returns: ReturnsConstants = field(default_factory=ReturnsConstants)
    salary: SalaryConstants = field(default_factory=SalaryConstants)
    exchange: ExchangeConstants = field(default_factory=ExchangeConstants)
    ledger: LedgerConstants = field(default_factory=LedgerConstants)

    def __post_init__(self):
        logger.debug(
            "charges_config_initialized",
            extra={
                "volumetric_divisor": str(self.shipping.volumetric_divisor),
                "overtime_multiplier": str(self.salary.overtime_multiplier),
                "default_currency": self.ledger.default_currency,
            },
        )
