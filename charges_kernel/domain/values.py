"""
Values -- Currency codes, Decimal coercion and money rounding.

Responsibility:
    Gives every calculator one way to turn caller input into ``Decimal``,
    validate sign constraints, and round monetary results.  ``Charge.amount``
    is an integer in currency minor units; ``to_minor_units`` is the single
    conversion point from a calculator ``total_cost``.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Imported by engines, domain and
    services; imports nothing but ``exceptions``.

Invariants enforced:
    - Money is never a float.  Floats are routed through ``str()`` so
      ``0.1`` becomes ``Decimal("0.1")`` rather than its binary expansion.
    - Rounding is ROUND_HALF_UP at the currency's decimal places.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from charges_kernel.exceptions import InvalidInputError

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class ChargeCurrency(str, Enum):
    """Currencies a charge may be recorded in."""

    DZD = "DZD"
    EUR = "EUR"
    USD = "USD"

    @property
    def decimal_places(self) -> int:
        return _DECIMAL_PLACES[self]

    @property
    def minor_unit_factor(self) -> Decimal:
        return Decimal(10) ** self.decimal_places

    @classmethod
    def parse(cls, value: str | ChargeCurrency) -> ChargeCurrency:
        if isinstance(value, ChargeCurrency):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise InvalidInputError(
                "currency", value, f"must be one of {[c.value for c in cls]}"
            ) from None


_DECIMAL_PLACES: dict[ChargeCurrency, int] = {
    ChargeCurrency.DZD: 2,
    ChargeCurrency.EUR: 2,
    ChargeCurrency.USD: 2,
}


def to_decimal(value: Any, field: str) -> Decimal:
    """Coerce ``value`` to a finite Decimal or raise InvalidInputError."""
    if isinstance(value, bool):
        raise InvalidInputError(field, value, "must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise InvalidInputError(field, value, "must be a number") from None
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        raise InvalidInputError(field, value, "must be a number")
    if not result.is_finite():
        raise InvalidInputError(field, value, "must be finite")
    return result


def non_negative(value: Any, field: str) -> Decimal:
    result = to_decimal(value, field)
    if result < 0:
        raise InvalidInputError(field, value, "must not be negative")
    return result


def positive(value: Any, field: str) -> Decimal:
    result = to_decimal(value, field)
    if result <= 0:
        raise InvalidInputError(field, value, "must be greater than zero")
    return result


def round_money(value: Decimal, places: int = 2) -> Decimal:
    """Round half-up to ``places`` decimal places."""
    quantum = Decimal(1).scaleb(-places)
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def to_minor_units(
    amount: Decimal, currency: ChargeCurrency = ChargeCurrency.DZD
) -> int:
    """Convert a major-unit Decimal total to integer minor units."""
    scaled = amount * currency.minor_unit_factor
    return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_minor_units(
    amount: int, currency: ChargeCurrency = ChargeCurrency.DZD
) -> Decimal:
    return Decimal(amount) / currency.minor_unit_factor
