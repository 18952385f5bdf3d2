"""
charges_engines.shipping -- Parcel shipping cost from a carrier tariff.

Responsibility:
    Turn a parcel (weight, dimensions, declared value, cash-on-delivery)
    and a selected ``ShippingRate`` into a ``ShippingBreakdown``.  Also
    ranks several tariffs for the same parcel.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Rate lookup is the
    caller's job (see ``charges_services.shipping_quotes``).

Invariants enforced:
    - volumetric_weight = L x W x H (cm^3) / volumetric_divisor; inch
      dimensions are converted per cubic inch before dividing.
    - billable_weight = max(actual weight, volumetric weight).
    - base_cost never drops below the tariff's minimum charge.
    - Monetary components are rounded half-up to 2 places and
      total_cost is their exact sum.

Failure modes:
    - InvalidInputError for weight <= 0 or any negative dimension,
      declared value, COD amount or tariff figure.
    - NoRateAvailableError when no tariff is supplied or none matches.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import timedelta
from decimal import Decimal

from charges_config import ShippingConstants, get_active_config
from charges_engines.tracer import traced_engine
from charges_kernel.domain.costs import (
    DimensionUnit,
    ShippingBreakdown,
    ShippingInput,
    ShippingRate,
)
from charges_kernel.domain.values import (
    HUNDRED,
    ZERO,
    non_negative,
    positive,
    round_money,
)
from charges_kernel.exceptions import InvalidInputError, NoRateAvailableError
from charges_kernel.logging_config import get_logger

logger = get_logger("engines.shipping")


@dataclass(frozen=True)
class ShippingQuote:
    rate: ShippingRate
    breakdown: ShippingBreakdown


def _validated_rate(rate: ShippingRate) -> dict[str, Decimal]:
    return {
        "base_rate": non_negative(rate.base_rate, "rate.base_rate"),
        "rate_per_kg": non_negative(rate.rate_per_kg, "rate.rate_per_kg"),
        "minimum_charge": non_negative(rate.minimum_charge, "rate.minimum_charge"),
        "fuel_surcharge_rate": non_negative(
            rate.fuel_surcharge_rate, "rate.fuel_surcharge_rate"
        ),
        "insurance_rate": non_negative(rate.insurance_rate, "rate.insurance_rate"),
    }


class ShippingCostCalculator:
    """
    Shipping cost calculator.

    Constants default to the active configuration at call time, so a
    calculator built once keeps following ``set_active_config``.
    """

    def __init__(self, constants: ShippingConstants | None = None):
        self._constants = constants

    @property
    def constants(self) -> ShippingConstants:
        return self._constants or get_active_config().shipping

    def volumetric_weight(self, length, width, height, unit=DimensionUnit.CM) -> Decimal:
        """Dimensional weight in kg for a box measured in ``unit``."""
        constants = self.constants
        volume = (
            non_negative(length, "dimensions.length")
            * non_negative(width, "dimensions.width")
            * non_negative(height, "dimensions.height")
        )
        try:
            unit = DimensionUnit(unit)
        except ValueError:
            raise InvalidInputError("dimensions.unit", unit, "must be 'cm' or 'inch'") from None
        if unit == DimensionUnit.INCH:
            volume *= constants.cubic_inch_to_cm3
        return volume / constants.volumetric_divisor

    @traced_engine("shipping", "1.0", fingerprint_fields=("shipping_input",))
    def calculate(self, shipping_input: ShippingInput) -> ShippingBreakdown:
        """
        Price one parcel against ``shipping_input.rate``.

        Raises:
            InvalidInputError: weight <= 0 or negative figures.
            NoRateAvailableError: no rate selected.
        """
        t0 = time.monotonic()
        logger.info("shipping_cost_started", extra={
            "origin_zone": shipping_input.origin_zone,
            "destination_zone": shipping_input.destination_zone,
            "weight": str(shipping_input.weight),
        })

        rate = shipping_input.rate
        if rate is None:
            logger.warning("shipping_rate_missing", extra={
                "origin_zone": shipping_input.origin_zone,
                "destination_zone": shipping_input.destination_zone,
            })
            raise NoRateAvailableError(
                shipping_input.origin_zone, shipping_input.destination_zone
            )

        weight = positive(shipping_input.weight, "weight")
        tariff = _validated_rate(rate)
        dims = shipping_input.dimensions
        volumetric = self.volumetric_weight(dims.length, dims.width, dims.height, dims.unit)
        billable = max(weight, volumetric)

        base_cost = round_money(max(
            tariff["base_rate"] + tariff["rate_per_kg"] * billable,
            tariff["minimum_charge"],
        ))
        fuel_surcharge = round_money(base_cost * tariff["fuel_surcharge_rate"] / HUNDRED)

        insurance_cost = ZERO
        if shipping_input.insurance_value is not None:
            insured = non_negative(shipping_input.insurance_value, "insurance_value")
            insurance_cost = round_money(insured * tariff["insurance_rate"] / HUNDRED)

        cod_fee = ZERO
        if shipping_input.cash_on_delivery:
            cod_amount = non_negative(shipping_input.cod_amount or ZERO, "cod_amount")
            cod_fee = round_money(cod_amount * self.constants.cod_fee_rate)
        elif shipping_input.cod_amount is not None:
            non_negative(shipping_input.cod_amount, "cod_amount")

        total_cost = base_cost + fuel_surcharge + insurance_cost + cod_fee

        if isinstance(rate.estimated_days, bool) or not isinstance(rate.estimated_days, int) \
                or rate.estimated_days < 0:
            raise InvalidInputError(
                "rate.estimated_days", rate.estimated_days, "must be a non-negative integer"
            )
        delivery_date = None
        if shipping_input.ship_date is not None:
            delivery_date = shipping_input.ship_date + timedelta(days=rate.estimated_days)

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("shipping_cost_calculated", extra={
            "provider_id": rate.provider_id,
            "service_type": rate.service_type,
            "billable_weight": str(billable),
            "total_cost": str(total_cost),
            "duration_ms": duration_ms,
        })

        return ShippingBreakdown(
            provider_id=rate.provider_id,
            service_type=rate.service_type,
            volumetric_weight=volumetric,
            billable_weight=billable,
            base_cost=base_cost,
            fuel_surcharge=fuel_surcharge,
            insurance_cost=insurance_cost,
            cod_fee=cod_fee,
            total_cost=total_cost,
            estimated_delivery_days=rate.estimated_days,
            estimated_delivery_date=delivery_date,
        )

    def compare_rates(
        self, shipping_input: ShippingInput, rates: list[ShippingRate] | tuple[ShippingRate, ...]
    ) -> list[ShippingQuote]:
        """One quote per rate, cheapest first (ties: faster, then provider id)."""
        quotes = [
            ShippingQuote(rate=rate, breakdown=self.calculate(replace(shipping_input, rate=rate)))
            for rate in rates
        ]
        quotes.sort(key=lambda q: (
            q.breakdown.total_cost,
            q.breakdown.estimated_delivery_days,
            q.rate.provider_id,
            q.rate.service_type,
        ))
        return quotes

    def select_rate(
        self,
        shipping_input: ShippingInput,
        rates: list[ShippingRate] | tuple[ShippingRate, ...],
        service_type: str | None = None,
        provider_id: str | None = None,
    ) -> ShippingQuote:
        """
        Cheapest applicable rate for the parcel.

        Raises:
            NoRateAvailableError: no rate matches the service / provider.
        """
        applicable = [
            r for r in rates
            if (service_type is None or r.service_type == service_type)
            and (provider_id is None or r.provider_id == provider_id)
        ]
        if not applicable:
            logger.warning("shipping_no_applicable_rate", extra={
                "origin_zone": shipping_input.origin_zone,
                "destination_zone": shipping_input.destination_zone,
                "service_type": service_type,
                "provider_id": provider_id,
                "candidates": len(rates),
            })
            raise NoRateAvailableError(
                shipping_input.origin_zone,
                shipping_input.destination_zone,
                service_type=service_type,
                provider_id=provider_id,
            )
        return self.compare_rates(shipping_input, applicable)[0]
