"""
Shipping quotes over a rate source.

``ShippingQuoteService`` fetches the tariffs for a parcel's route from a
``RateSource`` and lets the calculator pick or rank them.  The calculator
itself never performs lookups.
"""

from __future__ import annotations

from charges_engines.shipping import ShippingCostCalculator, ShippingQuote
from charges_kernel.domain.costs import ShippingInput
from charges_kernel.exceptions import NoRateAvailableError
from charges_kernel.logging_config import get_logger
from charges_services.protocols import RateSource

logger = get_logger("services.shipping_quotes")


class ShippingQuoteService:
    def __init__(
        self,
        rate_source: RateSource,
        calculator: ShippingCostCalculator | None = None,
    ):
        self._rate_source = rate_source
        self._calculator = calculator or ShippingCostCalculator()

    def _fetch(self, shipping_input: ShippingInput, service_type, provider_id):
        rates = self._rate_source.fetch_rates_for_route(
            shipping_input.origin_zone,
            shipping_input.destination_zone,
            service_type=service_type,
            provider_id=provider_id,
        )
        if not rates:
            logger.warning("shipping_route_has_no_rates", extra={
                "origin_zone": shipping_input.origin_zone,
                "destination_zone": shipping_input.destination_zone,
                "service_type": service_type,
                "provider_id": provider_id,
            })
            raise NoRateAvailableError(
                shipping_input.origin_zone,
                shipping_input.destination_zone,
                service_type=service_type,
                provider_id=provider_id,
            )
        return rates

    def quote(
        self,
        shipping_input: ShippingInput,
        service_type: str | None = None,
        provider_id: str | None = None,
    ) -> ShippingQuote:
        """Cheapest quote for the parcel's route."""
        rates = self._fetch(shipping_input, service_type, provider_id)
        quote = self._calculator.select_rate(
            shipping_input, rates, service_type=service_type, provider_id=provider_id
        )
        logger.info("shipping_quote_selected", extra={
            "provider_id": quote.rate.provider_id,
            "service_type": quote.rate.service_type,
            "total_cost": str(quote.breakdown.total_cost),
            "candidates": len(rates),
        })
        return quote

    def compare(
        self,
        shipping_input: ShippingInput,
        service_type: str | None = None,
        provider_id: str | None = None,
    ) -> list[ShippingQuote]:
        """Every quote for the route, cheapest first."""
        return self._calculator.compare_rates(
            shipping_input, self._fetch(shipping_input, service_type, provider_id)
        )
