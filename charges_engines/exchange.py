"""
charges_engines.exchange -- Currency conversion cost and loss/gain.

Responsibility:
    Convert a source amount at a quoted rate, charge the conversion fee,
    and, when an expected rate is supplied, measure the loss or gain
    against it.  ``ExchangeRateTable`` answers pair lookups, deriving
    DZD/EUR and DZD/USD from the quoted EUR/DZD and USD/DZD when the
    direct pair is absent.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - target_amount = source_amount x rate.
    - fee_amount = source_amount x fee_percentage / 100.
    - total_cost = source_amount + fee_amount (in the source currency).
    - loss_gain_amount = (rate - expected_rate) x source_amount and
      is_gain means loss_gain_amount >= 0.
    - Monetary outputs are rounded half-up to ``rounding_places``.

Failure modes:
    - InvalidExchangeRateError when a rate or expected rate is missing,
      zero or negative.
    - InvalidInputError for a non-positive source amount or a negative
      fee percentage.
"""

from __future__ import annotations

import time
from decimal import Decimal

from charges_config import ExchangeConstants, get_active_config
from charges_engines.tracer import traced_engine
from charges_kernel.domain.costs import ExchangeBreakdown, ExchangeInput, LossGain
from charges_kernel.domain.values import HUNDRED, non_negative, positive, round_money, to_decimal
from charges_kernel.exceptions import InvalidExchangeRateError
from charges_kernel.logging_config import get_logger

logger = get_logger("engines.exchange")

ONE = Decimal("1")


def _require_valid_rate(from_currency: str, to_currency: str, rate) -> Decimal:
    if rate is None:
        raise InvalidExchangeRateError(from_currency, to_currency, None, "no rate quoted")
    value = to_decimal(rate, "rate")
    if value <= 0:
        raise InvalidExchangeRateError(
            from_currency, to_currency, str(value), "rate must be greater than zero"
        )
    return value


class ExchangeRateTable:
    """
    Quoted exchange rates keyed by ``(from_currency, to_currency)``.

    A missing pair is answered from its inverse only when the pair joins
    the base currency to one of the invertible currencies.
    """

    def __init__(
        self,
        quotes: dict[tuple[str, str], Decimal] | None = None,
        constants: ExchangeConstants | None = None,
    ):
        self._constants = constants
        self._quotes: dict[tuple[str, str], Decimal] = {}
        for (from_currency, to_currency), rate in (quotes or {}).items():
            self.set_rate(from_currency, to_currency, rate)

    @property
    def constants(self) -> ExchangeConstants:
        return self._constants or get_active_config().exchange

    def set_rate(self, from_currency: str, to_currency: str, rate) -> None:
        pair = (from_currency.upper(), to_currency.upper())
        self._quotes[pair] = _require_valid_rate(pair[0], pair[1], rate)

    def _invertible(self, from_currency: str, to_currency: str) -> bool:
        c = self.constants
        pair = {from_currency, to_currency}
        return c.base_currency in pair and bool(pair & set(c.invertible_currencies))

    def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """Rate converting one unit of ``from_currency`` into ``to_currency``."""
        src, dst = from_currency.upper(), to_currency.upper()
        if src == dst:
            return ONE
        direct = self._quotes.get((src, dst))
        if direct is not None:
            return direct
        inverse = self._quotes.get((dst, src))
        if inverse is not None and self._invertible(src, dst):
            return ONE / inverse
        raise InvalidExchangeRateError(src, dst, None, "no rate quoted for pair")

    def __contains__(self, pair: tuple[str, str]) -> bool:
        try:
            self.get_rate(*pair)
        except InvalidExchangeRateError:
            return False
        return True


class ExchangeCostCalculator:
    """Currency conversion cost and loss/gain calculator."""

    def __init__(self, constants: ExchangeConstants | None = None):
        self._constants = constants

    @property
    def constants(self) -> ExchangeConstants:
        return self._constants or get_active_config().exchange

    def resolve_rate(
        self, exchange_input: ExchangeInput, rate_table: ExchangeRateTable | None = None
    ) -> Decimal:
        src = exchange_input.from_currency.upper()
        dst = exchange_input.to_currency.upper()
        if exchange_input.rate is not None:
            return _require_valid_rate(src, dst, exchange_input.rate)
        if src == dst:
            return ONE
        if rate_table is None:
            raise InvalidExchangeRateError(src, dst, None, "no rate supplied and no rate table")
        return rate_table.get_rate(src, dst)

    @traced_engine("exchange", "1.0", fingerprint_fields=("exchange_input",))
    def calculate(
        self,
        exchange_input: ExchangeInput,
        rate_table: ExchangeRateTable | None = None,
    ) -> ExchangeBreakdown:
        t0 = time.monotonic()
        places = self.constants.rounding_places
        logger.info("exchange_cost_started", extra={
            "from_currency": exchange_input.from_currency,
            "to_currency": exchange_input.to_currency,
            "source_amount": str(exchange_input.source_amount),
        })

        source = positive(exchange_input.source_amount, "source_amount")
        fee_pct = non_negative(exchange_input.fee_percentage, "fee_percentage")
        rate = self.resolve_rate(exchange_input, rate_table)

        target_amount = round_money(source * rate, places)
        fee_amount = round_money(source * fee_pct / HUNDRED, places)
        total_cost = round_money(source, places) + fee_amount

        loss_gain = None
        if exchange_input.expected_rate is not None:
            expected = to_decimal(exchange_input.expected_rate, "expected_rate")
            if expected <= 0:
                raise InvalidExchangeRateError(
                    exchange_input.from_currency,
                    exchange_input.to_currency,
                    str(expected),
                    "expected rate must be greater than zero",
                )
            raw = (rate - expected) * source
            loss_gain = LossGain(
                expected_rate=expected,
                loss_gain_amount=round_money(raw, places),
                loss_gain_percentage=round_money(raw / (expected * source) * HUNDRED, places),
                is_gain=raw >= 0,
            )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("exchange_cost_calculated", extra={
            "rate": str(rate),
            "target_amount": str(target_amount),
            "fee_amount": str(fee_amount),
            "total_cost": str(total_cost),
            "is_gain": None if loss_gain is None else loss_gain.is_gain,
            "duration_ms": duration_ms,
        })

        return ExchangeBreakdown(
            from_currency=exchange_input.from_currency.upper(),
            to_currency=exchange_input.to_currency.upper(),
            rate=rate,
            source_amount=source,
            target_amount=target_amount,
            fee_amount=fee_amount,
            total_cost=total_cost,
            loss_gain=loss_gain,
        )
