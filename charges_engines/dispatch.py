"""
charges_engines.dispatch -- Exhaustive calculator dispatch per charge type.

Responsibility:
    Route a calculator input to the calculator for its charge type and
    wrap the result in the matching ``Charge`` detail variant.  This is
    the one place that knows which calculator serves which charge type.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Called by the ledger
    service on create and recalculate.

Invariants enforced:
    - Every ``ChargeType`` has exactly one handler; the registry is
      checked against the enum at import time, so adding a charge type
      without a calculator fails loudly on startup.
    - The detail variant returned always matches the input's type.

Failure modes:
    - InvalidInputError for an input object of no known calculator type.
    - Whatever the selected calculator raises, propagated verbatim.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from charges_engines.boxing import BoxingCostCalculator
from charges_engines.exchange import ExchangeCostCalculator, ExchangeRateTable
from charges_engines.returns import ReturnsCostCalculator
from charges_engines.salary import SalaryCalculator
from charges_engines.shipping import ShippingCostCalculator
from charges_engines.tracer import traced_engine
from charges_kernel.domain.charge import (
    BoxingDetail,
    ChargeDetail,
    ChargeType,
    ExchangeDetail,
    GenericDetail,
    ReturnsDetail,
    SalaryDetail,
    ShippingDetail,
)
from charges_kernel.domain.costs import (
    BoxingInput,
    ExchangeInput,
    GenericBreakdown,
    GenericInput,
    ReturnsInput,
    SalaryInput,
    ShippingInput,
)
from charges_kernel.domain.values import non_negative, round_money
from charges_kernel.exceptions import InvalidInputError

ChargeInput = (
    ShippingInput | BoxingInput | SalaryInput | ExchangeInput | ReturnsInput | GenericInput
)

INPUT_TYPES: dict[type, ChargeType] = {
    ShippingInput: ChargeType.SHIPPING,
    BoxingInput: ChargeType.BOXING,
    SalaryInput: ChargeType.SALARY,
    ExchangeInput: ChargeType.EXCHANGE,
    ReturnsInput: ChargeType.RETURNS,
    GenericInput: ChargeType.GENERIC,
}


@traced_engine("generic", "1.0", fingerprint_fields=("generic_input",))
def calculate_generic(generic_input: GenericInput) -> GenericBreakdown:
    return GenericBreakdown(total_cost=round_money(non_negative(generic_input.amount, "amount")))


class CostDispatcher:
    """
    Maps a calculator input to its charge detail.

    Usage:
        dispatcher = CostDispatcher(rate_table=rates)
        detail = dispatcher.build_detail(ShippingInput(...))
        detail.type        # ChargeType.SHIPPING
        detail.breakdown   # ShippingBreakdown
    """

    def __init__(
        self,
        shipping: ShippingCostCalculator | None = None,
        boxing: BoxingCostCalculator | None = None,
        returns: ReturnsCostCalculator | None = None,
        salary: SalaryCalculator | None = None,
        exchange: ExchangeCostCalculator | None = None,
        rate_table: ExchangeRateTable | None = None,
    ):
        self.shipping = shipping or ShippingCostCalculator()
        self.boxing = boxing or BoxingCostCalculator()
        self.returns = returns or ReturnsCostCalculator()
        self.salary = salary or SalaryCalculator()
        self.exchange = exchange or ExchangeCostCalculator()
        self.rate_table = rate_table
        self._handlers: dict[ChargeType, Callable[[Any], ChargeDetail]] = {
            ChargeType.SHIPPING: lambda i: ShippingDetail(i, self.shipping.calculate(i)),
            ChargeType.BOXING: lambda i: BoxingDetail(i, self.boxing.calculate(i)),
            ChargeType.SALARY: lambda i: SalaryDetail(i, self.salary.calculate(i)),
            ChargeType.EXCHANGE: lambda i: ExchangeDetail(
                i, self.exchange.calculate(i, self.rate_table)
            ),
            ChargeType.RETURNS: lambda i: ReturnsDetail(i, self.returns.calculate(i)),
            ChargeType.GENERIC: lambda i: GenericDetail(i, calculate_generic(i)),
        }
        missing = set(ChargeType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No calculator registered for {sorted(m.value for m in missing)}")

    @staticmethod
    def charge_type_of(charge_input: Any) -> ChargeType:
        charge_type = INPUT_TYPES.get(type(charge_input))
        if charge_type is None:
            raise InvalidInputError(
                "charge_input", type(charge_input).__name__, "no calculator for this input type"
            )
        return charge_type

    def build_detail(self, charge_input: ChargeInput) -> ChargeDetail:
        return self._handlers[self.charge_type_of(charge_input)](charge_input)


_unmapped = set(ChargeType) - set(INPUT_TYPES.values())
if _unmapped:
    raise RuntimeError(f"Charge types without an input type: {sorted(t.value for t in _unmapped)}")
