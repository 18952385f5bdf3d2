"""
Module: charges_engines
Responsibility:
    Package entrypoint re-exporting the pure cost calculators.  This is
    the canonical import surface for ``charges_services``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Imports ``charges_kernel`` and ``charges_config`` only.
    MUST NOT import ``charges_services``.

Invariants enforced:
    - Purity: calculators never read the clock; dates are parameters.
    - Decimal-only arithmetic; floats are converted through ``str``.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every calculator invocation is traced via ``@traced_engine`` (see
    ``charges_engines.tracer``), emitting ENGINE_TRACE log records.
"""

from charges_kernel.logging_config import get_logger

logger = get_logger("engines")

from charges_engines.boxing import BoxingCostCalculator
from charges_engines.dispatch import INPUT_TYPES, ChargeInput, CostDispatcher
from charges_engines.exchange import ExchangeCostCalculator, ExchangeRateTable
from charges_engines.returns import ReturnsCostCalculator
from charges_engines.salary import SalaryCalculator
from charges_engines.shipping import ShippingCostCalculator, ShippingQuote
from charges_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "INPUT_TYPES",
    "BoxingCostCalculator",
    "ChargeInput",
    "CostDispatcher",
    "ExchangeCostCalculator",
    "ExchangeRateTable",
    "ReturnsCostCalculator",
    "SalaryCalculator",
    "ShippingCostCalculator",
    "ShippingQuote",
    "compute_input_fingerprint",
    "traced_engine",
]
