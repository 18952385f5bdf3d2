"""
charges_engines.boxing -- Packaging batch material and labour cost.

Responsibility:
    Cost a packaging run: materials consumed per packed item times the
    batch size, plus labour hours at a flat rate, and the resulting cost
    per packed unit.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The batch state machine
    (``charges_kernel.domain.packaging_batch``) tracks physical progress
    separately; the ledger combines the two once a batch completes.

Invariants enforced:
    - material_cost = sum(quantity_per_item x cost_per_unit x batch_size).
    - total_cost = material_cost + labor_cost.
    - cost_per_unit_output = total_cost / batch_size, rounded half-up.
    - Materials carry ``cost_per_unit`` only; legacy field names are
      mapped at the persistence boundary, never here.

Failure modes:
    - InvalidBatchSizeError when batch_size <= 0.
    - InvalidInputError for non-integer batch sizes and negative
      quantities, costs, hours or rates.
"""

from __future__ import annotations

import time
from decimal import Decimal

from charges_engines.tracer import traced_engine
from charges_kernel.domain.costs import BoxingBreakdown, BoxingInput, MaterialCostLine
from charges_kernel.domain.values import ZERO, non_negative, round_money
from charges_kernel.exceptions import InvalidBatchSizeError, InvalidInputError
from charges_kernel.logging_config import get_logger

logger = get_logger("engines.boxing")


class BoxingCostCalculator:
    """Packaging batch cost calculator."""

    @traced_engine("boxing", "1.0", fingerprint_fields=("boxing_input",))
    def calculate(self, boxing_input: BoxingInput) -> BoxingBreakdown:
        t0 = time.monotonic()
        batch_size = boxing_input.batch_size
        logger.info("boxing_cost_started", extra={
            "batch_size": batch_size,
            "material_count": len(boxing_input.materials),
        })

        if isinstance(batch_size, bool) or not isinstance(batch_size, int):
            raise InvalidInputError("batch_size", batch_size, "must be an integer")
        if batch_size <= 0:
            logger.warning("boxing_invalid_batch_size", extra={"batch_size": batch_size})
            raise InvalidBatchSizeError(batch_size)

        size = Decimal(batch_size)
        lines: list[MaterialCostLine] = []
        for index, material in enumerate(boxing_input.materials):
            prefix = f"materials[{index}]"
            qty = non_negative(material.quantity_per_item, f"{prefix}.quantity_per_item")
            unit_cost = non_negative(material.cost_per_unit, f"{prefix}.cost_per_unit")
            total_quantity = qty * size
            lines.append(MaterialCostLine(
                material_id=material.material_id,
                quantity_per_item=qty,
                cost_per_unit=unit_cost,
                total_quantity=total_quantity,
                cost=round_money(total_quantity * unit_cost),
            ))

        material_cost = sum((line.cost for line in lines), ZERO)
        labor_cost = round_money(
            non_negative(boxing_input.labor_hours, "labor_hours")
            * non_negative(boxing_input.labor_rate, "labor_rate")
        )
        total_cost = material_cost + labor_cost
        cost_per_unit_output = round_money(total_cost / size)

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("boxing_cost_calculated", extra={
            "material_cost": str(material_cost),
            "labor_cost": str(labor_cost),
            "total_cost": str(total_cost),
            "cost_per_unit_output": str(cost_per_unit_output),
            "duration_ms": duration_ms,
        })

        return BoxingBreakdown(
            batch_size=batch_size,
            material_cost=material_cost,
            labor_cost=labor_cost,
            total_cost=total_cost,
            cost_per_unit_output=cost_per_unit_output,
            material_lines=tuple(lines),
        )
