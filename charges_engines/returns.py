"""
charges_engines.returns -- Customer return cost and fraud-risk assessment.

Responsibility:
    Price a customer return: refunds by item condition, per-item
    processing costs, the return method's shipping cost and the fees
    collected back from the customer.  Classify fraud risk from named
    risk factors and recommend whether to approve the return.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Every threshold and
    flat cost comes from ``ReturnsConstants``.

Invariants enforced:
    - refund_price = original_price x quantity x refund_rate(condition).
    - net_loss = processing costs + method shipping + administrative
      + refunds + shipping refund - (restocking fee + processing fee).
    - risk_level is high above ``high_risk_factor_threshold`` factors,
      medium above ``medium_risk_factor_threshold``, else low.

Failure modes:
    - InvalidInputError for an empty return, non-positive quantities,
      negative prices, or unknown condition / reason / method values.
"""

from __future__ import annotations

import time
from decimal import Decimal

from charges_config import ReturnsConstants, get_active_config
from charges_engines.tracer import traced_engine
from charges_kernel.domain.costs import (
    Resolution,
    ReturnCondition,
    ReturnItemBreakdown,
    ReturnMethod,
    ReturnReason,
    ReturnsBreakdown,
    ReturnsInput,
    RiskLevel,
)
from charges_kernel.domain.values import HUNDRED, ZERO, non_negative, round_money
from charges_kernel.exceptions import InvalidInputError
from charges_kernel.logging_config import get_logger

logger = get_logger("engines.returns")

RISK_CUSTOMER_REASON = "customer_reason"
RISK_HIGH_VALUE = "high_value"
RISK_POOR_CONDITION = "poor_condition"

COST_OPTIMIZATION_TIPS = (
    "Consider negotiating restocking fee",
    "Evaluate vendor claim potential",
    "Review return policy terms",
)


def _parse_enum(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidInputError(
            field, value, f"must be one of {[m.value for m in enum_cls]}"
        ) from None


class ReturnsCostCalculator:
    """Return cost and fraud-risk calculator."""

    def __init__(self, constants: ReturnsConstants | None = None):
        self._constants = constants

    @property
    def constants(self) -> ReturnsConstants:
        return self._constants or get_active_config().returns

    def refund_rate(self, condition: ReturnCondition | str) -> Decimal:
        condition = _parse_enum(ReturnCondition, condition, "condition")
        return self.constants.refund_rates[condition.value]

    def classify_risk(self, factor_count: int) -> RiskLevel:
        c = self.constants
        if factor_count > c.high_risk_factor_threshold:
            return RiskLevel.HIGH
        if factor_count > c.medium_risk_factor_threshold:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    @traced_engine("returns", "1.0", fingerprint_fields=("returns_input",))
    def calculate(self, returns_input: ReturnsInput) -> ReturnsBreakdown:
        t0 = time.monotonic()
        c = self.constants
        logger.info("returns_cost_started", extra={
            "item_count": len(returns_input.items),
            "reason": str(getattr(returns_input.reason, "value", returns_input.reason)),
            "method": str(getattr(returns_input.method, "value", returns_input.method)),
        })

        if not returns_input.items:
            raise InvalidInputError("items", returns_input.items, "a return needs at least one item")
        reason = _parse_enum(ReturnReason, returns_input.reason, "reason")
        method = _parse_enum(ReturnMethod, returns_input.method, "method")

        item_rows: list[ReturnItemBreakdown] = []
        conditions: list[ReturnCondition] = []
        for index, item in enumerate(returns_input.items):
            prefix = f"items[{index}]"
            if isinstance(item.quantity, bool) or not isinstance(item.quantity, int) \
                    or item.quantity <= 0:
                raise InvalidInputError(f"{prefix}.quantity", item.quantity, "must be a positive integer")
            price = non_negative(item.original_price, f"{prefix}.original_price")
            condition = _parse_enum(ReturnCondition, item.condition, f"{prefix}.condition")
            conditions.append(condition)
            rate = c.refund_rates[condition.value]

            item_value = price * item.quantity
            inspection = c.inspection_cost if returns_input.inspection_required else ZERO
            restocking = (
                round_money(item_value * c.restocking_cost_rate)
                if returns_input.apply_restocking_fee else ZERO
            )
            refurbishment = c.refurbishment_cost if returns_input.refurbishment_needed else ZERO
            disposal = c.disposal_cost if condition.value in c.disposal_conditions else ZERO

            item_rows.append(ReturnItemBreakdown(
                product_id=item.product_id,
                quantity=item.quantity,
                condition=condition,
                refund_rate=rate,
                item_value=item_value,
                refund_price=round_money(item_value * rate),
                inspection_cost=inspection,
                restocking_cost=restocking,
                refurbishment_cost=refurbishment,
                disposal_cost=disposal,
                processing_cost=inspection + restocking + refurbishment + disposal,
                condition_impact=(Decimal("1") - rate) * HUNDRED,
            ))

        total_return_value = sum((row.item_value for row in item_rows), ZERO)
        refund_amount = sum((row.refund_price for row in item_rows), ZERO)
        total_processing = sum((row.processing_cost for row in item_rows), ZERO)
        shipping_cost = c.return_method_costs[method.value]
        shipping_refund = c.shipping_refund if returns_input.include_shipping_refund else ZERO
        restocking_fee = (
            round_money(total_return_value * c.restocking_fee_rate)
            if returns_input.apply_restocking_fee else ZERO
        )
        processing_fee = c.processing_fee

        net_loss = (
            total_processing + shipping_cost + c.administrative_cost
            + refund_amount + shipping_refund
            - (restocking_fee + processing_fee)
        )
        vendor_claim = (
            round_money(total_return_value * c.vendor_claim_rate)
            if returns_input.vendor_claim_possible else ZERO
        )

        risk_factors: list[str] = []
        if reason == ReturnReason.CUSTOMER_CHANGED_MIND:
            risk_factors.append(RISK_CUSTOMER_REASON)
        if total_return_value > c.high_value_threshold:
            risk_factors.append(RISK_HIGH_VALUE)
        if any(cond.value in c.risky_conditions for cond in conditions):
            risk_factors.append(RISK_POOR_CONDITION)
        risk_level = self.classify_risk(len(risk_factors))

        approve_return = (
            risk_level != RiskLevel.HIGH and net_loss < c.approval_net_loss_ceiling
        )
        resolution = (
            Resolution.PARTIAL_REFUND
            if net_loss > c.partial_refund_threshold
            else Resolution.FULL_REFUND
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("returns_cost_calculated", extra={
            "total_return_value": str(total_return_value),
            "net_loss": str(net_loss),
            "risk_level": risk_level.value,
            "risk_factors": list(risk_factors),
            "approve_return": approve_return,
            "duration_ms": duration_ms,
        })

        return ReturnsBreakdown(
            total_return_value=total_return_value,
            refund_amount=refund_amount,
            total_processing_cost=total_processing,
            shipping_cost=shipping_cost,
            administrative_cost=c.administrative_cost,
            shipping_refund=shipping_refund,
            restocking_fee=restocking_fee,
            processing_fee=processing_fee,
            net_loss=net_loss,
            vendor_claim_potential=vendor_claim,
            risk_factors=tuple(risk_factors),
            risk_level=risk_level,
            approve_return=approve_return,
            suggested_resolution=resolution,
            items=tuple(item_rows),
            cost_optimization_tips=COST_OPTIMIZATION_TIPS,
        )
