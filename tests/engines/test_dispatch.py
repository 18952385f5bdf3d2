"""Tests for CostDispatcher routing of calculator inputs to charge details."""

from decimal import Decimal

import pytest

from charges_engines.dispatch import INPUT_TYPES, CostDispatcher, calculate_generic
from charges_engines.exchange import ExchangeRateTable
from charges_kernel.domain.charge import (
    DETAIL_TYPES,
    BoxingDetail,
    ChargeType,
    ExchangeDetail,
    GenericDetail,
    ReturnsDetail,
    SalaryDetail,
    ShippingDetail,
)
from charges_kernel.domain.costs import (
    BoxingInput,
    BoxingMaterial,
    ExchangeInput,
    GenericInput,
    PackageDimensions,
    ReturnCondition,
    ReturnItem,
    ReturnReason,
    ReturnsInput,
    SalaryInput,
    ShippingInput,
    ShippingRate,
)
from charges_kernel.exceptions import InvalidInputError

RATE = ShippingRate("yalidine", "express", Decimal("500"), Decimal("150"), Decimal("800"))


class TestRegistry:
    def test_every_charge_type_has_an_input_type(self):
        assert set(INPUT_TYPES.values()) == set(ChargeType)

    def test_every_charge_type_has_a_detail(self):
        assert set(DETAIL_TYPES) == set(ChargeType)

    def test_unknown_input_rejected(self):
        with pytest.raises(InvalidInputError) as exc_info:
            CostDispatcher.charge_type_of({"amount": 1})
        assert exc_info.value.value == "dict"


class TestBuildDetail:
    def setup_method(self):
        self.dispatcher = CostDispatcher(
            rate_table=ExchangeRateTable({("EUR", "DZD"): Decimal("145.5")})
        )

    def test_shipping(self):
        detail = self.dispatcher.build_detail(ShippingInput(
            "ALG", "ORN", Decimal("10"),
            PackageDimensions(Decimal("40"), Decimal("30"), Decimal("20")),
            rate=RATE,
        ))
        assert isinstance(detail, ShippingDetail)
        assert detail.type == ChargeType.SHIPPING
        assert detail.breakdown.total_cost == Decimal("2000.00")

    def test_boxing(self):
        detail = self.dispatcher.build_detail(BoxingInput(
            10, (BoxingMaterial("box", Decimal("1"), Decimal("50")),), Decimal("1"), Decimal("100"),
        ))
        assert isinstance(detail, BoxingDetail)
        assert detail.breakdown.total_cost == Decimal("600.00")

    def test_salary(self):
        detail = self.dispatcher.build_detail(SalaryInput("emp-1", Decimal("88000")))
        assert isinstance(detail, SalaryDetail)
        assert detail.breakdown.total_cost == Decimal("88000")

    def test_exchange_uses_rate_table(self):
        detail = self.dispatcher.build_detail(ExchangeInput("EUR", "DZD", Decimal("100")))
        assert isinstance(detail, ExchangeDetail)
        assert detail.breakdown.target_amount == Decimal("14550.00")
        assert detail.breakdown.total_cost == Decimal("100.00")

    def test_returns(self):
        detail = self.dispatcher.build_detail(ReturnsInput(
            (ReturnItem("sku", 1, Decimal("1000"), ReturnCondition.NEW),),
            ReturnReason.WRONG_ITEM,
        ))
        assert isinstance(detail, ReturnsDetail)
        assert detail.type == ChargeType.RETURNS

    def test_generic(self):
        detail = self.dispatcher.build_detail(GenericInput(Decimal("1234.567")))
        assert isinstance(detail, GenericDetail)
        assert detail.breakdown.total_cost == Decimal("1234.57")

    def test_detail_keeps_input(self):
        charge_input = GenericInput(Decimal("10"))
        assert self.dispatcher.build_detail(charge_input).input is charge_input

    def test_calculator_errors_propagate(self):
        with pytest.raises(InvalidInputError):
            self.dispatcher.build_detail(GenericInput(Decimal("-1")))


class TestGeneric:
    def test_zero_amount_allowed(self):
        assert calculate_generic(GenericInput(Decimal("0"))).total_cost == Decimal("0.00")
