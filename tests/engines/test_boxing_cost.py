"""Tests for the packaging batch cost calculator."""

from decimal import Decimal

import pytest

from charges_engines.boxing import BoxingCostCalculator
from charges_kernel.domain.costs import BoxingInput, BoxingMaterial
from charges_kernel.exceptions import (
    DivisionByZeroError,
    InvalidBatchSizeError,
    InvalidInputError,
)

BOX = BoxingMaterial("box-m", Decimal("1"), Decimal("120"), name="Carton M")
TAPE = BoxingMaterial("tape", Decimal("0.5"), Decimal("40"))


def _batch(batch_size=100, materials=(BOX, TAPE), hours="8", rate="1000"):
    return BoxingInput(
        batch_size=batch_size,
        materials=materials,
        labor_hours=Decimal(hours),
        labor_rate=Decimal(rate),
    )


class TestBoxingCost:
    def setup_method(self):
        self.calculator = BoxingCostCalculator()

    def test_material_and_labor_totals(self):
        result = self.calculator.calculate(_batch())

        assert result.batch_size == 100
        assert result.material_cost == Decimal("14000.00")
        assert result.labor_cost == Decimal("8000.00")
        assert result.total_cost == Decimal("22000.00")
        assert result.cost_per_unit_output == Decimal("220.00")

    def test_single_material_batch(self):
        result = self.calculator.calculate(_batch(
            materials=(BoxingMaterial("mailer", Decimal("2"), Decimal("50")),),
            rate="1500",
        ))

        assert result.material_cost == Decimal("10000.00")
        assert result.labor_cost == Decimal("12000.00")
        assert result.total_cost == Decimal("22000.00")
        assert result.cost_per_unit_output == Decimal("220.00")

    def test_material_lines(self):
        result = self.calculator.calculate(_batch())

        box_line, tape_line = result.material_lines
        assert box_line.material_id == "box-m"
        assert box_line.total_quantity == Decimal("100")
        assert box_line.cost == Decimal("12000.00")
        assert tape_line.total_quantity == Decimal("50.0")
        assert tape_line.cost == Decimal("2000.00")

    def test_no_materials_is_labor_only(self):
        result = self.calculator.calculate(_batch(materials=()))

        assert result.material_cost == Decimal("0")
        assert result.total_cost == Decimal("8000.00")

    def test_cost_per_unit_rounded_half_up(self):
        result = self.calculator.calculate(
            _batch(batch_size=3, materials=(), hours="1", rate="100")
        )
        # 100 / 3 = 33.333...
        assert result.cost_per_unit_output == Decimal("33.33")

        result = self.calculator.calculate(
            _batch(batch_size=8, materials=(), hours="1", rate="0.2")
        )
        # 0.20 / 8 = 0.025
        assert result.cost_per_unit_output == Decimal("0.03")


class TestBoxingValidation:
    def setup_method(self):
        self.calculator = BoxingCostCalculator()

    @pytest.mark.parametrize("size", [0, -5])
    def test_non_positive_batch_size(self, size):
        with pytest.raises(InvalidBatchSizeError) as exc_info:
            self.calculator.calculate(_batch(batch_size=size))
        assert exc_info.value.code == "INVALID_BATCH_SIZE"
        assert exc_info.value.batch_size == size

    def test_batch_size_error_is_division_by_zero(self):
        with pytest.raises(DivisionByZeroError):
            self.calculator.calculate(_batch(batch_size=0))

    @pytest.mark.parametrize("size", ["100", 2.5, True])
    def test_non_integer_batch_size(self, size):
        with pytest.raises(InvalidInputError) as exc_info:
            self.calculator.calculate(_batch(batch_size=size))
        assert exc_info.value.field == "batch_size"

    def test_negative_material_cost(self):
        bad = BoxingMaterial("bad", Decimal("1"), Decimal("-1"))
        with pytest.raises(InvalidInputError) as exc_info:
            self.calculator.calculate(_batch(materials=(bad,)))
        assert exc_info.value.field == "materials[0].cost_per_unit"

    def test_negative_labor_hours(self):
        with pytest.raises(InvalidInputError):
            self.calculator.calculate(_batch(hours="-1"))
