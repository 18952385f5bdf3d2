"""Tests for Decimal coercion, rounding, minor units and the error hierarchy."""

from decimal import Decimal

import pytest

from charges_kernel.domain.values import (
    ChargeCurrency,
    from_minor_units,
    non_negative,
    positive,
    round_money,
    to_decimal,
    to_minor_units,
)
from charges_kernel.exceptions import (
    BatchIncompleteError,
    ChargesKernelError,
    DivisionByZeroError,
    InvalidBatchSizeError,
    InvalidInputError,
    InvalidStateTransitionError,
)


class TestToDecimal:
    @pytest.mark.parametrize("value, expected", [
        (Decimal("1.50"), Decimal("1.50")),
        (3, Decimal("3")),
        ("2.25", Decimal("2.25")),
        (0.1, Decimal("0.1")),
    ])
    def test_accepted(self, value, expected):
        assert to_decimal(value, "amount") == expected

    @pytest.mark.parametrize("value", [True, "abc", None, [1], "NaN", "Infinity"])
    def test_rejected(self, value):
        with pytest.raises(InvalidInputError) as exc_info:
            to_decimal(value, "amount")
        assert exc_info.value.field == "amount"

    def test_sign_checks(self):
        assert non_negative("0", "x") == Decimal("0")
        with pytest.raises(InvalidInputError):
            non_negative("-0.01", "x")
        with pytest.raises(InvalidInputError):
            positive(0, "x")


class TestRounding:
    @pytest.mark.parametrize("value, expected", [
        ("2.005", "2.01"),
        ("2.004", "2.00"),
        ("-2.005", "-2.01"),
    ])
    def test_half_up(self, value, expected):
        assert round_money(Decimal(value)) == Decimal(expected)

    def test_places(self):
        assert round_money(Decimal("145.5"), 0) == Decimal("146")

    def test_minor_units(self):
        assert to_minor_units(Decimal("2300.005")) == 230001
        assert to_minor_units(Decimal("10"), ChargeCurrency.EUR) == 1000
        assert from_minor_units(230001) == Decimal("2300.01")

    def test_currency_parse(self):
        assert ChargeCurrency.parse("eur") == ChargeCurrency.EUR
        with pytest.raises(InvalidInputError):
            ChargeCurrency.parse("GBP")


class TestExceptionHierarchy:
    def test_batch_incomplete_is_transition_error(self):
        exc = BatchIncompleteError("b-1", "in_progress", "60.0")

        assert isinstance(exc, InvalidStateTransitionError)
        assert exc.code == "BATCH_INCOMPLETE"
        assert exc.requested_state == "completed"
        assert "60.0%" in str(exc)

    def test_invalid_batch_size_message(self):
        exc = InvalidBatchSizeError(0)

        assert isinstance(exc, DivisionByZeroError)
        assert exc.divisor == 0
        assert str(exc) == "Batch size must be positive, got 0"

    def test_all_carry_codes(self):
        assert isinstance(InvalidInputError("f", 1, "bad"), ChargesKernelError)
        assert InvalidInputError("f", 1, "bad").code == "INVALID_INPUT"
