"""Tests for the pay-period salary calculator."""

from decimal import Decimal

import pytest

from charges_config import SalaryConstants
from charges_engines.salary import SalaryCalculator
from charges_kernel.domain.costs import ALLOWANCE_KEYS, DEDUCTION_KEYS, PayFrequency, SalaryInput
from charges_kernel.exceptions import InvalidInputError


def _salary(**overrides):
    fields = dict(
        employee_id="emp-7",
        base_salary=Decimal("176000"),
        overtime_hours=Decimal("10"),
        allowances={"transport": Decimal("5000"), "meal": Decimal("3000")},
        deductions={"social_security": Decimal("9000"), "tax": Decimal("10000")},
    )
    fields.update(overrides)
    return SalaryInput(**fields)


class TestSalaryCalculation:
    def setup_method(self):
        self.calculator = SalaryCalculator()

    def test_monthly_with_overtime(self):
        result = self.calculator.calculate(_salary())

        assert result.pay_frequency == PayFrequency.MONTHLY
        assert result.base_amount == Decimal("176000")
        assert result.overtime_rate == Decimal("1500.00")
        assert result.overtime_amount == Decimal("15000.00")
        assert result.total_allowances == Decimal("8000")
        assert result.total_deductions == Decimal("19000")
        assert result.gross_amount == Decimal("199000.00")
        assert result.net_amount == Decimal("180000.00")
        assert result.effective_hourly_rate == Decimal("1130.68")
        assert result.total_cost == result.gross_amount

    def test_allowances_and_deductions_itemised(self):
        result = self.calculator.calculate(_salary())

        assert set(result.allowances) == set(ALLOWANCE_KEYS)
        assert set(result.deductions) == set(DEDUCTION_KEYS)
        assert result.allowances["transport"] == Decimal("5000")
        assert result.allowances["housing"] == Decimal("0")
        assert result.deductions["tax"] == Decimal("10000")

    def test_frequency_defaults(self):
        result = self.calculator.calculate(_salary())
        assert result.work_days == Decimal("22")
        assert result.work_hours == Decimal("176")

    @pytest.mark.parametrize("frequency, days, hours", [
        (PayFrequency.WEEKLY, "5", "40"),
        (PayFrequency.BIWEEKLY, "10", "80"),
        (PayFrequency.QUARTERLY, "66", "528"),
    ])
    def test_other_frequencies(self, frequency, days, hours):
        result = self.calculator.calculate(_salary(pay_frequency=frequency))
        assert result.work_days == Decimal(days)
        assert result.work_hours == Decimal(hours)

    def test_absences_reduce_hours_worked(self):
        result = self.calculator.calculate(_salary(absent_days=Decimal("2")))

        assert result.days_worked == Decimal("20")
        assert result.hours_worked == Decimal("160")
        assert result.effective_hourly_rate == Decimal("1243.75")

    def test_absent_whole_period(self):
        result = self.calculator.calculate(_salary(absent_days=Decimal("22")))

        assert result.hours_worked == Decimal("0")
        assert result.effective_hourly_rate == Decimal("0")

    def test_explicit_overtime_rate(self):
        result = self.calculator.calculate(_salary(overtime_rate=Decimal("2000")))

        assert result.overtime_rate == Decimal("2000")
        assert result.overtime_amount == Decimal("20000.00")

    def test_custom_overtime_multiplier(self):
        result = self.calculator.calculate(_salary(overtime_multiplier=Decimal("2")))
        assert result.overtime_rate == Decimal("2000.00")

    def test_configured_multiplier(self):
        calculator = SalaryCalculator(SalaryConstants(overtime_multiplier=Decimal("1.25")))
        assert calculator.calculate(_salary()).overtime_rate == Decimal("1250.00")

    def test_net_is_exact_difference(self):
        result = self.calculator.calculate(_salary(
            base_salary=Decimal("123456.78"),
            overtime_hours=Decimal("3.5"),
        ))
        assert result.net_amount == result.gross_amount - result.total_deductions


class TestOvertime:
    def test_calculate_overtime(self):
        result = SalaryCalculator().calculate_overtime(
            Decimal("176000"), Decimal("176"), Decimal("10")
        )

        assert result.hourly_rate == Decimal("1000.00")
        assert result.overtime_rate == Decimal("1500.00")
        assert result.overtime_amount == Decimal("15000.00")

    def test_zero_regular_hours_rejected(self):
        with pytest.raises(InvalidInputError):
            SalaryCalculator().calculate_overtime(Decimal("1000"), Decimal("0"), Decimal("1"))


class TestSalaryValidation:
    def setup_method(self):
        self.calculator = SalaryCalculator()

    def test_unknown_allowance_key(self):
        with pytest.raises(InvalidInputError) as exc_info:
            self.calculator.calculate(_salary(allowances={"yacht": Decimal("1")}))
        assert exc_info.value.field == "allowances"

    def test_unknown_deduction_key(self):
        with pytest.raises(InvalidInputError):
            self.calculator.calculate(_salary(deductions={"fine": Decimal("1")}))

    def test_negative_allowance(self):
        with pytest.raises(InvalidInputError) as exc_info:
            self.calculator.calculate(_salary(allowances={"meal": Decimal("-1")}))
        assert exc_info.value.field == "allowances.meal"

    def test_negative_base_salary(self):
        with pytest.raises(InvalidInputError):
            self.calculator.calculate(_salary(base_salary=Decimal("-1")))

    def test_unknown_pay_frequency(self):
        with pytest.raises(InvalidInputError) as exc_info:
            self.calculator.calculate(_salary(pay_frequency="daily"))
        assert exc_info.value.field == "pay_frequency"

    def test_zero_work_days(self):
        with pytest.raises(InvalidInputError):
            self.calculator.calculate(_salary(work_days=Decimal("0")))

    def test_negative_overtime_hours(self):
        with pytest.raises(InvalidInputError):
            self.calculator.calculate(_salary(overtime_hours=Decimal("-2")))
