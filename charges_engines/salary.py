"""
charges_engines.salary -- Pay-period salary cost for one employee.

Responsibility:
    Gross and net pay for a pay period from base salary, overtime,
    itemised allowances and deductions, plus attendance-derived figures
    (days and hours worked, effective hourly rate).

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Pay frequency defaults
    and the overtime multiplier come from ``SalaryConstants``.

Invariants enforced:
    - gross_amount = base_amount + overtime_amount + total_allowances.
    - net_amount = gross_amount - total_deductions, exactly.
    - hours_worked = work_hours - absent_days x (work_hours / work_days);
      effective_hourly_rate is 0 when no hours were worked.

Failure modes:
    - InvalidInputError for a negative base salary, negative hours,
      allowances or deductions, unknown allowance / deduction keys,
      non-positive work days / hours, or an unknown pay frequency.
"""

from __future__ import annotations

import time
from decimal import Decimal

from charges_config import SalaryConstants, get_active_config
from charges_engines.tracer import traced_engine
from charges_kernel.domain.costs import (
    ALLOWANCE_KEYS,
    DEDUCTION_KEYS,
    OvertimeResult,
    PayFrequency,
    SalaryBreakdown,
    SalaryInput,
)
from charges_kernel.domain.values import ZERO, non_negative, positive, round_money
from charges_kernel.exceptions import InvalidInputError
from charges_kernel.logging_config import get_logger

logger = get_logger("engines.salary")


def _itemise(values: dict, keys: tuple[str, ...], field: str) -> dict[str, Decimal]:
    unknown = set(values) - set(keys)
    if unknown:
        raise InvalidInputError(field, sorted(unknown), f"keys must be among {list(keys)}")
    return {key: non_negative(values.get(key, ZERO), f"{field}.{key}") for key in keys}


class SalaryCalculator:
    """Employee pay-period calculator."""

    def __init__(self, constants: SalaryConstants | None = None):
        self._constants = constants

    @property
    def constants(self) -> SalaryConstants:
        return self._constants or get_active_config().salary

    def calculate_overtime(
        self,
        base_salary,
        regular_hours,
        overtime_hours,
        multiplier=None,
    ) -> OvertimeResult:
        """Hourly rate, overtime rate and overtime pay from a period salary."""
        base = non_negative(base_salary, "base_salary")
        hours = positive(regular_hours, "regular_hours")
        extra = non_negative(overtime_hours, "overtime_hours")
        factor = positive(
            multiplier if multiplier is not None else self.constants.overtime_multiplier,
            "overtime_multiplier",
        )
        hourly_rate = base / hours
        overtime_rate = round_money(hourly_rate * factor)
        return OvertimeResult(
            hourly_rate=round_money(hourly_rate),
            overtime_rate=overtime_rate,
            overtime_amount=round_money(extra * overtime_rate),
        )

    @traced_engine("salary", "1.0", fingerprint_fields=("salary_input",))
    def calculate(self, salary_input: SalaryInput) -> SalaryBreakdown:
        t0 = time.monotonic()
        logger.info("salary_calculation_started", extra={
            "employee_id": salary_input.employee_id,
            "pay_frequency": str(getattr(salary_input.pay_frequency, "value", salary_input.pay_frequency)),
        })

        base = non_negative(salary_input.base_salary, "base_salary")
        try:
            frequency = PayFrequency(salary_input.pay_frequency)
        except ValueError:
            raise InvalidInputError(
                "pay_frequency",
                salary_input.pay_frequency,
                f"must be one of {[f.value for f in PayFrequency]}",
            ) from None

        defaults = self.constants.pay_frequencies[frequency.value]
        work_days = positive(
            salary_input.work_days if salary_input.work_days is not None else defaults.work_days,
            "work_days",
        )
        work_hours = positive(
            salary_input.work_hours if salary_input.work_hours is not None else defaults.work_hours,
            "work_hours",
        )
        absent_days = non_negative(salary_input.absent_days, "absent_days")
        non_negative(salary_input.late_days, "late_days")
        overtime_hours = non_negative(salary_input.overtime_hours, "overtime_hours")

        if salary_input.overtime_rate is not None:
            overtime_rate = non_negative(salary_input.overtime_rate, "overtime_rate")
        else:
            overtime_rate = self.calculate_overtime(
                base, work_hours, overtime_hours, salary_input.overtime_multiplier
            ).overtime_rate
        overtime_amount = round_money(overtime_hours * overtime_rate)

        allowances = _itemise(salary_input.allowances, ALLOWANCE_KEYS, "allowances")
        deductions = _itemise(salary_input.deductions, DEDUCTION_KEYS, "deductions")
        total_allowances = sum(allowances.values(), ZERO)
        total_deductions = sum(deductions.values(), ZERO)

        gross_amount = base + overtime_amount + total_allowances
        net_amount = gross_amount - total_deductions

        days_worked = work_days - absent_days
        hours_worked = work_hours - absent_days * (work_hours / work_days)
        effective_hourly_rate = (
            round_money(gross_amount / hours_worked) if hours_worked > 0 else ZERO
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("salary_calculated", extra={
            "employee_id": salary_input.employee_id,
            "gross_amount": str(gross_amount),
            "net_amount": str(net_amount),
            "hours_worked": str(hours_worked),
            "duration_ms": duration_ms,
        })

        return SalaryBreakdown(
            employee_id=salary_input.employee_id,
            pay_frequency=frequency,
            base_amount=base,
            overtime_rate=overtime_rate,
            overtime_amount=overtime_amount,
            allowances=allowances,
            deductions=deductions,
            total_allowances=total_allowances,
            total_deductions=total_deductions,
            gross_amount=gross_amount,
            net_amount=net_amount,
            work_days=work_days,
            work_hours=work_hours,
            days_worked=days_worked,
            hours_worked=hours_worked,
            effective_hourly_rate=effective_hourly_rate,
        )
