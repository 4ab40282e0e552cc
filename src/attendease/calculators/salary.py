"""Salary arithmetic: proration, gross, deductions and net.

All amounts are Decimal. Gross and total deductions are rounded to cents
with ROUND_HALF_UP; net is their difference and so is exact.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from attendease.calculators.types import EmployeePay, EmployeePayInput, SalaryComponent

CENTS = Decimal("0.01")
ZERO = Decimal("0")


def round_money(amount: Decimal) -> Decimal:
    """Round to 2 decimal places, half up."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def prorate_base_salary(
    base_salary: Decimal,
    working_days: int,
    days_worked: Decimal,
) -> Decimal:
    """Scale base salary by days worked when the employee was absent.

    No proration happens when there is no absence, which includes every
    period with zero working days.
    """
    if working_days <= 0:
        return base_salary
    absent_days = Decimal(working_days) - days_worked
    if absent_days <= 0:
        return base_salary
    return base_salary / Decimal(working_days) * days_worked


def gross_salary(effective_base: Decimal, allowances: Iterable[SalaryComponent]) -> Decimal:
    """Effective base plus allowances (percentages of the effective base)."""
    gross = effective_base
    for allowance in allowances:
        gross += allowance.apply_to(effective_base)
    return round_money(gross)


def total_deductions(gross: Decimal, deductions: Iterable[SalaryComponent]) -> Decimal:
    """Sum of deductions (percentages of gross)."""
    total = ZERO
    for deduction in deductions:
        total += deduction.apply_to(gross)
    return round_money(total)


def compute_employee_pay(pay_input: EmployeePayInput) -> EmployeePay:
    """Compute pay for one employee and period."""
    days_worked = pay_input.attendance_days + pay_input.leave_days
    # Leave that spans non-working days can push days worked past the
    # calendar; absence never goes below zero.
    absent_days = max(Decimal(pay_input.working_days) - days_worked, ZERO)

    effective_base = prorate_base_salary(
        pay_input.base_salary, pay_input.working_days, days_worked
    )
    gross = gross_salary(effective_base, pay_input.allowances)
    deductions = total_deductions(gross, pay_input.deductions)

    return EmployeePay(
        working_days=pay_input.working_days,
        days_worked=days_worked,
        leave_days=pay_input.leave_days,
        absent_days=absent_days,
        effective_base_salary=round_money(effective_base),
        gross_salary=gross,
        total_deductions=deductions,
        net_salary=gross - deductions,
    )
