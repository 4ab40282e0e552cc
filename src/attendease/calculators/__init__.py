"""Salary calculation."""

from attendease.calculators.salary import (
    compute_employee_pay,
    gross_salary,
    prorate_base_salary,
    round_money,
    total_deductions,
)
from attendease.calculators.types import (
    ComponentKind,
    EmployeePay,
    EmployeePayInput,
    SalaryComponent,
)

__all__ = [
    "ComponentKind",
    "EmployeePay",
    "EmployeePayInput",
    "SalaryComponent",
    "compute_employee_pay",
    "gross_salary",
    "prorate_base_salary",
    "round_money",
    "total_deductions",
]
