"""Type definitions for salary calculation."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any


class ComponentKind(str, Enum):
    """How a salary component amount is applied."""

    FIXED = "fixed"
    PERCENTAGE = "percentage"


@dataclass(frozen=True)
class SalaryComponent:
    """A named allowance or deduction.

    For percentage components ``amount`` is the percent (10 means 10%).
    Allowances are a percentage of the effective base salary, deductions a
    percentage of gross salary.
    """

    name: str
    amount: Decimal
    kind: ComponentKind = ComponentKind.FIXED

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"Component '{self.name}' amount must not be negative")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SalaryComponent:
        """Build from the stored JSON shape."""
        return cls(
            name=str(data["name"]),
            amount=Decimal(str(data["amount"])),
            kind=ComponentKind(data.get("kind", ComponentKind.FIXED.value)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Stored JSON shape; amounts kept as strings to avoid float drift."""
        return {"name": self.name, "amount": str(self.amount), "kind": self.kind.value}

    def apply_to(self, basis: Decimal) -> Decimal:
        """Contribution of this component against ``basis``."""
        if self.kind == ComponentKind.PERCENTAGE:
            return basis * self.amount / Decimal("100")
        return self.amount


@dataclass
class EmployeePayInput:
    """Everything needed to compute one employee's pay for a period."""

    base_salary: Decimal
    working_days: int
    attendance_days: Decimal
    leave_days: Decimal
    allowances: list[SalaryComponent] = field(default_factory=list)
    deductions: list[SalaryComponent] = field(default_factory=list)


@dataclass(frozen=True)
class EmployeePay:
    """Result of computing one employee's pay."""

    working_days: int
    days_worked: Decimal
    leave_days: Decimal
    absent_days: Decimal
    effective_base_salary: Decimal
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal
