"""Salary structure, payroll run and payroll record models."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attendease.models.base import Base, TimestampMixin, enum_column

if TYPE_CHECKING:
    from attendease.models.organization import User


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "draft"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PayrollRecordStatus(str, Enum):
    """Payment status of a payroll record."""

    PENDING = "pending"
    PAID = "paid"
    ON_HOLD = "on_hold"


# ===== Salary Structures =====


class SalaryStructure(Base, TimestampMixin):
    """Versioned compensation definition for one user.

    Rows are append-only: an update deactivates the current row and inserts
    a new one. At most one row per (organization, user) has is_active set.
    """

    __tablename__ = "salary_structure"

    salary_structure_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    base_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    # [{"name": str, "amount": "decimal string", "kind": "fixed"|"percentage"}]
    allowances: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    deductions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    effective_from: Mapped[dt.date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id"),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("base_salary >= 0", name="salary_structure_base_salary_check"),
        Index(
            "uq_salary_structure_active",
            "organization_id",
            "user_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index(
            "ix_salary_structure_org_user_effective",
            "organization_id",
            "user_id",
            "effective_from",
        ),
    )

    # Relationships
    user: Mapped[User] = relationship(foreign_keys=[user_id])


# ===== Payroll Runs =====


class PayrollRun(Base, TimestampMixin):
    """One payroll computation pass for an organization and month."""

    __tablename__ = "payroll_run"

    payroll_run_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[PayrollRunStatus] = mapped_column(
        enum_column(PayrollRunStatus), nullable=False, default=PayrollRunStatus.DRAFT
    )
    processed_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="SET NULL"),
        nullable=True,
    )
    processed_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    total_gross_salary: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    total_deductions: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    total_net_salary: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("organization_id", "month", "year", name="payroll_run_org_period_unique"),
        CheckConstraint("month BETWEEN 1 AND 12", name="payroll_run_month_check"),
        Index("ix_payroll_run_org_status", "organization_id", "status"),
    )

    # Relationships
    records: Mapped[list[PayrollRecord]] = relationship(
        back_populates="payroll_run",
        order_by="PayrollRecord.created_at",
    )


class PayrollRecord(Base, TimestampMixin):
    """Computed pay for one employee in one run.

    Salary figures and the allowance/deduction lists are snapshots taken at
    computation time; only the payment status fields change afterwards.
    """

    __tablename__ = "payroll_record"

    payroll_record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    working_days: Mapped[int] = mapped_column(Integer, nullable=False)
    days_worked: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False)
    leave_days: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False, default=Decimal("0"))
    absent_days: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False, default=Decimal("0"))
    base_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    allowances: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    deductions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    gross_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    net_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[PayrollRecordStatus] = mapped_column(
        enum_column(PayrollRecordStatus),
        nullable=False,
        default=PayrollRecordStatus.PENDING,
    )
    paid_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "user_id", name="payroll_record_run_user_unique"),
        Index("ix_payroll_record_org_user_period", "organization_id", "user_id", "year", "month"),
    )

    # Relationships
    payroll_run: Mapped[PayrollRun] = relationship(back_populates="records")
    user: Mapped[User] = relationship(foreign_keys=[user_id])
