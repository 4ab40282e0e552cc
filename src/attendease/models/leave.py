"""Leave request and leave balance models."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attendease.models.base import Base, TimestampMixin, enum_column

if TYPE_CHECKING:
    from attendease.models.organization import User


class LeaveType(str, Enum):
    """Leave categories; unpaid has no allocation."""

    SICK = "sick"
    CASUAL = "casual"
    VACATION = "vacation"
    UNPAID = "unpaid"


class LeaveStatus(str, Enum):
    """Leave request status values."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


# Leaves in these states block overlapping requests
ACTIVE_LEAVE_STATUSES = (LeaveStatus.PENDING, LeaveStatus.APPROVED)


class Leave(Base, TimestampMixin):
    """Leave request for an inclusive date range."""

    __tablename__ = "leave_request"

    leave_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    leave_type: Mapped[LeaveType] = mapped_column(enum_column(LeaveType), nullable=False)
    start_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    end_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    total_days: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False)
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[LeaveStatus] = mapped_column(
        enum_column(LeaveStatus), nullable=False, default=LeaveStatus.PENDING
    )
    reviewed_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="SET NULL"),
        nullable=True,
    )
    reviewed_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    review_notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="leave_dates_check"),
        CheckConstraint("total_days >= 0.5", name="leave_total_days_check"),
        Index("ix_leave_org_user_status", "organization_id", "user_id", "status"),
        Index("ix_leave_org_user_range", "organization_id", "user_id", "start_date", "end_date"),
    )

    # Relationships
    user: Mapped[User] = relationship(foreign_keys=[user_id])
    reviewer: Mapped[User | None] = relationship(foreign_keys=[reviewed_by])


class LeaveBalance(Base, TimestampMixin):
    """Per user/year leave ledger.

    ``*_remaining`` is always ``*_total - *_used``; it is recomputed by
    :meth:`recompute` on every mutation and never written independently.
    """

    __tablename__ = "leave_balance"

    leave_balance_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    sick_total: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False)
    sick_used: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False, default=Decimal("0"))
    sick_remaining: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False)
    casual_total: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False)
    casual_used: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False, default=Decimal("0"))
    casual_remaining: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False)
    vacation_total: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False)
    vacation_used: Mapped[Decimal] = mapped_column(
        Numeric(5, 1), nullable=False, default=Decimal("0")
    )
    vacation_remaining: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False)
    unpaid_used: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False, default=Decimal("0"))

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "user_id", "year", name="leave_balance_org_user_year_unique"
        ),
    )

    def recompute(self) -> None:
        """Recompute remaining = total - used for every allocated bucket."""
        self.sick_remaining = self.sick_total - self.sick_used
        self.casual_remaining = self.casual_total - self.casual_used
        self.vacation_remaining = self.vacation_total - self.vacation_used

    def remaining_for(self, leave_type: LeaveType) -> Decimal | None:
        """Remaining days for a bucket; None for unpaid (unlimited)."""
        if leave_type == LeaveType.UNPAID:
            return None
        return getattr(self, f"{leave_type.value}_remaining")

    def as_buckets(self) -> dict[str, dict[str, Decimal]]:
        """Nested view: {sickLeave: {total, used, remaining}, ..., unpaidLeave: {used}}."""
        buckets: dict[str, dict[str, Decimal]] = {}
        for kind in ("sick", "casual", "vacation"):
            buckets[f"{kind}Leave"] = {
                "total": getattr(self, f"{kind}_total"),
                "used": getattr(self, f"{kind}_used"),
                "remaining": getattr(self, f"{kind}_remaining"),
            }
        buckets["unpaidLeave"] = {"used": self.unpaid_used}
        return buckets
