"""Organization (tenant), user and holiday models."""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from attendease.models.base import Base, TimestampMixin, enum_column


class UserRole(str, Enum):
    """Role hierarchy, highest first."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    HR = "hr"
    SUPERVISOR = "supervisor"
    EMPLOYEE = "employee"


class HolidayType(str, Enum):
    """Holiday categories."""

    NATIONAL = "national"
    COMPANY = "company"
    OPTIONAL = "optional"


class Organization(Base, TimestampMixin):
    """Multi-tenant container."""

    __tablename__ = "organization"

    organization_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    # "HH:MM"; falls back to settings when unset
    work_start_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    # {"sick": int, "casual": int, "vacation": int}
    leave_policy: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)


class User(Base, TimestampMixin):
    """Employee account within an organization.

    Authentication data lives with the identity provider; this is the
    projection the HR core needs.
    """

    __tablename__ = "app_user"

    user_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        enum_column(UserRole), nullable=False, default=UserRole.EMPLOYEE
    )
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    supervisor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="SET NULL"),
        nullable=True,
    )
    employee_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("organization_id", "email", name="app_user_org_email_unique"),
        Index("ix_app_user_org_supervisor", "organization_id", "supervisor_id"),
        Index("ix_app_user_org_department", "organization_id", "department"),
    )

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.last_name}"


class Holiday(Base, TimestampMixin):
    """Organization holiday consumed by the working-day calendar."""

    __tablename__ = "holiday"

    holiday_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    type: Mapped[HolidayType] = mapped_column(
        enum_column(HolidayType), nullable=False, default=HolidayType.COMPANY
    )
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (Index("ix_holiday_org_date", "organization_id", "date"),)
