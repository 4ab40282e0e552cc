"""SQLAlchemy models."""

from attendease.models.attendance import WORKED_STATUSES, Attendance, AttendanceStatus
from attendease.models.base import Base, TimestampMixin
from attendease.models.leave import (
    ACTIVE_LEAVE_STATUSES,
    Leave,
    LeaveBalance,
    LeaveStatus,
    LeaveType,
)
from attendease.models.organization import Holiday, HolidayType, Organization, User, UserRole
from attendease.models.payroll import (
    PayrollRecord,
    PayrollRecordStatus,
    PayrollRun,
    PayrollRunStatus,
    SalaryStructure,
)

__all__ = [
    "ACTIVE_LEAVE_STATUSES",
    "Attendance",
    "AttendanceStatus",
    "Base",
    "Holiday",
    "HolidayType",
    "Leave",
    "LeaveBalance",
    "LeaveStatus",
    "LeaveType",
    "Organization",
    "PayrollRecord",
    "PayrollRecordStatus",
    "PayrollRun",
    "PayrollRunStatus",
    "SalaryStructure",
    "TimestampMixin",
    "User",
    "UserRole",
    "WORKED_STATUSES",
]
