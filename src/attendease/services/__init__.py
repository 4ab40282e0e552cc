"""Domain services."""

from attendease.services.attendance_service import AttendanceService, PhotoStorage
from attendease.services.calendar_service import CalendarService, month_bounds, weekdays_between
from attendease.services.leave_balance_service import LeaveBalanceLedger
from attendease.services.leave_service import LeaveService
from attendease.services.pagination import Page, paginate
from attendease.services.payroll_run_service import PayrollRunService
from attendease.services.salary_structure_service import SalaryStructureService
from attendease.services.state_machine import (
    LeaveStateMachine,
    PayrollRecordStateMachine,
    PayrollRunStateMachine,
)

__all__ = [
    "AttendanceService",
    "CalendarService",
    "LeaveBalanceLedger",
    "LeaveService",
    "LeaveStateMachine",
    "Page",
    "PayrollRecordStateMachine",
    "PayrollRunService",
    "PayrollRunStateMachine",
    "PhotoStorage",
    "SalaryStructureService",
    "month_bounds",
    "paginate",
    "weekdays_between",
]
