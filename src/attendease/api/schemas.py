"""Pydantic schemas for API request/response models.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from attendease.calculators import ComponentKind
from attendease.models import (
    AttendanceStatus,
    LeaveStatus,
    LeaveType,
    PayrollRecordStatus,
    PayrollRunStatus,
)
from attendease.models.base import utcnow
from attendease.services.pagination import Page

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base schema with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============================================================================
# Envelope
# ============================================================================


class ApiResponse(CamelModel, Generic[T]):
    """Envelope shared by every endpoint."""

    success: bool = True
    message: str | None = None
    data: T | None = None
    error: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)


class Pagination(CamelModel):
    """Pagination block of list responses."""

    total: int
    page: int
    limit: int
    pages: int


class PaginatedResponse(ApiResponse[list[T]], Generic[T]):
    """Envelope for paginated list endpoints."""

    pagination: Pagination


def paginated(page: Page, schema: type[BaseModel]) -> PaginatedResponse:
    """Wrap a service page in the list envelope."""
    return PaginatedResponse[schema](
        data=[schema.model_validate(item) for item in page.items],
        pagination=Pagination(
            total=page.total, page=page.page, limit=page.limit, pages=page.pages
        ),
    )


class ErrorResponse(ApiResponse[None]):
    """Error envelope (documentation only)."""

    success: bool = False


# ============================================================================
# Shared
# ============================================================================


class HealthData(CamelModel):
    """Payload of the health probes."""

    status: str
    database: str | None = None
    uptime: float


class UserSummary(CamelModel):
    """User projection joined into responses."""

    user_id: UUID
    first_name: str
    last_name: str
    email: str
    employee_id: str | None = None
    department: str | None = None


# ============================================================================
# Salary structure schemas
# ============================================================================


class SalaryComponentSchema(CamelModel):
    """Allowance or deduction."""

    name: str = Field(min_length=1, max_length=100)
    amount: Decimal = Field(ge=0)
    kind: ComponentKind = ComponentKind.FIXED


class SalaryStructureCreate(CamelModel):
    """Schema for assigning a salary structure."""

    user_id: UUID
    base_salary: Decimal
    allowances: list[SalaryComponentSchema] = Field(default_factory=list)
    deductions: list[SalaryComponentSchema] = Field(default_factory=list)
    effective_from: date | None = None


class SalaryStructureUpdate(CamelModel):
    """Schema for replacing the active structure; omitted fields carry over."""

    base_salary: Decimal | None = None
    allowances: list[SalaryComponentSchema] | None = None
    deductions: list[SalaryComponentSchema] | None = None
    effective_from: date | None = None


class SalaryStructureResponse(CamelModel):
    """Schema for salary structure response."""

    salary_structure_id: UUID
    organization_id: UUID
    user_id: UUID
    base_salary: Decimal
    allowances: list[SalaryComponentSchema]
    deductions: list[SalaryComponentSchema]
    effective_from: date
    is_active: bool
    created_by: UUID
    created_at: datetime
    user: UserSummary | None = None


# ============================================================================
# Payroll schemas
# ============================================================================


class PayrollRunCreate(CamelModel):
    """Schema for opening a payroll run."""

    month: int = Field(ge=1, le=12)
    year: int


class PayrollRecordResponse(CamelModel):
    """Schema for a payroll record (payslip)."""

    payroll_record_id: UUID
    payroll_run_id: UUID
    user_id: UUID
    month: int
    year: int
    working_days: int
    days_worked: Decimal
    leave_days: Decimal
    absent_days: Decimal
    base_salary: Decimal
    allowances: list[SalaryComponentSchema]
    deductions: list[SalaryComponentSchema]
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    status: PayrollRecordStatus
    paid_at: datetime | None = None
    created_at: datetime


class PayrollRecordDetailResponse(PayrollRecordResponse):
    """Payroll record with its user."""

    user: UserSummary | None = None


class PayrollRecordStatusUpdate(CamelModel):
    """Schema for changing a record's payment status."""

    status: PayrollRecordStatus


class PayrollRunResponse(CamelModel):
    """Schema for payroll run response."""

    payroll_run_id: UUID
    organization_id: UUID
    month: int
    year: int
    status: PayrollRunStatus
    processed_by: UUID | None = None
    processed_at: datetime | None = None
    total_gross_salary: Decimal
    total_deductions: Decimal
    total_net_salary: Decimal
    employee_count: int
    created_at: datetime
    updated_at: datetime


class PayrollRunDetailResponse(PayrollRunResponse):
    """Payroll run with its records."""

    records: list[PayrollRecordDetailResponse] = Field(default_factory=list)


# ============================================================================
# Leave schemas
# ============================================================================


class LeaveCreate(CamelModel):
    """Schema for requesting leave."""

    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str = Field(min_length=1, max_length=500)
    half_day: bool = False


class LeaveReview(CamelModel):
    """Schema for approving or rejecting leave."""

    notes: str | None = Field(default=None, max_length=500)


class LeaveResponse(CamelModel):
    """Schema for leave response."""

    leave_id: UUID
    organization_id: UUID
    user_id: UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    total_days: Decimal
    reason: str
    status: LeaveStatus
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    created_at: datetime


class LeaveDetailResponse(LeaveResponse):
    """Leave with the requesting user."""

    user: UserSummary | None = None


class LeaveBucket(CamelModel):
    """Allocated leave type."""

    total: Decimal
    used: Decimal
    remaining: Decimal


class UnpaidLeaveBucket(CamelModel):
    """Unpaid leave has no allocation."""

    used: Decimal


class LeaveBalanceResponse(CamelModel):
    """Schema for a user's yearly balance."""

    year: int
    sick_leave: LeaveBucket
    casual_leave: LeaveBucket
    vacation_leave: LeaveBucket
    unpaid_leave: UnpaidLeaveBucket


# ============================================================================
# Attendance schemas
# ============================================================================


class CheckInRequest(CamelModel):
    """Schema for checking in; photo is base64 encoded."""

    notes: str | None = Field(default=None, max_length=500)
    photo: str | None = None


class AttendanceResponse(CamelModel):
    """Schema for attendance response."""

    attendance_id: UUID
    user_id: UUID
    date: date
    check_in: datetime | None = None
    check_out: datetime | None = None
    status: AttendanceStatus
    working_hours: Decimal | None = None
    notes: str | None = None
    is_approved: bool
    photo_url: str | None = None
