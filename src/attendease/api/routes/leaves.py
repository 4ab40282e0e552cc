"""Leave request endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from attendease.api.dependencies import (
    HR_ROLES,
    CurrentUser,
    DbSession,
    HrUser,
    OrganizationId,
    Reviewer,
)
from attendease.api.schemas import (
    ApiResponse,
    ErrorResponse,
    LeaveBalanceResponse,
    LeaveCreate,
    LeaveDetailResponse,
    LeaveResponse,
    LeaveReview,
    PaginatedResponse,
    paginated,
)
from attendease.models import LeaveStatus, LeaveType, UserRole
from attendease.services import LeaveService

router = APIRouter(prefix="/leaves", tags=["leaves"])

PageNumber = Annotated[int, Query(ge=1)]
PageLimit = Annotated[int, Query(ge=1, le=100)]


@router.post(
    "/request",
    response_model=ApiResponse[LeaveResponse],
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def request_leave(
    db: DbSession,
    organization_id: OrganizationId,
    caller: CurrentUser,
    payload: LeaveCreate,
) -> ApiResponse[LeaveResponse]:
    """Submit a leave request for the caller."""
    leave = await LeaveService(db).request_leave(
        organization_id,
        caller.user_id,
        payload.leave_type,
        payload.start_date,
        payload.end_date,
        payload.reason,
        half_day=payload.half_day,
    )
    await db.commit()
    return ApiResponse(
        message="Leave request submitted successfully",
        data=LeaveResponse.model_validate(leave),
    )


@router.get("/my-leaves", response_model=PaginatedResponse[LeaveResponse])
async def my_leaves(
    db: DbSession,
    organization_id: OrganizationId,
    caller: CurrentUser,
    status_filter: Annotated[LeaveStatus | None, Query(alias="status")] = None,
    leave_type: Annotated[LeaveType | None, Query(alias="leaveType")] = None,
    start_from: Annotated[date | None, Query(alias="startDate")] = None,
    start_to: Annotated[date | None, Query(alias="endDate")] = None,
    page: PageNumber = 1,
    limit: PageLimit = 20,
) -> PaginatedResponse[LeaveResponse]:
    """The caller's own leave requests."""
    result = await LeaveService(db).my_leaves(
        organization_id,
        caller.user_id,
        status=status_filter,
        leave_type=leave_type,
        start_from=start_from,
        start_to=start_to,
        page=page,
        limit=limit,
    )
    return paginated(result, LeaveResponse)


@router.get("/my-balance", response_model=ApiResponse[LeaveBalanceResponse])
async def my_balance(
    db: DbSession,
    organization_id: OrganizationId,
    caller: CurrentUser,
    year: int | None = None,
) -> ApiResponse[LeaveBalanceResponse]:
    """The caller's balance; created with policy defaults on first access."""
    balance = await LeaveService(db).my_balance(organization_id, caller.user_id, year)
    await db.commit()
    return ApiResponse(data=LeaveBalanceResponse(year=balance.year, **balance.as_buckets()))


@router.get("/pending", response_model=PaginatedResponse[LeaveDetailResponse])
async def pending_leaves(
    db: DbSession,
    organization_id: OrganizationId,
    caller: Reviewer,
    page: PageNumber = 1,
    limit: PageLimit = 20,
) -> PaginatedResponse[LeaveDetailResponse]:
    """Requests awaiting review; supervisors see their direct reports only."""
    result = await LeaveService(db).pending_leaves(
        organization_id, caller.user_id, caller.role, page=page, limit=limit
    )
    return paginated(result, LeaveDetailResponse)


@router.get("/all", response_model=PaginatedResponse[LeaveDetailResponse])
async def all_leaves(
    db: DbSession,
    organization_id: OrganizationId,
    caller: HrUser,
    status_filter: Annotated[LeaveStatus | None, Query(alias="status")] = None,
    leave_type: Annotated[LeaveType | None, Query(alias="leaveType")] = None,
    user_id: Annotated[UUID | None, Query(alias="userId")] = None,
    department: str | None = None,
    start_from: Annotated[date | None, Query(alias="startDate")] = None,
    start_to: Annotated[date | None, Query(alias="endDate")] = None,
    page: PageNumber = 1,
    limit: PageLimit = 20,
) -> PaginatedResponse[LeaveDetailResponse]:
    """Every leave request in the organization."""
    result = await LeaveService(db).all_leaves(
        organization_id,
        status=status_filter,
        leave_type=leave_type,
        user_id=user_id,
        department=department,
        start_from=start_from,
        start_to=start_to,
        page=page,
        limit=limit,
    )
    return paginated(result, LeaveDetailResponse)


@router.get("/calendar", response_model=ApiResponse[list[LeaveDetailResponse]])
async def calendar_leaves(
    db: DbSession,
    organization_id: OrganizationId,
    caller: CurrentUser,
    month: Annotated[int, Query(ge=1, le=12)],
    year: int,
    user_id: Annotated[UUID | None, Query(alias="userId")] = None,
) -> ApiResponse[list[LeaveDetailResponse]]:
    """Approved leaves overlapping a month, scoped by the caller's role."""
    supervisor_id = None
    if caller.has_role(*HR_ROLES):
        scoped_user = user_id
    elif caller.role == UserRole.SUPERVISOR:
        scoped_user = None
        supervisor_id = caller.user_id
    else:
        scoped_user = caller.user_id

    leaves = await LeaveService(db).calendar_leaves(
        organization_id, month, year, user_id=scoped_user, supervisor_id=supervisor_id
    )
    return ApiResponse(data=[LeaveDetailResponse.model_validate(leave) for leave in leaves])


@router.patch(
    "/{leave_id}/approve",
    response_model=ApiResponse[LeaveResponse],
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
async def approve_leave(
    db: DbSession,
    organization_id: OrganizationId,
    caller: Reviewer,
    leave_id: Annotated[UUID, Path()],
    payload: LeaveReview | None = None,
) -> ApiResponse[LeaveResponse]:
    """Approve a pending request."""
    leave = await LeaveService(db).approve_leave(
        organization_id,
        leave_id,
        caller.user_id,
        notes=payload.notes if payload else None,
        reviewer_role=caller.role,
    )
    await db.commit()
    return ApiResponse(
        message="Leave request approved",
        data=LeaveResponse.model_validate(leave),
    )


@router.patch(
    "/{leave_id}/reject",
    response_model=ApiResponse[LeaveResponse],
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
async def reject_leave(
    db: DbSession,
    organization_id: OrganizationId,
    caller: Reviewer,
    leave_id: Annotated[UUID, Path()],
    payload: LeaveReview,
) -> ApiResponse[LeaveResponse]:
    """Reject a pending request; notes are required."""
    leave = await LeaveService(db).reject_leave(
        organization_id,
        leave_id,
        caller.user_id,
        payload.notes,
        reviewer_role=caller.role,
    )
    await db.commit()
    return ApiResponse(
        message="Leave request rejected",
        data=LeaveResponse.model_validate(leave),
    )


@router.patch(
    "/{leave_id}/cancel",
    response_model=ApiResponse[LeaveResponse],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def cancel_leave(
    db: DbSession,
    organization_id: OrganizationId,
    caller: CurrentUser,
    leave_id: Annotated[UUID, Path()],
) -> ApiResponse[LeaveResponse]:
    """Cancel one of the caller's pending requests."""
    leave = await LeaveService(db).cancel_leave(organization_id, leave_id, caller.user_id)
    await db.commit()
    return ApiResponse(
        message="Leave request cancelled",
        data=LeaveResponse.model_validate(leave),
    )
