"""Salary structure and payroll run endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from attendease.api.dependencies import ADMIN_ROLES, AdminUser, CurrentUser, DbSession, OrganizationId
from attendease.api.schemas import (
    ApiResponse,
    ErrorResponse,
    PayrollRecordDetailResponse,
    PayrollRecordResponse,
    PayrollRecordStatusUpdate,
    PayrollRunCreate,
    PayrollRunDetailResponse,
    PayrollRunResponse,
    SalaryStructureCreate,
    SalaryStructureResponse,
    SalaryStructureUpdate,
)
from attendease.exceptions import ForbiddenError, NotFoundError
from attendease.models import PayrollRunStatus
from attendease.services import PayrollRunService, SalaryStructureService

router = APIRouter(prefix="/payroll", tags=["payroll"])


# ============================================================================
# Salary structures
# ============================================================================


@router.post(
    "/salary-structure",
    response_model=ApiResponse[SalaryStructureResponse],
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_salary_structure(
    db: DbSession,
    organization_id: OrganizationId,
    caller: AdminUser,
    payload: SalaryStructureCreate,
) -> ApiResponse[SalaryStructureResponse]:
    """Assign a salary structure, replacing the user's active one."""
    structure = await SalaryStructureService(db).create(
        organization_id=organization_id,
        user_id=payload.user_id,
        base_salary=payload.base_salary,
        allowances=[c.model_dump() for c in payload.allowances],
        deductions=[c.model_dump() for c in payload.deductions],
        effective_from=payload.effective_from,
        created_by=caller.user_id,
    )
    await db.commit()
    return ApiResponse(
        message="Salary structure created successfully",
        data=SalaryStructureResponse.model_validate(structure),
    )


@router.put(
    "/salary-structure/{user_id}",
    response_model=ApiResponse[SalaryStructureResponse],
    responses={404: {"model": ErrorResponse}},
)
async def update_salary_structure(
    db: DbSession,
    organization_id: OrganizationId,
    caller: AdminUser,
    user_id: Annotated[UUID, Path()],
    payload: SalaryStructureUpdate,
) -> ApiResponse[SalaryStructureResponse]:
    """Replace the active structure with a new version."""
    structure = await SalaryStructureService(db).update(
        organization_id=organization_id,
        user_id=user_id,
        updated_by=caller.user_id,
        base_salary=payload.base_salary,
        allowances=(
            [c.model_dump() for c in payload.allowances] if payload.allowances is not None else None
        ),
        deductions=(
            [c.model_dump() for c in payload.deductions] if payload.deductions is not None else None
        ),
        effective_from=payload.effective_from,
    )
    await db.commit()
    return ApiResponse(
        message="Salary structure updated successfully",
        data=SalaryStructureResponse.model_validate(structure),
    )


@router.get(
    "/salary-structure/{user_id}",
    response_model=ApiResponse[SalaryStructureResponse],
    responses={404: {"model": ErrorResponse}},
)
async def get_salary_structure(
    db: DbSession,
    organization_id: OrganizationId,
    caller: CurrentUser,
    user_id: Annotated[UUID, Path()],
) -> ApiResponse[SalaryStructureResponse]:
    """Active structure of a user; employees may only read their own."""
    if caller.user_id != user_id and not caller.has_role(*ADMIN_ROLES):
        raise ForbiddenError("You do not have permission to perform this action")

    structure = await SalaryStructureService(db).get_active(organization_id, user_id)
    if structure is None:
        raise NotFoundError("No active salary structure found for this user")
    return ApiResponse(data=SalaryStructureResponse.model_validate(structure))


@router.get(
    "/salary-structures",
    response_model=ApiResponse[list[SalaryStructureResponse]],
)
async def list_salary_structures(
    db: DbSession,
    organization_id: OrganizationId,
    caller: AdminUser,
    department: str | None = None,
    search: str | None = None,
) -> ApiResponse[list[SalaryStructureResponse]]:
    """Active structures, optionally filtered by department or search text."""
    structures = await SalaryStructureService(db).list_active(
        organization_id, department=department, search=search
    )
    return ApiResponse(data=[SalaryStructureResponse.model_validate(s) for s in structures])


# ============================================================================
# Payroll runs
# ============================================================================


@router.post(
    "/run",
    response_model=ApiResponse[PayrollRunResponse],
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_payroll_run(
    db: DbSession,
    organization_id: OrganizationId,
    caller: AdminUser,
    payload: PayrollRunCreate,
) -> ApiResponse[PayrollRunResponse]:
    """Open a draft run for a month."""
    run = await PayrollRunService(db).create_run(organization_id, payload.month, payload.year)
    await db.commit()
    return ApiResponse(
        message="Payroll run created successfully",
        data=PayrollRunResponse.model_validate(run),
    )


@router.post(
    "/run/{payroll_run_id}/process",
    response_model=ApiResponse[PayrollRunDetailResponse],
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def process_payroll_run(
    db: DbSession,
    organization_id: OrganizationId,
    caller: AdminUser,
    payroll_run_id: Annotated[UUID, Path()],
) -> ApiResponse[PayrollRunDetailResponse]:
    """Compute the run; on failure the run is left in draft."""
    run = await PayrollRunService(db).process(organization_id, payroll_run_id, caller.user_id)
    return ApiResponse(
        message="Payroll processed successfully",
        data=PayrollRunDetailResponse.model_validate(run),
    )


@router.post(
    "/run/{payroll_run_id}/cancel",
    response_model=ApiResponse[PayrollRunResponse],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def cancel_payroll_run(
    db: DbSession,
    organization_id: OrganizationId,
    caller: AdminUser,
    payroll_run_id: Annotated[UUID, Path()],
) -> ApiResponse[PayrollRunResponse]:
    """Cancel a draft run."""
    run = await PayrollRunService(db).cancel_run(organization_id, payroll_run_id)
    await db.commit()
    return ApiResponse(
        message="Payroll run cancelled",
        data=PayrollRunResponse.model_validate(run),
    )


@router.get(
    "/run/{payroll_run_id}",
    response_model=ApiResponse[PayrollRunDetailResponse],
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_run(
    db: DbSession,
    organization_id: OrganizationId,
    caller: AdminUser,
    payroll_run_id: Annotated[UUID, Path()],
) -> ApiResponse[PayrollRunDetailResponse]:
    """Run with all of its records."""
    run = await PayrollRunService(db).get_run(organization_id, payroll_run_id)
    return ApiResponse(data=PayrollRunDetailResponse.model_validate(run))


@router.get(
    "/runs",
    response_model=ApiResponse[list[PayrollRunResponse]],
)
async def list_payroll_runs(
    db: DbSession,
    organization_id: OrganizationId,
    caller: AdminUser,
    year: int | None = None,
    status_filter: Annotated[PayrollRunStatus | None, Query(alias="status")] = None,
) -> ApiResponse[list[PayrollRunResponse]]:
    """Runs of the organization, latest period first."""
    runs = await PayrollRunService(db).list_runs(organization_id, year=year, status=status_filter)
    return ApiResponse(data=[PayrollRunResponse.model_validate(r) for r in runs])


# ============================================================================
# Payroll records
# ============================================================================


@router.get(
    "/my-payslips",
    response_model=ApiResponse[list[PayrollRecordResponse]],
)
async def my_payslips(
    db: DbSession,
    organization_id: OrganizationId,
    caller: CurrentUser,
    year: int | None = None,
) -> ApiResponse[list[PayrollRecordResponse]]:
    """The caller's payroll records."""
    records = await PayrollRunService(db).my_payslips(organization_id, caller.user_id, year)
    return ApiResponse(data=[PayrollRecordResponse.model_validate(r) for r in records])


@router.get(
    "/records/{payroll_record_id}",
    response_model=ApiResponse[PayrollRecordDetailResponse],
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_payroll_record(
    db: DbSession,
    organization_id: OrganizationId,
    caller: CurrentUser,
    payroll_record_id: Annotated[UUID, Path()],
) -> ApiResponse[PayrollRecordDetailResponse]:
    """Single payroll record; employees may only read their own."""
    record = await PayrollRunService(db).get_record(organization_id, payroll_record_id)
    if record.user_id != caller.user_id and not caller.has_role(*ADMIN_ROLES):
        raise ForbiddenError("You do not have permission to view this payroll record")
    return ApiResponse(data=PayrollRecordDetailResponse.model_validate(record))


@router.patch(
    "/records/{payroll_record_id}/status",
    response_model=ApiResponse[PayrollRecordDetailResponse],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_payroll_record_status(
    db: DbSession,
    organization_id: OrganizationId,
    caller: AdminUser,
    payroll_record_id: Annotated[UUID, Path()],
    payload: PayrollRecordStatusUpdate,
) -> ApiResponse[PayrollRecordDetailResponse]:
    """Move a record through its payment lifecycle."""
    record = await PayrollRunService(db).update_record_status(
        organization_id, payroll_record_id, payload.status
    )
    await db.commit()
    return ApiResponse(
        message="Payroll record updated",
        data=PayrollRecordDetailResponse.model_validate(record),
    )
