"""Attendance endpoints."""

import base64
import binascii

from fastapi import APIRouter, status

from attendease.api.dependencies import CurrentUser, DbSession, OrganizationId, Storage
from attendease.api.schemas import ApiResponse, AttendanceResponse, CheckInRequest, ErrorResponse
from attendease.exceptions import ValidationError
from attendease.services import AttendanceService

router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.post(
    "/check-in",
    response_model=ApiResponse[AttendanceResponse],
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def check_in(
    db: DbSession,
    organization_id: OrganizationId,
    caller: CurrentUser,
    storage: Storage,
    payload: CheckInRequest | None = None,
) -> ApiResponse[AttendanceResponse]:
    """Check in for today."""
    photo = None
    if payload and payload.photo:
        try:
            photo = base64.b64decode(payload.photo, validate=True)
        except binascii.Error as exc:
            raise ValidationError("Photo must be base64 encoded") from exc

    attendance = await AttendanceService(db, storage=storage).check_in(
        organization_id,
        caller.user_id,
        photo=photo,
        notes=payload.notes if payload else None,
    )
    await db.commit()
    return ApiResponse(
        message="Checked in successfully",
        data=AttendanceResponse.model_validate(attendance),
    )


@router.post(
    "/check-out",
    response_model=ApiResponse[AttendanceResponse],
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def check_out(
    db: DbSession,
    organization_id: OrganizationId,
    caller: CurrentUser,
) -> ApiResponse[AttendanceResponse]:
    """Check out for today."""
    attendance = await AttendanceService(db).check_out(organization_id, caller.user_id)
    await db.commit()
    return ApiResponse(
        message="Checked out successfully",
        data=AttendanceResponse.model_validate(attendance),
    )


@router.get("/today", response_model=ApiResponse[AttendanceResponse])
async def today(
    db: DbSession,
    organization_id: OrganizationId,
    caller: CurrentUser,
) -> ApiResponse[AttendanceResponse]:
    """Today's attendance; data is null before check-in."""
    attendance = await AttendanceService(db).today(organization_id, caller.user_id)
    return ApiResponse(
        data=AttendanceResponse.model_validate(attendance) if attendance else None,
    )
