"""Attendance check-in/out and leave synchronization."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.config import Settings, get_settings
from attendease.database import flush_or_conflict
from attendease.events import LeaveApproved
from attendease.exceptions import ConflictError, NotFoundError, ValidationError
from attendease.models import WORKED_STATUSES, Attendance, AttendanceStatus, Organization

logger = logging.getLogger(__name__)


@runtime_checkable
class PhotoStorage(Protocol):
    """Object storage for check-in photos."""

    async def upload(self, data: bytes, key: str) -> str:
        """Store ``data`` under ``key`` and return its public URL."""
        ...


class AttendanceService:
    """Daily attendance rows for one organization at a time."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        storage: PhotoStorage | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.storage = storage

    async def _organization(self, organization_id: UUID) -> Organization:
        org = await self.session.get(Organization, organization_id)
        if org is None:
            raise NotFoundError("Organization not found")
        return org

    def _local_now(self, org: Organization, now: datetime | None) -> datetime:
        try:
            tz = ZoneInfo(org.timezone or "UTC")
        except ZoneInfoNotFoundError:
            logger.warning("Unknown timezone %r for organization %s", org.timezone, org.organization_id)
            tz = ZoneInfo("UTC")
        current = now or datetime.now(timezone.utc)
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        return current.astimezone(tz)

    def _start_time(self, org: Organization) -> time:
        if org.work_start_time:
            try:
                return time.fromisoformat(org.work_start_time)
            except ValueError:
                logger.warning(
                    "Invalid work start time %r for organization %s",
                    org.work_start_time,
                    org.organization_id,
                )
        return self.settings.work_start_time

    async def get_for_date(
        self, organization_id: UUID, user_id: UUID, day: date
    ) -> Attendance | None:
        """Attendance row for a user and calendar date."""
        result = await self.session.execute(
            select(Attendance).where(
                Attendance.organization_id == organization_id,
                Attendance.user_id == user_id,
                Attendance.date == day,
            )
        )
        return result.scalar_one_or_none()

    async def today(
        self, organization_id: UUID, user_id: UUID, now: datetime | None = None
    ) -> Attendance | None:
        """Today's row in the organization's timezone, if any."""
        org = await self._organization(organization_id)
        return await self.get_for_date(organization_id, user_id, self._local_now(org, now).date())

    async def check_in(
        self,
        organization_id: UUID,
        user_id: UUID,
        photo: bytes | None = None,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> Attendance:
        """Record today's check-in.

        Status is ``late`` when the local check-in time is after the
        organization's work start time. A photo upload failure never fails
        the check-in; the row is stored without a photo URL.
        """
        org = await self._organization(organization_id)
        local_now = self._local_now(org, now)
        today = local_now.date()

        if await self.get_for_date(organization_id, user_id, today) is not None:
            raise ConflictError("Already checked in today")

        photo_url = None
        if photo is not None and self.storage is not None:
            key = f"attendance/{organization_id}/{user_id}/{today.isoformat()}.jpg"
            try:
                photo_url = await self.storage.upload(photo, key)
            except Exception:
                logger.warning("Photo upload failed for user %s", user_id, exc_info=True)

        status = (
            AttendanceStatus.LATE
            if local_now.time() > self._start_time(org)
            else AttendanceStatus.PRESENT
        )
        attendance = Attendance(
            organization_id=organization_id,
            user_id=user_id,
            date=today,
            check_in=local_now.astimezone(timezone.utc),
            status=status,
            notes=notes,
            is_approved=True,
            photo_url=photo_url,
        )
        self.session.add(attendance)
        await flush_or_conflict(self.session, "Already checked in today")
        logger.info("User %s checked in (%s)", user_id, status.value)
        return attendance

    async def check_out(
        self, organization_id: UUID, user_id: UUID, now: datetime | None = None
    ) -> Attendance:
        """Record today's check-out and working hours."""
        org = await self._organization(organization_id)
        local_now = self._local_now(org, now)

        attendance = await self.get_for_date(organization_id, user_id, local_now.date())
        if attendance is None or attendance.check_in is None:
            raise ValidationError("No check-in found for today")
        if attendance.check_out is not None:
            raise ConflictError("Already checked out today")

        check_in = attendance.check_in
        if check_in.tzinfo is None:
            check_in = check_in.replace(tzinfo=timezone.utc)
        check_out = local_now.astimezone(timezone.utc)
        hours = Decimal((check_out - check_in).total_seconds()) / Decimal(3600)

        attendance.check_out = check_out
        attendance.working_hours = max(hours, Decimal("0")).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )
        await self.session.flush()
        return attendance

    async def count_worked_days(
        self, organization_id: UUID, user_id: UUID, start: date, end: date
    ) -> int:
        """Rows in [start, end] whose status counts as a worked day."""
        count = await self.session.scalar(
            select(func.count())
            .select_from(Attendance)
            .where(
                Attendance.organization_id == organization_id,
                Attendance.user_id == user_id,
                Attendance.date.between(start, end),
                Attendance.status.in_(WORKED_STATUSES),
            )
        )
        return count or 0

    async def handle_leave_approved(self, event: LeaveApproved) -> None:
        """Mark every leave weekday as on_leave.

        Existing rows for those days are overwritten whatever their status.
        """
        organization_id = event.metadata.organization_id
        existing = await self.session.execute(
            select(Attendance).where(
                Attendance.organization_id == organization_id,
                Attendance.user_id == event.user_id,
                Attendance.date.in_(event.leave_dates),
            )
        )
        by_date = {row.date: row for row in existing.scalars()}

        for day in event.leave_dates:
            row = by_date.get(day)
            if row is None:
                self.session.add(
                    Attendance(
                        organization_id=organization_id,
                        user_id=event.user_id,
                        date=day,
                        status=AttendanceStatus.ON_LEAVE,
                        is_approved=True,
                    )
                )
            else:
                row.status = AttendanceStatus.ON_LEAVE
                row.is_approved = True

        await flush_or_conflict(
            self.session, "Attendance changed concurrently, please retry"
        )
        logger.info(
            "Marked %d day(s) on leave for user %s", len(event.leave_dates), event.user_id
        )
