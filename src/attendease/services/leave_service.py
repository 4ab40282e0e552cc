"""Leave request workflow.

A request starts pending and is approved, rejected or cancelled exactly
once. Approval consumes the balance and publishes ``LeaveApproved`` so the
attendance side can mark the covered weekdays as on leave; both happen in
the caller's transaction.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Select, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from attendease.config import Settings, get_settings
from attendease.events import AsyncEventEmitter, EventMetadata, LeaveApproved
from attendease.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from attendease.models import (
    ACTIVE_LEAVE_STATUSES,
    Leave,
    LeaveBalance,
    LeaveStatus,
    LeaveType,
    User,
    UserRole,
)
from attendease.models.base import utcnow
from attendease.services.attendance_service import AttendanceService
from attendease.services.calendar_service import (
    CalendarService,
    month_bounds,
    weekdays_between,
)
from attendease.services.leave_balance_service import LeaveBalanceLedger
from attendease.services.pagination import Page, paginate
from attendease.services.state_machine import LeaveStateMachine

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 500


def _as_date(value: date | datetime) -> date:
    """Truncate a datetime to its calendar date."""
    if isinstance(value, datetime):
        return value.date()
    return value


class LeaveService:
    """Leave requests, reviews and queries for one organization at a time."""

    def __init__(
        self,
        session: AsyncSession,
        events: AsyncEventEmitter | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.ledger = LeaveBalanceLedger(session, self.settings)
        if events is None:
            events = AsyncEventEmitter()
            attendance = AttendanceService(session, self.settings)
            events.on(LeaveApproved, attendance.handle_leave_approved)
        self.events = events

    # ----- commands -----

    async def request_leave(
        self,
        organization_id: UUID,
        user_id: UUID,
        leave_type: LeaveType,
        start_date: date | datetime,
        end_date: date | datetime,
        reason: str,
        half_day: bool = False,
    ) -> Leave:
        """Create a pending leave request."""
        start = _as_date(start_date)
        end = _as_date(end_date)
        leave_type = LeaveType(leave_type)

        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Reason is required")
        if len(reason) > MAX_TEXT_LENGTH:
            raise ValidationError(f"Reason must be at most {MAX_TEXT_LENGTH} characters")
        if end < start:
            raise ValidationError("End date must be on or after start date")

        leave_dates = weekdays_between(start, end)
        if not leave_dates:
            raise ValidationError("Leave range contains no working days")
        if half_day and len(leave_dates) != 1:
            raise ValidationError("Half-day leave must cover a single working day")
        total_days = Decimal("0.5") if half_day else Decimal(len(leave_dates))

        user = await self.session.scalar(
            select(User).where(User.organization_id == organization_id, User.user_id == user_id)
        )
        if user is None or not user.is_active:
            raise NotFoundError("User not found")

        overlapping = await self.session.scalar(
            select(Leave.leave_id)
            .where(
                Leave.organization_id == organization_id,
                Leave.user_id == user_id,
                Leave.status.in_(ACTIVE_LEAVE_STATUSES),
                Leave.start_date <= end,
                Leave.end_date >= start,
            )
            .limit(1)
        )
        if overlapping is not None:
            raise ConflictError("You already have a leave request for these dates")

        balance = await self.ledger.get_or_create(organization_id, user_id, start.year)
        if not self.ledger.has_sufficient(balance, leave_type, total_days):
            raise ValidationError(f"Insufficient {leave_type.value} leave balance")

        leave = Leave(
            organization_id=organization_id,
            user_id=user_id,
            leave_type=leave_type,
            start_date=start,
            end_date=end,
            total_days=total_days,
            reason=reason,
            status=LeaveStatus.PENDING,
        )
        self.session.add(leave)
        await self.session.flush()
        logger.info(
            "Leave %s requested by %s: %s %s..%s (%s days)",
            leave.leave_id,
            user_id,
            leave_type.value,
            start,
            end,
            total_days,
        )
        return leave

    async def approve_leave(
        self,
        organization_id: UUID,
        leave_id: UUID,
        reviewer_id: UUID,
        notes: str | None = None,
        reviewer_role: UserRole | None = None,
    ) -> Leave:
        """Approve a pending leave, consuming balance and marking attendance."""
        leave = await self._reviewable(organization_id, leave_id, reviewer_id, reviewer_role)
        LeaveStateMachine.validate_transition(
            leave.status, LeaveStatus.APPROVED, "Leave request has already been processed"
        )
        notes = self._check_notes(notes)

        await self._transition(leave, LeaveStatus.APPROVED, reviewer_id, notes)

        balance = await self.ledger.get_or_create(
            organization_id, leave.user_id, leave.start_date.year
        )
        self.ledger.consume(balance, leave.leave_type, leave.total_days)
        await self.session.flush()

        event = LeaveApproved(
            metadata=EventMetadata.create(organization_id, actor_id=reviewer_id),
            leave_id=leave.leave_id,
            user_id=leave.user_id,
            leave_type=leave.leave_type.value,
            start_date=leave.start_date,
            end_date=leave.end_date,
            total_days=leave.total_days,
            leave_dates=tuple(weekdays_between(leave.start_date, leave.end_date)),
        )
        errors = await self.events.emit(event)
        if errors:
            raise errors[0]

        logger.info("Leave %s approved by %s", leave.leave_id, reviewer_id)
        return leave

    async def reject_leave(
        self,
        organization_id: UUID,
        leave_id: UUID,
        reviewer_id: UUID,
        notes: str | None,
        reviewer_role: UserRole | None = None,
    ) -> Leave:
        """Reject a pending leave; notes are mandatory."""
        leave = await self._reviewable(organization_id, leave_id, reviewer_id, reviewer_role)
        notes = self._check_notes(notes)
        if not notes:
            raise ValidationError("Rejection reason is required")

        LeaveStateMachine.validate_transition(
            leave.status, LeaveStatus.REJECTED, "Leave request has already been processed"
        )
        await self._transition(leave, LeaveStatus.REJECTED, reviewer_id, notes)
        logger.info("Leave %s rejected by %s", leave.leave_id, reviewer_id)
        return leave

    async def cancel_leave(self, organization_id: UUID, leave_id: UUID, user_id: UUID) -> Leave:
        """Cancel the caller's own pending leave."""
        leave = await self.session.scalar(
            select(Leave).where(
                Leave.organization_id == organization_id,
                Leave.leave_id == leave_id,
                Leave.user_id == user_id,
            )
        )
        if leave is None:
            raise NotFoundError("Leave request not found")

        if leave.status == LeaveStatus.APPROVED:
            raise ValidationError("Cannot cancel approved leave. Please contact HR.")
        if not LeaveStateMachine.can_transition(leave.status, LeaveStatus.CANCELLED):
            raise ValidationError("Leave request cannot be cancelled")

        await self._transition(leave, LeaveStatus.CANCELLED)
        logger.info("Leave %s cancelled by %s", leave.leave_id, user_id)
        return leave

    async def _reviewable(
        self,
        organization_id: UUID,
        leave_id: UUID,
        reviewer_id: UUID,
        reviewer_role: UserRole | None,
    ) -> Leave:
        leave = await self.session.scalar(
            select(Leave)
            .options(selectinload(Leave.user))
            .where(Leave.organization_id == organization_id, Leave.leave_id == leave_id)
        )
        if leave is None:
            raise NotFoundError("Leave request not found")

        if reviewer_role is not None and UserRole(reviewer_role) == UserRole.SUPERVISOR:
            if leave.user.supervisor_id != reviewer_id:
                raise ForbiddenError("You can only review leave requests of your direct reports")
        return leave

    @staticmethod
    def _check_notes(notes: str | None) -> str | None:
        notes = notes.strip() if notes else None
        if notes and len(notes) > MAX_TEXT_LENGTH:
            raise ValidationError(f"Notes must be at most {MAX_TEXT_LENGTH} characters")
        return notes or None

    async def _transition(
        self,
        leave: Leave,
        to_status: LeaveStatus,
        reviewer_id: UUID | None = None,
        notes: str | None = None,
    ) -> None:
        """Move a pending leave to ``to_status`` only if it is still pending."""
        values: dict[str, object] = {"status": to_status, "updated_at": utcnow()}
        if reviewer_id is not None:
            values.update(reviewed_by=reviewer_id, reviewed_at=utcnow(), review_notes=notes)

        result = await self.session.execute(
            update(Leave)
            .where(Leave.leave_id == leave.leave_id, Leave.status == LeaveStatus.PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError("Leave request was modified concurrently")

        for key, value in values.items():
            set_committed_value(leave, key, value)

    # ----- queries -----

    async def my_leaves(
        self,
        organization_id: UUID,
        user_id: UUID,
        status: LeaveStatus | None = None,
        leave_type: LeaveType | None = None,
        start_from: date | None = None,
        start_to: date | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page[Leave]:
        """The caller's own requests, newest start date first."""
        query = select(Leave).where(
            Leave.organization_id == organization_id, Leave.user_id == user_id
        )
        if status is not None:
            query = query.where(Leave.status == status)
        if leave_type is not None:
            query = query.where(Leave.leave_type == leave_type)
        if start_from is not None:
            query = query.where(Leave.start_date >= start_from)
        if start_to is not None:
            query = query.where(Leave.start_date <= start_to)
        query = query.order_by(Leave.start_date.desc(), Leave.created_at.desc())
        return await paginate(self.session, query, page, limit)

    async def pending_leaves(
        self,
        organization_id: UUID,
        reviewer_id: UUID,
        reviewer_role: UserRole,
        page: int = 1,
        limit: int = 20,
    ) -> Page[Leave]:
        """Pending requests awaiting review, oldest first.

        Supervisors only see their direct reports.
        """
        query = self._with_user(organization_id).where(Leave.status == LeaveStatus.PENDING)
        if UserRole(reviewer_role) == UserRole.SUPERVISOR:
            query = query.where(User.supervisor_id == reviewer_id)
        query = query.order_by(Leave.created_at.asc())
        return await paginate(self.session, query, page, limit)

    async def all_leaves(
        self,
        organization_id: UUID,
        status: LeaveStatus | None = None,
        leave_type: LeaveType | None = None,
        user_id: UUID | None = None,
        department: str | None = None,
        start_from: date | None = None,
        start_to: date | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page[Leave]:
        """Every request in the organization, filterable."""
        query = self._with_user(organization_id)
        if status is not None:
            query = query.where(Leave.status == status)
        if leave_type is not None:
            query = query.where(Leave.leave_type == leave_type)
        if user_id is not None:
            query = query.where(Leave.user_id == user_id)
        if department:
            query = query.where(User.department == department)
        if start_from is not None:
            query = query.where(Leave.start_date >= start_from)
        if start_to is not None:
            query = query.where(Leave.start_date <= start_to)
        query = query.order_by(Leave.created_at.desc())
        return await paginate(self.session, query, page, limit)

    async def calendar_leaves(
        self,
        organization_id: UUID,
        month: int,
        year: int,
        user_id: UUID | None = None,
        supervisor_id: UUID | None = None,
    ) -> list[Leave]:
        """Approved leaves overlapping a month.

        Scoped to one user, or to a supervisor's team, or the whole
        organization when neither is given.
        """
        CalendarService(self.session, self.settings).validate_period(month, year)
        start, end = month_bounds(month, year)

        query = self._with_user(organization_id).where(
            Leave.status == LeaveStatus.APPROVED,
            Leave.start_date <= end,
            Leave.end_date >= start,
        )
        if user_id is not None:
            query = query.where(Leave.user_id == user_id)
        if supervisor_id is not None:
            query = query.where(User.supervisor_id == supervisor_id)

        result = await self.session.execute(query.order_by(Leave.start_date))
        return list(result.scalars().all())

    async def my_balance(
        self, organization_id: UUID, user_id: UUID, year: int | None = None
    ) -> LeaveBalance:
        """Balance for ``year`` (default: current year), created on first access."""
        return await self.ledger.get_or_create(
            organization_id, user_id, year or date.today().year
        )

    @staticmethod
    def _with_user(organization_id: UUID) -> Select[tuple[Leave]]:
        return (
            select(Leave)
            .join(User, User.user_id == Leave.user_id)
            .options(selectinload(Leave.user))
            .where(Leave.organization_id == organization_id)
        )
