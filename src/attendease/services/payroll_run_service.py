"""Payroll run service - orchestrates one computation pass per period."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from attendease.calculators import EmployeePayInput, SalaryComponent, compute_employee_pay
from attendease.config import Settings, get_settings
from attendease.database import flush_or_conflict
from attendease.exceptions import ConflictError, NotFoundError, ValidationError
from attendease.models import (
    Leave,
    LeaveStatus,
    PayrollRecord,
    PayrollRecordStatus,
    PayrollRun,
    PayrollRunStatus,
    SalaryStructure,
    User,
)
from attendease.models.base import utcnow
from attendease.services.attendance_service import AttendanceService
from attendease.services.calendar_service import CalendarService, month_bounds
from attendease.services.state_machine import PayrollRecordStateMachine, PayrollRunStateMachine

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class RunTotals:
    """Aggregates accumulated over one pass."""

    gross: Decimal = ZERO
    deductions: Decimal = ZERO
    net: Decimal = ZERO
    employee_count: int = 0


class PayrollRunService:
    """Service for the payroll run lifecycle.

    Operations:
    - create_run: Open a draft run for an organization and month
    - process: Compute a record per active salary structure and complete the run
    - cancel_run: Close a draft run for good
    - update_record_status: Move a record through its payment lifecycle

    Unlike the other services, ``process`` commits: the processing status is
    made visible before computation starts, and a failed pass is rolled back
    with the run returned to draft.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.calendar = CalendarService(session, self.settings)
        self.attendance = AttendanceService(session, self.settings)

    # ----- runs -----

    async def create_run(self, organization_id: UUID, month: int, year: int) -> PayrollRun:
        """Create a draft run; one per organization and period."""
        self.calendar.validate_period(month, year)

        existing = await self.session.scalar(
            select(PayrollRun.payroll_run_id).where(
                PayrollRun.organization_id == organization_id,
                PayrollRun.month == month,
                PayrollRun.year == year,
            )
        )
        if existing is not None:
            raise ConflictError("Payroll run already exists for this period")

        run = PayrollRun(
            organization_id=organization_id,
            month=month,
            year=year,
            status=PayrollRunStatus.DRAFT,
            total_gross_salary=ZERO,
            total_deductions=ZERO,
            total_net_salary=ZERO,
            employee_count=0,
        )
        self.session.add(run)
        await flush_or_conflict(self.session, "Payroll run already exists for this period")
        logger.info("Payroll run %s created for %02d/%d", run.payroll_run_id, month, year)
        return run

    async def process(
        self, organization_id: UUID, payroll_run_id: UUID, processed_by: UUID
    ) -> PayrollRun:
        """Compute all records for a draft run and complete it.

        Raises:
            NotFoundError: run does not exist in the organization
            ValidationError: run is completed or cancelled
            ConflictError: run is being processed and has not timed out
        """
        run = await self._load_run(organization_id, payroll_run_id)
        status = PayrollRunStatus(run.status)
        if status == PayrollRunStatus.COMPLETED:
            raise ValidationError("Payroll run already completed")
        if status == PayrollRunStatus.CANCELLED:
            raise ValidationError("Cannot process cancelled payroll run")
        if status == PayrollRunStatus.PROCESSING:
            await self._reclaim_abandoned(run)
        if not PayrollRunStateMachine.can_process(run.status):
            raise ConflictError("Payroll run is already being processed")

        month, year = run.month, run.year
        if not await self._compare_and_set(
            run, PayrollRunStatus.DRAFT, PayrollRunStatus.PROCESSING
        ):
            raise ConflictError("Payroll run is already being processed")
        await self.session.commit()
        logger.info("Payroll run %s processing started by %s", payroll_run_id, processed_by)

        try:
            totals = await self._compute_records(organization_id, payroll_run_id, month, year)
            completed = await self._compare_and_set(
                run,
                PayrollRunStatus.PROCESSING,
                PayrollRunStatus.COMPLETED,
                processed_by=processed_by,
                processed_at=utcnow(),
                total_gross_salary=totals.gross,
                total_deductions=totals.deductions,
                total_net_salary=totals.net,
                employee_count=totals.employee_count,
            )
            if not completed:
                raise ConflictError("Payroll run status changed during processing")
            await self.session.commit()
        except Exception:
            logger.exception("Payroll run %s failed, reverting to draft", payroll_run_id)
            await self.session.rollback()
            await self.session.execute(
                update(PayrollRun)
                .where(
                    PayrollRun.payroll_run_id == payroll_run_id,
                    PayrollRun.status == PayrollRunStatus.PROCESSING,
                )
                .values(status=PayrollRunStatus.DRAFT, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
            raise

        logger.info(
            "Payroll run %s completed: %d employee(s), net %s",
            payroll_run_id,
            totals.employee_count,
            totals.net,
        )
        return await self.get_run(organization_id, payroll_run_id)

    async def _compute_records(
        self, organization_id: UUID, payroll_run_id: UUID, month: int, year: int
    ) -> RunTotals:
        """Insert one record per active structure and return the aggregates."""
        working_days = await self.calendar.working_days(organization_id, month, year)
        start, end = month_bounds(month, year)

        # Records left behind by an earlier failed pass
        await self.session.execute(
            delete(PayrollRecord)
            .where(PayrollRecord.payroll_run_id == payroll_run_id)
            .execution_options(synchronize_session=False)
        )

        rows = await self.session.execute(
            select(SalaryStructure, User)
            .outerjoin(
                User,
                and_(
                    User.user_id == SalaryStructure.user_id,
                    User.organization_id == SalaryStructure.organization_id,
                ),
            )
            .where(
                SalaryStructure.organization_id == organization_id,
                SalaryStructure.is_active.is_(True),
            )
            .order_by(SalaryStructure.created_at)
        )

        totals = RunTotals()
        for structure, user in rows.all():
            if user is None or not user.is_active:
                logger.warning(
                    "Skipping salary structure %s: user %s missing or inactive",
                    structure.salary_structure_id,
                    structure.user_id,
                )
                continue

            attendance_days = await self.attendance.count_worked_days(
                organization_id, user.user_id, start, end
            )
            leave_days = await self._approved_leave_days(organization_id, user.user_id, start, end)
            allowances = [SalaryComponent.from_dict(a) for a in structure.allowances]
            deductions = [SalaryComponent.from_dict(d) for d in structure.deductions]

            pay = compute_employee_pay(
                EmployeePayInput(
                    base_salary=structure.base_salary,
                    working_days=working_days,
                    attendance_days=Decimal(attendance_days),
                    leave_days=leave_days,
                    allowances=allowances,
                    deductions=deductions,
                )
            )

            self.session.add(
                PayrollRecord(
                    organization_id=organization_id,
                    payroll_run_id=payroll_run_id,
                    user_id=user.user_id,
                    month=month,
                    year=year,
                    working_days=pay.working_days,
                    days_worked=pay.days_worked,
                    leave_days=pay.leave_days,
                    absent_days=pay.absent_days,
                    base_salary=pay.effective_base_salary,
                    allowances=[a.to_dict() for a in allowances],
                    deductions=[d.to_dict() for d in deductions],
                    gross_salary=pay.gross_salary,
                    total_deductions=pay.total_deductions,
                    net_salary=pay.net_salary,
                    status=PayrollRecordStatus.PENDING,
                )
            )
            totals.gross += pay.gross_salary
            totals.deductions += pay.total_deductions
            totals.net += pay.net_salary
            totals.employee_count += 1

        await flush_or_conflict(self.session, "Payroll records already exist for this run")
        return totals

    async def _approved_leave_days(
        self, organization_id: UUID, user_id: UUID, start: date, end: date
    ) -> Decimal:
        """Sum of total days of approved leaves overlapping [start, end]."""
        total = await self.session.scalar(
            select(func.sum(Leave.total_days)).where(
                Leave.organization_id == organization_id,
                Leave.user_id == user_id,
                Leave.status == LeaveStatus.APPROVED,
                Leave.start_date <= end,
                Leave.end_date >= start,
            )
        )
        return Decimal(str(total)) if total is not None else ZERO

    async def cancel_run(self, organization_id: UUID, payroll_run_id: UUID) -> PayrollRun:
        """Cancel a draft run; cancelled runs can never be processed."""
        run = await self._load_run(organization_id, payroll_run_id)
        PayrollRunStateMachine.validate_transition(
            run.status, PayrollRunStatus.CANCELLED, "Only draft payroll runs can be cancelled"
        )
        if not await self._compare_and_set(
            run, PayrollRunStatus.DRAFT, PayrollRunStatus.CANCELLED
        ):
            raise ConflictError("Payroll run status changed, please retry")
        logger.info("Payroll run %s cancelled", payroll_run_id)
        return run

    async def _reclaim_abandoned(self, run: PayrollRun) -> None:
        """Reset a run stuck in processing past the timeout back to draft."""
        cutoff = utcnow() - self.settings.processing_timeout
        result = await self.session.execute(
            update(PayrollRun)
            .where(
                PayrollRun.payroll_run_id == run.payroll_run_id,
                PayrollRun.status == PayrollRunStatus.PROCESSING,
                PayrollRun.updated_at <= cutoff,
            )
            .values(status=PayrollRunStatus.DRAFT, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            set_committed_value(run, "status", PayrollRunStatus.DRAFT)
            logger.warning(
                "Payroll run %s abandoned while processing, reset to draft", run.payroll_run_id
            )

    async def _compare_and_set(
        self,
        run: PayrollRun,
        from_status: PayrollRunStatus,
        to_status: PayrollRunStatus,
        **values: Any,
    ) -> bool:
        """Move ``run`` to ``to_status`` only if the stored status is ``from_status``."""
        PayrollRunStateMachine.validate_transition(from_status, to_status)
        values.update(status=to_status, updated_at=utcnow())
        result = await self.session.execute(
            update(PayrollRun)
            .where(
                PayrollRun.payroll_run_id == run.payroll_run_id,
                PayrollRun.status == from_status,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return False
        for key, value in values.items():
            set_committed_value(run, key, value)
        return True

    async def _load_run(self, organization_id: UUID, payroll_run_id: UUID) -> PayrollRun:
        run = await self.session.scalar(
            select(PayrollRun)
            .where(
                PayrollRun.organization_id == organization_id,
                PayrollRun.payroll_run_id == payroll_run_id,
            )
            .execution_options(populate_existing=True)
        )
        if run is None:
            raise NotFoundError("Payroll run not found")
        return run

    async def get_run(self, organization_id: UUID, payroll_run_id: UUID) -> PayrollRun:
        """Run with its records and their users."""
        run = await self.session.scalar(
            select(PayrollRun)
            .options(selectinload(PayrollRun.records).selectinload(PayrollRecord.user))
            .where(
                PayrollRun.organization_id == organization_id,
                PayrollRun.payroll_run_id == payroll_run_id,
            )
            .execution_options(populate_existing=True)
        )
        if run is None:
            raise NotFoundError("Payroll run not found")
        return run

    async def list_runs(
        self,
        organization_id: UUID,
        year: int | None = None,
        status: PayrollRunStatus | None = None,
    ) -> list[PayrollRun]:
        """Runs of an organization, latest period first."""
        query = select(PayrollRun).where(PayrollRun.organization_id == organization_id)
        if year is not None:
            query = query.where(PayrollRun.year == year)
        if status is not None:
            query = query.where(PayrollRun.status == status)
        result = await self.session.execute(
            query.order_by(PayrollRun.year.desc(), PayrollRun.month.desc())
        )
        return list(result.scalars().all())

    # ----- records -----

    async def get_record(self, organization_id: UUID, payroll_record_id: UUID) -> PayrollRecord:
        """Single record with its user."""
        record = await self.session.scalar(
            select(PayrollRecord)
            .options(selectinload(PayrollRecord.user))
            .where(
                PayrollRecord.organization_id == organization_id,
                PayrollRecord.payroll_record_id == payroll_record_id,
            )
        )
        if record is None:
            raise NotFoundError("Payroll record not found")
        return record

    async def my_payslips(
        self, organization_id: UUID, user_id: UUID, year: int | None = None
    ) -> list[PayrollRecord]:
        """A user's records, latest period first."""
        query = select(PayrollRecord).where(
            PayrollRecord.organization_id == organization_id,
            PayrollRecord.user_id == user_id,
        )
        if year is not None:
            query = query.where(PayrollRecord.year == year)
        result = await self.session.execute(
            query.order_by(PayrollRecord.year.desc(), PayrollRecord.month.desc())
        )
        return list(result.scalars().all())

    async def update_record_status(
        self,
        organization_id: UUID,
        payroll_record_id: UUID,
        status: PayrollRecordStatus,
    ) -> PayrollRecord:
        """Change payment status; computed amounts are never touched."""
        record = await self.get_record(organization_id, payroll_record_id)
        status = PayrollRecordStatus(status)
        PayrollRecordStateMachine.validate_transition(record.status, status)

        record.status = status
        record.paid_at = utcnow() if status == PayrollRecordStatus.PAID else None
        await self.session.flush()
        logger.info("Payroll record %s marked %s", payroll_record_id, status.value)
        return record
