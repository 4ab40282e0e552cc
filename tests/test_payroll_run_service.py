"""Tests for the payroll run engine."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update

from attendease.exceptions import ConflictError, NotFoundError, ValidationError
from attendease.models import (
    LeaveType,
    PayrollRecord,
    PayrollRecordStatus,
    PayrollRun,
    PayrollRunStatus,
)
from attendease.models.base import utcnow
from attendease.services import LeaveService, PayrollRunService, SalaryStructureService
from tests.conftest import HRA, PAYROLL_MONTH, PAYROLL_YEAR, TAX, mark_present


@pytest.fixture
async def structures(session, organization, admin, employee, other_employee):
    """3000 base, 500 HRA, 10% tax for both employees."""
    service = SalaryStructureService(session)
    return [
        await service.create(
            organization.organization_id,
            user.user_id,
            Decimal("3000"),
            [HRA],
            [TAX],
            date(2024, 1, 1),
            admin.user_id,
        )
        for user in (employee, other_employee)
    ]


@pytest.fixture
async def march_attendance(
    session, organization, employee, other_employee, good_friday, march_working_dates
):
    """Employee worked all 20 days, other employee the first 15."""
    await mark_present(session, organization, employee, march_working_dates)
    await mark_present(session, organization, other_employee, march_working_dates[:15])


@pytest.fixture
def service(session, settings):
    return PayrollRunService(session, settings)


async def new_run(service, organization):
    return await service.create_run(organization.organization_id, PAYROLL_MONTH, PAYROLL_YEAR)


class TestCreateRun:
    """Opening runs."""

    async def test_creates_draft_with_zero_totals(self, service, organization):
        run = await new_run(service, organization)

        assert run.status == PayrollRunStatus.DRAFT
        assert run.total_net_salary == Decimal("0")
        assert run.employee_count == 0

    async def test_duplicate_period_conflicts(self, service, organization):
        await new_run(service, organization)

        with pytest.raises(ConflictError):
            await new_run(service, organization)

    async def test_same_period_other_organization(self, service, organization, other_organization):
        await new_run(service, organization)

        run = await new_run(service, other_organization)
        assert run.organization_id == other_organization.organization_id

    async def test_invalid_month(self, service, organization):
        with pytest.raises(ValidationError):
            await service.create_run(organization.organization_id, 13, 2024)


class TestProcess:
    """Computation pass."""

    async def test_process_computes_records_and_totals(
        self, service, organization, admin, employee, other_employee, structures, march_attendance
    ):
        run = await new_run(service, organization)

        processed = await service.process(
            organization.organization_id, run.payroll_run_id, admin.user_id
        )

        assert processed.status == PayrollRunStatus.COMPLETED
        assert processed.processed_by == admin.user_id
        assert processed.processed_at is not None
        assert processed.employee_count == 2
        assert processed.total_gross_salary == Decimal("6250.00")
        assert processed.total_deductions == Decimal("625.00")
        assert processed.total_net_salary == Decimal("5625.00")

        records = {record.user_id: record for record in processed.records}
        full = records[employee.user_id]
        assert full.working_days == 20
        assert full.days_worked == Decimal("20")
        assert full.absent_days == Decimal("0")
        assert full.base_salary == Decimal("3000.00")
        assert full.gross_salary == Decimal("3500.00")
        assert full.net_salary == Decimal("3150.00")
        assert full.status == PayrollRecordStatus.PENDING
        assert full.allowances == [{"name": "HRA", "amount": "500", "kind": "fixed"}]

        partial = records[other_employee.user_id]
        assert partial.days_worked == Decimal("15")
        assert partial.absent_days == Decimal("5")
        assert partial.base_salary == Decimal("2250.00")
        assert partial.total_deductions == Decimal("275.00")
        assert partial.net_salary == Decimal("2475.00")
        assert partial.user.email == other_employee.email

    async def test_approved_leave_counts_as_worked(
        self,
        session,
        settings,
        service,
        organization,
        admin,
        other_employee,
        structures,
        march_attendance,
        march_working_dates,
    ):
        # The five working days other_employee did not attend
        leaves = LeaveService(session, settings=settings)
        leave = await leaves.request_leave(
            organization.organization_id,
            other_employee.user_id,
            LeaveType.VACATION,
            march_working_dates[15],
            march_working_dates[-1],
            "Family trip",
        )
        await leaves.approve_leave(organization.organization_id, leave.leave_id, admin.user_id)
        run = await new_run(service, organization)

        processed = await service.process(
            organization.organization_id, run.payroll_run_id, admin.user_id
        )

        record = next(r for r in processed.records if r.user_id == other_employee.user_id)
        assert record.leave_days == Decimal("5")
        assert record.days_worked == Decimal("20")
        assert record.net_salary == Decimal("3150.00")

    async def test_structure_changes_do_not_alter_records(
        self, session, service, organization, admin, employee, structures, march_attendance
    ):
        run = await new_run(service, organization)
        processed = await service.process(
            organization.organization_id, run.payroll_run_id, admin.user_id
        )
        record_id = next(
            r.payroll_record_id for r in processed.records if r.user_id == employee.user_id
        )

        await SalaryStructureService(session).update(
            organization.organization_id, employee.user_id, admin.user_id, base_salary=Decimal("9000")
        )

        record = await service.get_record(organization.organization_id, record_id)
        assert record.base_salary == Decimal("3000.00")

    async def test_inactive_users_are_skipped(
        self, session, service, organization, admin, other_employee, structures, march_attendance
    ):
        other_employee.is_active = False
        await session.flush()
        run = await new_run(service, organization)

        processed = await service.process(
            organization.organization_id, run.payroll_run_id, admin.user_id
        )

        assert processed.employee_count == 1
        assert processed.total_net_salary == Decimal("3150.00")

    async def test_no_structures(self, service, organization, admin):
        run = await new_run(service, organization)

        processed = await service.process(
            organization.organization_id, run.payroll_run_id, admin.user_id
        )

        assert processed.status == PayrollRunStatus.COMPLETED
        assert processed.employee_count == 0
        assert processed.records == []

    async def test_missing_run(self, service, organization, other_organization, admin):
        run = await new_run(service, organization)

        with pytest.raises(NotFoundError):
            await service.process(
                other_organization.organization_id, run.payroll_run_id, admin.user_id
            )

    async def test_completed_run_cannot_be_reprocessed(self, service, organization, admin):
        run = await new_run(service, organization)
        await service.process(organization.organization_id, run.payroll_run_id, admin.user_id)

        with pytest.raises(ValidationError, match="already completed"):
            await service.process(organization.organization_id, run.payroll_run_id, admin.user_id)

    async def test_cancelled_run_cannot_be_processed(self, service, organization, admin):
        run = await new_run(service, organization)
        cancelled = await service.cancel_run(organization.organization_id, run.payroll_run_id)
        assert cancelled.status == PayrollRunStatus.CANCELLED

        with pytest.raises(ValidationError, match="cancelled"):
            await service.process(organization.organization_id, run.payroll_run_id, admin.user_id)

    async def test_run_in_flight_conflicts(self, session, service, organization, admin):
        run = await new_run(service, organization)
        run.status = PayrollRunStatus.PROCESSING
        await session.flush()

        with pytest.raises(ConflictError):
            await service.process(organization.organization_id, run.payroll_run_id, admin.user_id)


async def stored_run(session, run_id):
    result = await session.execute(
        select(PayrollRun.status, PayrollRun.processed_by, PayrollRun.employee_count).where(
            PayrollRun.payroll_run_id == run_id
        )
    )
    return result.one()


async def record_count(session, run_id):
    return await session.scalar(
        select(func.count())
        .select_from(PayrollRecord)
        .where(PayrollRecord.payroll_run_id == run_id)
    )


async def set_stored_status(session, run_id, status, **values):
    await session.execute(
        update(PayrollRun)
        .where(PayrollRun.payroll_run_id == run_id)
        .values(status=status, **values)
        .execution_options(synchronize_session=False)
    )


class TestConcurrentProcessing:
    """Status writes only succeed against the status that was read."""

    async def test_run_claimed_after_read_conflicts(
        self, monkeypatch, session, service, organization, admin, structures, march_attendance
    ):
        run = await new_run(service, organization)
        run_id = run.payroll_run_id
        load_run = PayrollRunService._load_run

        async def load_then_claimed_elsewhere(self, organization_id, payroll_run_id):
            loaded = await load_run(self, organization_id, payroll_run_id)
            await set_stored_status(self.session, payroll_run_id, PayrollRunStatus.PROCESSING)
            return loaded

        monkeypatch.setattr(PayrollRunService, "_load_run", load_then_claimed_elsewhere)

        with pytest.raises(ConflictError, match="already being processed"):
            await service.process(organization.organization_id, run_id, admin.user_id)

        assert tuple(await stored_run(session, run_id)) == (PayrollRunStatus.PROCESSING, None, 0)
        assert await record_count(session, run_id) == 0

    async def test_status_changed_during_pass_reverts_to_draft(
        self, monkeypatch, service, organization, admin, structures, march_attendance
    ):
        org_id, admin_id = organization.organization_id, admin.user_id
        run = await new_run(service, organization)
        run_id = run.payroll_run_id
        compute_records = PayrollRunService._compute_records

        async def compute_then_reset(self, *args):
            totals = await compute_records(self, *args)
            await set_stored_status(self.session, run_id, PayrollRunStatus.DRAFT)
            return totals

        monkeypatch.setattr(PayrollRunService, "_compute_records", compute_then_reset)

        with pytest.raises(ConflictError, match="changed during processing"):
            await service.process(org_id, run_id, admin_id)

        monkeypatch.undo()
        failed = await service.get_run(org_id, run_id)
        assert failed.status == PayrollRunStatus.DRAFT
        assert failed.records == []
        assert failed.employee_count == 0

    async def test_abandoned_processing_run_is_reclaimed(
        self, session, service, organization, admin, structures, march_attendance
    ):
        run = await new_run(service, organization)
        await set_stored_status(
            session,
            run.payroll_run_id,
            PayrollRunStatus.PROCESSING,
            updated_at=utcnow() - timedelta(hours=2),
        )

        processed = await service.process(
            organization.organization_id, run.payroll_run_id, admin.user_id
        )

        assert processed.status == PayrollRunStatus.COMPLETED
        assert processed.total_net_salary == Decimal("5625.00")

    async def test_recent_processing_run_is_left_alone(
        self, session, service, organization, admin, structures, march_attendance
    ):
        run = await new_run(service, organization)
        await set_stored_status(
            session,
            run.payroll_run_id,
            PayrollRunStatus.PROCESSING,
            updated_at=utcnow() - timedelta(minutes=5),
        )

        with pytest.raises(ConflictError):
            await service.process(organization.organization_id, run.payroll_run_id, admin.user_id)

        assert tuple(await stored_run(session, run.payroll_run_id)) == (
            PayrollRunStatus.PROCESSING,
            None,
            0,
        )


class TestRollback:
    """A failed pass leaves the run in draft and is retry-safe."""

    async def test_failure_reverts_to_draft_and_retry_matches_clean_pass(
        self, monkeypatch, service, organization, admin, structures, march_attendance
    ):
        org_id = organization.organization_id
        admin_id = admin.user_id
        run = await new_run(service, organization)
        run_id = run.payroll_run_id

        async def boom(*args, **kwargs):
            raise RuntimeError("attendance store unavailable")

        monkeypatch.setattr(PayrollRunService, "_approved_leave_days", boom)
        with pytest.raises(RuntimeError):
            await service.process(org_id, run_id, admin_id)

        failed = await service.get_run(org_id, run_id)
        assert failed.status == PayrollRunStatus.DRAFT
        assert failed.records == []
        assert failed.total_net_salary == Decimal("0")

        monkeypatch.undo()
        processed = await service.process(org_id, run_id, admin_id)

        assert processed.status == PayrollRunStatus.COMPLETED
        assert processed.employee_count == 2
        assert processed.total_net_salary == Decimal("5625.00")

    async def test_stale_records_are_replaced(
        self, session, service, organization, admin, employee, structures, march_attendance
    ):
        run = await new_run(service, organization)
        session.add(
            PayrollRecord(
                organization_id=organization.organization_id,
                payroll_run_id=run.payroll_run_id,
                user_id=employee.user_id,
                month=PAYROLL_MONTH,
                year=PAYROLL_YEAR,
                working_days=20,
                days_worked=Decimal("1"),
                base_salary=Decimal("1"),
                allowances=[],
                deductions=[],
                gross_salary=Decimal("1"),
                total_deductions=Decimal("0"),
                net_salary=Decimal("1"),
            )
        )
        await session.flush()
        org_id, run_id, admin_id = organization.organization_id, run.payroll_run_id, admin.user_id

        processed = await service.process(org_id, run_id, admin_id)

        assert processed.employee_count == 2
        assert processed.total_net_salary == Decimal("5625.00")
        count = await session.scalar(
            select(func.count())
            .select_from(PayrollRecord)
            .where(PayrollRecord.payroll_run_id == run_id)
        )
        assert count == 2


class TestQueriesAndRecords:
    """Read side and payment lifecycle."""

    async def test_list_runs_latest_first(self, service, organization):
        for month, year in ((1, 2024), (3, 2024), (12, 2023)):
            await service.create_run(organization.organization_id, month, year)

        runs = await service.list_runs(organization.organization_id)
        only_2024 = await service.list_runs(organization.organization_id, year=2024)

        assert [(r.year, r.month) for r in runs] == [(2024, 3), (2024, 1), (2023, 12)]
        assert len(only_2024) == 2

    async def test_list_runs_by_status(self, service, organization):
        await service.create_run(organization.organization_id, 1, 2024)
        second = await service.create_run(organization.organization_id, 2, 2024)
        await service.cancel_run(organization.organization_id, second.payroll_run_id)

        cancelled = await service.list_runs(
            organization.organization_id, status=PayrollRunStatus.CANCELLED
        )

        assert [r.payroll_run_id for r in cancelled] == [second.payroll_run_id]

    async def test_cancel_completed_run_fails(self, service, organization, admin):
        run = await new_run(service, organization)
        await service.process(organization.organization_id, run.payroll_run_id, admin.user_id)

        with pytest.raises(ValidationError):
            await service.cancel_run(organization.organization_id, run.payroll_run_id)

    async def test_my_payslips_and_record_status(
        self, service, organization, admin, employee, structures, march_attendance
    ):
        run = await new_run(service, organization)
        await service.process(organization.organization_id, run.payroll_run_id, admin.user_id)

        [payslip] = await service.my_payslips(organization.organization_id, employee.user_id)
        assert payslip.net_salary == Decimal("3150.00")
        assert await service.my_payslips(organization.organization_id, employee.user_id, 2023) == []

        held = await service.update_record_status(
            organization.organization_id, payslip.payroll_record_id, PayrollRecordStatus.ON_HOLD
        )
        assert held.paid_at is None

        paid = await service.update_record_status(
            organization.organization_id, payslip.payroll_record_id, PayrollRecordStatus.PAID
        )
        assert paid.status == PayrollRecordStatus.PAID
        assert paid.paid_at is not None
        assert paid.net_salary == Decimal("3150.00")

        with pytest.raises(ValidationError):
            await service.update_record_status(
                organization.organization_id, payslip.payroll_record_id, PayrollRecordStatus.PENDING
            )

    async def test_record_not_found(self, service, organization, employee):
        with pytest.raises(NotFoundError):
            await service.get_record(organization.organization_id, employee.user_id)
