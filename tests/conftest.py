"""Pytest fixtures for attendease tests."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from attendease.config import LeavePolicy, Settings
from attendease.models import (
    Attendance,
    AttendanceStatus,
    Base,
    Holiday,
    HolidayType,
    Organization,
    User,
    UserRole,
)
from attendease.services import weekdays_between

# In-memory SQLite shared by every connection of the engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# March 2024: 21 weekdays, Good Friday (29th) is a company holiday -> 20 working days
PAYROLL_MONTH = 3
PAYROLL_YEAR = 2024
GOOD_FRIDAY = date(2024, 3, 29)


@pytest.fixture
async def engine():
    """Create test database engine with a fresh schema."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the environment."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="DEBUG",
        cors_origins=("*",),
        default_leave_policy=LeavePolicy(sick=10, casual=12, vacation=15),
        work_start_time=time(9, 0),
        min_payroll_year=2020,
        max_payroll_year=2100,
    )


@pytest.fixture
async def organization(session: AsyncSession) -> Organization:
    """Create a test organization."""
    org = Organization(name="Acme Corp", timezone="UTC")
    session.add(org)
    await session.flush()
    return org


@pytest.fixture
async def other_organization(session: AsyncSession) -> Organization:
    """A second tenant."""
    org = Organization(name="Globex", timezone="UTC")
    session.add(org)
    await session.flush()
    return org


async def make_user(
    session: AsyncSession,
    org: Organization,
    email: str,
    role: UserRole = UserRole.EMPLOYEE,
    supervisor: User | None = None,
    department: str | None = "Engineering",
    **kwargs,
) -> User:
    """Insert a user into ``org``."""
    first, _, last = email.split("@")[0].partition(".")
    user = User(
        organization_id=org.organization_id,
        email=email,
        first_name=first.title(),
        last_name=(last or "Tester").title(),
        role=role,
        department=department,
        supervisor_id=supervisor.user_id if supervisor else None,
        **kwargs,
    )
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
async def admin(session: AsyncSession, organization: Organization) -> User:
    return await make_user(session, organization, "ada.admin@acme.test", UserRole.ADMIN)


@pytest.fixture
async def supervisor(session: AsyncSession, organization: Organization) -> User:
    return await make_user(session, organization, "sam.lead@acme.test", UserRole.SUPERVISOR)


@pytest.fixture
async def employee(session: AsyncSession, organization: Organization, supervisor: User) -> User:
    """Employee reporting to ``supervisor``."""
    return await make_user(
        session, organization, "eve.worker@acme.test", supervisor=supervisor, employee_id="E-001"
    )


@pytest.fixture
async def other_employee(session: AsyncSession, organization: Organization) -> User:
    """Employee in another department with no supervisor."""
    return await make_user(
        session, organization, "otto.sales@acme.test", department="Sales", employee_id="E-002"
    )


@pytest.fixture
async def good_friday(session: AsyncSession, organization: Organization) -> Holiday:
    holiday = Holiday(
        organization_id=organization.organization_id,
        name="Good Friday",
        date=GOOD_FRIDAY,
        type=HolidayType.COMPANY,
    )
    session.add(holiday)
    await session.flush()
    return holiday


@pytest.fixture
def march_working_dates() -> list[date]:
    """Working dates of March 2024 with Good Friday off."""
    return [
        day
        for day in weekdays_between(date(2024, 3, 1), date(2024, 3, 31))
        if day != GOOD_FRIDAY
    ]


async def mark_present(
    session: AsyncSession,
    org: Organization,
    user: User,
    days: list[date],
    status: AttendanceStatus = AttendanceStatus.PRESENT,
) -> None:
    """Insert attendance rows for ``days``."""
    session.add_all(
        Attendance(
            organization_id=org.organization_id,
            user_id=user.user_id,
            date=day,
            status=status,
            is_approved=True,
        )
        for day in days
    )
    await session.flush()


HRA = {"name": "HRA", "amount": Decimal("500"), "kind": "fixed"}
TAX = {"name": "Tax", "amount": Decimal("10"), "kind": "percentage"}
