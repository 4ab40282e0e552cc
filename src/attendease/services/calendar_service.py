"""Working-day calendar.

A working day is a weekday (Monday to Friday) that is not an organization
holiday. Holidays are matched by calendar date; recurring holidays also
apply on the same month and day of later years.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.config import Settings, get_settings
from attendease.exceptions import ValidationError
from attendease.models import Holiday


def weekdays_between(start: date, end: date) -> list[date]:
    """Every Monday-Friday date in [start, end], inclusive."""
    days: list[date] = []
    current = start
    while current <= end:
        if current.weekday() < 5:
            days.append(current)
        current += timedelta(days=1)
    return days


def month_bounds(month: int, year: int) -> tuple[date, date]:
    """First and last calendar date of a month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


class CalendarService:
    """Resolves working days for an organization and month."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    def validate_period(self, month: int, year: int) -> None:
        """Reject months outside 1-12 and years outside the configured range."""
        if not 1 <= month <= 12:
            raise ValidationError("Month must be between 1 and 12")
        if not self.settings.min_payroll_year <= year <= self.settings.max_payroll_year:
            raise ValidationError(
                f"Year must be between {self.settings.min_payroll_year} "
                f"and {self.settings.max_payroll_year}"
            )

    async def holiday_dates(self, organization_id: UUID, start: date, end: date) -> set[date]:
        """Holiday dates falling in [start, end] for an organization."""
        result = await self.session.execute(
            select(Holiday.date, Holiday.is_recurring).where(
                Holiday.organization_id == organization_id,
                or_(
                    Holiday.date.between(start, end),
                    Holiday.is_recurring.is_(True),
                ),
            )
        )

        dates: set[date] = set()
        for holiday_date, is_recurring in result.all():
            if start <= holiday_date <= end:
                dates.add(holiday_date)
            elif is_recurring and holiday_date < start:
                dates.update(_recurrences(holiday_date, start, end))
        return dates

    async def working_dates(self, organization_id: UUID, month: int, year: int) -> list[date]:
        """Working dates of a month in calendar order."""
        self.validate_period(month, year)
        start, end = month_bounds(month, year)
        holidays = await self.holiday_dates(organization_id, start, end)
        return [day for day in weekdays_between(start, end) if day not in holidays]

    async def working_days(self, organization_id: UUID, month: int, year: int) -> int:
        """Number of working days in a month; the proration denominator."""
        return len(await self.working_dates(organization_id, month, year))


def _recurrences(holiday_date: date, start: date, end: date) -> list[date]:
    """Anniversaries of ``holiday_date`` inside [start, end]."""
    found = []
    for year in range(start.year, end.year + 1):
        try:
            anniversary = holiday_date.replace(year=year)
        except ValueError:
            # 29 February outside a leap year
            continue
        if start <= anniversary <= end:
            found.append(anniversary)
    return found
