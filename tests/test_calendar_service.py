"""Tests for the working-day calendar."""

import calendar
from datetime import date

import pytest

from attendease.exceptions import ValidationError
from attendease.models import Holiday, HolidayType
from attendease.services import CalendarService, month_bounds, weekdays_between


async def add_holiday(session, org, day, recurring=False):
    session.add(
        Holiday(
            organization_id=org.organization_id,
            name=f"Holiday {day}",
            date=day,
            type=HolidayType.NATIONAL,
            is_recurring=recurring,
        )
    )
    await session.flush()


class TestWeekdays:
    """Pure date helpers."""

    def test_weekdays_between_skips_weekend(self):
        # Fri 1 Mar .. Mon 4 Mar 2024
        assert weekdays_between(date(2024, 3, 1), date(2024, 3, 4)) == [
            date(2024, 3, 1),
            date(2024, 3, 4),
        ]

    def test_weekend_only_range_is_empty(self):
        assert weekdays_between(date(2024, 3, 2), date(2024, 3, 3)) == []

    def test_reversed_range_is_empty(self):
        assert weekdays_between(date(2024, 3, 5), date(2024, 3, 4)) == []

    def test_month_bounds_leap_year(self):
        assert month_bounds(2, 2024) == (date(2024, 2, 1), date(2024, 2, 29))


class TestWorkingDays:
    """Working days per organization and month."""

    async def test_no_holidays(self, session, organization, settings):
        service = CalendarService(session, settings)

        assert await service.working_days(organization.organization_id, 3, 2024) == 21

    async def test_holiday_on_weekday_is_excluded(self, session, organization, settings, good_friday):
        service = CalendarService(session, settings)

        dates = await service.working_dates(organization.organization_id, 3, 2024)
        assert len(dates) == 20
        assert good_friday.date not in dates

    async def test_holiday_on_weekend_changes_nothing(self, session, organization, settings):
        await add_holiday(session, organization, date(2024, 3, 30))
        service = CalendarService(session, settings)

        assert await service.working_days(organization.organization_id, 3, 2024) == 21

    async def test_other_organization_holidays_ignored(
        self, session, organization, other_organization, settings
    ):
        await add_holiday(session, other_organization, date(2024, 3, 29))
        service = CalendarService(session, settings)

        assert await service.working_days(organization.organization_id, 3, 2024) == 21

    @pytest.mark.parametrize("month", range(1, 13))
    async def test_days_minus_weekends_minus_holidays(self, session, organization, settings, month):
        # A holiday on the 15th of every month
        await add_holiday(session, organization, date(2025, month, 15))
        service = CalendarService(session, settings)

        days_in_month = calendar.monthrange(2025, month)[1]
        weekends = sum(
            1 for d in range(1, days_in_month + 1) if date(2025, month, d).weekday() >= 5
        )
        holidays = 0 if date(2025, month, 15).weekday() >= 5 else 1

        assert await service.working_days(organization.organization_id, month, 2025) == (
            days_in_month - weekends - holidays
        )

    async def test_recurring_holiday_applies_in_later_years(self, session, organization, settings):
        # Tuesday 25 Dec 2029 from a 2023 recurring holiday
        await add_holiday(session, organization, date(2023, 12, 25), recurring=True)
        service = CalendarService(session, settings)

        dates = await service.working_dates(organization.organization_id, 12, 2029)
        assert date(2029, 12, 25) not in dates

    async def test_non_recurring_holiday_does_not_repeat(self, session, organization, settings):
        await add_holiday(session, organization, date(2023, 12, 25))
        service = CalendarService(session, settings)

        dates = await service.working_dates(organization.organization_id, 12, 2029)
        assert date(2029, 12, 25) in dates

    async def test_recurring_leap_day_skipped_in_common_year(self, session, organization, settings):
        await add_holiday(session, organization, date(2024, 2, 29), recurring=True)
        service = CalendarService(session, settings)

        assert await service.working_days(organization.organization_id, 2, 2025) == 20

    @pytest.mark.parametrize("month,year", [(0, 2024), (13, 2024), (3, 2019), (3, 2101)])
    async def test_invalid_period(self, session, organization, settings, month, year):
        service = CalendarService(session, settings)

        with pytest.raises(ValidationError):
            await service.working_days(organization.organization_id, month, year)
