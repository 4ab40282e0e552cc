"""Leave balance ledger."""

from __future__ import annotations

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.config import LeavePolicy, Settings, get_settings
from attendease.database import flush_or_conflict
from attendease.models import LeaveBalance, LeaveType, Organization

logger = logging.getLogger(__name__)


class LeaveBalanceLedger:
    """Per user/year balances for sick, casual, vacation and unpaid leave.

    Balances are created lazily on first access with the organization's
    leave policy, or the configured default policy when the organization
    has none.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    async def policy_for(self, organization_id: UUID) -> LeavePolicy:
        """Annual allocations for an organization."""
        policy = await self.session.scalar(
            select(Organization.leave_policy).where(
                Organization.organization_id == organization_id
            )
        )
        default = self.settings.default_leave_policy
        if not policy:
            return default
        return LeavePolicy(
            sick=int(policy.get("sick", default.sick)),
            casual=int(policy.get("casual", default.casual)),
            vacation=int(policy.get("vacation", default.vacation)),
        )

    async def get(self, organization_id: UUID, user_id: UUID, year: int) -> LeaveBalance | None:
        """Load a balance without creating it."""
        result = await self.session.execute(
            select(LeaveBalance).where(
                LeaveBalance.organization_id == organization_id,
                LeaveBalance.user_id == user_id,
                LeaveBalance.year == year,
            )
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, organization_id: UUID, user_id: UUID, year: int) -> LeaveBalance:
        """Load a balance, creating it with policy allocations if missing."""
        balance = await self.get(organization_id, user_id, year)
        if balance is not None:
            return balance

        policy = await self.policy_for(organization_id)
        balance = LeaveBalance(
            organization_id=organization_id,
            user_id=user_id,
            year=year,
            sick_total=Decimal(policy.sick),
            sick_used=Decimal("0"),
            casual_total=Decimal(policy.casual),
            casual_used=Decimal("0"),
            vacation_total=Decimal(policy.vacation),
            vacation_used=Decimal("0"),
            unpaid_used=Decimal("0"),
        )
        balance.recompute()
        self.session.add(balance)
        await flush_or_conflict(
            self.session, "Leave balance was created concurrently, please retry"
        )
        logger.info("Created %s leave balance for user %s", year, user_id)
        return balance

    @staticmethod
    def has_sufficient(balance: LeaveBalance, leave_type: LeaveType, days: Decimal) -> bool:
        """Unpaid leave is unlimited; other types need remaining >= days."""
        remaining = balance.remaining_for(leave_type)
        return remaining is None or remaining >= days

    @staticmethod
    def consume(balance: LeaveBalance, leave_type: LeaveType, days: Decimal) -> None:
        """Record ``days`` as used against the matching bucket."""
        if leave_type == LeaveType.UNPAID:
            balance.unpaid_used = balance.unpaid_used + days
        else:
            used_attr = f"{leave_type.value}_used"
            setattr(balance, used_attr, getattr(balance, used_attr) + days)
        balance.recompute()
