"""Salary structure registry.

Structures are versioned by appending rows: creating or updating always
deactivates the current row and inserts a new active one, so history is
never rewritten.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from attendease.calculators import SalaryComponent
from attendease.database import flush_or_conflict
from attendease.exceptions import ConflictError, NotFoundError, ValidationError
from attendease.models import SalaryStructure, User
from attendease.models.base import utcnow

logger = logging.getLogger(__name__)

ComponentInput = SalaryComponent | dict[str, Any]


def _components(items: Iterable[ComponentInput] | None) -> list[dict[str, Any]]:
    """Validate components and return their stored JSON shape."""
    stored = []
    for item in items or ():
        try:
            component = item if isinstance(item, SalaryComponent) else SalaryComponent.from_dict(item)
        except (KeyError, ValueError, ArithmeticError) as exc:
            raise ValidationError(f"Invalid salary component: {exc}") from exc
        stored.append(component.to_dict())
    return stored


class SalaryStructureService:
    """One active compensation definition per user."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        organization_id: UUID,
        user_id: UUID,
        base_salary: Decimal,
        allowances: Iterable[ComponentInput] | None,
        deductions: Iterable[ComponentInput] | None,
        effective_from: date | None,
        created_by: UUID,
    ) -> SalaryStructure:
        """Activate a new structure for a user, replacing any active one."""
        user = await self.session.scalar(
            select(User).where(User.organization_id == organization_id, User.user_id == user_id)
        )
        if user is None or not user.is_active:
            raise NotFoundError("User not found")

        base_salary = Decimal(base_salary)
        if base_salary < 0:
            raise ValidationError("Base salary must not be negative")
        stored_allowances = _components(allowances)
        stored_deductions = _components(deductions)

        await self.session.execute(
            update(SalaryStructure)
            .where(
                SalaryStructure.organization_id == organization_id,
                SalaryStructure.user_id == user_id,
                SalaryStructure.is_active.is_(True),
            )
            .values(is_active=False, updated_at=utcnow())
        )

        structure = SalaryStructure(
            organization_id=organization_id,
            user_id=user_id,
            base_salary=base_salary,
            allowances=stored_allowances,
            deductions=stored_deductions,
            effective_from=effective_from or date.today(),
            is_active=True,
            created_by=created_by,
        )
        self.session.add(structure)
        await flush_or_conflict(
            self.session, "Salary structure was changed concurrently, please retry"
        )
        await self.session.refresh(structure, attribute_names=["user"])

        logger.info("Salary structure %s activated for user %s", structure.salary_structure_id, user_id)
        return structure

    async def update(
        self,
        organization_id: UUID,
        user_id: UUID,
        updated_by: UUID,
        base_salary: Decimal | None = None,
        allowances: Iterable[ComponentInput] | None = None,
        deductions: Iterable[ComponentInput] | None = None,
        effective_from: date | None = None,
    ) -> SalaryStructure:
        """Replace the active structure, carrying over fields not given."""
        current = await self.get_active(organization_id, user_id)
        if current is None:
            raise NotFoundError("No active salary structure found for this user")

        if base_salary is not None:
            base_salary = Decimal(base_salary)
            if base_salary < 0:
                raise ValidationError("Base salary must not be negative")
        new_allowances = (
            _components(allowances) if allowances is not None else list(current.allowances)
        )
        new_deductions = (
            _components(deductions) if deductions is not None else list(current.deductions)
        )

        result = await self.session.execute(
            update(SalaryStructure)
            .where(
                SalaryStructure.salary_structure_id == current.salary_structure_id,
                SalaryStructure.is_active.is_(True),
            )
            .values(is_active=False, updated_at=utcnow())
        )
        if result.rowcount == 0:
            raise ConflictError("Salary structure was changed concurrently, please retry")

        structure = SalaryStructure(
            organization_id=organization_id,
            user_id=user_id,
            base_salary=base_salary if base_salary is not None else current.base_salary,
            allowances=new_allowances,
            deductions=new_deductions,
            effective_from=effective_from or date.today(),
            is_active=True,
            created_by=updated_by,
        )
        self.session.add(structure)
        await flush_or_conflict(
            self.session, "Salary structure was changed concurrently, please retry"
        )
        await self.session.refresh(structure, attribute_names=["user"])

        logger.info(
            "Salary structure for user %s replaced: %s -> %s",
            user_id,
            current.salary_structure_id,
            structure.salary_structure_id,
        )
        return structure

    async def get_active(self, organization_id: UUID, user_id: UUID) -> SalaryStructure | None:
        """The user's active structure, if any."""
        return await self.session.scalar(
            select(SalaryStructure)
            .options(selectinload(SalaryStructure.user))
            .where(
                SalaryStructure.organization_id == organization_id,
                SalaryStructure.user_id == user_id,
                SalaryStructure.is_active.is_(True),
            )
        )

    async def list_active(
        self,
        organization_id: UUID,
        department: str | None = None,
        search: str | None = None,
    ) -> list[SalaryStructure]:
        """Active structures, filtered on the joined user."""
        query = (
            select(SalaryStructure)
            .join(User, User.user_id == SalaryStructure.user_id)
            .options(selectinload(SalaryStructure.user))
            .where(
                SalaryStructure.organization_id == organization_id,
                SalaryStructure.is_active.is_(True),
            )
        )
        if department:
            query = query.where(User.department == department)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    User.first_name.ilike(pattern),
                    User.last_name.ilike(pattern),
                    User.email.ilike(pattern),
                    User.employee_id.ilike(pattern),
                )
            )

        result = await self.session.execute(query.order_by(User.first_name, User.last_name))
        return list(result.scalars().all())
