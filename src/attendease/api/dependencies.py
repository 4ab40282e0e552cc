"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.database import init_db
from attendease.exceptions import ForbiddenError
from attendease.models import UserRole
from attendease.services import PhotoStorage

ADMIN_ROLES = (UserRole.SUPER_ADMIN, UserRole.ADMIN)
HR_ROLES = (UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.HR)
REVIEWER_ROLES = (UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.HR, UserRole.SUPERVISOR)


@dataclass(frozen=True)
class Caller:
    """Authenticated caller as resolved upstream."""

    user_id: UUID
    role: UserRole

    def has_role(self, *roles: UserRole) -> bool:
        return self.role in roles


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_organization_id(
    x_organization_id: Annotated[str | None, Header()] = None,
) -> UUID:
    """Extract organization ID from header."""
    if not x_organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Organization-ID header is required",
        )
    try:
        return UUID(x_organization_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Organization-ID format",
        )


async def get_caller(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Caller:
    """Extract caller identity and role from headers."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header is required",
        )
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-User-ID format",
        )
    try:
        role = UserRole(x_user_role or UserRole.EMPLOYEE.value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-Role",
        )
    return Caller(user_id=user_id, role=role)


def require_roles(*roles: UserRole) -> Callable[..., Caller]:
    """Dependency factory allowing only the given roles."""

    async def checker(caller: Annotated[Caller, Depends(get_caller)]) -> Caller:
        if not caller.has_role(*roles):
            raise ForbiddenError("You do not have permission to perform this action")
        return caller

    return checker


async def get_photo_storage() -> PhotoStorage | None:
    """Photo storage for check-ins; none is configured by default."""
    return None


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
OrganizationId = Annotated[UUID, Depends(get_organization_id)]
CurrentUser = Annotated[Caller, Depends(get_caller)]
AdminUser = Annotated[Caller, Depends(require_roles(*ADMIN_ROLES))]
HrUser = Annotated[Caller, Depends(require_roles(*HR_ROLES))]
Reviewer = Annotated[Caller, Depends(require_roles(*REVIEWER_ROLES))]
Storage = Annotated[PhotoStorage | None, Depends(get_photo_storage)]
