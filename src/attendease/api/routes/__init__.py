"""API routes."""

from attendease.api.routes.attendance import router as attendance_router
from attendease.api.routes.health import router as health_router
from attendease.api.routes.leaves import router as leaves_router
from attendease.api.routes.payroll import router as payroll_router

__all__ = ["attendance_router", "health_router", "leaves_router", "payroll_router"]
