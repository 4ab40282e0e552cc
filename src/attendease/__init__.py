"""Attendease - multi-tenant attendance, leave and payroll backend."""

__version__ = "0.1.0"
