"""Status state machines with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import ClassVar

from attendease.exceptions import InvalidTransitionError
from attendease.models import LeaveStatus, PayrollRecordStatus, PayrollRunStatus


class StatusMachine:
    """Table-driven transition checks shared by the concrete machines."""

    STATUS_ENUM: ClassVar[type[Enum]]
    # {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: ClassVar[dict[Enum, list[Enum]]] = {}

    @classmethod
    def coerce(cls, status: str) -> Enum | None:
        """Map a raw value or member onto the status enum; None if unknown."""
        try:
            return cls.STATUS_ENUM(status)
        except ValueError:
            return None

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(cls.coerce(from_status), [])
        return cls.coerce(to_status) in allowed

    @classmethod
    def validate_transition(
        cls, from_status: str, to_status: str, reason: str | None = None
    ) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(_value(from_status), _value(to_status), reason)


class PayrollRunStateMachine(StatusMachine):
    """State machine for payroll run status transitions.

    Allowed transitions:
    - draft → processing
    - draft → cancelled
    - processing → completed
    - processing → draft (rollback after a failed pass)
    """

    STATUS_ENUM = PayrollRunStatus

    VALID_TRANSITIONS = {
        PayrollRunStatus.DRAFT: [PayrollRunStatus.PROCESSING, PayrollRunStatus.CANCELLED],
        PayrollRunStatus.PROCESSING: [PayrollRunStatus.COMPLETED, PayrollRunStatus.DRAFT],
        PayrollRunStatus.COMPLETED: [],  # Terminal state
        PayrollRunStatus.CANCELLED: [],  # Terminal state
    }

    @classmethod
    def can_process(cls, status: str) -> bool:
        """Check if a computation pass may start from this status."""
        return cls.can_transition(status, PayrollRunStatus.PROCESSING)


class LeaveStateMachine(StatusMachine):
    """State machine for leave requests.

    Only pending leaves move. Approved leaves cannot be cancelled here;
    reversing them is an administrative action.
    """

    STATUS_ENUM = LeaveStatus

    VALID_TRANSITIONS = {
        LeaveStatus.PENDING: [
            LeaveStatus.APPROVED,
            LeaveStatus.REJECTED,
            LeaveStatus.CANCELLED,
        ],
        LeaveStatus.APPROVED: [],
        LeaveStatus.REJECTED: [],
        LeaveStatus.CANCELLED: [],
    }


class PayrollRecordStateMachine(StatusMachine):
    """Payment lifecycle of a payroll record."""

    STATUS_ENUM = PayrollRecordStatus

    VALID_TRANSITIONS = {
        PayrollRecordStatus.PENDING: [PayrollRecordStatus.PAID, PayrollRecordStatus.ON_HOLD],
        PayrollRecordStatus.ON_HOLD: [PayrollRecordStatus.PAID, PayrollRecordStatus.PENDING],
        PayrollRecordStatus.PAID: [],
    }


def _value(status: str) -> str:
    return status.value if isinstance(status, Enum) else str(status)
