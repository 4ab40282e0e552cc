"""Domain event types.

Events are immutable (frozen dataclasses), carry explicit payloads and are
traceable through their metadata.
"""

from __future__ import annotations

import datetime as dt
import json
from dataclasses import asdict, dataclass
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class EventCategory(str, Enum):
    """Event categories, carried in the serialized form for consumers."""

    LEAVE = "leave"


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to every domain event."""

    event_id: UUID
    timestamp: dt.datetime
    organization_id: UUID
    actor_id: UUID | None
    source_service: str

    @classmethod
    def create(
        cls,
        organization_id: UUID,
        actor_id: UUID | None = None,
        source_service: str = "attendease",
    ) -> EventMetadata:
        """Create metadata with auto-generated fields."""
        return cls(
            event_id=uuid4(),
            timestamp=dt.datetime.now(dt.timezone.utc),
            organization_id=organization_id,
            actor_id=actor_id,
            source_service=source_service,
        )


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    metadata: EventMetadata

    @property
    def event_type(self) -> str:
        """Event type name for routing."""
        return self.__class__.__name__

    @property
    def category(self) -> EventCategory:
        """Event category for filtering."""
        raise NotImplementedError("Subclasses must define category")

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary."""
        data = _serialize(asdict(self))
        data["event_type"] = self.event_type
        data["category"] = self.category.value
        return data

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        return json.dumps(self.to_dict())


def _serialize(obj: Any) -> Any:
    """Recursively serialize objects for JSON compatibility."""
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(v) for v in obj]
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (dt.date, dt.datetime)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return obj


@dataclass(frozen=True)
class LeaveApproved(DomainEvent):
    """A pending leave was approved; its working days are now leave days."""

    leave_id: UUID
    user_id: UUID
    leave_type: str
    start_date: dt.date
    end_date: dt.date
    total_days: Decimal
    # Weekdays covered by the leave, in order
    leave_dates: tuple[dt.date, ...]

    @property
    def category(self) -> EventCategory:
        return EventCategory.LEAVE
