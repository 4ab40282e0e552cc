"""Domain events package."""

from attendease.events.emitter import AsyncEventEmitter, AsyncEventHandler
from attendease.events.types import DomainEvent, EventCategory, EventMetadata, LeaveApproved

__all__ = [
    "AsyncEventEmitter",
    "AsyncEventHandler",
    "DomainEvent",
    "EventCategory",
    "EventMetadata",
    "LeaveApproved",
]
