"""Event emitter for publishing domain events.

Handlers are awaited in the emitting task, so side effects of an event
complete before ``emit`` returns. A failing handler does not stop the
others; its exception is logged and returned to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, TypeVar, runtime_checkable

from attendease.events.types import DomainEvent

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=DomainEvent)


@runtime_checkable
class AsyncEventHandler(Protocol):
    """Protocol for asynchronous event handlers."""

    async def __call__(self, event: DomainEvent) -> None:
        """Handle a domain event asynchronously."""
        ...


@dataclass
class HandlerRegistration:
    """Registration of an event handler."""

    handler: AsyncEventHandler
    event_types: set[str]


class AsyncEventEmitter:
    """Asynchronous event emitter.

    Usage:
        emitter = AsyncEventEmitter()

        async def mark_on_leave(event: LeaveApproved) -> None:
            ...

        emitter.on(LeaveApproved, mark_on_leave)
        errors = await emitter.emit(event)
    """

    def __init__(self) -> None:
        self._handlers: list[HandlerRegistration] = []

    def on(
        self,
        event_type: type[T] | list[type[T]],
        handler: AsyncEventHandler,
    ) -> None:
        """Register async handler for specific event type(s)."""
        if isinstance(event_type, list):
            types = {t.__name__ for t in event_type}
        else:
            types = {event_type.__name__}

        self._handlers.append(HandlerRegistration(handler=handler, event_types=types))

    async def emit(self, event: DomainEvent) -> list[Exception]:
        """Emit an event to all matching handlers.

        Handlers run one after another in registration order since they
        typically share the caller's database session.

        Returns list of any exceptions raised by handlers.
        """
        errors: list[Exception] = []
        event_type = event.event_type

        for reg in self._handlers:
            if event_type not in reg.event_types:
                continue

            try:
                await reg.handler(event)
            except Exception as e:
                logger.exception(
                    "Async handler %s failed for event %s",
                    reg.handler,
                    event_type,
                )
                errors.append(e)

        return errors
