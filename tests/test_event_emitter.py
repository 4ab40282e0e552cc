"""Tests for the domain event emitter."""

import json
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from attendease.events import (
    AsyncEventEmitter,
    DomainEvent,
    EventCategory,
    EventMetadata,
    LeaveApproved,
)


def leave_approved() -> LeaveApproved:
    return LeaveApproved(
        metadata=EventMetadata.create(organization_id=uuid4(), actor_id=uuid4()),
        leave_id=uuid4(),
        user_id=uuid4(),
        leave_type="sick",
        start_date=date(2024, 3, 8),
        end_date=date(2024, 3, 11),
        total_days=Decimal("2"),
        leave_dates=(date(2024, 3, 8), date(2024, 3, 11)),
    )


class TestEmitter:
    async def test_type_handler_receives_event(self):
        emitter = AsyncEventEmitter()
        seen = []

        async def handler(event):
            seen.append(event)

        emitter.on(LeaveApproved, handler)
        event = leave_approved()

        assert await emitter.emit(event) == []
        assert seen == [event]

    async def test_handlers_run_in_registration_order(self):
        emitter = AsyncEventEmitter()
        order = []

        async def first(event):
            order.append(1)

        async def second(event):
            order.append(2)

        emitter.on(LeaveApproved, first)
        emitter.on([LeaveApproved], second)
        await emitter.emit(leave_approved())

        assert order == [1, 2]

    async def test_failing_handler_does_not_stop_others(self):
        emitter = AsyncEventEmitter()
        seen = []

        async def broken(event):
            raise ValueError("boom")

        async def healthy(event):
            seen.append(event)

        emitter.on(LeaveApproved, broken)
        emitter.on(LeaveApproved, healthy)
        errors = await emitter.emit(leave_approved())

        assert len(errors) == 1
        assert isinstance(errors[0], ValueError)
        assert len(seen) == 1


class TestEventTypes:
    def test_event_type_and_category(self):
        event = leave_approved()

        assert event.event_type == "LeaveApproved"
        assert event.category == EventCategory.LEAVE

    def test_base_event_has_no_category(self):
        event = DomainEvent(metadata=EventMetadata.create(organization_id=uuid4()))

        with pytest.raises(NotImplementedError):
            event.category

    def test_to_dict_is_json_ready(self):
        event = leave_approved()

        data = json.loads(event.to_json())

        assert data["event_type"] == "LeaveApproved"
        assert data["category"] == "leave"
        assert data["total_days"] == "2"
        assert data["leave_dates"] == ["2024-03-08", "2024-03-11"]
        assert data["metadata"]["organization_id"] == str(event.metadata.organization_id)
        assert data["metadata"]["source_service"] == "attendease"
