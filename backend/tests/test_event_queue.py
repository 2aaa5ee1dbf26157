"""Tests for the pricing event queue."""
import pytest
from datetime import timedelta

from hotel_pricing.errors import PricingValidationError, TransientStorageError
from hotel_pricing.models import (
    PricingEvent,
    PriceApproval,
    PricingAdjustmentLog,
    Room,
)
from hotel_pricing.services.event_queue import PricingEventQueue


class FakeCalculator:
    """Records which rooms were repriced; optionally fails."""

    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def calculate(self, room_id, day, force_recalculate=False):
        self.calls.append((room_id, force_recalculate))
        if self.error is not None:
            raise self.error


@pytest.fixture
def fake_calculator():
    return FakeCalculator()


@pytest.fixture
def queue(db_session, fake_calculator, notifier, clock):
    return PricingEventQueue(db_session, calculator=fake_calculator, notifier=notifier, clock=clock)


class TestEnqueue:
    def test_new_event_defaults(self, queue):
        event = queue.enqueue("booking_change", "room-1", {"booking_id": "b1"})

        assert event.id is not None
        assert event.processed is False
        assert event.status == "pending"
        assert event.retry_count == 0
        assert event.priority == 5

    def test_unknown_type_rejected(self, queue):
        with pytest.raises(PricingValidationError):
            queue.enqueue("price_guess", "room-1")


class TestProcessBatch:
    async def test_priority_then_fifo(self, queue, fake_calculator, clock):
        queue.enqueue("booking_change", "low-first", priority=1)
        clock.advance(seconds=1)
        queue.enqueue("booking_change", "normal-first")
        clock.advance(seconds=1)
        queue.enqueue("competitor_change", "urgent", priority=9)
        clock.advance(seconds=1)
        queue.enqueue("occupancy_update", "normal-second")

        result = await queue.process_batch(10)

        assert result == {"events_processed": 4, "errors": 0}
        assert [room for room, _ in fake_calculator.calls] == [
            "urgent", "normal-first", "normal-second", "low-first",
        ]
        assert all(forced for _, forced in fake_calculator.calls)

    async def test_batch_size_limits_work(self, db_session, queue, fake_calculator):
        for n in range(5):
            queue.enqueue("time_trigger", f"room-{n}")

        result = await queue.process_batch(2)

        assert result["events_processed"] == 2
        assert db_session.query(PricingEvent).filter(PricingEvent.processed.is_(False)).count() == 3

    async def test_completed_event_marked(self, db_session, queue):
        event = queue.enqueue("booking_change", "room-1")

        await queue.process_batch()

        db_session.refresh(event)
        assert event.processed is True
        assert event.status == "completed"
        assert event.processing_started_at is not None
        assert event.processing_completed_at is not None

    async def test_missing_room_fails_immediately(self, db_session, calculator, notifier, clock):
        queue = PricingEventQueue(db_session, calculator=calculator, notifier=notifier, clock=clock)
        event = queue.enqueue("booking_change", "1f0e3d2c-0000-4000-8000-000000000000")

        result = await queue.process_batch()

        db_session.refresh(event)
        assert result == {"events_processed": 0, "errors": 1}
        assert event.status == "failed"
        assert event.retry_count == 1
        assert event.processed is False
        assert "Room not found" in event.error_message

    async def test_transient_failure_retried_until_cap(self, db_session, notifier, clock):
        calculator = FakeCalculator(error=TransientStorageError("database is locked"))
        queue = PricingEventQueue(db_session, calculator=calculator, notifier=notifier, clock=clock)
        event = queue.enqueue("booking_change", "room-1")

        await queue.process_batch()
        db_session.refresh(event)
        assert event.status == "pending"
        assert event.retry_count == 1

        await queue.process_batch()
        await queue.process_batch()
        db_session.refresh(event)
        assert event.status == "failed"
        assert event.retry_count == 3
        assert event.processed is False

        # Failed events are never picked up again
        await queue.process_batch()
        assert len(calculator.calls) == 3

    async def test_unexpected_errors_are_retried(self, db_session, notifier, clock):
        calculator = FakeCalculator(error=RuntimeError("boom"))
        queue = PricingEventQueue(db_session, calculator=calculator, notifier=notifier, clock=clock)
        event = queue.enqueue("occupancy_update", "room-1")

        await queue.process_batch()

        db_session.refresh(event)
        assert event.status == "pending"
        assert event.error_message == "boom"

    async def test_one_failure_does_not_abort_batch(self, db_session, make_room, calculator, notifier, clock):
        room = make_room()
        queue = PricingEventQueue(db_session, calculator=calculator, notifier=notifier, clock=clock)
        queue.enqueue("booking_change", "0a0a0a0a-0000-4000-8000-000000000000", priority=9)
        queue.enqueue("booking_change", room.id)

        result = await queue.process_batch()

        assert result == {"events_processed": 1, "errors": 1}

    async def test_claim_is_exclusive(self, queue):
        event = queue.enqueue("booking_change", "room-1")

        assert queue._claim(event.id) is True
        assert queue._claim(event.id) is False

    async def test_claimed_event_skipped(self, db_session, queue, fake_calculator):
        event = queue.enqueue("booking_change", "room-1")
        queue._claim(event.id)

        result = await queue.process_batch()

        assert result["events_processed"] == 0
        assert fake_calculator.calls == []


class TestStaleClaims:
    def test_release_stale_claims(self, db_session, queue, clock):
        stale = queue.enqueue("booking_change", "room-1")
        queue._claim(stale.id)
        clock.advance(minutes=20)
        fresh = queue.enqueue("booking_change", "room-2")
        queue._claim(fresh.id)

        released = queue.release_stale_claims(older_than_minutes=10)

        db_session.refresh(stale)
        db_session.refresh(fresh)
        assert released == 1
        assert stale.status == "pending"
        assert stale.retry_count == 1
        assert fresh.status == "processing"


class TestManualOverride:
    async def test_small_change_auto_approved(self, db_session, queue, make_room, notifier):
        room = make_room(base_price=500000)
        queue.enqueue("manual_override", room.id, {"old_price": 500000, "new_price": 550000})

        result = await queue.process_batch()

        assert result["events_processed"] == 1
        approval = db_session.query(PriceApproval).one()
        assert approval.status == "auto_approved"
        assert approval.auto_approve is True
        db_session.refresh(room)
        assert room.base_price == 550000
        log = db_session.query(PricingAdjustmentLog).one()
        assert log.adjustment_type == "auto_approved"
        assert notifier.sent == []

    async def test_large_change_waits_for_operator(self, db_session, queue, make_room, hotel, notifier, clock):
        room = make_room(base_price=500000)
        queue.enqueue("manual_override", room.id, {"old_base_price": 500000, "new_base_price": 600000})

        await queue.process_batch()

        approval = db_session.query(PriceApproval).one()
        assert approval.status == "pending"
        assert approval.price_change_percentage == pytest.approx(20.0)
        assert approval.expires_at == clock.now + timedelta(minutes=30)
        assert db_session.query(Room).one().base_price == 500000
        requests = notifier.of_kind("approval_request")
        assert len(requests) == 1
        assert requests[0]["phone"] == "6281234567890"

    async def test_malformed_override_fails_permanently(self, db_session, queue, make_room):
        room = make_room()
        event = queue.enqueue("manual_override", room.id, {"new_price": 550000})

        await queue.process_batch()

        db_session.refresh(event)
        assert event.status == "failed"
        assert event.retry_count == 1
        assert db_session.query(PriceApproval).count() == 0


class TestQueueHelpers:
    def test_daily_repricing_only_auto_priced_rooms(self, db_session, queue, make_room):
        make_room(name="Auto", auto_pricing_enabled=True)
        make_room(name="Manual", auto_pricing_enabled=False)

        count = queue.enqueue_daily_repricing()

        assert count == 1
        event = db_session.query(PricingEvent).one()
        assert event.event_type == "time_trigger"
        assert event.priority == 3

    async def test_queue_size_excludes_finished_events(self, db_session, notifier, clock):
        calculator = FakeCalculator(error=PricingValidationError("bad room"))
        queue = PricingEventQueue(db_session, calculator=calculator, notifier=notifier, clock=clock)
        queue.enqueue("booking_change", "room-1")
        await queue.process_batch()
        queue.enqueue("booking_change", "room-2")

        assert queue.queue_size() == 1
