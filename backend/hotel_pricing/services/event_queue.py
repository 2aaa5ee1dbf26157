import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from hotel_pricing.config import get_settings
from hotel_pricing.errors import PricingValidationError, is_retryable
from hotel_pricing.models import PricingEvent, PricingEventType, PricingEventStatus, Room
from hotel_pricing.services.approvals import ApprovalService
from hotel_pricing.services.pricing_calculator import PricingCalculator
from hotel_pricing.utils.clock import utcnow, hotel_today

logger = logging.getLogger(__name__)
settings = get_settings()

RECALCULATION_EVENTS = {
    PricingEventType.BOOKING_CHANGE.value,
    PricingEventType.OCCUPANCY_UPDATE.value,
    PricingEventType.COMPETITOR_CHANGE.value,
    PricingEventType.TIME_TRIGGER.value,
}
EVENT_TYPES = RECALCULATION_EVENTS | {PricingEventType.MANUAL_OVERRIDE.value}


class PricingEventQueue:
    """
    Persisted work queue of pricing events.

    Events are taken highest priority first, oldest first within a priority.
    Each one is claimed with a conditional update before it is touched, so
    two processors never work the same event. Permanent failures (unknown
    room, bad payload) fail at once; anything else is retried until
    `max_retries`.
    """

    def __init__(
        self,
        db: Session,
        calculator: Optional[PricingCalculator] = None,
        notifier=None,
        approvals: Optional[ApprovalService] = None,
        clock: Optional[Callable[[], datetime]] = None,
        max_retries: Optional[int] = None,
    ):
        self.db = db
        self.clock = clock or utcnow
        self.calculator = calculator or PricingCalculator(db, clock=self.clock)
        self.approvals = approvals or ApprovalService(db, notifier=notifier, clock=self.clock)
        self.max_retries = max_retries if max_retries is not None else settings.event_max_retries

    def enqueue(
        self,
        event_type: str,
        room_id: str,
        event_data: Optional[dict] = None,
        priority: int = 5,
    ) -> PricingEvent:
        if event_type not in EVENT_TYPES:
            raise PricingValidationError(f"Unknown pricing event type: {event_type}")
        if not room_id:
            raise PricingValidationError("room_id is required")

        event = PricingEvent(
            event_type=event_type,
            room_id=room_id,
            priority=priority,
            event_data=event_data or {},
            processed=False,
            retry_count=0,
            status=PricingEventStatus.PENDING.value,
            created_at=self.clock(),
        )
        self.db.add(event)
        self.db.commit()
        logger.debug(f"Queued {event_type} event {event.id} for room {room_id} (priority {priority})")
        return event

    def _claim(self, event_id: int) -> bool:
        """Move one event from pending to processing. False if someone else got it."""
        claimed = self.db.query(PricingEvent).filter(
            PricingEvent.id == event_id,
            PricingEvent.status == PricingEventStatus.PENDING.value,
            PricingEvent.processed.is_(False),
        ).update(
            {
                PricingEvent.status: PricingEventStatus.PROCESSING.value,
                PricingEvent.processing_started_at: self.clock(),
            },
            synchronize_session=False,
        )
        self.db.commit()
        return claimed == 1

    async def process_batch(self, batch_size: Optional[int] = None) -> Dict[str, int]:
        batch_size = batch_size or settings.event_batch_size

        candidates = [
            row.id for row in self.db.query(PricingEvent.id).filter(
                PricingEvent.processed.is_(False),
                PricingEvent.status == PricingEventStatus.PENDING.value,
                PricingEvent.retry_count < self.max_retries,
            ).order_by(
                PricingEvent.priority.desc(),
                PricingEvent.created_at.asc(),
                PricingEvent.id.asc(),
            ).limit(batch_size).all()
        ]

        processed = 0
        errors = 0

        for event_id in candidates:
            if not self._claim(event_id):
                logger.debug(f"Event {event_id} already claimed, skipping")
                continue

            event = self.db.query(PricingEvent).filter(PricingEvent.id == event_id).first()

            try:
                await self._dispatch(event)
            except Exception as e:
                errors += 1
                self._record_failure(event_id, e)
                continue

            event.processed = True
            event.status = PricingEventStatus.COMPLETED.value
            event.error_message = None
            event.processing_completed_at = self.clock()
            self.db.commit()
            processed += 1

        if candidates:
            logger.info(f"📦 Processed {processed} pricing event(s), {errors} error(s)")
        return {"events_processed": processed, "errors": errors}

    async def _dispatch(self, event: PricingEvent):
        if event.event_type in RECALCULATION_EVENTS:
            self.calculator.calculate(event.room_id, hotel_today(), force_recalculate=True)
        elif event.event_type == PricingEventType.MANUAL_OVERRIDE.value:
            await self.approvals.gate_manual_override(event)
        else:
            raise PricingValidationError(f"Unknown pricing event type: {event.event_type}")

    def _record_failure(self, event_id: int, exc: Exception):
        self.db.rollback()
        event = self.db.query(PricingEvent).filter(PricingEvent.id == event_id).first()

        retryable = is_retryable(exc)
        event.retry_count = (event.retry_count or 0) + 1
        event.error_message = str(exc)
        event.processed = False

        if not retryable:
            event.status = PricingEventStatus.FAILED.value
            logger.error(f"❌ Event {event_id} ({event.event_type}) failed permanently: {exc}")
        elif event.retry_count >= self.max_retries:
            event.status = PricingEventStatus.FAILED.value
            logger.error(f"❌ Event {event_id} ({event.event_type}) failed after {event.retry_count} attempts: {exc}")
        else:
            event.status = PricingEventStatus.PENDING.value
            logger.warning(
                f"⚠️ Event {event_id} ({event.event_type}) failed, "
                f"attempt {event.retry_count}/{self.max_retries}: {exc}"
            )
        self.db.commit()

    def release_stale_claims(self, older_than_minutes: Optional[int] = None) -> int:
        """
        Return events stuck in `processing` (their processor died) to the queue.
        The lost attempt counts as a retry.
        """
        minutes = older_than_minutes if older_than_minutes is not None else settings.event_claim_timeout_minutes
        cutoff = self.clock() - timedelta(minutes=minutes)

        stale = self.db.query(PricingEvent).filter(
            PricingEvent.status == PricingEventStatus.PROCESSING.value,
            PricingEvent.processed.is_(False),
            PricingEvent.processing_started_at < cutoff,
        ).all()

        for event in stale:
            event.retry_count = (event.retry_count or 0) + 1
            event.error_message = "Processing claim timed out"
            if event.retry_count >= self.max_retries:
                event.status = PricingEventStatus.FAILED.value
            else:
                event.status = PricingEventStatus.PENDING.value

        if stale:
            self.db.commit()
            logger.warning(f"♻️ Released {len(stale)} stale pricing event claim(s)")
        return len(stale)

    def queue_size(self) -> int:
        return self.db.query(PricingEvent).filter(
            PricingEvent.processed.is_(False),
            PricingEvent.status != PricingEventStatus.FAILED.value,
        ).count()

    def enqueue_daily_repricing(self) -> int:
        """Queue a time_trigger event for every room with auto-pricing on."""
        rooms = self.db.query(Room).filter(Room.auto_pricing_enabled.is_(True)).all()
        for room in rooms:
            self.enqueue(
                PricingEventType.TIME_TRIGGER.value,
                room.id,
                event_data={"reason": "daily_repricing"},
                priority=3,
            )
        return len(rooms)
