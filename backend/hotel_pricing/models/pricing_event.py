from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, Index
from hotel_pricing.utils.clock import utcnow
from hotel_pricing.database import Base
import enum


class PricingEventType(str, enum.Enum):
    BOOKING_CHANGE = "booking_change"
    OCCUPANCY_UPDATE = "occupancy_update"
    COMPETITOR_CHANGE = "competitor_change"
    TIME_TRIGGER = "time_trigger"
    MANUAL_OVERRIDE = "manual_override"


class PricingEventStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PricingEvent(Base):
    """
    A unit of pricing work. Rows are an audit trail and are never deleted;
    only the queue processor mutates them.
    """
    __tablename__ = "pricing_events"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    event_type = Column(String(30), nullable=False)
    room_id = Column(String(36), nullable=False, index=True)
    priority = Column(Integer, default=5, nullable=False)
    event_data = Column(JSON, nullable=True)

    processed = Column(Boolean, default=False, nullable=False)
    status = Column(String(20), default=PricingEventStatus.PENDING.value, nullable=False)
    retry_count = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    processing_started_at = Column(DateTime, nullable=True)
    processing_completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('ix_pricing_events_queue', 'processed', 'status', 'priority', 'created_at'),
    )

    def __repr__(self) -> str:
        return f"<PricingEvent {self.id}: {self.event_type} room={self.room_id} {self.status}>"
