from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, Text, ForeignKey
from hotel_pricing.utils.clock import utcnow
from hotel_pricing.database import Base
import enum


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    AUTO_APPROVED = "auto_approved"
    APPROVED = "approved"
    REJECTED = "rejected"


class PriceApproval(Base):
    __tablename__ = "price_approvals"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    pricing_event_id = Column(Integer, ForeignKey("pricing_events.id"), nullable=True)

    old_price = Column(Float, nullable=False)
    new_price = Column(Float, nullable=False)
    price_change_percentage = Column(Float, nullable=False)

    status = Column(String(20), default=ApprovalStatus.PENDING.value, nullable=False, index=True)
    auto_approve = Column(Boolean, default=False, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    approved_by = Column(String(100), nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    def is_expired(self, now) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def __repr__(self) -> str:
        return f"<PriceApproval {self.id}: {self.old_price} -> {self.new_price} {self.status}>"


class PricingAdjustmentLog(Base):
    """Audit row for every applied (or explicitly rejected) price change."""
    __tablename__ = "pricing_adjustment_logs"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    previous_price = Column(Float, nullable=False)
    new_price = Column(Float, nullable=False)
    adjustment_reason = Column(Text, nullable=True)
    adjustment_type = Column(String(30), nullable=False)  # auto_approved, manual_approved, manual_rejected
    created_at = Column(DateTime, default=utcnow, nullable=False)
