from sqlalchemy import Column, Integer, String, DateTime, Date, Float, JSON, ForeignKey, UniqueConstraint
from hotel_pricing.database import Base


class PriceCacheEntry(Base):
    """
    Latest computed price for a (room, date).

    Valid while `now < valid_until`. Rows are overwritten on every full
    calculation and simply go stale afterwards; nothing deletes them.
    """
    __tablename__ = "price_cache"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)

    base_price = Column(Float, nullable=False)
    price_per_night = Column(Float, nullable=False)
    occupancy_rate = Column(Float, nullable=False)
    demand_score = Column(Float, nullable=False)
    time_multiplier = Column(Float, nullable=False)
    occupancy_multiplier = Column(Float, nullable=False)
    competitor_multiplier = Column(Float, nullable=False)
    demand_multiplier = Column(Float, nullable=False)
    final_multiplier = Column(Float, nullable=False)
    pricing_factors = Column(JSON, nullable=True)

    calculated_at = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint('room_id', 'date', name='uq_price_cache_room_date'),
    )

    def __repr__(self) -> str:
        return f"<PriceCacheEntry {self.room_id}@{self.date}: {self.price_per_night} until {self.valid_until}>"
