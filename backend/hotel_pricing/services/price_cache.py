import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from hotel_pricing.config import get_settings
from hotel_pricing.database import upsert_insert
from hotel_pricing.models import PriceCacheEntry

logger = logging.getLogger(__name__)
settings = get_settings()

FACTOR_FIELDS = (
    "base_price",
    "occupancy_rate",
    "demand_score",
    "time_multiplier",
    "occupancy_multiplier",
    "competitor_multiplier",
    "demand_multiplier",
    "final_multiplier",
    "pricing_factors",
)


class PriceCache:
    """
    Short-lived store of the latest computed price per (room, date).

    Entries are never deleted: they expire through `valid_until`, and
    invalidation just moves `valid_until` to now.
    """

    def __init__(self, db: Session, ttl_minutes: Optional[int] = None):
        self.db = db
        self.ttl = timedelta(minutes=ttl_minutes if ttl_minutes is not None else settings.price_cache_ttl_minutes)

    def get(self, room_id: str, day: date, now: datetime) -> Optional[PriceCacheEntry]:
        # Rows are written with Core upserts, so refresh anything already in the identity map
        return self.db.query(PriceCacheEntry).filter(
            PriceCacheEntry.room_id == room_id,
            PriceCacheEntry.date == day,
            PriceCacheEntry.valid_until > now,
        ).populate_existing().first()

    def upsert(self, factors, now: datetime):
        """
        Write factors for (room, date). Last writer wins.

        A single INSERT ... ON CONFLICT DO UPDATE on the (room_id, date)
        unique key, so two workers computing the same cold entry never
        collide on the constraint.
        """
        values = {field: getattr(factors, field) for field in FACTOR_FIELDS}
        values.update(
            price_per_night=factors.calculated_price,
            calculated_at=factors.calculated_at,
            valid_until=now + self.ttl,
            updated_at=now,
        )

        stmt = upsert_insert(self.db, PriceCacheEntry).values(
            room_id=factors.room_id, date=factors.date, **values
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["room_id", "date"],
            set_={name: stmt.excluded[name] for name in values},
        )
        self.db.execute(stmt)

    def invalidate_room(self, room_id: str, now: datetime) -> int:
        """Expire every still-valid entry for a room. Returns how many were expired."""
        count = self.db.query(PriceCacheEntry).filter(
            PriceCacheEntry.room_id == room_id,
            PriceCacheEntry.valid_until > now,
        ).update({PriceCacheEntry.valid_until: now})
        if count:
            logger.info(f"Invalidated {count} cached price(s) for room {room_id}")
        return count
