import logging
import math
import random
import time
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from hotel_pricing.config import get_settings
from hotel_pricing.errors import (
    CalculationFailure,
    PricingValidationError,
    RoomNotFoundError,
    TransientStorageError,
)
from hotel_pricing.models import (
    Room,
    Booking,
    BookingRoom,
    CompetitorRoom,
    CompetitorPriceSurvey,
    PricingCalculation,
    PricingMetric,
    INACTIVE_BOOKING_STATUSES,
)
from hotel_pricing.services.price_cache import PriceCache
from hotel_pricing.utils.clock import utcnow

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class PricingFactors:
    room_id: str
    date: date
    base_price: float
    calculated_price: float
    occupancy_rate: float
    demand_score: float
    time_multiplier: float
    occupancy_multiplier: float
    competitor_multiplier: float
    demand_multiplier: float
    final_multiplier: float
    pricing_factors: dict = field(default_factory=dict)  # raw inputs
    calculated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["date"] = self.date.isoformat()
        data["calculated_at"] = self.calculated_at.isoformat() if self.calculated_at else None
        return data

    @classmethod
    def from_cache(cls, entry) -> "PricingFactors":
        return cls(
            room_id=entry.room_id,
            date=entry.date,
            base_price=entry.base_price,
            calculated_price=entry.price_per_night,
            occupancy_rate=entry.occupancy_rate,
            demand_score=entry.demand_score,
            time_multiplier=entry.time_multiplier,
            occupancy_multiplier=entry.occupancy_multiplier,
            competitor_multiplier=entry.competitor_multiplier,
            demand_multiplier=entry.demand_multiplier,
            final_multiplier=entry.final_multiplier,
            pricing_factors=entry.pricing_factors or {},
            calculated_at=entry.calculated_at,
        )


def time_multiplier(day: date, peak_months: Optional[List[int]] = None) -> float:
    """
    Day-of-week / seasonality factor.

    Weekend is checked first, so a Saturday in a peak month is 1.2, not 1.3.
    """
    if peak_months is None:
        peak_months = settings.peak_months
    if day.weekday() in (5, 6):
        return 1.2
    if day.month in peak_months:
        return 1.3
    return 1.0


def occupancy_multiplier(occupancy_rate: float) -> float:
    if occupancy_rate >= 95:
        return 1.5
    if occupancy_rate >= 85:
        return 1.3
    if occupancy_rate >= 70:
        return 1.15
    if occupancy_rate <= 30:
        return 0.85
    return 1.0


def competitor_multiplier(base_price: float, competitor_avg: float) -> float:
    """
    Nudge towards the market: cheaper than 90% of the competitor average
    goes up 10%, dearer than 110% goes down 5%.
    """
    if not competitor_avg:
        return 1.0
    if base_price < competitor_avg * 0.9:
        return 1.1
    if base_price > competitor_avg * 1.1:
        return 0.95
    return 1.0


def demand_multiplier(demand_score: float) -> float:
    return 1.0 + (demand_score - 50) / 100


def demand_score(occupancy_rate: float, jitter: float = 0.0) -> float:
    return min(100.0, occupancy_rate + jitter)


def round_to_increment(price: float, increment: Optional[int] = None) -> float:
    """Round half-up to the nearest currency increment (10 000 by default)."""
    increment = Decimal(increment or settings.price_rounding_increment)
    steps = (Decimal(str(price)) / increment).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return float(steps * increment)


def _bound(value) -> Optional[float]:
    # Zero or missing bounds are "not configured"
    return float(value) if value else None


def apply_bounds(price: float, min_price, max_price):
    """Return (price, clamped) with the price forced into [min, max]."""
    min_price, max_price = _bound(min_price), _bound(max_price)
    if min_price is not None and price < min_price:
        return min_price, True
    if max_price is not None and price > max_price:
        return max_price, True
    return price, False


def default_jitter() -> float:
    return random.uniform(0, settings.demand_jitter_max)


class PricingCalculator:
    """
    Computes nightly prices from occupancy, seasonality and competitor data.

    `jitter` and `clock` are injectable so tests can pin the demand noise and
    the current time.
    """

    def __init__(
        self,
        db: Session,
        jitter: Optional[Callable[[], float]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.jitter = jitter or default_jitter
        self.clock = clock or utcnow
        self.cache = PriceCache(db)

    def calculate(self, room_id: str, day: date, force_recalculate: bool = False) -> PricingFactors:
        started = time.perf_counter()
        now = self.clock()

        try:
            if not force_recalculate:
                cached = self.cache.get(room_id, day, now)
                if cached is not None:
                    factors = PricingFactors.from_cache(cached)
                    self._record_calculation(room_id, day, "completed", started, now, cache_hit=True)
                    self.db.commit()
                    logger.debug(f"Cache hit for room {room_id} on {day}")
                    return factors

            factors = self._compute(room_id, day, now)

            self.cache.upsert(factors, now)
            self._record_price_change(factors, now)
            self._record_calculation(room_id, day, "completed", started, now)
            self.db.commit()
        except OperationalError as e:
            self._record_failure(room_id, day, started, now, e)
            raise TransientStorageError(f"Database unavailable while pricing room {room_id}: {e}") from e
        except Exception as e:
            self._record_failure(room_id, day, started, now, e)
            raise

        logger.info(
            f"Priced room {room_id} for {day}: {factors.calculated_price:.0f} "
            f"(x{factors.final_multiplier:.3f}, occupancy {factors.occupancy_rate:.0f}%)"
        )
        return factors

    def _compute(self, room_id: str, day: date, now: datetime) -> PricingFactors:
        room = self.db.query(Room).filter(Room.id == room_id).first()
        if room is None:
            raise RoomNotFoundError(room_id)

        base_price = float(room.base_price or 0)
        if base_price <= 0:
            raise PricingValidationError(f"Room {room_id} has no positive base price")

        occupancy = self.get_occupancy(room, day)
        score = demand_score(occupancy["occupancy_rate"], self.jitter())
        competitors = self.get_competitor_summary(room_id, day)

        time_mult = time_multiplier(day)
        occupancy_mult = occupancy_multiplier(occupancy["occupancy_rate"])
        competitor_mult = competitor_multiplier(base_price, competitors["average_price"])
        demand_mult = demand_multiplier(score)

        final_multiplier = time_mult * occupancy_mult * competitor_mult * demand_mult
        raw_price = base_price * final_multiplier
        if not math.isfinite(raw_price):
            raise CalculationFailure(f"Non-finite price for room {room_id}: {raw_price}")

        price, clamped = apply_bounds(raw_price, room.min_auto_price, room.max_auto_price)
        if not clamped:
            price, clamped = apply_bounds(round_to_increment(price), room.min_auto_price, room.max_auto_price)
        if clamped:
            final_multiplier = price / base_price

        return PricingFactors(
            room_id=room_id,
            date=day,
            base_price=base_price,
            calculated_price=price,
            occupancy_rate=occupancy["occupancy_rate"],
            demand_score=score,
            time_multiplier=time_mult,
            occupancy_multiplier=occupancy_mult,
            competitor_multiplier=competitor_mult,
            demand_multiplier=demand_mult,
            final_multiplier=final_multiplier,
            pricing_factors={
                "date": day.isoformat(),
                "day_of_week": day.weekday(),
                "is_weekend": day.weekday() in (5, 6),
                "is_peak_season": day.month in settings.peak_months,
                "occupancy": occupancy,
                "competitors": competitors,
                "constraints": {
                    "min_price": _bound(room.min_auto_price),
                    "max_price": _bound(room.max_auto_price),
                    "raw_price": raw_price,
                    "was_clamped": clamped,
                },
            },
            calculated_at=now,
        )

    def get_occupancy(self, room: Room, day: date) -> dict:
        """Booked units for the night of `day` (check_in <= day < check_out)."""
        booked = self.db.query(func.count(BookingRoom.id)).join(
            Booking, BookingRoom.booking_id == Booking.id
        ).filter(
            BookingRoom.room_id == room.id,
            Booking.check_in <= day,
            Booking.check_out > day,
            Booking.status.notin_(INACTIVE_BOOKING_STATUSES),
        ).scalar() or 0

        allotment = room.allotment or 0
        rate = (booked * 100 / allotment) if allotment > 0 else 0.0
        return {
            "total_units": allotment,
            "booked_units": booked,
            "available_units": max(0, allotment - booked),
            "occupancy_rate": rate,
        }

    def get_competitor_summary(self, room_id: str, day: date) -> dict:
        window_start = day - timedelta(days=settings.competitor_window_days)
        prices = [
            float(p[0]) for p in self.db.query(CompetitorPriceSurvey.price).join(
                CompetitorRoom, CompetitorPriceSurvey.competitor_room_id == CompetitorRoom.id
            ).filter(
                CompetitorRoom.comparable_room_id == room_id,
                CompetitorRoom.is_active.is_(True),
                CompetitorPriceSurvey.survey_date >= window_start,
                CompetitorPriceSurvey.survey_date <= day,
            ).all()
        ]

        if not prices:
            return {"average_price": 0.0, "min_price": 0.0, "max_price": 0.0, "sample_count": 0}

        return {
            "average_price": sum(prices) / len(prices),
            "min_price": min(prices),
            "max_price": max(prices),
            "sample_count": len(prices),
        }

    def _record_price_change(self, factors: PricingFactors, now: datetime):
        base = factors.base_price
        self.db.add(PricingMetric(
            metric_type="price_change",
            metric_name="calculated_price",
            metric_value=factors.calculated_price,
            room_id=factors.room_id,
            previous_value=base,
            change_percentage=(factors.calculated_price - base) / base * 100,
            context_data={
                "date": factors.date.isoformat(),
                "final_multiplier": factors.final_multiplier,
                "occupancy_rate": factors.occupancy_rate,
            },
            recorded_at=now,
        ))

    def _record_calculation(
        self,
        room_id: str,
        day: date,
        status: str,
        started: float,
        now: datetime,
        cache_hit: bool = False,
        error: Optional[str] = None,
    ):
        self.db.add(PricingCalculation(
            room_id=room_id,
            date=day,
            status=status,
            cache_hit=cache_hit,
            processing_time_ms=(time.perf_counter() - started) * 1000,
            error_message=error,
            created_at=now,
        ))

    def _record_failure(self, room_id: str, day: date, started: float, now: datetime, exc: Exception):
        self.db.rollback()
        try:
            self._record_calculation(room_id, day, "failed", started, now, error=str(exc))
            self.db.commit()
        except Exception as record_error:
            # The original error matters more; keep it as the one that propagates
            logger.warning(f"Could not record failed calculation for room {room_id}: {record_error}")
            self.db.rollback()
