# SQLAlchemy models
from hotel_pricing.models.room import Room, Booking, BookingRoom, INACTIVE_BOOKING_STATUSES
from hotel_pricing.models.competitor import CompetitorRoom, CompetitorPriceSurvey
from hotel_pricing.models.hotel_settings import HotelSettings
from hotel_pricing.models.price_cache import PriceCacheEntry
from hotel_pricing.models.pricing_event import PricingEvent, PricingEventType, PricingEventStatus
from hotel_pricing.models.price_approval import PriceApproval, PricingAdjustmentLog, ApprovalStatus
from hotel_pricing.models.metrics import PricingMetric, PricingCalculation
from hotel_pricing.models.alert import PricingAlert, AlertCooldown

__all__ = [
    # Platform-owned, read by the engine
    "Room",
    "Booking",
    "BookingRoom",
    "CompetitorRoom",
    "CompetitorPriceSurvey",
    "HotelSettings",
    # Engine-owned
    "PriceCacheEntry",
    "PricingEvent",
    "PriceApproval",
    "PricingAdjustmentLog",
    "PricingMetric",
    "PricingCalculation",
    "PricingAlert",
    "AlertCooldown",
    # Enums
    "PricingEventType",
    "PricingEventStatus",
    "ApprovalStatus",
    "INACTIVE_BOOKING_STATUSES",
]
