from hotel_pricing.utils.clock import utcnow, hotel_today, format_currency

__all__ = ["utcnow", "hotel_today", "format_currency"]
