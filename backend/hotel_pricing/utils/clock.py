from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from hotel_pricing.config import get_settings


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how the timestamp columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def hotel_today(tz_name: str | None = None) -> date:
    """Current calendar date at the hotel."""
    tz = ZoneInfo(tz_name or get_settings().hotel_timezone)
    return datetime.now(tz).date()


def format_currency(amount: float, symbol: str | None = None) -> str:
    """Format using dot thousands separators, e.g. `Rp 500.000`."""
    symbol = symbol or get_settings().currency_symbol
    return f"{symbol} {float(amount):,.0f}".replace(",", ".")
