from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    env: str = "dev"
    database_url: str = "sqlite:///./data/hotel_pricing.db"
    redis_url: str = "redis://localhost:6379/0"

    scheduler_enabled: bool = True
    hotel_timezone: str = "Asia/Jakarta"

    # Pricing calculator
    price_cache_ttl_minutes: int = 15
    price_rounding_increment: int = 10000
    peak_months: List[int] = [6, 7, 8, 12]
    competitor_window_days: int = 7
    demand_jitter_max: float = 10.0
    currency_symbol: str = "Rp"

    # Event queue / approvals
    event_batch_size: int = 10
    event_max_retries: int = 3
    event_processing_interval_minutes: int = 5
    event_claim_timeout_minutes: int = 10
    approval_threshold_percent: float = 10.0
    approval_window_minutes: int = 30

    # Monitoring
    monitor_interval_seconds: int = 60
    performance_window_seconds: int = 60
    business_window_minutes: int = 60

    # Operator notifications (WhatsApp gateway)
    notification_gateway_url: str = "http://localhost:3000/send-whatsapp"
    notification_gateway_token: str = ""

    def model_post_init(self, __context):
        if self.env == "prod" and self.database_url.startswith("sqlite"):
            raise ValueError(
                "Production requires explicit DATABASE_URL (not SQLite)"
            )
        if self.price_rounding_increment <= 0:
            raise ValueError("PRICE_ROUNDING_INCREMENT must be positive")

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
