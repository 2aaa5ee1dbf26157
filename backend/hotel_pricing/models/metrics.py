from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, Float, Text, JSON, Index
from hotel_pricing.database import Base


class PricingMetric(Base):
    """
    Append-only time series of performance, business and price-change samples.
    Never updated after insert.
    """
    __tablename__ = "pricing_metrics"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    metric_type = Column(String(30), nullable=False)  # price_change, performance, business
    metric_name = Column(String(100), nullable=False)
    metric_value = Column(Float, nullable=False)

    room_id = Column(String(36), nullable=True, index=True)
    previous_value = Column(Float, nullable=True)
    change_percentage = Column(Float, nullable=True)
    context_data = Column(JSON, nullable=True)

    recorded_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index('ix_pricing_metrics_name_time', 'metric_name', 'recorded_at'),
        Index('ix_pricing_metrics_type_time', 'metric_type', 'recorded_at'),
    )


class PricingCalculation(Base):
    """
    One row per calculation request, cache hits included.

    Source for latency, error-rate and cache-hit-rate metrics.
    """
    __tablename__ = "pricing_calculations"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    room_id = Column(String(36), nullable=False)
    date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False)  # completed, failed
    cache_hit = Column(Boolean, default=False, nullable=False)
    processing_time_ms = Column(Float, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, index=True)
