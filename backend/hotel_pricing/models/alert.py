from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, Text, Index
from hotel_pricing.database import Base


class PricingAlert(Base):
    """
    Threshold alert on a monitored metric.

    At most one row per metric_name has is_active=True. A repeat breach
    refreshes that row instead of adding another.
    """
    __tablename__ = "pricing_alerts"

    id = Column(Integer, primary_key=True, index=True)
    metric_name = Column(String(100), nullable=False)
    current_value = Column(Float, nullable=False)
    threshold = Column(Float, nullable=False)
    severity = Column(String(20), nullable=False)  # low, medium, high, critical
    message = Column(Text, nullable=False)

    triggered_at = Column(DateTime, nullable=False)
    resolved_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index('ix_pricing_alerts_active', 'metric_name', 'is_active'),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "metric_name": self.metric_name,
            "current_value": self.current_value,
            "threshold": self.threshold,
            "severity": self.severity,
            "message": self.message,
            "triggered_at": self.triggered_at.isoformat() if self.triggered_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "is_active": self.is_active,
        }


class AlertCooldown(Base):
    """Last notification time per metric; survives restarts and is shared across instances."""
    __tablename__ = "alert_cooldowns"

    id = Column(Integer, primary_key=True)
    metric_name = Column(String(100), nullable=False, unique=True)
    last_triggered_at = Column(DateTime, nullable=False)
