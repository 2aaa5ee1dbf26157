"""
Pricing monitor: samples performance and business metrics, evaluates alert
rules against them, and turns the open alerts into a health score.

Alert state lives in the database only (`pricing_alerts` for open alerts,
`alert_cooldowns` for the last notification per metric) and is re-read on
every pass, so any number of monitor instances agree on it.
"""
import logging
import operator
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from hotel_pricing.config import get_settings
from hotel_pricing.database import upsert_insert
from hotel_pricing.models import (
    AlertCooldown,
    HotelSettings,
    PriceApproval,
    PricingAlert,
    PricingCalculation,
    PricingEvent,
    PricingEventStatus,
    PricingMetric,
    Room,
)
from hotel_pricing.services.system_metrics import SystemMetricsProvider, PsutilSystemMetricsProvider
from hotel_pricing.utils.clock import utcnow

logger = logging.getLogger(__name__)
settings = get_settings()

OPERATORS = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
    "=": operator.eq,
}

SEVERITY_PENALTY = {
    "critical": 25,
    "high": 15,
    "medium": 10,
    "low": 5,
}


@dataclass(frozen=True)
class AlertRule:
    metric_name: str
    threshold: float
    operator: str
    severity: str
    cooldown_minutes: int
    enabled: bool = True

    def is_triggered(self, value: float) -> bool:
        return OPERATORS[self.operator](value, self.threshold)

    def describe(self, value: float) -> str:
        return f"{self.metric_name} {self.operator} {self.threshold} (current: {value:.2f})"


DEFAULT_ALERT_RULES = [
    AlertRule("average_calculation_time_ms", 1000, ">", "high", 5),
    AlertRule("cache_hit_rate", 80, "<", "medium", 10),
    AlertRule("error_rate", 5, ">", "high", 5),
    AlertRule("queue_size", 100, ">", "medium", 3),
    AlertRule("price_updates_per_hour", 50, ">", "medium", 15),
    AlertRule("approval_rate", 20, ">", "high", 10),
    AlertRule("memory_usage_mb", 1024, ">", "critical", 2),
    AlertRule("cpu_usage_percent", 80, ">", "high", 5),
]


class PricingMonitor:
    def __init__(
        self,
        db: Session,
        notifier=None,
        system_metrics: Optional[SystemMetricsProvider] = None,
        rules: Optional[List[AlertRule]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.notifier = notifier
        self.system_metrics = system_metrics or PsutilSystemMetricsProvider()
        self.rules = rules if rules is not None else DEFAULT_ALERT_RULES
        self.clock = clock or utcnow

    def _record(self, metric_type: str, metrics: Dict[str, float], now: datetime):
        for name, value in metrics.items():
            self.db.add(PricingMetric(
                metric_type=metric_type,
                metric_name=name,
                metric_value=value,
                recorded_at=now,
            ))
        self.db.commit()

    def collect_performance_metrics(self) -> Dict[str, float]:
        now = self.clock()
        window_seconds = settings.performance_window_seconds
        since = now - timedelta(seconds=window_seconds)

        calculations = self.db.query(PricingCalculation).filter(
            PricingCalculation.created_at >= since,
        ).all()

        completed = [c for c in calculations if c.status == "completed"]
        full_runs = [c for c in completed if not c.cache_hit and c.processing_time_ms is not None]
        hits = [c for c in completed if c.cache_hit]
        failed = [c for c in calculations if c.status == "failed"]

        metrics = {
            "pricing_calculations_per_second": len(calculations) / window_seconds,
            "average_calculation_time_ms": (
                sum(c.processing_time_ms for c in full_runs) / len(full_runs) if full_runs else 0.0
            ),
            # Nothing looked up means nothing missed
            "cache_hit_rate": len(hits) / len(completed) * 100 if completed else 100.0,
            "error_rate": len(failed) / len(calculations) * 100 if calculations else 0.0,
            "queue_size": float(self.db.query(PricingEvent).filter(
                PricingEvent.processed.is_(False),
                PricingEvent.status != PricingEventStatus.FAILED.value,
            ).count()),
            "memory_usage_mb": float(self.system_metrics.memory_usage_mb()),
            "cpu_usage_percent": float(self.system_metrics.cpu_usage_percent()),
        }

        self._record("performance", metrics, now)
        return metrics

    def collect_business_metrics(self) -> Dict[str, float]:
        now = self.clock()
        window_minutes = settings.business_window_minutes
        since = now - timedelta(minutes=window_minutes)

        samples = self.db.query(PricingMetric).filter(
            PricingMetric.metric_type == "price_change",
            PricingMetric.recorded_at >= since,
        ).all()
        changes = [abs(s.change_percentage) for s in samples if s.change_percentage is not None]

        approvals = self.db.query(PriceApproval).filter(PriceApproval.created_at >= since).all()
        pending = [a for a in approvals if a.status == "pending"]

        metrics = {
            "total_rooms": float(self.db.query(Room).count()),
            "rooms_with_auto_pricing": float(
                self.db.query(Room).filter(Room.auto_pricing_enabled.is_(True)).count()
            ),
            "average_price_change_percentage": sum(changes) / len(changes) if changes else 0.0,
            "price_updates_per_hour": len(samples) * 60 / window_minutes,
            "approval_rate": len(pending) / len(approvals) * 100 if approvals else 0.0,
            "revenue_impact_estimate": sum(
                s.metric_value - (s.previous_value or 0.0) for s in samples
            ),
        }

        self._record("business", metrics, now)
        return metrics

    async def check_alerts(self, metrics: Dict[str, float]) -> List[PricingAlert]:
        """
        Evaluate every enabled rule. Returns the alerts raised or refreshed
        on this pass (the ones the operator was told about).
        """
        raised = []
        for rule in self.rules:
            if not rule.enabled or rule.metric_name not in metrics:
                continue

            value = metrics[rule.metric_name]
            if rule.is_triggered(value):
                alert = self._trigger(rule, value)
                if alert is not None:
                    raised.append(alert)
            else:
                self._resolve(rule.metric_name)

        for alert in raised:
            await self._notify(alert)
        return raised

    def _active_alert(self, metric_name: str) -> Optional[PricingAlert]:
        return self.db.query(PricingAlert).filter(
            PricingAlert.metric_name == metric_name,
            PricingAlert.is_active.is_(True),
        ).first()

    def _trigger(self, rule: AlertRule, value: float) -> Optional[PricingAlert]:
        now = self.clock()
        cooldown = self.db.query(AlertCooldown).filter(AlertCooldown.metric_name == rule.metric_name).first()
        if cooldown is not None and now - cooldown.last_triggered_at < timedelta(minutes=rule.cooldown_minutes):
            return None

        alert = self._active_alert(rule.metric_name)
        if alert is None:
            alert = PricingAlert(
                metric_name=rule.metric_name,
                threshold=rule.threshold,
                severity=rule.severity,
                is_active=True,
            )
            self.db.add(alert)
        alert.current_value = value
        alert.message = rule.describe(value)
        alert.triggered_at = now

        self._stamp_cooldown(rule.metric_name, now)
        self.db.commit()
        logger.warning(f"🚨 Pricing alert [{rule.severity}]: {alert.message}")
        return alert

    def _stamp_cooldown(self, metric_name: str, now: datetime):
        """Record the notification time for a metric, inserting the row on first use."""
        stmt = upsert_insert(self.db, AlertCooldown).values(metric_name=metric_name, last_triggered_at=now)
        self.db.execute(stmt.on_conflict_do_update(
            index_elements=["metric_name"],
            set_={"last_triggered_at": stmt.excluded.last_triggered_at},
        ))

    def _resolve(self, metric_name: str):
        alert = self._active_alert(metric_name)
        if alert is None:
            return
        alert.is_active = False
        alert.resolved_at = self.clock()
        self.db.commit()
        logger.info(f"✅ Pricing alert resolved: {metric_name}")

    async def _notify(self, alert: PricingAlert):
        if self.notifier is None:
            return
        hotel = HotelSettings.get(self.db)
        await self.notifier.send_pricing_alert(
            alert,
            hotel.whatsapp_number if hotel else None,
            hotel_name=hotel.hotel_name if hotel else None,
        )

    def get_active_alerts(self) -> List[PricingAlert]:
        return self.db.query(PricingAlert).filter(
            PricingAlert.is_active.is_(True),
        ).order_by(PricingAlert.triggered_at.desc()).all()

    async def run_monitoring_pass(self) -> Dict:
        performance = self.collect_performance_metrics()
        business = self.collect_business_metrics()
        raised = await self.check_alerts({**performance, **business})
        return {
            "performance": performance,
            "business": business,
            "alerts_raised": len(raised),
        }

    async def get_system_health(self) -> Dict:
        result = await self.run_monitoring_pass()
        performance = result["performance"]
        active = self.get_active_alerts()

        score = 100
        for alert in active:
            score -= SEVERITY_PENALTY.get(alert.severity, 0)
        if performance["error_rate"] > 5:
            score -= 20
        if performance["cache_hit_rate"] < 70:
            score -= 15
        score = max(0, score)

        if score >= 80:
            status = "healthy"
        elif score >= 60:
            status = "warning"
        else:
            status = "critical"

        return {
            "status": status,
            "health_score": score,
            "performance_metrics": performance,
            "business_metrics": result["business"],
            "active_alerts": [a.to_dict() for a in active],
            "timestamp": self.clock().isoformat(),
        }

    def get_metrics_history(self, metric_name: str, hours: int = 24) -> List[Dict]:
        since = self.clock() - timedelta(hours=hours)
        samples = self.db.query(PricingMetric).filter(
            PricingMetric.metric_name == metric_name,
            PricingMetric.recorded_at >= since,
        ).order_by(PricingMetric.recorded_at.asc(), PricingMetric.id.asc()).all()

        return [
            {
                "metric_type": s.metric_type,
                "metric_name": s.metric_name,
                "metric_value": s.metric_value,
                "room_id": s.room_id,
                "previous_value": s.previous_value,
                "change_percentage": s.change_percentage,
                "recorded_at": s.recorded_at.isoformat(),
            }
            for s in samples
        ]
