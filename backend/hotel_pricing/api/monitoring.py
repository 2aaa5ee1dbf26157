from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hotel_pricing.database import get_db
from hotel_pricing.services.monitor import PricingMonitor
from hotel_pricing.services.notification import get_global_notifier
from hotel_pricing.services.system_metrics import get_system_metrics_provider

router = APIRouter()


def get_monitor(
    db: Session = Depends(get_db),
    notifier=Depends(get_global_notifier),
    system_metrics=Depends(get_system_metrics_provider),
) -> PricingMonitor:
    return PricingMonitor(db, notifier=notifier, system_metrics=system_metrics)


@router.get("/health")
async def pricing_health(monitor: PricingMonitor = Depends(get_monitor)):
    """Run a monitoring pass and score the pricing system 0-100."""
    return await monitor.get_system_health()


@router.get("/alerts")
async def active_alerts(monitor: PricingMonitor = Depends(get_monitor)):
    return [alert.to_dict() for alert in monitor.get_active_alerts()]


@router.get("/metrics/{metric_name}/history")
async def metric_history(
    metric_name: str,
    hours: int = Query(default=24, ge=1, le=24 * 30),
    monitor: PricingMonitor = Depends(get_monitor),
):
    return monitor.get_metrics_history(metric_name, hours=hours)
