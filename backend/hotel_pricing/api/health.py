from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from hotel_pricing.database import get_db
from hotel_pricing.models import PricingEvent, PricingEventStatus
from hotel_pricing.scheduler import get_scheduler_status

router = APIRouter()


@router.get("/health")
async def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"

    pending = None
    if db_status == "healthy":
        pending = db.query(PricingEvent).filter(
            PricingEvent.status == PricingEventStatus.PENDING.value,
        ).count()

    return {
        "status": "ok" if db_status == "healthy" else "degraded",
        "database": db_status,
        "pending_events": pending,
        "scheduler": get_scheduler_status(),
    }
