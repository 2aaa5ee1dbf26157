from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from hotel_pricing.database import get_db
from hotel_pricing.errors import PricingError
from hotel_pricing.models import PricingEvent
from hotel_pricing.schemas import PricingEventCreate, PricingEventResponse
from hotel_pricing.services.event_queue import PricingEventQueue

router = APIRouter()


@router.post("", response_model=PricingEventResponse, status_code=201)
async def create_event(event: PricingEventCreate, db: Session = Depends(get_db)):
    """Queue a pricing event (booking change, competitor update, manual override, ...)."""
    queue = PricingEventQueue(db)
    try:
        return queue.enqueue(
            event.event_type,
            event.room_id,
            event_data=event.event_data,
            priority=event.priority,
        )
    except PricingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[PricingEventResponse])
async def list_events(
    status: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    query = db.query(PricingEvent)
    if status:
        query = query.filter(PricingEvent.status == status)
    return query.order_by(PricingEvent.created_at.desc(), PricingEvent.id.desc()).limit(limit).all()
