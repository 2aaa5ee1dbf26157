from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
import datetime as dt


class CalculateRequest(BaseModel):
    room_id: str = Field(..., min_length=1)
    date: Optional[dt.date] = None
    force_recalculate: bool = False


class BatchCalculateRequest(BaseModel):
    room_ids: List[str] = Field(..., min_length=1)
    date: Optional[dt.date] = None
    force_recalculate: bool = False


class ProcessEventsRequest(BaseModel):
    batch_size: Optional[int] = Field(default=None, gt=0, le=1000)


class PricingEventCreate(BaseModel):
    event_type: str
    room_id: str = Field(..., min_length=1)
    event_data: Optional[Dict[str, Any]] = None
    priority: int = 5


class PricingEventResponse(BaseModel):
    id: int
    event_type: str
    room_id: str
    priority: int
    event_data: Optional[Dict[str, Any]]
    processed: bool
    status: str
    retry_count: int
    error_message: Optional[str]
    created_at: dt.datetime
    processing_started_at: Optional[dt.datetime]
    processing_completed_at: Optional[dt.datetime]

    class Config:
        from_attributes = True
