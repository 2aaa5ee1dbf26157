from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class ApprovalResponse(BaseModel):
    id: int
    room_id: str
    pricing_event_id: Optional[int]
    old_price: float
    new_price: float
    price_change_percentage: float
    status: str
    auto_approve: bool
    expires_at: Optional[datetime]
    approved_by: Optional[str]
    resolved_at: Optional[datetime]
    rejection_reason: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class ApprovalDecision(BaseModel):
    approved_by: Optional[str] = None
    reason: Optional[str] = None


class OperatorReply(BaseModel):
    """Inbound WhatsApp message forwarded by the messaging gateway."""
    message: str
    sender: Optional[str] = None
