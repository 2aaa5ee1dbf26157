from hotel_pricing.schemas.pricing import (
    CalculateRequest,
    BatchCalculateRequest,
    ProcessEventsRequest,
    PricingEventCreate,
    PricingEventResponse,
)
from hotel_pricing.schemas.approval import ApprovalResponse, ApprovalDecision, OperatorReply

__all__ = [
    "CalculateRequest",
    "BatchCalculateRequest",
    "ProcessEventsRequest",
    "PricingEventCreate",
    "PricingEventResponse",
    "ApprovalResponse",
    "ApprovalDecision",
    "OperatorReply",
]
