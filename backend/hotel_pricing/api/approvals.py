from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from hotel_pricing.database import get_db
from hotel_pricing.errors import PricingError
from hotel_pricing.schemas import ApprovalResponse, ApprovalDecision, OperatorReply
from hotel_pricing.services.approvals import ApprovalService
from hotel_pricing.services.notification import get_global_notifier

router = APIRouter()


def get_approval_service(
    db: Session = Depends(get_db),
    notifier=Depends(get_global_notifier),
) -> ApprovalService:
    return ApprovalService(db, notifier=notifier)


@router.get("", response_model=List[ApprovalResponse])
async def list_approvals(
    status: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
    service: ApprovalService = Depends(get_approval_service),
):
    return service.list_approvals(status=status, limit=limit)


@router.post("/sweep")
async def sweep_expired_approvals(service: ApprovalService = Depends(get_approval_service)):
    """Reject pending approvals whose window has passed."""
    return {"expired": service.sweep_expired()}


@router.post("/reply")
async def operator_reply(reply: OperatorReply, service: ApprovalService = Depends(get_approval_service)):
    """Webhook for operator WhatsApp replies (`APPROVE <room>` / `REJECT <room> [reason]`)."""
    try:
        approval = await service.handle_reply(reply.message, approved_by=reply.sender)
    except PricingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    if approval is None:
        return {"handled": False, "approval": None}
    return {"handled": True, "approval": ApprovalResponse.model_validate(approval)}


@router.post("/{approval_id}/approve", response_model=ApprovalResponse)
async def approve_price_change(
    approval_id: int,
    decision: Optional[ApprovalDecision] = None,
    service: ApprovalService = Depends(get_approval_service),
):
    decision = decision or ApprovalDecision()
    try:
        return await service.approve(approval_id, approved_by=decision.approved_by)
    except PricingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{approval_id}/reject", response_model=ApprovalResponse)
async def reject_price_change(
    approval_id: int,
    decision: Optional[ApprovalDecision] = None,
    service: ApprovalService = Depends(get_approval_service),
):
    decision = decision or ApprovalDecision()
    try:
        return await service.reject(approval_id, approved_by=decision.approved_by, reason=decision.reason)
    except PricingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
