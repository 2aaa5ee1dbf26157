from fastapi import APIRouter, Depends
from typing import List, Dict

from hotel_pricing.services.notification import get_global_notifier

router = APIRouter()


@router.get("/notifications")
async def get_notifications(limit: int = 50, notifier=Depends(get_global_notifier)) -> List[Dict]:
    """Get recent operator notifications from history."""
    return notifier.get_notifications(limit=limit)


@router.delete("/notifications")
async def clear_notifications(notifier=Depends(get_global_notifier)) -> Dict[str, str]:
    """Clear notification history."""
    notifier.clear_notifications()
    return {"status": "cleared"}
