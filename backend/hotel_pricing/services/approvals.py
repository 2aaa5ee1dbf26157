"""
Approval gate and operator workflow for manual price overrides.

Small changes are applied straight away and logged as auto-approved.
Changes above the threshold wait for an operator decision, which arrives
through the API or as a WhatsApp reply (`APPROVE <room_id>` /
`REJECT <room_id> [reason]`). Pending approvals that nobody answers are
swept to `rejected` once their window closes.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from hotel_pricing.config import get_settings
from hotel_pricing.errors import (
    ApprovalExpiredError,
    ApprovalNotFoundError,
    ApprovalStateError,
    MalformedEventError,
    RoomNotFoundError,
)
from hotel_pricing.models import (
    ApprovalStatus,
    HotelSettings,
    PriceApproval,
    PricingAdjustmentLog,
    Room,
)
from hotel_pricing.services.price_cache import PriceCache
from hotel_pricing.utils.clock import utcnow

logger = logging.getLogger(__name__)
settings = get_settings()

EXPIRED_REASON = "Expired without operator response"

# Accepted (old, new) key pairs in a manual_override payload, in lookup order
PRICE_KEY_PAIRS = (
    ("old_price", "new_price"),
    ("old_base_price", "new_base_price"),
    ("old_price_per_night", "new_price_per_night"),
)

_APPROVE_RE = re.compile(r"^APPROVE\s+([a-f0-9-]+)$", re.IGNORECASE)
_REJECT_RE = re.compile(r"^REJECT\s+([a-f0-9-]+)(?:\s+(.+))?$", re.IGNORECASE | re.DOTALL)


@dataclass
class ApprovalReply:
    action: str  # "approve" or "reject"
    room_id: str
    reason: Optional[str] = None


def parse_approval_reply(message: str) -> Optional[ApprovalReply]:
    """Parse an operator reply. Returns None when it is not an approval command."""
    text = (message or "").strip()

    match = _APPROVE_RE.match(text)
    if match:
        return ApprovalReply(action="approve", room_id=match.group(1).lower())

    match = _REJECT_RE.match(text)
    if match:
        reason = (match.group(2) or "").strip() or "Rejected via WhatsApp"
        return ApprovalReply(action="reject", room_id=match.group(1).lower(), reason=reason)

    return None


def _to_price(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def extract_price_change(event_data: Optional[dict]) -> Tuple[float, float]:
    """Pull (old_price, new_price) out of a manual_override payload."""
    if not isinstance(event_data, dict):
        raise MalformedEventError("manual_override payload must be an object")

    for old_key, new_key in PRICE_KEY_PAIRS:
        if old_key in event_data or new_key in event_data:
            old_price = _to_price(event_data.get(old_key))
            new_price = _to_price(event_data.get(new_key))
            if old_price is None or old_price <= 0:
                raise MalformedEventError(f"manual_override needs a positive {old_key}")
            if new_price is None or new_price < 0:
                raise MalformedEventError(f"manual_override needs a valid {new_key}")
            return old_price, new_price

    raise MalformedEventError("manual_override payload has no old/new price")


def price_change_percentage(old_price: float, new_price: float) -> float:
    """Signed change in percent; the gate compares its absolute value."""
    return (new_price - old_price) * 100 / old_price


class ApprovalService:
    def __init__(
        self,
        db: Session,
        notifier=None,
        clock: Optional[Callable[[], datetime]] = None,
        threshold_percent: Optional[float] = None,
        window_minutes: Optional[int] = None,
    ):
        self.db = db
        self.notifier = notifier
        self.clock = clock or utcnow
        self.threshold_percent = (
            threshold_percent if threshold_percent is not None else settings.approval_threshold_percent
        )
        self.window = timedelta(
            minutes=window_minutes if window_minutes is not None else settings.approval_window_minutes
        )
        self.cache = PriceCache(db)

    def _operator(self) -> Tuple[Optional[str], Optional[str]]:
        hotel = HotelSettings.get(self.db)
        if hotel is None:
            return None, None
        return hotel.whatsapp_number, hotel.hotel_name

    def _get_room(self, room_id: str) -> Room:
        room = self.db.query(Room).filter(Room.id == room_id).first()
        if room is None:
            raise RoomNotFoundError(room_id)
        return room

    async def gate_manual_override(self, event) -> PriceApproval:
        """
        Route a manual price override through the approval gate.

        A change strictly above the threshold becomes a pending approval and
        the operator is asked. Anything else is applied at once.
        """
        old_price, new_price = extract_price_change(event.event_data)
        room = self._get_room(event.room_id)
        now = self.clock()

        change = price_change_percentage(old_price, new_price)
        needs_approval = abs(change) > self.threshold_percent

        approval = PriceApproval(
            room_id=room.id,
            pricing_event_id=event.id,
            old_price=old_price,
            new_price=new_price,
            price_change_percentage=change,
            auto_approve=not needs_approval,
            created_at=now,
        )

        if needs_approval:
            approval.status = ApprovalStatus.PENDING.value
            approval.expires_at = now + self.window
            self.db.add(approval)
            self.db.commit()
            logger.info(
                f"⏸️ Price change {change:+.1f}% for room {room.id} needs approval "
                f"(approval {approval.id}, expires {approval.expires_at:%H:%M})"
            )
            await self._notify_request(approval, room, event.event_data)
        else:
            approval.status = ApprovalStatus.AUTO_APPROVED.value
            approval.approved_by = "system"
            approval.resolved_at = now
            self.db.add(approval)
            self._apply(approval, room, "auto_approved", f"Auto-approved {change:+.1f}% change")
            self.db.commit()
            logger.info(f"✅ Auto-approved {change:+.1f}% price change for room {room.id}")

        return approval

    def _apply(self, approval: PriceApproval, room: Room, adjustment_type: str, reason: str):
        """Write the new base price, audit it, and expire the room's cached prices."""
        previous = room.base_price
        room.base_price = approval.new_price
        self.db.add(PricingAdjustmentLog(
            room_id=room.id,
            previous_price=previous,
            new_price=approval.new_price,
            adjustment_reason=reason,
            adjustment_type=adjustment_type,
            created_at=self.clock(),
        ))
        self.cache.invalidate_room(room.id, self.clock())

    def _get_pending(self, approval_id: int) -> PriceApproval:
        approval = self.db.query(PriceApproval).filter(PriceApproval.id == approval_id).first()
        if approval is None:
            raise ApprovalNotFoundError(approval_id)
        if approval.status != ApprovalStatus.PENDING.value:
            raise ApprovalStateError(f"Price approval {approval_id} is already {approval.status}")
        if approval.is_expired(self.clock()):
            raise ApprovalExpiredError(approval_id)
        return approval

    async def approve(self, approval_id: int, approved_by: Optional[str] = None) -> PriceApproval:
        approval = self._get_pending(approval_id)
        room = self._get_room(approval.room_id)

        approval.status = ApprovalStatus.APPROVED.value
        approval.approved_by = approved_by
        approval.resolved_at = self.clock()
        self._apply(
            approval, room, "manual_approved",
            f"Approved by {approved_by or 'operator'}: {approval.price_change_percentage:+.1f}%",
        )
        self.db.commit()
        logger.info(f"✅ Approval {approval.id} approved, room {room.id} now {approval.new_price:.0f}")

        await self._notify_confirmation(approval, room)
        return approval

    async def reject(
        self,
        approval_id: int,
        approved_by: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> PriceApproval:
        approval = self._get_pending(approval_id)
        room = self.db.query(Room).filter(Room.id == approval.room_id).first()

        approval.status = ApprovalStatus.REJECTED.value
        approval.approved_by = approved_by
        approval.resolved_at = self.clock()
        approval.rejection_reason = reason or "Rejected by operator"
        self.db.add(PricingAdjustmentLog(
            room_id=approval.room_id,
            previous_price=approval.old_price,
            new_price=approval.new_price,
            adjustment_reason=approval.rejection_reason,
            adjustment_type="manual_rejected",
            created_at=self.clock(),
        ))
        self.db.commit()
        logger.info(f"❌ Approval {approval.id} rejected: {approval.rejection_reason}")

        await self._notify_confirmation(approval, room, reason=approval.rejection_reason)
        return approval

    async def handle_reply(self, message: str, approved_by: Optional[str] = None) -> Optional[PriceApproval]:
        """
        Resolve the newest live pending approval for the room named in an
        operator reply. Returns None when the message is not a command or
        nothing is waiting for that room.
        """
        reply = parse_approval_reply(message)
        if reply is None:
            logger.info(f"Ignoring operator message, not an approval command: {message!r}")
            return None

        approval = self.db.query(PriceApproval).filter(
            PriceApproval.room_id == reply.room_id,
            PriceApproval.status == ApprovalStatus.PENDING.value,
            PriceApproval.expires_at > self.clock(),
        ).order_by(PriceApproval.created_at.desc(), PriceApproval.id.desc()).first()

        if approval is None:
            logger.info(f"No pending approval for room {reply.room_id}")
            return None

        if reply.action == "approve":
            return await self.approve(approval.id, approved_by=approved_by)
        return await self.reject(approval.id, approved_by=approved_by, reason=reply.reason)

    def sweep_expired(self) -> int:
        """Reject pending approvals whose window has closed. Returns the count."""
        now = self.clock()
        expired = self.db.query(PriceApproval).filter(
            PriceApproval.status == ApprovalStatus.PENDING.value,
            PriceApproval.expires_at <= now,
        ).all()

        for approval in expired:
            approval.status = ApprovalStatus.REJECTED.value
            approval.rejection_reason = EXPIRED_REASON
            approval.resolved_at = now

        if expired:
            self.db.commit()
            logger.info(f"🧹 Expired {len(expired)} unanswered price approval(s)")
        return len(expired)

    def list_approvals(self, status: Optional[str] = None, limit: int = 50) -> List[PriceApproval]:
        query = self.db.query(PriceApproval)
        if status:
            query = query.filter(PriceApproval.status == status)
        return query.order_by(PriceApproval.created_at.desc(), PriceApproval.id.desc()).limit(limit).all()

    async def _notify_request(self, approval: PriceApproval, room: Room, event_data: Optional[dict]):
        if self.notifier is None:
            return
        phone, hotel_name = self._operator()
        await self.notifier.send_approval_request(
            approval,
            phone,
            room_name=room.name,
            hotel_name=hotel_name,
            pricing_factors=(event_data or {}).get("pricing_factors"),
        )

    async def _notify_confirmation(self, approval: PriceApproval, room: Optional[Room], reason: Optional[str] = None):
        if self.notifier is None:
            return
        phone, _ = self._operator()
        await self.notifier.send_approval_confirmation(
            approval,
            phone,
            room_name=room.name if room else None,
            reason=reason,
        )
