from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional, List, Dict
import uuid
import logging
import httpx
from hotel_pricing.config import get_settings
from hotel_pricing.utils.clock import format_currency

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass
class Notification:
    """Notification record."""
    id: str
    title: str
    message: str
    priority: str
    timestamp: datetime
    type: str  # "approval", "confirmation", "alert" or "system"
    recipient: Optional[str] = None
    sent: bool = False


class NotificationHistory:
    """In-memory notification history for the operator dashboard."""

    def __init__(self, max_notifications: int = 100):
        self._notifications: List[Notification] = []
        self._max_notifications = max_notifications

    def add(self, notification: Notification):
        self._notifications.append(notification)
        if len(self._notifications) > self._max_notifications:
            self._notifications.pop(0)

    def get_recent(self, limit: int = 50) -> List[Dict]:
        recent = self._notifications[-limit:] if limit else self._notifications
        return [asdict(n) for n in reversed(recent)]

    def clear(self):
        self._notifications.clear()


def _signed_percent(value: float) -> str:
    return f"{'+' if value > 0 else ''}{value:.1f}%"


class OperatorNotifier:
    """
    Sends operator messages through the WhatsApp gateway.

    The gateway takes `{phone, message, type}` as JSON. Every attempt is
    kept in the in-memory history whether or not it was delivered. Sending
    never raises: a failure is logged and reported as False.
    """

    SEVERITY_EMOJI = {
        "low": "🟡",
        "medium": "🟠",
        "high": "🔴",
        "critical": "🚨",
    }

    def __init__(
        self,
        gateway_url: Optional[str] = None,
        gateway_token: Optional[str] = None,
    ):
        self.gateway_url = gateway_url or settings.notification_gateway_url
        self.gateway_token = gateway_token if gateway_token is not None else settings.notification_gateway_token
        self.history = NotificationHistory()
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=10.0)
        return self._http_client

    async def close(self):
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def _send_whatsapp(self, phone: Optional[str], message: str) -> bool:
        """POST one message to the gateway."""
        if not phone:
            logger.warning("No operator WhatsApp number configured, notification not sent")
            return False

        try:
            client = await self._get_client()
            headers = {}
            if self.gateway_token:
                headers["Authorization"] = f"Bearer {self.gateway_token}"

            response = await client.post(
                self.gateway_url,
                json={"phone": phone, "message": message, "type": "admin"},
                headers=headers,
            )

            if 200 <= response.status_code < 300:
                logger.info(f"WhatsApp message sent to {phone}")
                return True
            else:
                logger.error(f"Gateway returned {response.status_code}: {response.text}")
                return False

        except httpx.ConnectError as e:
            logger.warning(f"Could not connect to messaging gateway at {self.gateway_url}: {e}")
            return False
        except httpx.TimeoutException as e:
            logger.warning(f"Messaging gateway timed out: {e}")
            return False
        except Exception as e:
            logger.error(f"Failed to send notification: {e}")
            return False

    async def _dispatch(
        self,
        phone: Optional[str],
        title: str,
        message: str,
        priority: str,
        notification_type: str,
    ) -> bool:
        sent = await self._send_whatsapp(phone, message)
        self.history.add(Notification(
            id=str(uuid.uuid4()),
            title=title,
            message=message,
            priority=priority,
            timestamp=datetime.now(timezone.utc),
            type=notification_type,
            recipient=phone,
            sent=sent,
        ))
        return sent

    async def send_approval_request(
        self,
        approval,  # PriceApproval
        phone: Optional[str],
        room_name: Optional[str] = None,
        hotel_name: Optional[str] = None,
        pricing_factors: Optional[dict] = None,
    ) -> bool:
        """Ask the operator to approve or reject a large price change."""
        factors = pricing_factors or {}
        expires_in = ""
        if approval.expires_at is not None and approval.created_at is not None:
            minutes = max(0, round((approval.expires_at - approval.created_at).total_seconds() / 60))
            expires_in = f"\n⏰ *Expires in {minutes} minutes*\n"

        message = "🔄 *PRICE CHANGE APPROVAL NEEDED*\n\n"
        message += f"📍 {hotel_name or 'Hotel'}\n"
        message += f"🛏️ Room: {room_name or 'Unknown Room'}\n"
        message += f"💰 Price Change: {_signed_percent(approval.price_change_percentage)}\n"
        message += f"💵 Old Price: {format_currency(approval.old_price)}\n"
        message += f"💵 New Price: {format_currency(approval.new_price)}\n"

        if factors:
            message += "\n📊 *Pricing Factors:*\n"
            message += f"• Occupancy: {factors.get('occupancy_rate', 0):.1f}%\n"
            message += f"• Demand Score: {factors.get('demand_score', 0):.1f}\n"
            message += f"• Time Multiplier: {factors.get('time_multiplier', 1.0)}x\n"
            message += f"• Competitor Gap: {factors.get('competitor_multiplier', 1.0)}x\n"

        message += expires_in
        message += "\n🔘 *Reply to approve/reject:*\n"
        message += f"• APPROVE {approval.room_id}\n"
        message += f"• REJECT {approval.room_id} [reason]"

        return await self._dispatch(
            phone,
            title=f"Approval needed: {room_name or approval.room_id}",
            message=message,
            priority="high",
            notification_type="approval",
        )

    async def send_approval_confirmation(
        self,
        approval,  # PriceApproval
        phone: Optional[str],
        room_name: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> bool:
        """Tell the operator how a pending approval was resolved."""
        status = approval.status
        icon = "✅" if status == "approved" else "❌"

        message = f"{icon} *PRICE CHANGE {status.upper()}*\n\n"
        message += f"🛏️ Room: {room_name or approval.room_id}\n"
        message += f"💰 Change: {_signed_percent(approval.price_change_percentage)}\n"
        message += f"💵 Old Price: {format_currency(approval.old_price)}\n"
        message += f"💵 New Price: {format_currency(approval.new_price)}"
        if status == "rejected" and reason:
            message += f"\n📝 Reason: {reason}"
        if approval.resolved_at is not None:
            message += f"\n⏰ Processed at: {approval.resolved_at:%Y-%m-%d %H:%M} UTC"

        return await self._dispatch(
            phone,
            title=f"Price change {status}: {room_name or approval.room_id}",
            message=message,
            priority="default",
            notification_type="confirmation",
        )

    async def send_pricing_alert(
        self,
        alert,  # PricingAlert
        phone: Optional[str],
        hotel_name: Optional[str] = None,
    ) -> bool:
        """Page the operator about a metric outside its bounds."""
        emoji = self.SEVERITY_EMOJI.get(alert.severity, "⚠️")

        message = f"{emoji} *PRICING ALERT*\n\n"
        message += f"📍 {hotel_name or 'Hotel'}\n"
        message += f"📊 Metric: {alert.metric_name}\n"
        message += f"⚠️ Alert: {alert.message}\n"
        message += f"🕐 Triggered: {alert.triggered_at:%Y-%m-%d %H:%M} UTC\n\n"
        message += f"Severity: {alert.severity.upper()}\n\n"
        message += "Please check the pricing system immediately."

        priority = "urgent" if alert.severity in ("high", "critical") else "default"
        return await self._dispatch(
            phone,
            title=f"Pricing alert: {alert.metric_name}",
            message=message,
            priority=priority,
            notification_type="alert",
        )

    async def send_startup_notification(self, phone: Optional[str]) -> bool:
        """Send notification when the pricing service starts."""
        return await self._dispatch(
            phone,
            title="Pricing engine started",
            message="🔧 Dynamic pricing engine is online and processing events.",
            priority="low",
            notification_type="system",
        )

    def get_notifications(self, limit: int = 50) -> List[Dict]:
        """Get recent notifications for the dashboard."""
        return self.history.get_recent(limit)

    def clear_notifications(self):
        """Clear notification history."""
        self.history.clear()


_global_notifier: Optional[OperatorNotifier] = None


def get_global_notifier() -> OperatorNotifier:
    global _global_notifier
    if _global_notifier is None:
        _global_notifier = OperatorNotifier()
    return _global_notifier


async def shutdown_notifier():
    """Close the global notifier's HTTP client."""
    global _global_notifier
    if _global_notifier is not None:
        await _global_notifier.close()
