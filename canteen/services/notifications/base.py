"""
Notification Service Abstract Base Class

Defines the sink the order engine calls on every order state change.
Supports both Mock (development) and Real (production) implementations.

Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional


# Event kinds: "created" plus one per target status
ORDER_CREATED = "created"

STATUS_MESSAGES = {
    "confirmed": "Your order has been confirmed and is being prepared.",
    "preparing": "Your order is being prepared.",
    "ready": "Your order is ready for pickup!",
    "delivered": "Your order has been completed. Enjoy your meal!",
    "cancelled": "Your order has been cancelled.",
}


@dataclass
class NotificationResult:
    """Result from sending a notification."""
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


@dataclass
class RenderedNotification:
    """Subject and bodies of one notification."""
    subject: str
    body_text: str
    body_html: str


def render_notification(
    event_kind: str,
    payload: dict[str, Any],
    canteen_name: str = "Campus Canteen",
) -> RenderedNotification:
    """Build the subject and bodies for an order event."""
    order_code = payload.get("order_code", "")

    if event_kind == ORDER_CREATED:
        lines = [
            f"Order {order_code} placed successfully!",
            f"OTP: {payload.get('pickup_otp')}",
            f"Total Amount: {payload.get('total_amount')}",
            f"Payment Method: {payload.get('payment_method')}",
        ]
        if payload.get("fulfillment_mode") == "preorder":
            lines.append(f"Scheduled Time: {payload.get('scheduled_time')}")
        lines.append("Present this OTP when collecting your order.")
        subject = f"Order Placed: {order_code}"
    else:
        lines = [
            f"Order {order_code}",
            payload.get("message") or STATUS_MESSAGES.get(event_kind, f"Status: {event_kind}"),
        ]
        if "pickup_otp" in payload:
            lines.append(f"OTP: {payload['pickup_otp']}")
            lines.append("Present this OTP when collecting your order.")
        subject = f"Order {order_code} - {event_kind.upper()}"

    body_text = "\n".join(lines) + f"\n- {canteen_name}"
    body_html = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        + "".join(f"<p>{line}</p>" for line in lines)
        + f"<p>{canteen_name}</p></div>"
    )
    return RenderedNotification(subject=subject, body_text=body_text, body_html=body_html)


class BaseNotificationService(ABC):
    """Abstract base class for notification services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        """Send an email."""
        pass

    @abstractmethod
    async def notify(
        self,
        recipient_address: str,
        event_kind: str,
        payload: dict[str, Any],
    ) -> NotificationResult:
        """Deliver an order event to the recipient."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service connectivity."""
        pass
