"""
Mock Notification Service

Simulates order notifications for development.
No actual messages are sent - just logged and kept in memory.

Version: 1.0.0
"""

import asyncio
import random
import uuid
import logging
from typing import Any, Optional

from canteen.services.notifications.base import (
    BaseNotificationService,
    NotificationResult,
    render_notification,
)
from canteen.core.config import get_settings

logger = logging.getLogger(__name__)


class MockNotificationService(BaseNotificationService):
    """Mock notification service for development."""

    def __init__(
        self,
        failure_rate: float = 0.05,
        min_latency: float = 0.1,
        max_latency: float = 0.3,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.sent: list[dict[str, Any]] = []
        logger.info(f"MockNotificationService initialized (failure_rate={failure_rate:.0%})")

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _simulate_latency(self) -> None:
        """Simulate network latency."""
        await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        """Simulate sending email."""
        await self._simulate_latency()

        if self._should_fail():
            logger.warning(f"Mock email failed (simulated) to {to_email}")
            return NotificationResult(
                success=False,
                error_message="Simulated email failure",
                provider="mock"
            )

        message_id = f"email_mock_{uuid.uuid4().hex[:12]}"
        logger.info(f"Mock email sent to {to_email}: {subject} (ID: {message_id})")

        return NotificationResult(
            success=True,
            message_id=message_id,
            provider="mock"
        )

    async def notify(
        self,
        recipient_address: str,
        event_kind: str,
        payload: dict[str, Any],
    ) -> NotificationResult:
        """Render the event and record it as sent."""
        rendered = render_notification(event_kind, payload, get_settings().canteen_name)

        result = await self.send_email(
            to_email=recipient_address,
            subject=rendered.subject,
            body_html=rendered.body_html,
            body_text=rendered.body_text,
        )

        if result.success:
            self.sent.append({
                "address": recipient_address,
                "event_kind": event_kind,
                "payload": dict(payload),
                "message_id": result.message_id,
            })

        return result

    async def health_check(self) -> bool:
        """Mock always returns healthy."""
        return True
