"""
Order Domain Models

Pydantic models for the records held in the durable store:
- Orders with their line items and pickup OTP
- The daily order counter
- The order status workflow (transition table)

Records are persisted as plain JSON dictionaries (``to_record``) and
rebuilt with ``from_record``.

Version: 1.0.0
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class FulfillmentMode(str, enum.Enum):
    """Immediate preparation or a scheduled pickup."""
    INSTANT = "instant"
    PREORDER = "preorder"


# =============================================================================
# STATUS WORKFLOW
# =============================================================================

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    # Staff may mark a confirmed order ready without a preparing step
    OrderStatus.CONFIRMED: frozenset(
        {OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.CANCELLED}
    ),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY}),
    OrderStatus.READY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, successors in ORDER_TRANSITIONS.items() if not successors
)

CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Check whether ``target`` is a legal successor of ``current``."""
    return target in ORDER_TRANSITIONS[current]


# =============================================================================
# RECORDS
# =============================================================================

class LineItem(BaseModel):
    """Single menu item in an order."""
    item_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)


class Order(BaseModel):
    """
    Canteen order.

    ``id`` is the internal primary key shared by the durable store and the
    mirror; ``order_code`` is the daily sequential code shown to staff and
    students. Only ``status`` and ``updated_at`` change after creation.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    order_code: str
    owner_id: str
    merchant_id: str
    line_items: list[LineItem] = Field(..., min_length=1)
    total_amount: float = Field(..., ge=0)
    payment_method: Optional[str] = None
    fulfillment_mode: FulfillmentMode = FulfillmentMode.INSTANT
    scheduled_time: Optional[datetime] = None
    pickup_otp: str = Field(..., pattern=r"^\d{4}$")
    pickup_location: str = "Canteen Pickup"
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_schedule(self) -> "Order":
        if self.fulfillment_mode == FulfillmentMode.PREORDER and self.scheduled_time is None:
            raise ValueError("scheduled_time is required for preorder fulfillment")
        if self.fulfillment_mode == FulfillmentMode.INSTANT:
            self.scheduled_time = None
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_record(self) -> dict[str, Any]:
        """JSON-safe dictionary for the record store and the mirror."""
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Order":
        return cls.model_validate(record)

    def __repr__(self):
        return f"<Order {self.order_code} ({self.id}) - {self.status.value}>"


class DailyCounter(BaseModel):
    """Order counter of one calendar day (ISO date)."""
    date: str
    counter: int = Field(default=0, ge=0)


class EnrichedOrder(Order):
    """Order with the owner's display fields denormalized for listings."""
    owner_name: str = "Unknown"
    owner_phone: str = "N/A"
