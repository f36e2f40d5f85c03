"""
Pydantic Schemas for Request/Response Validation

Request and response shapes of the order API.

Version: 1.0.0
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Any
from datetime import datetime

from canteen.models import EnrichedOrder, FulfillmentMode, LineItem, OrderStatus


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderCreate(BaseModel):
    """Request schema for placing an order."""

    owner_id: str = Field(..., min_length=1, examples=["6f1c7d2e-student"])
    merchant_id: str = Field(..., min_length=1, examples=["a93b11f0-admin"])

    line_items: List[LineItem] = Field(..., min_length=1)
    total_amount: float = Field(..., ge=0, examples=[100.0])

    payment_method: Optional[str] = Field(None, examples=["upi", "cash"])

    fulfillment_mode: FulfillmentMode = Field(
        default=FulfillmentMode.INSTANT,
        examples=["instant"]
    )
    scheduled_time: Optional[datetime] = Field(None, examples=["2026-10-17T12:30:00+05:30"])

    @model_validator(mode="after")
    def check_schedule(self) -> "OrderCreate":
        if self.fulfillment_mode == FulfillmentMode.PREORDER and self.scheduled_time is None:
            raise ValueError("scheduled_time is required for preorder fulfillment")
        return self


class StatusUpdate(BaseModel):
    """Request to move an order along its workflow."""
    status: str = Field(..., min_length=1, examples=["confirmed"])


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderCreateResponse(BaseModel):
    """Response after placing an order."""
    success: bool = True
    order_internal_id: str
    order_code: str
    pickup_otp: str
    status: OrderStatus
    created_at: datetime


class StatusUpdateResponse(BaseModel):
    """Response after a status change."""
    success: bool = True
    order_internal_id: str
    status: OrderStatus
    updated_at: Optional[datetime]


class CancelResponse(BaseModel):
    """Response after cancelling an order."""
    success: bool = True
    order_internal_id: str
    status: OrderStatus = OrderStatus.CANCELLED


class OrderListResponse(BaseModel):
    """Response for listing orders, newest first."""
    total: int
    orders: List[EnrichedOrder]


class DailyRevenue(BaseModel):
    date: str
    revenue: float


class AnalyticsResponse(BaseModel):
    """Merchant dashboard figures."""
    total_revenue: float
    total_orders: int
    avg_order_value: float
    last_7_days: List[DailyRevenue]
    top_items: List[dict[str, Any]]


class ReportResponse(BaseModel):
    """Response after queueing the Excel report."""
    success: bool
    task_id: Optional[str] = None
    message: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    record_store: str
    mirror_store: str
    notification_service: str
    timestamp: datetime
