"""
FastAPI Application Entry Point

Campus Canteen ordering API over the order lifecycle engine.

Endpoints:
    - POST  /api/orders: Place an order
    - GET   /api/orders: List orders (newest first)
    - GET   /api/orders/{order_id}: Get one order
    - PATCH /api/orders/{order_id}/status: Move an order along its workflow
    - PATCH /api/orders/{order_id}/cancel: Cancel a pending/confirmed order
    - GET   /api/analytics/{merchant_id}: Merchant dashboard figures
    - GET   /api/menu/popular/{merchant_id}: Top 3 delivered items
    - POST  /api/reports/orders: Queue the Excel order report
    - GET   /health: System health check

Version: 1.0.0
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Query, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from canteen.core.config import get_settings, setup_logging
from canteen.core.exceptions import CanteenError
from canteen.schemas import (
    AnalyticsResponse,
    CancelResponse,
    ErrorResponse,
    HealthResponse,
    OrderCreate,
    OrderCreateResponse,
    OrderListResponse,
    ReportResponse,
    StatusUpdate,
    StatusUpdateResponse,
)
from canteen.models import Order
from canteen.services import analytics
from canteen.services.orders import OrderLifecycleManager, get_order_manager
from canteen.services.record_store import MENU, ORDERS
from canteen.tasks import export_orders_report

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    settings = get_settings()
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    manager = get_order_manager()
    await manager.store.initialize()
    logger.info(f"Mirror Store: {manager.mirror.provider_name}")
    logger.info(f"Notification Service: {manager.notifier.provider_name}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"Missing production config: {missing}")

    logger.info("Application ready!")

    yield  # Application runs

    logger.info("Shutting down...")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Campus canteen ordering backend: daily sequential order codes, "
        "a bounded order workflow and a mirrored JSON record store."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    manager: OrderLifecycleManager = Depends(get_order_manager),
) -> HealthResponse:
    """Verify all system components are operational."""

    store_status = "healthy" if await manager.store.health_check() else "unhealthy"
    mirror_status = "healthy" if await manager.mirror.health_check() else "unhealthy"
    notifier_status = "healthy" if await manager.notifier.health_check() else "unhealthy"

    # Only the record store is required to take orders
    if store_status != "healthy":
        overall = "down"
    elif mirror_status != "healthy" or notifier_status != "healthy":
        overall = "degraded"
    else:
        overall = "operational"

    return HealthResponse(
        status=overall,
        record_store=store_status,
        mirror_store=mirror_status,
        notification_service=notifier_status,
        timestamp=datetime.now(timezone.utc),
    )


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderCreateResponse,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Place Order",
)
async def create_order(
    order_data: OrderCreate,
    manager: OrderLifecycleManager = Depends(get_order_manager),
) -> OrderCreateResponse:
    """Place a new order; payment confirmation happens out of band."""
    logger.info(f"Creating order for user {order_data.owner_id}")

    order = await manager.create_order(
        owner_id=order_data.owner_id,
        merchant_id=order_data.merchant_id,
        line_items=order_data.line_items,
        total_amount=order_data.total_amount,
        payment_method=order_data.payment_method,
        fulfillment_mode=order_data.fulfillment_mode,
        scheduled_time=order_data.scheduled_time,
    )

    return OrderCreateResponse(
        order_internal_id=order.id,
        order_code=order.order_code,
        pickup_otp=order.pickup_otp,
        status=order.status,
        created_at=order.created_at,
    )


@app.get(
    "/api/orders",
    response_model=OrderListResponse,
    tags=["Orders"],
    summary="List Orders",
)
async def list_orders(
    owner_id: Optional[str] = Query(None),
    merchant_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    manager: OrderLifecycleManager = Depends(get_order_manager),
) -> OrderListResponse:
    """Orders matching the filters, most recently created first."""
    orders = await manager.list_orders(
        owner_id=owner_id,
        merchant_id=merchant_id,
        status=status,
    )
    return OrderListResponse(total=len(orders), orders=orders)


@app.get(
    "/api/orders/{order_id}",
    response_model=Order,
    responses={404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def get_order(
    order_id: str,
    manager: OrderLifecycleManager = Depends(get_order_manager),
) -> Order:
    """Get a specific order by internal id."""
    return await manager.get_order(order_id)


@app.patch(
    "/api/orders/{order_id}/status",
    response_model=StatusUpdateResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def update_order_status(
    order_id: str,
    update: StatusUpdate,
    manager: OrderLifecycleManager = Depends(get_order_manager),
) -> StatusUpdateResponse:
    """Move an order one step along its workflow."""
    order = await manager.set_status(order_id, update.status)
    return StatusUpdateResponse(
        order_internal_id=order.id,
        status=order.status,
        updated_at=order.updated_at,
    )


@app.patch(
    "/api/orders/{order_id}/cancel",
    response_model=CancelResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def cancel_order(
    order_id: str,
    manager: OrderLifecycleManager = Depends(get_order_manager),
) -> CancelResponse:
    """Cancel a pending or confirmed order."""
    order = await manager.cancel_order(order_id)
    return CancelResponse(order_internal_id=order.id, status=order.status)


# =============================================================================
# ANALYTICS ENDPOINTS
# =============================================================================

@app.get(
    "/api/analytics/{merchant_id}",
    response_model=AnalyticsResponse,
    tags=["Analytics"],
)
async def merchant_analytics(
    merchant_id: str,
    manager: OrderLifecycleManager = Depends(get_order_manager),
) -> dict[str, Any]:
    """Revenue, order count and best sellers of one canteen."""
    orders = await manager.store.load(ORDERS, default=[])
    menu = await manager.store.load(MENU, default=[])
    today = datetime.now(timezone.utc).date()
    return analytics.merchant_summary(orders, menu, merchant_id, today)


@app.get(
    "/api/menu/popular/{merchant_id}",
    tags=["Analytics"],
)
async def popular_menu_items(
    merchant_id: str,
    manager: OrderLifecycleManager = Depends(get_order_manager),
) -> list[dict[str, Any]]:
    """Top 3 most delivered menu items of one canteen."""
    orders = await manager.store.load(ORDERS, default=[])
    menu = await manager.store.load(MENU, default=[])
    return analytics.popular_items(orders, menu, merchant_id)


# =============================================================================
# REPORT ENDPOINTS
# =============================================================================

@app.post(
    "/api/reports/orders",
    response_model=ReportResponse,
    tags=["Reports"],
)
async def queue_order_report() -> ReportResponse:
    """Queue the Excel order report on the Celery worker."""
    try:
        task = export_orders_report.delay()
    except Exception as e:
        logger.error(f"Could not queue order report: {e}")
        return ReportResponse(success=False, message="Report queue unavailable")

    return ReportResponse(success=True, task_id=task.id, message="Report queued")


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(CanteenError)
async def canteen_exception_handler(request: Request, exc: CanteenError) -> JSONResponse:
    """Typed engine failures."""
    logger.warning(f"{exc.code}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.code, detail=exc.message).model_dump(),
    )


@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Invalid records built inside the engine."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(error="validation_error", detail=str(exc)).model_dump(),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
