"""
Order Lifecycle Manager

Owns the order workflow:
- create_order: allocate a daily code and a pickup OTP, persist, mirror, notify
- set_status: move an order one legal step along the workflow
- cancel_order: cancel a pending or confirmed order
- list_orders / get_order: read back orders, newest first

The durable record store is the source of truth. Mirror writes and
notifications happen after the state change is committed and can never
fail the operation.

Version: 1.0.0
"""

import asyncio
import logging
import secrets
from datetime import datetime
from functools import lru_cache
from typing import Any, Iterable, Optional, Union

from canteen.core.config import get_settings
from canteen.core.exceptions import (
    IllegalTransition,
    NotCancellable,
    OrderNotFound,
    OwnerNotFound,
)
from canteen.models import (
    CANCELLABLE_STATUSES,
    EnrichedOrder,
    FulfillmentMode,
    LineItem,
    Order,
    OrderStatus,
    can_transition,
    utcnow,
)
from canteen.services.mirror import BaseMirrorStore, get_mirror_store
from canteen.services.notifications import (
    ORDER_CREATED,
    STATUS_MESSAGES,
    BaseNotificationService,
    get_notification_service,
)
from canteen.services.order_code import OrderCodeAllocator
from canteen.services.record_store import ORDERS, USERS, RecordStore, get_record_store

logger = logging.getLogger(__name__)


def generate_pickup_otp() -> str:
    """Uniform 4-digit code (1000-9999)."""
    return str(1000 + secrets.randbelow(9000))


def parse_status(value: Union[str, OrderStatus]) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise IllegalTransition(f"Unknown order status: {value!r}")


class OrderLifecycleManager:
    """Coordinates the record store, the mirror and the notification hook."""

    def __init__(
        self,
        store: RecordStore,
        mirror: BaseMirrorStore,
        notifier: BaseNotificationService,
        allocator: Optional[OrderCodeAllocator] = None,
    ):
        settings = get_settings()
        self.store = store
        self.mirror = mirror
        self.notifier = notifier
        self.allocator = allocator or OrderCodeAllocator(store, mirror)
        self.orders_table = settings.orders_table
        # Serializes read-modify-write cycles on the orders collection
        self._orders_lock = asyncio.Lock()

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _load_orders(self, strict: bool = False) -> list[dict[str, Any]]:
        return await self.store.load(ORDERS, default=[], strict=strict)

    async def _load_users(self) -> list[dict[str, Any]]:
        return await self.store.load(USERS, default=[])

    async def _find_owner(self, owner_id: str) -> Optional[dict[str, Any]]:
        users = await self._load_users()
        return next((u for u in users if u.get("id") == owner_id), None)

    @staticmethod
    def _index_of(orders: list[dict[str, Any]], order_id: str) -> int:
        for index, record in enumerate(orders):
            if record.get("id") == order_id:
                return index
        raise OrderNotFound(f"Order {order_id} not found")

    @staticmethod
    def _wants_notifications(owner: dict[str, Any]) -> bool:
        preferences = owner.get("preferences") or {}
        return preferences.get("notifications", True) is not False

    async def _mirror(self, order: Order) -> None:
        await self.mirror.upsert(self.orders_table, order.to_record())

    async def _notify(
        self,
        owner: dict[str, Any],
        event_kind: str,
        payload: dict[str, Any],
    ) -> None:
        address = owner.get("email")
        if not address:
            logger.warning(f"No email for user {owner.get('id')}, skipping {event_kind} notification")
            return

        try:
            result = await self.notifier.notify(address, event_kind, payload)
        except Exception:
            logger.exception(f"Notification {event_kind} for {payload.get('order_code')} raised")
            return

        if not result.success:
            logger.warning(
                f"Notification {event_kind} for {payload.get('order_code')} failed: "
                f"{result.error_message}"
            )

    async def _transition(
        self,
        order_id: str,
        target: OrderStatus,
        allowed: Optional[Iterable[OrderStatus]] = None,
    ) -> Order:
        """Apply one status change under the orders lock and persist it."""
        async with self._orders_lock:
            orders = await self._load_orders(strict=True)
            index = self._index_of(orders, order_id)
            order = Order.from_record(orders[index])

            if allowed is not None and order.status not in allowed:
                raise NotCancellable(
                    f"Order {order.order_code} cannot be cancelled at this stage "
                    f"({order.status.value})"
                )
            if not can_transition(order.status, target):
                raise IllegalTransition(
                    f"Order {order.order_code} cannot move from "
                    f"{order.status.value} to {target.value}"
                )

            order.status = target
            order.updated_at = utcnow()
            orders[index] = order.to_record()
            await self.store.save(ORDERS, orders)

        logger.info(f"Order {order.order_code} is now {target.value}")
        await self._mirror(order)
        return order

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def create_order(
        self,
        owner_id: str,
        merchant_id: str,
        line_items: list[Union[LineItem, dict[str, Any]]],
        total_amount: float,
        payment_method: Optional[str] = None,
        fulfillment_mode: Union[FulfillmentMode, str] = FulfillmentMode.INSTANT,
        scheduled_time: Optional[datetime] = None,
    ) -> Order:
        """
        Place a new order.

        Raises:
            OwnerNotFound: ``owner_id`` does not resolve
            pydantic.ValidationError: malformed items or schedule
            StorageUnavailable: the order could not be persisted
        """
        owner = await self._find_owner(owner_id)
        if owner is None:
            raise OwnerNotFound(f"User {owner_id} not found")

        # Validated before allocation so rejected input burns no code
        draft = Order(
            order_code="",
            owner_id=owner_id,
            merchant_id=merchant_id,
            line_items=line_items,
            total_amount=total_amount,
            payment_method=payment_method,
            fulfillment_mode=fulfillment_mode,
            scheduled_time=scheduled_time,
            pickup_otp=generate_pickup_otp(),
        )

        # Code order matches append order and created_at order
        async with self._orders_lock:
            orders = await self._load_orders(strict=True)
            counter = await self.allocator.allocate()
            order = draft.model_copy(update={
                "order_code": self.allocator.format_code(counter),
                "created_at": utcnow(),
            })
            orders.append(order.to_record())
            await self.store.save(ORDERS, orders)

        await self.allocator.mirror_counter(counter)

        logger.info(f"Order {order.order_code} ({order.id}) created for user {owner_id}")

        await self._mirror(order)
        await self._notify(owner, ORDER_CREATED, {
            "order_code": order.order_code,
            "pickup_otp": order.pickup_otp,
            "total_amount": order.total_amount,
            "payment_method": order.payment_method,
            "fulfillment_mode": order.fulfillment_mode.value,
            "scheduled_time": order.scheduled_time.isoformat() if order.scheduled_time else None,
        })
        return order

    async def set_status(self, order_id: str, new_status: Union[str, OrderStatus]) -> Order:
        """
        Move an order to ``new_status``.

        Raises:
            IllegalTransition: unknown status or not a successor of the current one
            OrderNotFound: no order with ``order_id``
        """
        target = parse_status(new_status)
        order = await self._transition(order_id, target)

        owner = await self._find_owner(order.owner_id)
        if owner is not None and self._wants_notifications(owner):
            payload = {
                "order_code": order.order_code,
                "status": order.status.value,
                "message": STATUS_MESSAGES.get(order.status.value, ""),
            }
            if order.status == OrderStatus.READY:
                payload["pickup_otp"] = order.pickup_otp
            await self._notify(owner, order.status.value, payload)

        return order

    async def cancel_order(self, order_id: str) -> Order:
        """
        Cancel a pending or confirmed order.

        Raises:
            OrderNotFound: no order with ``order_id``
            NotCancellable: the order is already past confirmation
        """
        return await self._transition(
            order_id, OrderStatus.CANCELLED, allowed=CANCELLABLE_STATUSES
        )

    async def get_order(self, order_id: str) -> Order:
        orders = await self._load_orders()
        return Order.from_record(orders[self._index_of(orders, order_id)])

    async def list_orders(
        self,
        owner_id: Optional[str] = None,
        merchant_id: Optional[str] = None,
        status: Optional[Union[str, OrderStatus]] = None,
    ) -> list[EnrichedOrder]:
        """Matching orders with owner display fields, most recent first."""
        orders = await self._load_orders()
        status_value = status.value if isinstance(status, OrderStatus) else status

        if owner_id:
            orders = [o for o in orders if o.get("owner_id") == owner_id]
        if merchant_id:
            orders = [o for o in orders if o.get("merchant_id") == merchant_id]
        if status_value:
            orders = [o for o in orders if o.get("status") == status_value]

        users = {u.get("id"): u for u in await self._load_users()}

        enriched = []
        for record in reversed(orders):
            owner = users.get(record.get("owner_id")) or {}
            enriched.append(EnrichedOrder.model_validate({
                **record,
                "owner_name": owner.get("name") or "Unknown",
                "owner_phone": owner.get("phone") or "N/A",
            }))
        return enriched


@lru_cache()
def get_order_manager() -> OrderLifecycleManager:
    """Get the process-wide order manager."""
    return OrderLifecycleManager(
        store=get_record_store(),
        mirror=get_mirror_store(),
        notifier=get_notification_service(),
    )


def reset_order_manager() -> None:
    """Clear the cached manager instance."""
    get_order_manager.cache_clear()
