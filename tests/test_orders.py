import asyncio
from datetime import datetime, timezone

import pytest
from filelock import FileLock
from pydantic import ValidationError

from canteen.core.config import get_settings
from canteen.core.exceptions import (
    IllegalTransition,
    NotCancellable,
    OrderNotFound,
    OwnerNotFound,
    StorageUnavailable,
)
from canteen.models import OrderStatus, can_transition
from canteen.services.mirror.mock import MockMirrorStore
from canteen.services.notifications.mock import MockNotificationService
from canteen.services.order_code import OrderCodeAllocator
from canteen.services.orders import OrderLifecycleManager, generate_pickup_otp
from canteen.services.record_store import ORDER_COUNTER, ORDERS

from conftest import MERCHANT_ID, MUTED_ID, STUDENT_ID, order_kwargs


class ExplodingNotifier(MockNotificationService):
    async def notify(self, recipient_address, event_kind, payload):
        raise RuntimeError("mail relay down")


def test_create_order_assigns_code_otp_and_pending(manager, store) -> None:
    async def scenario():
        first = await manager.create_order(**order_kwargs())
        second = await manager.create_order(**order_kwargs())
        return first, second, await store.load(ORDERS)

    first, second, stored = asyncio.run(scenario())

    assert first.order_code == "CC-#1"
    assert second.order_code == "CC-#2"
    assert first.status == OrderStatus.PENDING
    assert first.pickup_location == "Canteen Pickup"
    assert first.pickup_otp.isdigit() and len(first.pickup_otp) == 4
    assert 1000 <= int(first.pickup_otp) <= 9999
    assert first.id != second.id
    assert [o["id"] for o in stored] == [first.id, second.id]


def test_pickup_otp_range() -> None:
    for _ in range(200):
        assert 1000 <= int(generate_pickup_otp()) <= 9999


def test_create_order_mirrors_and_notifies(manager, mirror, notifier) -> None:
    order = asyncio.run(manager.create_order(**order_kwargs()))

    mirrored = asyncio.run(mirror.get(get_settings().orders_table, order.id))
    assert mirrored["order_code"] == "CC-#1"
    assert mirrored["status"] == "pending"

    assert len(notifier.sent) == 1
    sent = notifier.sent[0]
    assert sent["address"] == "asha@campus.test"
    assert sent["event_kind"] == "created"
    assert sent["payload"]["pickup_otp"] == order.pickup_otp


def test_create_order_unknown_owner(manager, store) -> None:
    with pytest.raises(OwnerNotFound):
        asyncio.run(manager.create_order(**order_kwargs(owner_id="ghost")))

    assert asyncio.run(store.load(ORDERS)) == []
    assert asyncio.run(store.load(ORDER_COUNTER, default={})) == {}


def test_preorder_without_time_burns_no_code(manager, store) -> None:
    with pytest.raises(ValidationError):
        asyncio.run(manager.create_order(**order_kwargs(fulfillment_mode="preorder")))

    assert asyncio.run(store.load(ORDER_COUNTER, default={})) == {}
    order = asyncio.run(manager.create_order(**order_kwargs()))
    assert order.order_code == "CC-#1"


def test_preorder_keeps_scheduled_time(manager, notifier) -> None:
    pickup = datetime(2026, 10, 17, 12, 30, tzinfo=timezone.utc)
    order = asyncio.run(manager.create_order(
        **order_kwargs(fulfillment_mode="preorder", scheduled_time=pickup)
    ))

    assert order.scheduled_time == pickup
    assert notifier.sent[0]["payload"]["scheduled_time"] == pickup.isoformat()


def test_instant_order_drops_scheduled_time(manager) -> None:
    pickup = datetime(2026, 10, 17, 12, 30, tzinfo=timezone.utc)
    order = asyncio.run(manager.create_order(**order_kwargs(scheduled_time=pickup)))

    assert order.scheduled_time is None


def test_empty_line_items_rejected(manager) -> None:
    with pytest.raises(ValidationError):
        asyncio.run(manager.create_order(**order_kwargs(line_items=[])))


def test_order_save_failure_surfaces(manager, store, data_dir) -> None:
    store.lock_timeout = 0.2
    data_dir.mkdir(parents=True, exist_ok=True)

    with FileLock(str(data_dir / "orders.json.lock")):
        with pytest.raises(StorageUnavailable):
            asyncio.run(manager.create_order(**order_kwargs()))

    assert asyncio.run(store.load(ORDERS)) == []


def test_full_lifecycle(manager, notifier) -> None:
    async def scenario():
        order = await manager.create_order(**order_kwargs())
        for status in ("confirmed", "preparing", "ready", "delivered"):
            order = await manager.set_status(order.id, status)
        return order

    order = asyncio.run(scenario())

    assert order.status == OrderStatus.DELIVERED
    assert order.updated_at is not None
    assert [s["event_kind"] for s in notifier.sent] == [
        "created", "confirmed", "preparing", "ready", "delivered",
    ]


def test_pending_cannot_jump_to_ready(manager, store) -> None:
    async def scenario():
        order = await manager.create_order(**order_kwargs())
        with pytest.raises(IllegalTransition):
            await manager.set_status(order.id, "ready")
        return await manager.get_order(order.id)

    assert asyncio.run(scenario()).status == OrderStatus.PENDING


def test_confirmed_to_ready_sends_otp(manager, notifier) -> None:
    async def scenario():
        order = await manager.create_order(**order_kwargs())
        await manager.set_status(order.id, OrderStatus.CONFIRMED)
        return await manager.set_status(order.id, "ready")

    order = asyncio.run(scenario())

    assert order.status == OrderStatus.READY
    ready = notifier.sent[-1]
    assert ready["event_kind"] == "ready"
    assert ready["payload"]["pickup_otp"] == order.pickup_otp
    assert ready["payload"]["message"] == "Your order is ready for pickup!"


@pytest.mark.parametrize("terminal", ["delivered", "cancelled"])
def test_terminal_orders_reject_changes(manager, terminal) -> None:
    async def scenario():
        order = await manager.create_order(**order_kwargs())
        if terminal == "delivered":
            for status in ("confirmed", "ready", "delivered"):
                await manager.set_status(order.id, status)
        else:
            await manager.cancel_order(order.id)
        return order

    order = asyncio.run(scenario())

    for status in OrderStatus:
        assert not can_transition(OrderStatus(terminal), status)
        with pytest.raises(IllegalTransition):
            asyncio.run(manager.set_status(order.id, status))


def test_unknown_status_rejected(manager) -> None:
    order = asyncio.run(manager.create_order(**order_kwargs()))

    with pytest.raises(IllegalTransition):
        asyncio.run(manager.set_status(order.id, "eaten"))


def test_unknown_order(manager) -> None:
    with pytest.raises(OrderNotFound):
        asyncio.run(manager.set_status("missing", "confirmed"))
    with pytest.raises(OrderNotFound):
        asyncio.run(manager.cancel_order("missing"))
    with pytest.raises(OrderNotFound):
        asyncio.run(manager.get_order("missing"))


@pytest.mark.parametrize("steps", [[], ["confirmed"]])
def test_cancel_pending_or_confirmed(manager, mirror, steps) -> None:
    async def scenario():
        order = await manager.create_order(**order_kwargs())
        for status in steps:
            await manager.set_status(order.id, status)
        return await manager.cancel_order(order.id)

    order = asyncio.run(scenario())

    assert order.status == OrderStatus.CANCELLED
    mirrored = asyncio.run(mirror.get(get_settings().orders_table, order.id))
    assert mirrored["status"] == "cancelled"


@pytest.mark.parametrize("steps", [
    ["confirmed", "preparing"],
    ["confirmed", "ready"],
    ["confirmed", "ready", "delivered"],
])
def test_cancel_after_preparation_started(manager, steps) -> None:
    async def scenario():
        order = await manager.create_order(**order_kwargs())
        for status in steps:
            await manager.set_status(order.id, status)
        with pytest.raises(NotCancellable):
            await manager.cancel_order(order.id)
        return await manager.get_order(order.id)

    assert asyncio.run(scenario()).status == OrderStatus(steps[-1])


def test_cancel_twice(manager) -> None:
    async def scenario():
        order = await manager.create_order(**order_kwargs())
        await manager.cancel_order(order.id)
        with pytest.raises(NotCancellable):
            await manager.cancel_order(order.id)

    asyncio.run(scenario())


def test_list_orders_newest_first_with_filters(manager) -> None:
    async def scenario():
        a = await manager.create_order(**order_kwargs())
        b = await manager.create_order(**order_kwargs(owner_id=MUTED_ID))
        c = await manager.create_order(**order_kwargs(merchant_id="admin-2"))
        await manager.set_status(a.id, "confirmed")
        return (
            [a, b, c],
            await manager.list_orders(),
            await manager.list_orders(owner_id=STUDENT_ID),
            await manager.list_orders(merchant_id=MERCHANT_ID),
            await manager.list_orders(status="confirmed"),
            await manager.list_orders(owner_id=STUDENT_ID, merchant_id="admin-2"),
        )

    (a, b, c), everything, mine, merchant, confirmed, combined = asyncio.run(scenario())

    assert [o.id for o in everything] == [c.id, b.id, a.id]
    assert [o.id for o in mine] == [c.id, a.id]
    assert [o.id for o in merchant] == [b.id, a.id]
    assert [o.id for o in confirmed] == [a.id]
    assert [o.id for o in combined] == [c.id]


def test_list_orders_enrichment(manager, store) -> None:
    async def scenario():
        known = await manager.create_order(**order_kwargs())
        orders = await store.load(ORDERS)
        orphan = dict(orders[0], id="orphan", owner_id="deleted-user")
        await store.save(ORDERS, orders + [orphan])
        return known, await manager.list_orders()

    known, listed = asyncio.run(scenario())

    assert listed[0].id == "orphan"
    assert listed[0].owner_name == "Unknown"
    assert listed[0].owner_phone == "N/A"
    assert listed[1].id == known.id
    assert listed[1].owner_name == "Asha Rao"
    assert listed[1].owner_phone == "9000000001"


def test_muted_owner_gets_no_status_notifications(manager, notifier) -> None:
    async def scenario():
        order = await manager.create_order(**order_kwargs(owner_id=MUTED_ID))
        await manager.set_status(order.id, "confirmed")

    asyncio.run(scenario())

    assert [s["event_kind"] for s in notifier.sent] == ["created"]


def test_cancel_does_not_notify(manager, notifier) -> None:
    async def scenario():
        order = await manager.create_order(**order_kwargs())
        await manager.cancel_order(order.id)

    asyncio.run(scenario())

    assert [s["event_kind"] for s in notifier.sent] == ["created"]


def test_failing_mirror_is_invisible(store, clock, notifier) -> None:
    mirror = MockMirrorStore(failure_rate=1.0)
    manager = OrderLifecycleManager(
        store, mirror, notifier, allocator=OrderCodeAllocator(store, mirror, today=clock)
    )

    async def scenario():
        order = await manager.create_order(**order_kwargs())
        await manager.set_status(order.id, "confirmed")
        return order, await manager.get_order(order.id)

    created, stored = asyncio.run(scenario())

    assert created.order_code == "CC-#1"
    assert stored.status == OrderStatus.CONFIRMED
    assert mirror.tables == {}


def test_failing_notifier_is_invisible(store, mirror, clock) -> None:
    manager = OrderLifecycleManager(
        store,
        mirror,
        ExplodingNotifier(failure_rate=0.0, min_latency=0.0, max_latency=0.0),
        allocator=OrderCodeAllocator(store, mirror, today=clock),
    )

    async def scenario():
        order = await manager.create_order(**order_kwargs())
        return await manager.set_status(order.id, "confirmed")

    assert asyncio.run(scenario()).status == OrderStatus.CONFIRMED


def test_concurrent_orders_all_persisted(manager, store) -> None:
    async def scenario():
        orders = await asyncio.gather(
            *(manager.create_order(**order_kwargs()) for _ in range(20))
        )
        return orders, await store.load(ORDERS)

    orders, stored = asyncio.run(scenario())

    codes = sorted(int(o.order_code.removeprefix("CC-#")) for o in orders)
    assert codes == list(range(1, 21))
    assert {o["id"] for o in stored} == {o.id for o in orders}
    assert len(stored) == 20


def _truncate(path, count=5):
    path.write_text(path.read_text(encoding="utf-8")[:-count], encoding="utf-8")


def test_unreadable_orders_file_is_never_overwritten(manager, store, data_dir) -> None:
    async def place_two():
        return [await manager.create_order(**order_kwargs()) for _ in range(2)]

    first, _ = asyncio.run(place_two())
    orders_file = data_dir / "orders.json"
    _truncate(orders_file)
    damaged = orders_file.read_text(encoding="utf-8")

    with pytest.raises(StorageUnavailable):
        asyncio.run(manager.create_order(**order_kwargs()))
    with pytest.raises(StorageUnavailable):
        asyncio.run(manager.set_status(first.id, "confirmed"))
    with pytest.raises(StorageUnavailable):
        asyncio.run(manager.cancel_order(first.id))

    assert orders_file.read_text(encoding="utf-8") == damaged
    # No code was consumed by the rejected placement
    assert asyncio.run(store.load(ORDER_COUNTER, default={}))["counter"] == 2


class SlowFirstWriteMirror(MockMirrorStore):
    def __init__(self):
        super().__init__()
        self.writes = 0

    async def _put(self, table, record_id, record):
        self.writes += 1
        if self.writes == 1:
            await asyncio.sleep(0.05)
        await super()._put(table, record_id, record)


def test_concurrent_orders_listed_in_code_order(store, notifier, clock) -> None:
    mirror = SlowFirstWriteMirror()
    manager = OrderLifecycleManager(
        store, mirror, notifier, allocator=OrderCodeAllocator(store, mirror, today=clock)
    )

    async def scenario():
        await asyncio.gather(
            manager.create_order(**order_kwargs()),
            manager.create_order(**order_kwargs()),
        )
        return await manager.list_orders()

    listed = asyncio.run(scenario())

    assert [o.order_code for o in listed] == ["CC-#2", "CC-#1"]
    assert listed[0].created_at >= listed[1].created_at
