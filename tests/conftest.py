import json
from datetime import date

import pytest

from canteen.core.config import get_settings
from canteen.services.mirror import reset_mirror_store
from canteen.services.mirror.mock import MockMirrorStore
from canteen.services.notifications import reset_notification_service
from canteen.services.notifications.mock import MockNotificationService
from canteen.services.order_code import OrderCodeAllocator
from canteen.services.orders import OrderLifecycleManager, reset_order_manager
from canteen.services.record_store import MENU, USERS, RecordStore, reset_record_store

STUDENT_ID = "student-1"
MUTED_ID = "student-2"
MERCHANT_ID = "admin-1"

USERS_SEED = [
    {
        "id": STUDENT_ID,
        "name": "Asha Rao",
        "email": "asha@campus.test",
        "phone": "9000000001",
        "preferences": {"notifications": True},
    },
    {
        "id": MUTED_ID,
        "name": "Ravi Kumar",
        "email": "ravi@campus.test",
        "preferences": {"notifications": False},
    },
    {"id": MERCHANT_ID, "name": "Main Canteen", "role": "admin"},
]

MENU_SEED = [
    {"id": "dosa", "name": "Masala Dosa", "price": 50.0, "merchant_id": MERCHANT_ID},
    {"id": "chai", "name": "Chai", "price": 10.0, "merchant_id": MERCHANT_ID},
    {"id": "samosa", "name": "Samosa", "price": 15.0, "merchant_id": MERCHANT_ID},
    {"id": "biryani", "name": "Veg Biryani", "price": 90.0, "merchant_id": MERCHANT_ID},
]


def clear_caches():
    get_settings.cache_clear()
    reset_record_store()
    reset_mirror_store()
    reset_notification_service()
    reset_order_manager()


def write_collection(data_dir, collection, data):
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / f"{collection}.json").write_text(json.dumps(data), encoding="utf-8")


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setenv("ENV_MODE", "development")
    monkeypatch.setenv("DATA_DIRECTORY", str(tmp_path / "data"))
    monkeypatch.setenv("MIRROR_FAILURE_RATE", "0")
    clear_caches()
    yield
    clear_caches()


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def store(data_dir):
    write_collection(data_dir, USERS, USERS_SEED)
    write_collection(data_dir, MENU, MENU_SEED)
    return RecordStore(str(data_dir), lock_timeout=1)


@pytest.fixture
def mirror():
    return MockMirrorStore()


@pytest.fixture
def notifier():
    return MockNotificationService(failure_rate=0.0, min_latency=0.0, max_latency=0.0)


class Clock:
    """Settable stand-in for ``date.today``."""

    def __init__(self, today):
        self.today = today

    def __call__(self):
        return self.today


@pytest.fixture
def clock():
    return Clock(date(2026, 10, 17))


@pytest.fixture
def manager(store, mirror, notifier, clock):
    allocator = OrderCodeAllocator(store, mirror, today=clock)
    return OrderLifecycleManager(store, mirror, notifier, allocator=allocator)


def order_kwargs(**overrides):
    kwargs = {
        "owner_id": STUDENT_ID,
        "merchant_id": MERCHANT_ID,
        "line_items": [{"item_id": "dosa", "quantity": 2, "unit_price": 50.0}],
        "total_amount": 100.0,
        "payment_method": "upi",
    }
    kwargs.update(overrides)
    return kwargs
