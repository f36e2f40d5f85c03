"""
Sequential Order Code Allocator

Mints the daily order codes shown to students and staff (``CC-#1``,
``CC-#2``, ...). The counter restarts at 1 on the first allocation of
each calendar day.

All allocations are serialized through one asyncio lock owned by the
allocator: the persisted counter is only a checkpoint, the lock is what
keeps two overlapping requests from reading the same value.

Version: 1.0.0
"""

import asyncio
import logging
from datetime import date
from typing import Callable, Optional

from pydantic import ValidationError

from canteen.core.config import get_settings
from canteen.core.exceptions import StorageUnavailable
from canteen.models import DailyCounter
from canteen.services.mirror import BaseMirrorStore
from canteen.services.record_store import ORDER_COUNTER, RecordStore

logger = logging.getLogger(__name__)

COUNTER_RECORD_ID = "order-counter"


class OrderCodeAllocator:
    """Single owner of the ``order-counter`` collection."""

    def __init__(
        self,
        store: RecordStore,
        mirror: Optional[BaseMirrorStore] = None,
        today: Callable[[], date] = date.today,
        prefix: Optional[str] = None,
    ):
        settings = get_settings()
        self.store = store
        self.mirror = mirror
        self.today = today
        self.prefix = settings.order_code_prefix if prefix is None else prefix
        self.counters_table = settings.counters_table
        self._lock = asyncio.Lock()

    async def _load_counter(self) -> Optional[DailyCounter]:
        """
        Current counter, or None before the first allocation.

        Raises:
            StorageUnavailable: the stored counter exists but is unreadable
        """
        raw = await self.store.load(ORDER_COUNTER, default={}, strict=True)
        if not raw:
            return None
        try:
            return DailyCounter.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Unreadable order counter {raw!r}: {e}")
            raise StorageUnavailable(f"Order counter is corrupt: {raw!r}") from e

    def format_code(self, counter: DailyCounter) -> str:
        return f"{self.prefix}{counter.counter}"

    async def allocate(self) -> DailyCounter:
        """
        Advance and persist the daily counter.

        The date comparison uses the clock at the moment the lock is
        held, so an allocation that waits across midnight starts the new
        day at 1.

        Raises:
            StorageUnavailable: the counter could not be read or persisted
        """
        async with self._lock:
            counter = await self._load_counter()
            today = self.today().isoformat()

            if counter is None or counter.date != today:
                counter = DailyCounter(date=today, counter=1)
                logger.info(f"Order counter reset for {today}")
            else:
                counter.counter += 1

            await self.store.save(ORDER_COUNTER, counter.model_dump())

        logger.debug(f"Allocated order code {self.format_code(counter)}")
        return counter

    async def mirror_counter(self, counter: DailyCounter) -> None:
        """Best-effort copy of the counter into the mirror."""
        if self.mirror is not None:
            await self.mirror.upsert(
                self.counters_table,
                {"id": COUNTER_RECORD_ID, **counter.model_dump()},
            )

    async def next_order_code(self) -> str:
        """Allocate, mirror and format the next order code."""
        counter = await self.allocate()
        await self.mirror_counter(counter)
        return self.format_code(counter)
