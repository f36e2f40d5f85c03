"""
Mock Mirror Store

In-memory mirror for development and tests. Simulates latency and an
optional failure rate; nothing leaves the process.

Version: 1.0.0
"""

import asyncio
import copy
import logging
import random
from typing import Any, Optional

from canteen.services.mirror.base import BaseMirrorStore, MirrorWriteError

logger = logging.getLogger(__name__)


class MockMirrorStore(BaseMirrorStore):
    """Dictionary-backed mirror store."""

    def __init__(
        self,
        failure_rate: float = 0.0,
        min_latency: float = 0.0,
        max_latency: float = 0.0,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.tables: dict[str, dict[str, dict[str, Any]]] = {}
        logger.info(f"MockMirrorStore initialized (failure_rate={failure_rate:.0%})")

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _simulate_latency(self) -> None:
        await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def _put(self, table: str, record_id: str, record: dict[str, Any]) -> None:
        await self._simulate_latency()

        if self._should_fail():
            raise MirrorWriteError("Simulated mirror failure")

        self.tables.setdefault(table, {})[record_id] = copy.deepcopy(record)

    async def get(self, table: str, record_id: str) -> Optional[dict[str, Any]]:
        record = self.tables.get(table, {}).get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def health_check(self) -> bool:
        """Mock always returns healthy."""
        return True
