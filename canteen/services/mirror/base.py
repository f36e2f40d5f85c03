"""
Mirror Store Abstract Base Class

Best-effort write-through replica of individual records into an external
keyed table. Every record carries its own primary identifier field.

Writes are independent per record: no batching, no transaction, no retry.
Any backend failure is logged and swallowed; callers only ever see a
boolean result and must never treat the mirror as a correctness
dependency.

Version: 1.0.0
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

logger = logging.getLogger(__name__)


class MirrorWriteError(Exception):
    """Raised by mirror backends when a single record write fails."""
    pass


class BaseMirrorStore(ABC):
    """Abstract base class for mirror stores."""

    id_field = "id"

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the backend name."""
        pass

    async def upsert(self, table: str, record: dict[str, Any]) -> bool:
        """
        Insert or replace ``record`` in ``table``.

        Returns:
            bool: True if the record reached the mirror. Never raises.
        """
        record_id = record.get(self.id_field)
        if not record_id:
            logger.warning(f"Mirror upsert to {table} skipped: record has no {self.id_field}")
            return False

        try:
            await self._put(table, str(record_id), record)
        except Exception as e:
            logger.error(f"Mirror upsert to {table} failed for {record_id}: {e}")
            return False

        logger.debug(f"Mirrored {record_id} into {table}")
        return True

    @abstractmethod
    async def _put(self, table: str, record_id: str, record: dict[str, Any]) -> None:
        """Write one record; raise on failure."""
        pass

    @abstractmethod
    async def get(self, table: str, record_id: str) -> Optional[dict[str, Any]]:
        """Read one mirrored record back (None if absent)."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check backend connectivity."""
        pass
