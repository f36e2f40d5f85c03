"""
Durable Record Store

JSON snapshot persistence for named collections:
- orders
- order-counter (singleton daily counter)
- users / menu (read by the order engine for lookups)

Each collection lives in its own file under the data directory. Callers
load the whole snapshot, change it in memory and save it back. Writes are
guarded by a file lock and replaced atomically; concurrent
read-modify-write cycles on the same collection are NOT isolated from
each other, callers that need isolation must serialize themselves and
should read with ``strict=True``.

Version: 1.0.0
"""

import asyncio
import json
import logging
import os
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from filelock import FileLock, Timeout

from canteen.core.config import get_settings
from canteen.core.exceptions import StorageUnavailable

logger = logging.getLogger(__name__)

ORDERS = "orders"
ORDER_COUNTER = "order-counter"
USERS = "users"
MENU = "menu"

COLLECTION_DEFAULTS = {
    ORDERS: list,
    ORDER_COUNTER: lambda: {"date": date.today().isoformat(), "counter": 0},
    USERS: list,
    MENU: list,
}


class RecordStore:
    """Whole-collection JSON snapshot store."""

    def __init__(
        self,
        data_directory: Optional[str] = None,
        lock_timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.data_dir = Path(data_directory or settings.data_directory)
        self.lock_timeout = (
            settings.store_lock_timeout if lock_timeout is None else lock_timeout
        )

    def path_for(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    def _lock_for(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json.lock"

    def _ensure_data_dir(self) -> None:
        """Create data directory if needed."""
        if not self.data_dir.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.data_dir}")

    async def initialize(self) -> None:
        """Seed every known collection that has no file yet."""
        for collection, factory in COLLECTION_DEFAULTS.items():
            if not self.path_for(collection).exists():
                await self.save(collection, factory())
        logger.info(f"Record store ready at {self.data_dir}")

    # =========================================================================
    # READ
    # =========================================================================

    async def load(self, collection: str, default: Any = None, strict: bool = False) -> Any:
        """
        Load a collection snapshot.

        A missing file yields ``default`` (an empty list when not given).
        An unreadable file also degrades to ``default`` for display reads;
        with ``strict`` it raises instead, so a read-modify-write never
        saves a fallback over real data.

        Raises:
            StorageUnavailable: ``strict`` and the file exists but cannot be read
        """
        fallback = [] if default is None else default
        return await asyncio.to_thread(self._read, collection, fallback, strict)

    def _read(self, collection: str, fallback: Any, strict: bool = False) -> Any:
        path = self.path_for(collection)
        if not path.exists():
            logger.debug(f"Collection {collection} has no file yet")
            return fallback

        try:
            with path.open(encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, ValueError) as e:
            if strict:
                logger.error(f"Error reading {path}: {e}")
                raise StorageUnavailable(f"Could not read {collection}: {e}") from e
            logger.warning(f"Error reading {path}: {e}")
            return fallback

    # =========================================================================
    # WRITE
    # =========================================================================

    async def save(self, collection: str, data: Any) -> None:
        """
        Replace a collection snapshot.

        Raises:
            StorageUnavailable: the snapshot could not be written
        """
        await asyncio.to_thread(self._write, collection, data)

    def _write(self, collection: str, data: Any) -> None:
        path = self.path_for(collection)
        tmp_path = path.with_name(f"{path.name}.tmp")

        try:
            self._ensure_data_dir()
            lock = FileLock(str(self._lock_for(collection)), timeout=self.lock_timeout)

            with lock:
                with tmp_path.open("w", encoding="utf-8") as fh:
                    json.dump(data, fh, indent=2)
                os.replace(tmp_path, path)

            logger.debug(f"Saved {collection} snapshot")

        except Timeout:
            logger.error(f"Lock timeout ({self.lock_timeout}s) saving {collection}")
            raise StorageUnavailable(
                f"Timed out waiting for the {collection} lock"
            )

        except (OSError, TypeError, ValueError) as e:
            logger.exception(f"Error saving {collection}")
            raise StorageUnavailable(f"Could not save {collection}: {e}") from e

    async def health_check(self) -> bool:
        """Check that the data directory is writable."""
        try:
            self._ensure_data_dir()
        except OSError as e:
            logger.error(f"Data directory unavailable: {e}")
            return False
        return os.access(self.data_dir, os.W_OK)


@lru_cache()
def get_record_store() -> RecordStore:
    """Get the process-wide record store."""
    return RecordStore()


def reset_record_store() -> None:
    """Clear the cached store instance."""
    get_record_store.cache_clear()
