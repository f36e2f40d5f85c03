"""
Mirror Store Factory

Returns the in-memory or SQL mirror based on ENV_MODE.

Version: 1.0.0
"""

import logging
from functools import lru_cache

from canteen.core.config import get_settings
from canteen.services.mirror.base import BaseMirrorStore, MirrorWriteError
from canteen.services.mirror.mock import MockMirrorStore
from canteen.services.mirror.sql import SQLMirrorStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_mirror_store() -> BaseMirrorStore:
    """Get the configured mirror store."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Mirror Store: Using MockMirrorStore (development mode)")
        return MockMirrorStore(failure_rate=settings.mirror_failure_rate)

    logger.info(f"Mirror Store: Using SQLMirrorStore ({settings.env_mode.value} mode)")
    return SQLMirrorStore()


def reset_mirror_store() -> None:
    """Clear the cached store instance."""
    get_mirror_store.cache_clear()


__all__ = [
    "get_mirror_store",
    "reset_mirror_store",
    "BaseMirrorStore",
    "MirrorWriteError",
    "MockMirrorStore",
    "SQLMirrorStore",
]
