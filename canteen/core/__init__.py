"""
Core module initialization.
Exports configuration, logging utilities and the error hierarchy.
"""

from canteen.core.config import get_settings, Settings, EnvironmentMode, setup_logging
from canteen.core.exceptions import (
    CanteenError,
    NotFound,
    OwnerNotFound,
    OrderNotFound,
    IllegalTransition,
    NotCancellable,
    StorageUnavailable,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "setup_logging",
    "CanteenError",
    "NotFound",
    "OwnerNotFound",
    "OrderNotFound",
    "IllegalTransition",
    "NotCancellable",
    "StorageUnavailable",
]
