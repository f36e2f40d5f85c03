"""
                        Services Module

Business logic of the order engine. Collaborators with an external
backend have a Mock (development) and a Real (production) implementation.

Services:
    - record_store: JSON snapshot persistence (source of truth)
    - mirror: best-effort replica table
    - order_code: daily sequential order codes
    - orders: order lifecycle manager
    - notifications: order event emails
    - analytics: merchant revenue and best sellers
    - excel_manager: Excel order report
"""

from canteen.services.record_store import RecordStore, get_record_store
from canteen.services.order_code import OrderCodeAllocator
from canteen.services.orders import OrderLifecycleManager, get_order_manager

__all__ = [
    "RecordStore",
    "get_record_store",
    "OrderCodeAllocator",
    "OrderLifecycleManager",
    "get_order_manager",
]
