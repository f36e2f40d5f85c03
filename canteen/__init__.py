"""
                Campus Canteen Order Engine

Order placement backend for campus canteens: daily sequential order
codes, a bounded order status workflow, and a JSON record store
mirrored best-effort into an external table.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
