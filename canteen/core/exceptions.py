"""
Canteen Exception Classes

Typed failures raised by the order engine. The API layer maps every
CanteenError to a JSON error body using ``code`` and ``status_code``.
"""


class CanteenError(Exception):
    """Base exception for order engine operations."""

    code = "canteen_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(CanteenError):
    """Raised when a referenced entity does not resolve."""

    code = "not_found"
    status_code = 404


class OwnerNotFound(NotFound):
    """Raised when the placing user cannot be found."""

    code = "owner_not_found"


class OrderNotFound(NotFound):
    """Raised when an order id does not resolve."""

    code = "order_not_found"


class IllegalTransition(CanteenError):
    """Raised when a status change is not an edge of the order workflow."""

    code = "illegal_transition"
    status_code = 409


class NotCancellable(CanteenError):
    """Raised when cancelling an order that is past confirmation."""

    code = "not_cancellable"
    status_code = 400


class StorageUnavailable(CanteenError):
    """Raised when the durable record store cannot persist a snapshot."""

    code = "storage_unavailable"
    status_code = 503
