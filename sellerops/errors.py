# sellerops/errors.py
# Exception types raised by the status engine and the carrier tracker


class SellerOpsError(Exception):
    """Base class for all sellerops errors."""


class MalformedEntityError(SellerOpsError, ValueError):
    """An order/return document has a field of the wrong shape.

    Raised instead of silently coercing, e.g. when a status field holds a
    number or a dict, or when an unknown entity type is requested.
    """

    def __init__(self, message: str, field: str | None = None, value=None):
        super().__init__(message)
        self.field = field
        self.value = value


class CarrierTrackingError(SellerOpsError):
    """A live carrier tracking call failed (transport error or bad HTTP status)."""

    def __init__(self, message: str, carrier: str = "", status_code: int | None = None):
        super().__init__(message)
        self.carrier = carrier
        self.status_code = status_code
