"""
Checkout error taxonomy.

None of these are fatal to a checkout: callers recover to a safe prior state
(no coupon, or no wallet) and surface a notification. A wallet balance smaller
than the order is not an error at all; the wallet applicator clamps.
"""
from typing import Optional


class CheckoutError(RuntimeError):
    """Base class for pricing engine errors."""


class NetworkError(CheckoutError):
    """Raised when a backend call fails at the transport level or returns an unusable body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CatalogUnavailable(CheckoutError):
    """Raised when the coupon catalog cannot be fetched."""


class ValidationFailed(CheckoutError):
    """Raised when a coupon code is rejected or cannot be validated."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class InvalidDiscountBound(ValidationFailed):
    """Raised when the server prices a coupon above the original total."""

    def __init__(self, code: str, final_price: int, original_total: int):
        super().__init__(code, "Invalid discount amount")
        self.final_price = final_price
        self.original_total = original_total


class StalePricing(CheckoutError):
    """Raised at payment time when re-validation changed the payable amount."""

    def __init__(self, previous, current):
        super().__init__(
            f"Payable amount changed from {previous.final_amount} to {current.final_amount}"
        )
        self.previous = previous
        self.current = current
