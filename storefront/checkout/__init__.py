"""Checkout package: shipping table and quote calculation."""
from .pricing import (
    SHIPPING_METHODS,
    CheckoutCalculator,
    CheckoutQuote,
    ShippingMethod,
    get_checkout_calculator,
)

__all__ = [
    "SHIPPING_METHODS",
    "CheckoutCalculator",
    "CheckoutQuote",
    "ShippingMethod",
    "get_checkout_calculator",
]
