"""
Checkout pricing.

Pure calculation of subtotal, shipping, tax and total from catalog-priced
lines. Arithmetic stays at full Decimal precision; rounding to cents
(half-up) happens only in CheckoutQuote.rounded() / to_dict().
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Optional, Tuple

from storefront.cart.models import CheckoutValidation, PricedLine
from storefront.config import TAX_RATE_PERCENT
from storefront.services.money import add, format_money, percent, round_money, to_decimal


@dataclass(frozen=True)
class ShippingMethod:
    code: str
    label: str
    cost: Decimal
    free_threshold: Optional[Decimal] = None  # None: never free

    def cost_for(self, subtotal: Decimal) -> Decimal:
        if self.free_threshold is not None and subtotal >= self.free_threshold:
            return Decimal("0")
        return self.cost


SHIPPING_METHODS: Dict[str, ShippingMethod] = {
    "standard": ShippingMethod("standard", "Standard Shipping", Decimal("7.99"), Decimal("75")),
    "express": ShippingMethod("express", "Express Shipping", Decimal("14.99"), Decimal("150")),
    "overnight": ShippingMethod("overnight", "Overnight Shipping", Decimal("19.99")),
}


@dataclass(frozen=True)
class CheckoutQuote:
    """Cost breakdown for one cart snapshot and shipping method. Never cached."""
    shipping_method: str
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal
    lines: Tuple[PricedLine, ...] = ()

    def rounded(self) -> "CheckoutQuote":
        """Same quote at currency precision, for display and output."""
        return CheckoutQuote(
            shipping_method=self.shipping_method,
            subtotal=round_money(self.subtotal),
            shipping=round_money(self.shipping),
            tax=round_money(self.tax),
            total=round_money(self.total),
            lines=self.lines,
        )

    def to_dict(self) -> dict:
        shown = self.rounded()
        return {
            "shipping_method": shown.shipping_method,
            "subtotal": str(shown.subtotal),
            "shipping": str(shown.shipping),
            "tax": str(shown.tax),
            "total": str(shown.total),
            "display_total": format_money(shown.total),
            "lines": [line.to_dict() for line in self.lines],
        }


class CheckoutCalculator:
    """
    Quotes a checkout.

    - Line total = catalog unit price x quantity
    - Shipping is free only when the method has a threshold and the
      subtotal (never subtotal + tax) is >= that threshold
    - Tax = subtotal x flat rate; no jurisdiction rules
    - An empty cart still pays the method's base shipping cost

    Usage:
        calculator = CheckoutCalculator()
        validation = await engine.validate_for_checkout(identity)
        quote = calculator.quote(validation.priced_lines(), "standard")
    """

    def __init__(
        self,
        tax_rate_percent=None,
        shipping_methods: Optional[Dict[str, ShippingMethod]] = None,
    ):
        self.tax_rate_percent = to_decimal(
            TAX_RATE_PERCENT if tax_rate_percent is None else tax_rate_percent
        )
        self.shipping_methods = shipping_methods or SHIPPING_METHODS

    def shipping_method(self, code: str) -> ShippingMethod:
        method = self.shipping_methods.get(code)
        if method is None:
            raise ValueError(f"Unknown shipping method: {code}")
        return method

    def quote(self, lines: Iterable[PricedLine], shipping_method: str) -> CheckoutQuote:
        method = self.shipping_method(shipping_method)
        priced = tuple(lines)

        subtotal = Decimal("0")
        for line in priced:
            subtotal = add(subtotal, line.line_total)

        shipping = method.cost_for(subtotal)
        tax = percent(subtotal, self.tax_rate_percent)
        total = subtotal + shipping + tax

        return CheckoutQuote(
            shipping_method=method.code,
            subtotal=subtotal,
            shipping=shipping,
            tax=tax,
            total=total,
            lines=priced,
        )

    def quote_validation(self, validation: CheckoutValidation, shipping_method: str) -> CheckoutQuote:
        """Quote the satisfiable part of a validated cart."""
        return self.quote(validation.priced_lines(), shipping_method)


def get_checkout_calculator() -> CheckoutCalculator:
    return CheckoutCalculator()
