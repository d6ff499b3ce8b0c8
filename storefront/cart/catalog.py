"""Catalog lookup contract consumed by the cart engine and merge coordinator."""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol


@dataclass(frozen=True)
class Availability:
    """Live price and stock for one (product, variant) combination."""

    active: bool
    unit_price: Decimal  # base price + variant adjustment
    available_quantity: int
    name: str = ""
    image_url: Optional[str] = None


class CatalogLookup(Protocol):
    """
    Read-only view of the product catalog.

    `get_availability` returns None when the product or variant does not
    exist, and raises CatalogUnavailableError when the catalog cannot be
    reached.
    """

    async def get_availability(
        self, product_id: str, variant_id: Optional[str] = None
    ) -> Optional[Availability]:
        ...
