"""
Catalog Domain Service

Answers availability questions for the cart engine from the Supabase
`products` and `product_variants` tables.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from storefront.cart.catalog import Availability
from storefront.db import get_supabase
from storefront.errors import CatalogUnavailableError
from storefront.logging import get_logger, safe_id
from storefront.services.repositories import CatalogRepository

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SupabaseCatalog:
    """
    Catalog lookup backed by Supabase.

    - Variant price = product base price + variant price adjustment
    - Variant stock comes from the variant row; products without variants
      use their own inventory count
    - A product with variants cannot be looked up without a variant id
    - Products with a future drop time are reported inactive
    """

    def __init__(self, repo: Optional[CatalogRepository] = None, clock: Callable[[], datetime] = _utcnow):
        self._repo = repo
        self._clock = clock

    async def _get_repo(self) -> CatalogRepository:
        """Lazy repository so the Supabase client is only created on first use."""
        if self._repo is None:
            self._repo = CatalogRepository(await get_supabase())
        return self._repo

    async def get_availability(
        self, product_id: str, variant_id: Optional[str] = None
    ) -> Optional[Availability]:
        try:
            return await self._lookup(product_id, variant_id)
        except Exception as e:
            logger.error(
                f"Catalog lookup failed for product {safe_id(product_id)}: {e}"
            )
            raise CatalogUnavailableError() from e

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(Exception),
    )
    async def _lookup(self, product_id: str, variant_id: Optional[str]) -> Optional[Availability]:
        repo = await self._get_repo()
        product = await repo.get_product(product_id)
        if product is None:
            return None

        active = product.is_purchasable(self._clock())

        if variant_id is not None:
            variant = await repo.get_variant(product_id, variant_id)
            if variant is None:
                return None
            return Availability(
                active=active,
                unit_price=product.price + variant.price_adjustment,
                available_quantity=variant.inventory_count,
                name=product.name,
                image_url=product.image_url,
            )

        if await repo.count_variants(product_id) > 0:
            # Size/color must be chosen; the bare product is not sellable
            return None

        return Availability(
            active=active,
            unit_price=product.price,
            available_quantity=product.inventory_count,
            name=product.name,
            image_url=product.image_url,
        )
