"""Catalog Repository - product and variant reads.

All methods use async/await with supabase-py v2.
"""
from typing import Optional

from .base import BaseRepository
from storefront.services.models import Product, Variant

PRODUCT_COLUMNS = "id, name, price, inventory_count, is_active, drop_scheduled_time, image_urls"
VARIANT_COLUMNS = "id, product_id, size_id, color_id, price_adjustment, inventory_count"


class CatalogRepository(BaseRepository):
    """Product catalog database operations."""

    async def get_product(self, product_id: str) -> Optional[Product]:
        """Get product by ID."""
        result = await self.client.table("products").select(PRODUCT_COLUMNS).eq(
            "id", product_id
        ).limit(1).execute()

        return Product(**result.data[0]) if result.data else None

    async def get_variant(self, product_id: str, variant_id: str) -> Optional[Variant]:
        """Get a variant, only if it belongs to the given product."""
        result = await self.client.table("product_variants").select(VARIANT_COLUMNS).eq(
            "id", variant_id
        ).eq("product_id", product_id).limit(1).execute()

        return Variant(**result.data[0]) if result.data else None

    async def count_variants(self, product_id: str) -> int:
        """Count size/color variants of a product."""
        result = await self.client.table("product_variants").select(
            "id", count="exact"
        ).eq("product_id", product_id).execute()

        return result.count or 0
