"""Catalog Models - Pydantic models for catalog rows."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from storefront.services.money import to_decimal as _to_decimal


class Product(BaseModel):
    """Row of the `products` table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    price: Decimal
    inventory_count: int = 0
    is_active: bool = True
    drop_scheduled_time: Optional[datetime] = None
    image_urls: Optional[list[str]] = None

    @field_validator("id", mode="before")
    @classmethod
    def convert_id_to_str(cls, v):
        return str(v)

    @field_validator("price", mode="before")
    @classmethod
    def convert_price_to_decimal(cls, v):
        return _to_decimal(v)

    @field_validator("inventory_count", mode="before")
    @classmethod
    def clamp_inventory(cls, v):
        return max(0, int(v or 0))

    @property
    def image_url(self) -> Optional[str]:
        return self.image_urls[0] if self.image_urls else None

    def is_purchasable(self, now: datetime) -> bool:
        """Active and not waiting for a scheduled drop."""
        if not self.is_active:
            return False
        drop_time = self.drop_scheduled_time
        if drop_time is None:
            return True
        if drop_time.tzinfo is None:
            drop_time = drop_time.replace(tzinfo=timezone.utc)
        return drop_time <= now


class Variant(BaseModel):
    """Row of the `product_variants` table: one size/color combination."""

    model_config = ConfigDict(extra="ignore")

    id: str
    product_id: str
    size_id: Optional[str] = None
    color_id: Optional[str] = None
    price_adjustment: Decimal = Decimal("0")
    inventory_count: int = 0

    @field_validator("id", "product_id", "size_id", "color_id", mode="before")
    @classmethod
    def convert_ids_to_str(cls, v):
        return None if v is None else str(v)

    @field_validator("price_adjustment", mode="before")
    @classmethod
    def convert_adjustment_to_decimal(cls, v):
        return _to_decimal(v)

    @field_validator("inventory_count", mode="before")
    @classmethod
    def clamp_inventory(cls, v):
        return max(0, int(v or 0))
