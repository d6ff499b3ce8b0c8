"""
Cart API Pydantic Models

Request bodies for the cart endpoints.
"""
from typing import Optional

from pydantic import BaseModel, Field


class AddLineRequest(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    quantity: int = Field(1, ge=1)


class SetQuantityRequest(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    quantity: int  # <= 0 removes the line


class QuoteRequest(BaseModel):
    shipping_method: str = "standard"


class MergeRequest(BaseModel):
    device_id: str = Field(..., min_length=1)
