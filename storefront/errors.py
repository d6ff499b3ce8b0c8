"""
Cart error taxonomy.

Message constants are centralized here so routers and tests match on the
same strings.
"""

# Catalog errors
ERROR_PRODUCT_NOT_FOUND = "Product not found"
ERROR_VARIANT_NOT_FOUND = "Product variant not found"
ERROR_PRODUCT_INACTIVE = "Product is not available for purchase"
ERROR_CATALOG_UNAVAILABLE = "Catalog service unavailable"

# Cart store errors
ERROR_CART_STORE_UNAVAILABLE = "Cart service unavailable"

# Merge errors
ERROR_MERGE_CONFLICT = "Cart merge conflict"


class CartError(Exception):
    """Base class for all cart core errors."""


class NotFoundError(CartError):
    """Product or variant is absent from the catalog, or inactive."""

    def __init__(self, product_id: str, variant_id: str | None = None, message: str | None = None):
        self.product_id = product_id
        self.variant_id = variant_id
        if message is None:
            message = ERROR_VARIANT_NOT_FOUND if variant_id else ERROR_PRODUCT_NOT_FOUND
        super().__init__(message)


class InsufficientInventoryError(CartError):
    """Requested quantity exceeds what the catalog currently has."""

    def __init__(self, product_id: str, variant_id: str | None, requested: int, available: int):
        self.product_id = product_id
        self.variant_id = variant_id
        self.requested = requested
        self.available = available
        super().__init__(f"Only {available} available")


class StorePersistenceFailure(CartError):
    """A cart store could not durably load, save or clear a cart."""

    def __init__(self, message: str = ERROR_CART_STORE_UNAVAILABLE):
        super().__init__(message)


class MergeConflictError(CartError):
    """Reserved for merges that cannot be resolved by clamping. Never raised today."""

    def __init__(self, message: str = ERROR_MERGE_CONFLICT):
        super().__init__(message)


class CatalogUnavailableError(CartError):
    """The catalog lookup itself could not be reached."""

    def __init__(self, message: str = ERROR_CATALOG_UNAVAILABLE):
        super().__init__(message)


__all__ = [
    "ERROR_PRODUCT_NOT_FOUND",
    "ERROR_VARIANT_NOT_FOUND",
    "ERROR_PRODUCT_INACTIVE",
    "ERROR_CATALOG_UNAVAILABLE",
    "ERROR_CART_STORE_UNAVAILABLE",
    "ERROR_MERGE_CONFLICT",
    "CartError",
    "NotFoundError",
    "InsufficientInventoryError",
    "StorePersistenceFailure",
    "MergeConflictError",
    "CatalogUnavailableError",
]
