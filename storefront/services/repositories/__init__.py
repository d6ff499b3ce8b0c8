"""
Repository Pattern for Database Operations

- CatalogRepository: products and product variants
"""
from .catalog_repo import CatalogRepository

__all__ = [
    "CatalogRepository",
]
