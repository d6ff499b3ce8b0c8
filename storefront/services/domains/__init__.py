"""Domain services wrapping repositories."""
from .catalog import SupabaseCatalog

__all__ = [
    "SupabaseCatalog",
]
