"""Storefront cart core: cart engine, sign-in merge and checkout pricing."""

__version__ = "0.1.0"
