"""Catalog-facing services: money helpers, catalog models, repositories and domains."""
