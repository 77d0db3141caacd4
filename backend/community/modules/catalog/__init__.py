"""
Catalog Module - products, categories, tags and badges.
"""

from community.modules.catalog.service import CatalogService

__all__ = ["CatalogService"]
