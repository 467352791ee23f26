"""Catalog domain module - normalized product records and the catalog reader"""

from .schemas import CatalogItem, MediaItem, PriceRange, SizeItem
from .reader import CatalogReader, normalize_product

__all__ = [
    "CatalogItem",
    "MediaItem",
    "PriceRange",
    "SizeItem",
    "CatalogReader",
    "normalize_product",
]
