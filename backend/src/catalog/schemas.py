"""Pydantic schemas for the normalized catalog (CatalogItem and its parts)"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PriceRange(BaseModel):
    """Min/max price band of one size. Either bound may be unknown."""
    min: Optional[float] = None
    max: Optional[float] = None

    class Config:
        frozen = True


class MediaItem(BaseModel):
    """One product image or video reference"""
    url: str = ""
    type: str = ""

    class Config:
        frozen = True


class SizeItem(BaseModel):
    """One sellable size with its pricing"""
    size: str = ""
    marked_price: PriceRange = Field(default_factory=PriceRange)
    effective_price: PriceRange = Field(default_factory=PriceRange)
    sellable: bool = False

    class Config:
        frozen = True

    def to_payload(self) -> Dict[str, Any]:
        """Render in the nested shape the embedding service and clients expect"""
        return {
            "size": self.size,
            "price": {
                "marked": self.marked_price.model_dump(exclude_none=True),
                "effective": self.effective_price.model_dump(exclude_none=True),
            },
            "sellable": self.sellable,
        }


class CatalogItem(BaseModel):
    """Normalized product record.

    Produced by the catalog reader from raw store rows. Optional fields are
    always filled with empty strings or collections, never None.
    """
    slug: str
    name: str = ""
    description: str = ""
    short_description: str = ""
    category_slug: str = ""
    brand_name: str = ""
    media: List[MediaItem] = Field(default_factory=list)
    sizes: List[SizeItem] = Field(default_factory=list)

    class Config:
        frozen = True

    def to_service_payload(self) -> Dict[str, Any]:
        """Shape sent in the `products` array of POST /embeddings_store"""
        return {
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "short_description": self.short_description,
            "category_slug": self.category_slug,
            "brand": self.brand_name,
            "media": [m.model_dump() for m in self.media],
            "all_sizes": [s.to_payload() for s in self.sizes],
        }
