"""Product SQLAlchemy model"""

import uuid

from sqlalchemy import Column, Text, Uuid, Index, UniqueConstraint

from .base import Base, PortableJSONB, TimestampMixin


class Product(TimestampMixin, Base):
    """Raw catalog row as synced from the storefront platform.

    Nested structures (brand, media, all_sizes) are stored as JSON in the
    platform's own shape; the catalog reader normalizes them into CatalogItem.

    all_sizes entries look like:
        {"size": "M", "sellable": true,
         "price": {"marked": {"min": 999, "max": 999},
                   "effective": {"min": 799, "max": 799}}}
    """
    __tablename__ = "product"
    __table_args__ = (
        UniqueConstraint("catalog_id", "slug", name="uq_product_catalog_slug"),
        Index("ix_product_catalog_id", "catalog_id"),
        Index("ix_product_slug", "slug"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    catalog_id = Column(Text, nullable=False)
    slug = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    short_description = Column(Text, nullable=True)
    category_slug = Column(Text, nullable=True)
    brand = Column(PortableJSONB, nullable=True)
    media = Column(PortableJSONB, nullable=True)
    all_sizes = Column(PortableJSONB, nullable=True)

    def to_dict(self):
        """Convert product to dictionary representation"""
        return {
            "id": str(self.id),
            "catalog_id": self.catalog_id,
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "short_description": self.short_description,
            "category_slug": self.category_slug,
            "brand": self.brand,
            "media": self.media,
            "all_sizes": self.all_sizes,
        }
