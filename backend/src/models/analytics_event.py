"""
AnalyticsEvent model - Append-only log of storefront search events.

Written fire-and-forget by the search and prompt-image flows.
"""

import uuid

from sqlalchemy import Column, DateTime, Index, Text, Uuid, func

from .base import Base


class AnalyticsEvent(Base):
    """One analytics event, keyed by catalog."""
    __tablename__ = "analytics_event"
    __table_args__ = (
        Index("ix_analytics_event_catalog_created", "catalog_id", "created_at"),
        Index("ix_analytics_event_catalog_type", "catalog_id", "type"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    catalog_id = Column(Text, nullable=False)
    type = Column(Text, nullable=False)  # AnalyticsEventType value
    query = Column(Text, nullable=True)  # JSON-serialized payload
    image_id = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<AnalyticsEvent(id={self.id}, catalog_id={self.catalog_id}, type={self.type})>"
