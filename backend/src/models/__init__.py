"""SQLAlchemy Models for the visual search backend"""

from .base import Base
from .product import Product
from .analytics_event import AnalyticsEvent

__all__ = [
    "Base",
    "Product",
    "AnalyticsEvent",
]
