"""Analytics Log Port - fire-and-forget sink for search events.

Implementations must never raise: analytics is not allowed to fail a
search or generation request.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional


class AnalyticsEventType(str, Enum):
    """Event types accepted by the analytics log"""
    SEARCH = "search"
    IMAGE_SEARCH = "image_search"
    IMAGE_NOT_FOUND = "image_not_found"
    ADD_TO_CART = "add_to_cart"
    PROMPT_IMAGE_GENERATION = "prompt_image_generation"
    PROMPT_IMAGE_FAILED = "prompt_image_failed"


class AnalyticsLogPort(ABC):
    """Abstract interface for the analytics event log"""

    @abstractmethod
    async def log_event(
        self,
        catalog_id: str,
        event_type: str,
        query: Optional[str] = None,
        image_id: Optional[str] = None,
    ) -> Optional[str]:
        """Record one event.

        Args:
            catalog_id: Tenant key the event belongs to
            event_type: One of AnalyticsEventType values
            query: JSON-serialized event payload
            image_id: Optional related asset id

        Returns:
            Event id if written, None if skipped or the write failed
        """
        pass
