"""Analytics event repository - SQL implementation of AnalyticsLogPort"""

import asyncio
import logging
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from domain.analytics.ports import AnalyticsEventType, AnalyticsLogPort
from models.analytics_event import AnalyticsEvent

logger = logging.getLogger(__name__)

VALID_EVENT_TYPES = {t.value for t in AnalyticsEventType}


class AnalyticsEventRepository(AnalyticsLogPort):
    """Writes analytics events to the analytics_event table.

    Writes happen in the default executor. Invalid events and storage
    failures are logged and dropped; log_event never raises.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    async def log_event(
        self,
        catalog_id: str,
        event_type: str,
        query: Optional[str] = None,
        image_id: Optional[str] = None,
    ) -> Optional[str]:
        if not catalog_id or not event_type:
            logger.warning(
                "Missing required fields in log_event",
                extra={"catalog_id": catalog_id, "event_type": event_type},
            )
            return None

        event_type = getattr(event_type, "value", event_type)
        if event_type not in VALID_EVENT_TYPES:
            logger.warning(f"Unknown analytics event type: {event_type}", extra={"catalog_id": catalog_id})
            return None

        loop = asyncio.get_running_loop()
        try:
            event_id = await loop.run_in_executor(
                None, self._insert, catalog_id, event_type, query, image_id
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to log event: {e}", extra={"catalog_id": catalog_id})
            return None

        logger.info(f"Event logged: {event_type}", extra={"catalog_id": catalog_id})
        return event_id

    def list_events(self, catalog_id: str, event_type: Optional[str] = None) -> List[AnalyticsEvent]:
        """Events of one catalog, oldest first"""
        session = self.session_factory()
        try:
            stmt = select(AnalyticsEvent).where(AnalyticsEvent.catalog_id == catalog_id)
            if event_type:
                stmt = stmt.where(AnalyticsEvent.type == event_type)
            stmt = stmt.order_by(AnalyticsEvent.created_at)
            return list(session.execute(stmt).scalars().all())
        finally:
            session.close()

    def _insert(
        self,
        catalog_id: str,
        event_type: str,
        query: Optional[str],
        image_id: Optional[str],
    ) -> str:
        session = self.session_factory()
        try:
            event = AnalyticsEvent(
                catalog_id=catalog_id,
                type=event_type,
                query=query,
                image_id=image_id,
            )
            session.add(event)
            session.commit()
            return str(event.id)
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()
