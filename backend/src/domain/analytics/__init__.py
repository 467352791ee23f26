"""Analytics domain - event log port"""

from .ports import AnalyticsEventType, AnalyticsLogPort

__all__ = ["AnalyticsEventType", "AnalyticsLogPort"]
