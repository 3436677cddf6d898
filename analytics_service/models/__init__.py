"""
Models package for the analytics statistics document.

This package contains the Pydantic models that give the persisted
document its typed, bounded shape.
"""

from .document import (
    CURRENT_VERSION,
    DEFAULT_MAX_EVENTS,
    UNKNOWN_LABEL,
    AnalyticsModel,
    Totals,
    VisitorRecord,
    PageRecord,
    ClickAggregate,
    VisitEvent,
    ClickEvent,
    StatisticsDocument,
)

__all__ = [
    "CURRENT_VERSION",
    "DEFAULT_MAX_EVENTS",
    "UNKNOWN_LABEL",
    "AnalyticsModel",
    "Totals",
    "VisitorRecord",
    "PageRecord",
    "ClickAggregate",
    "VisitEvent",
    "ClickEvent",
    "StatisticsDocument",
]
