"""Syndication events: storage, duplicate classification, and metrics."""

from synditracker.events.repository import EventRepository
from synditracker.events.schemas import (
    DUPLICATE_WINDOW,
    EventMetrics,
    SyndicationEvent,
    WindowMetrics,
)
from synditracker.events.service import EventStore

__all__ = [
    "DUPLICATE_WINDOW",
    "EventMetrics",
    "EventRepository",
    "EventStore",
    "SyndicationEvent",
    "WindowMetrics",
]
