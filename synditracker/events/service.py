"""Event store: duplicate classification, persistence, and metrics.

The duplicate check and the insert run as two statements, not one
serializable transaction. Two identical submissions landing in the same
instant can both be stored as non-duplicates; that window is accepted.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone

from synditracker.errors import PersistenceError
from synditracker.events.repository import EventRepository
from synditracker.events.schemas import EventMetrics, SyndicationEvent, WindowMetrics
from synditracker.hooks import HookRegistry

logger = logging.getLogger(__name__)

DuplicateCallback = Callable[[SyndicationEvent], Awaitable[None]]


class EventStore:
    """Orchestrates event inserts and serves aggregate metrics.

    Args:
        repository: SQL access for the events table.
        hooks: Extension points; ``after_store`` fires for every stored event.
        on_duplicate: Awaited after a duplicate is stored (the spike
            detector). Its failures are logged, never propagated.
    """

    def __init__(
        self,
        repository: EventRepository,
        hooks: HookRegistry | None = None,
        on_duplicate: DuplicateCallback | None = None,
    ) -> None:
        self._repo = repository
        self._hooks = hooks or HookRegistry()
        self._on_duplicate = on_duplicate

    @property
    def repository(self) -> EventRepository:
        return self._repo

    def set_duplicate_callback(self, callback: DuplicateCallback | None) -> None:
        self._on_duplicate = callback

    async def is_duplicate(
        self,
        post_id: int,
        site_url: str,
        now: datetime | None = None,
    ) -> bool:
        """True if the same (post_id, site_url) was stored in the last 24 hours."""
        now = now or datetime.now(timezone.utc)
        count = await self._repo.count_recent_matches(post_id, site_url, now)
        return count > 0

    async def insert(self, event: SyndicationEvent) -> SyndicationEvent:
        """Classify and persist an event.

        Args:
            event: Event to store; ``is_duplicate`` and ``id`` are overwritten.

        Returns:
            The stored event.

        Raises:
            PersistenceError: If the duplicate check or the insert fails.
        """
        try:
            event.is_duplicate = await self.is_duplicate(
                event.post_id, event.site_url, event.timestamp,
            )
            event.id = await self._repo.insert(event)
        except Exception as e:
            logger.error(
                "Database insert failed for post %s from %s: %s",
                event.post_id, event.site_url, e,
            )
            raise PersistenceError("Failed to store log") from e

        self._hooks.after_store.fire(event)

        if event.is_duplicate and self._on_duplicate is not None:
            try:
                await self._on_duplicate(event)
            except Exception as e:
                logger.error("Spike check after duplicate %s failed: %s", event.id, e)

        return event

    async def metrics(self) -> EventMetrics:
        return await self._repo.metrics()

    async def metrics_for_window(self, hours: int) -> WindowMetrics:
        return await self._repo.metrics_for_window(hours)

    async def count_duplicates_in_window(self, hours: int) -> int:
        since = datetime.now(timezone.utc) - timedelta(hours=hours)
        return await self._repo.count_duplicates_since(since)

    async def recent_events(self, limit: int = 50, offset: int = 0) -> list[SyndicationEvent]:
        return await self._repo.get_recent(limit=limit, offset=offset)

    async def total_count(self) -> int:
        return await self._repo.count()

    async def purge(self) -> int:
        """Bulk administrative delete of all events."""
        removed = await self._repo.purge()
        logger.info("Purged %d syndication events", removed)
        return removed
