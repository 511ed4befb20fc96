"""Event repository for syndication event persistence and aggregates.

Aggregates use a single conditional-aggregation pass so the dashboard and
the spike detector never scan the table twice.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from synditracker.events.schemas import (
    DUPLICATE_WINDOW,
    EventMetrics,
    SyndicationEvent,
    WindowMetrics,
)
from synditracker.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS syndication_events (
    id            BIGSERIAL PRIMARY KEY,
    post_id       BIGINT NOT NULL,
    site_url      VARCHAR(255) NOT NULL,
    site_name     VARCHAR(255) NOT NULL DEFAULT '',
    aggregator    VARCHAR(50) NOT NULL DEFAULT 'Unknown',
    timestamp     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    is_duplicate  BOOLEAN NOT NULL DEFAULT FALSE
);

CREATE INDEX IF NOT EXISTS idx_syndication_events_dimension
    ON syndication_events(post_id, site_url, timestamp);
CREATE INDEX IF NOT EXISTS idx_syndication_events_timestamp
    ON syndication_events(timestamp);
"""

_INSERT_SQL = """
INSERT INTO syndication_events (
    post_id, site_url, site_name, aggregator, timestamp, is_duplicate
) VALUES ($1, $2, $3, $4, $5, $6)
RETURNING id
"""


def _row_to_event(row: Any) -> SyndicationEvent:
    """Convert an asyncpg Record to a SyndicationEvent."""
    return SyndicationEvent(
        id=row["id"],
        post_id=row["post_id"],
        site_url=row["site_url"],
        site_name=row["site_name"],
        aggregator=row["aggregator"],
        timestamp=row["timestamp"],
        is_duplicate=row["is_duplicate"],
    )


class EventRepository:
    """CRUD and aggregate queries for the ``syndication_events`` table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("syndication_events table ensured")

    async def count_recent_matches(
        self,
        post_id: int,
        site_url: str,
        now: datetime,
        window: timedelta = DUPLICATE_WINDOW,
    ) -> int:
        """Count events for (post_id, site_url) with timestamp >= now - window."""
        sql = """
            SELECT COUNT(*) FROM syndication_events
            WHERE post_id = $1 AND site_url = $2 AND timestamp >= $3
        """
        count = await self._db.fetchval(sql, post_id, site_url, now - window)
        return count or 0

    async def insert(self, event: SyndicationEvent) -> int:
        """Insert an event and return its id."""
        return await self._db.fetchval(
            _INSERT_SQL,
            event.post_id,
            event.site_url,
            event.site_name,
            event.aggregator,
            event.timestamp,
            event.is_duplicate,
        )

    async def metrics(self) -> EventMetrics:
        sql = """
            SELECT
                COUNT(*) AS total,
                COUNT(*) FILTER (WHERE is_duplicate) AS duplicates,
                COUNT(DISTINCT site_url) AS unique_partners
            FROM syndication_events
        """
        row = await self._db.fetchrow(sql)
        if row is None:
            return EventMetrics()
        return EventMetrics(
            total=row["total"] or 0,
            duplicates=row["duplicates"] or 0,
            unique_partners=row["unique_partners"] or 0,
        )

    async def metrics_for_window(self, hours: int, now: datetime | None = None) -> WindowMetrics:
        now = now or datetime.now(timezone.utc)
        sql = """
            SELECT
                COUNT(*) AS total,
                COUNT(*) FILTER (WHERE is_duplicate) AS duplicates
            FROM syndication_events
            WHERE timestamp >= $1
        """
        row = await self._db.fetchrow(sql, now - timedelta(hours=hours))
        if row is None:
            return WindowMetrics(window_hours=hours)
        return WindowMetrics(
            total=row["total"] or 0,
            duplicates=row["duplicates"] or 0,
            window_hours=hours,
        )

    async def count_duplicates_since(self, since: datetime) -> int:
        sql = """
            SELECT COUNT(*) FROM syndication_events
            WHERE is_duplicate AND timestamp >= $1
        """
        count = await self._db.fetchval(sql, since)
        return count or 0

    async def get_recent(self, limit: int = 50, offset: int = 0) -> list[SyndicationEvent]:
        """Events ordered newest first."""
        sql = """
            SELECT * FROM syndication_events
            ORDER BY timestamp DESC, id DESC
            LIMIT $1 OFFSET $2
        """
        rows = await self._db.fetch(sql, limit, offset)
        return [_row_to_event(r) for r in rows]

    async def count(self) -> int:
        count = await self._db.fetchval("SELECT COUNT(*) FROM syndication_events")
        return count or 0

    async def purge(self) -> int:
        """Delete every event. Returns the number of rows removed."""
        result = await self._db.execute("DELETE FROM syndication_events")
        try:
            return int(result.split()[-1])
        except (ValueError, IndexError):
            return 0
