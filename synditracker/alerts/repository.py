"""Alert repository for the alert audit trail."""

import logging
from typing import Any

from synditracker.alerts.schemas import Alert
from synditracker.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS alerts (
    id               BIGSERIAL PRIMARY KEY,
    alert_type       VARCHAR(20) NOT NULL,
    message          TEXT NOT NULL,
    duplicate_count  INTEGER NOT NULL DEFAULT 0,
    threshold        INTEGER NOT NULL DEFAULT 0,
    window_hours     INTEGER NOT NULL DEFAULT 1,
    created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_alerts_type_created
    ON alerts(alert_type, created_at DESC);
"""


class AlertRepository:
    """Create, list, count, and clear alert records."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("alerts table ensured")

    async def create(self, alert: Alert) -> Alert:
        """Insert an alert record.

        Args:
            alert: Alert to persist.

        Returns:
            The alert with its assigned id.
        """
        sql = """
            INSERT INTO alerts (
                alert_type, message, duplicate_count, threshold,
                window_hours, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING id
        """
        alert.id = await self._db.fetchval(
            sql,
            alert.alert_type,
            alert.message,
            alert.duplicate_count,
            alert.threshold,
            alert.window_hours,
            alert.created_at,
        )
        return alert

    async def get_recent(
        self,
        *,
        alert_type: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Alert]:
        """Alerts ordered by created_at descending, optionally by type."""
        if alert_type is not None:
            sql = """
                SELECT * FROM alerts WHERE alert_type = $1
                ORDER BY created_at DESC LIMIT $2 OFFSET $3
            """
            rows = await self._db.fetch(sql, alert_type, limit, offset)
        else:
            sql = """
                SELECT * FROM alerts
                ORDER BY created_at DESC LIMIT $1 OFFSET $2
            """
            rows = await self._db.fetch(sql, limit, offset)
        return [_row_to_alert(r) for r in rows]

    async def count(self, alert_type: str | None = None) -> int:
        if alert_type is not None:
            count = await self._db.fetchval(
                "SELECT COUNT(*) FROM alerts WHERE alert_type = $1", alert_type,
            )
        else:
            count = await self._db.fetchval("SELECT COUNT(*) FROM alerts")
        return count or 0

    async def clear(self) -> None:
        await self._db.execute("TRUNCATE TABLE alerts")


def _row_to_alert(row: Any) -> Alert:
    """Convert an asyncpg Record to an Alert."""
    return Alert(
        id=row["id"],
        alert_type=row["alert_type"],
        message=row["message"],
        duplicate_count=row["duplicate_count"],
        threshold=row["threshold"],
        window_hours=row["window_hours"],
        created_at=row["created_at"],
    )
