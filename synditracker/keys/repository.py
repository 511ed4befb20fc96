"""Database repository for the site_keys table."""

import logging
from datetime import datetime, timezone
from typing import Any

from synditracker.keys.schemas import VALID_KEY_STATUSES, KeyStatus, SiteKey
from synditracker.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS site_keys (
    id          BIGSERIAL PRIMARY KEY,
    key_value   VARCHAR(64) NOT NULL UNIQUE,
    key_hash    CHAR(64) NOT NULL UNIQUE,
    site_name   VARCHAR(255) NOT NULL,
    status      VARCHAR(20) NOT NULL DEFAULT 'active',
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    last_seen   TIMESTAMPTZ
);

CREATE INDEX IF NOT EXISTS idx_site_keys_status
    ON site_keys(status);
"""

_INSERT_SQL = """
INSERT INTO site_keys (key_value, key_hash, site_name, status)
VALUES ($1, $2, $3, 'active')
RETURNING *
"""


def _record_to_key(record: Any) -> SiteKey:
    """Convert an asyncpg Record to a SiteKey."""
    return SiteKey(
        id=record["id"],
        key_value=record["key_value"],
        site_name=record["site_name"],
        status=record["status"],
        created_at=record["created_at"],
        last_seen=record.get("last_seen"),
    )


class KeyRepository:
    """CRUD operations for site keys."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the site_keys table and indexes (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("site_keys table ensured")

    async def create(self, key_value: str, key_hash: str, site_name: str) -> SiteKey:
        """Insert a new active key.

        Raises:
            asyncpg.UniqueViolationError: If the value was ever issued before.
        """
        row = await self._db.fetchrow(_INSERT_SQL, key_value, key_hash, site_name)
        return _record_to_key(row)

    async def get_by_hash(self, key_hash: str) -> SiteKey | None:
        """Fetch the key whose secret digest matches, any status."""
        row = await self._db.fetchrow(
            "SELECT * FROM site_keys WHERE key_hash = $1", key_hash,
        )
        return _record_to_key(row) if row else None

    async def get_by_id(self, key_id: int) -> SiteKey | None:
        row = await self._db.fetchrow("SELECT * FROM site_keys WHERE id = $1", key_id)
        return _record_to_key(row) if row else None

    async def list_keys(self) -> list[SiteKey]:
        """All keys, newest first."""
        rows = await self._db.fetch(
            "SELECT * FROM site_keys ORDER BY created_at DESC, id DESC"
        )
        return [_record_to_key(r) for r in rows]

    async def set_status(self, key_id: int, status: KeyStatus) -> bool:
        """Update a key's status. Returns True if the key exists."""
        if status not in VALID_KEY_STATUSES:
            raise ValueError(f"Invalid key status: {status}")
        result = await self._db.execute(
            "UPDATE site_keys SET status = $2 WHERE id = $1", key_id, status,
        )
        return not result.endswith(" 0")

    async def delete(self, key_id: int) -> bool:
        """Hard-delete a key. Returns True if a row was removed."""
        result = await self._db.execute("DELETE FROM site_keys WHERE id = $1", key_id)
        return result.endswith("1")

    async def touch_last_seen(self, key_id: int, seen_at: datetime | None = None) -> None:
        await self._db.execute(
            "UPDATE site_keys SET last_seen = $2 WHERE id = $1",
            key_id,
            seen_at or datetime.now(timezone.utc),
        )

    async def count_active(self) -> int:
        count = await self._db.fetchval(
            "SELECT COUNT(*) FROM site_keys WHERE status = 'active'"
        )
        return count or 0
