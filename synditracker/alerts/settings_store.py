"""Persisted, cached alert settings.

Settings live as one JSONB row in ``hub_settings`` so every worker process
sees the same configuration. Reads go through a short TTL cache; a save in
this process invalidates it immediately and notifies change listeners (the
heartbeat scheduler re-arms from there). Other processes pick the change
up when their cache expires.
"""

import json
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from synditracker.alerts.channels import is_allowed_webhook_url
from synditracker.alerts.schemas import AlertSettings
from synditracker.errors import PersistenceError
from synditracker.storage.database import Database

logger = logging.getLogger(__name__)

SETTINGS_NAME = "alert_settings"

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS hub_settings (
    name        TEXT PRIMARY KEY,
    value       JSONB NOT NULL DEFAULT '{}',
    updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

_UPSERT_SQL = """
INSERT INTO hub_settings (name, value)
VALUES ($1, $2)
ON CONFLICT (name) DO UPDATE SET
    value = EXCLUDED.value,
    updated_at = NOW()
"""

ChangeListener = Callable[[AlertSettings, AlertSettings], Awaitable[None]]


class AlertSettingsRepository:
    """Reads and writes the alert settings row."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("hub_settings table ensured")

    async def load(self) -> dict[str, Any] | None:
        value = await self._db.fetchval(
            "SELECT value FROM hub_settings WHERE name = $1", SETTINGS_NAME,
        )
        if value is None:
            return None
        if isinstance(value, str):
            value = json.loads(value)
        return dict(value)

    async def save(self, data: dict[str, Any]) -> None:
        await self._db.execute(_UPSERT_SQL, SETTINGS_NAME, json.dumps(data))


class AlertSettingsStore:
    """Cached access to ``AlertSettings`` with change notification."""

    def __init__(
        self,
        repository: AlertSettingsRepository,
        webhook_prefixes: tuple[str, ...],
        cache_ttl_seconds: float = 30.0,
    ) -> None:
        self._repo = repository
        self._webhook_prefixes = webhook_prefixes
        self._ttl = cache_ttl_seconds
        self._cached: AlertSettings | None = None
        self._cached_at: float = 0.0
        self._listeners: list[ChangeListener] = []

    @property
    def repository(self) -> AlertSettingsRepository:
        return self._repo

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def invalidate_cache(self) -> None:
        self._cached = None
        self._cached_at = 0.0

    async def get(self) -> AlertSettings:
        """Current settings; defaults if nothing was saved or the row is unreadable."""
        now = time.monotonic()
        if self._cached is not None and (now - self._cached_at) < self._ttl:
            return self._cached

        try:
            data = await self._repo.load()
        except Exception as e:
            logger.warning("Failed to load alert settings, using last known: %s", e)
            return self._cached or AlertSettings()

        if data is None:
            settings = AlertSettings()
        else:
            try:
                settings = AlertSettings.model_validate(data)
            except ValueError as e:
                logger.error("Stored alert settings are invalid, using defaults: %s", e)
                settings = AlertSettings()

        self._cached = settings
        self._cached_at = now
        return settings

    async def save(self, settings: AlertSettings) -> AlertSettings:
        """Persist new settings and notify listeners.

        A webhook URL outside the allowed providers is cleared with a
        warning instead of failing the write.

        Raises:
            PersistenceError: If the row could not be written.
        """
        if settings.webhook_url and not is_allowed_webhook_url(
            settings.webhook_url, self._webhook_prefixes,
        ):
            logger.warning(
                "Ignoring webhook URL outside allowed providers: %s",
                settings.webhook_url,
            )
            settings = settings.model_copy(update={"webhook_url": ""})

        previous = await self.get()

        try:
            await self._repo.save(settings.model_dump(mode="json"))
        except Exception as e:
            logger.error("Failed to save alert settings: %s", e)
            raise PersistenceError("Failed to save alert settings.") from e

        self._cached = settings
        self._cached_at = time.monotonic()
        logger.info(
            "Alert settings saved (threshold=%d, window=%dh, frequency=%s)",
            settings.threshold,
            settings.scanning_window_hours,
            settings.alert_frequency.value,
        )

        for listener in list(self._listeners):
            try:
                await listener(previous, settings)
            except Exception as e:
                logger.error("Alert settings listener failed: %s", e)

        return settings
