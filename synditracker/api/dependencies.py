"""
Service container and dependency injection for FastAPI endpoints.

Every long-lived service is built once in the application lifespan and
kept on ``app.state.services``. Endpoints receive them through
``get_services``; tests hand a prepared ``HubServices`` to ``create_app``.
"""

import logging
from dataclasses import dataclass
from typing import Any

import redis.asyncio as redis
from fastapi import Request

from synditracker.alerts.detector import SpikeDetector
from synditracker.alerts.dispatcher import AlertDispatcher
from synditracker.alerts.queue import DispatchQueue
from synditracker.alerts.repository import AlertRepository
from synditracker.alerts.scheduler import HeartbeatScheduler
from synditracker.alerts.settings_store import AlertSettingsRepository, AlertSettingsStore
from synditracker.api.rate_limit import RateLimiter
from synditracker.config.settings import Settings
from synditracker.events.repository import EventRepository
from synditracker.events.service import EventStore
from synditracker.hooks import HookRegistry
from synditracker.keys.repository import KeyRepository
from synditracker.keys.service import KeyRegistry
from synditracker.observability.metrics import MetricsCollector, get_metrics
from synditracker.storage.database import Database

logger = logging.getLogger(__name__)


@dataclass
class HubServices:
    """Everything a request handler or the CLI needs, wired together."""

    settings: Settings
    database: Database
    redis: Any
    hooks: HookRegistry
    keys: KeyRegistry
    events: EventStore
    rate_limiter: RateLimiter
    alert_settings: AlertSettingsStore
    alert_repository: AlertRepository
    dispatcher: AlertDispatcher
    dispatch_queue: DispatchQueue
    detector: SpikeDetector
    scheduler: HeartbeatScheduler
    metrics: MetricsCollector

    @classmethod
    def build(
        cls,
        settings: Settings,
        database: Database | None = None,
        redis_client: Any | None = None,
        hooks: HookRegistry | None = None,
        metrics: MetricsCollector | None = None,
    ) -> "HubServices":
        """Construct the service graph without opening any connection."""
        database = database or Database(
            str(settings.database_url),
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )
        if redis_client is None:
            redis_client = redis.from_url(
                str(settings.redis_url),
                encoding="utf-8",
                decode_responses=True,
            )
        hooks = hooks or HookRegistry()
        metrics = metrics or get_metrics()

        keys = KeyRegistry(KeyRepository(database), prefix=settings.key_prefix, hooks=hooks)
        events = EventStore(EventRepository(database), hooks=hooks)
        rate_limiter = RateLimiter(
            redis_client,
            max_requests=settings.rate_limit_max,
            window_seconds=settings.rate_limit_window_seconds,
        )
        alert_settings = AlertSettingsStore(
            AlertSettingsRepository(database),
            webhook_prefixes=settings.webhook_prefixes,
            cache_ttl_seconds=settings.settings_cache_ttl_seconds,
        )
        alert_repository = AlertRepository(database)
        dispatcher = AlertDispatcher(
            alert_settings, settings, repository=alert_repository, metrics=metrics,
        )
        dispatch_queue = DispatchQueue(maxsize=settings.dispatch_queue_size)
        detector = SpikeDetector(
            events, alert_settings, dispatcher, queue=dispatch_queue, hooks=hooks,
        )
        events.set_duplicate_callback(detector.check_after_duplicate)
        scheduler = HeartbeatScheduler(
            detector,
            alert_settings,
            poll_seconds=settings.heartbeat_poll_seconds,
            stop_timeout=settings.alert_dispatch_timeout_seconds,
            enabled=settings.heartbeat_enabled,
        )

        return cls(
            settings=settings,
            database=database,
            redis=redis_client,
            hooks=hooks,
            keys=keys,
            events=events,
            rate_limiter=rate_limiter,
            alert_settings=alert_settings,
            alert_repository=alert_repository,
            dispatcher=dispatcher,
            dispatch_queue=dispatch_queue,
            detector=detector,
            scheduler=scheduler,
            metrics=metrics,
        )

    async def ensure_schema(self) -> None:
        """Create every table the hub uses (idempotent)."""
        await self.keys.repository.create_table()
        await self.events.repository.create_table()
        await self.alert_settings.repository.create_table()
        await self.alert_repository.create_table()

    async def start(self) -> None:
        await self.database.connect()
        await self.ensure_schema()
        self.dispatch_queue.start()
        await self.scheduler.start()

    async def stop(self) -> None:
        """Scheduler, then queue drain, then Redis, then the pool."""
        await self.scheduler.stop()
        await self.dispatch_queue.stop(
            drain_timeout=self.settings.alert_dispatch_timeout_seconds,
        )
        try:
            await self.redis.aclose()
        except Exception as e:
            logger.warning("Error closing Redis client: %s", e)
        await self.database.close()


def get_services(request: Request) -> HubServices:
    return request.app.state.services


def get_hub_settings(request: Request) -> Settings:
    return get_services(request).settings
