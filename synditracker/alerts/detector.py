"""Spike detection over the trailing scanning window.

Two entry points:

- ``check_after_duplicate`` runs inline after every duplicate insert. It is
  one count query; when the count reaches the threshold under immediate
  delivery, the spike dispatch is queued so the request never waits on
  SMTP or the webhook.
- ``evaluate_heartbeat`` runs on the heartbeat schedule and sends a
  summary while the window is above threshold.
"""

import logging
from dataclasses import dataclass
from typing import Any

from synditracker.alerts.dispatcher import AlertDispatcher
from synditracker.alerts.queue import DispatchQueue
from synditracker.alerts.schemas import AlertFrequency
from synditracker.alerts.settings_store import AlertSettingsStore
from synditracker.events.schemas import SyndicationEvent
from synditracker.events.service import EventStore
from synditracker.hooks import HookRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpikeCheck:
    """Outcome of one threshold comparison."""

    count: int
    threshold: int
    window_hours: int
    frequency: AlertFrequency

    @property
    def exceeded(self) -> bool:
        return self.count >= self.threshold

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "threshold": self.threshold,
            "window_hours": self.window_hours,
            "frequency": self.frequency.value,
            "exceeded": self.exceeded,
        }


class SpikeDetector:
    """Compares duplicate counts to the configured threshold.

    Args:
        events: Event store for window counts.
        settings_store: Source of threshold, window and frequency.
        dispatcher: Alert dispatcher.
        queue: Where immediate spike dispatches go. Without one they are
            awaited inline.
        hooks: ``spike_detected`` and ``heartbeat_sent`` fire from here.
    """

    def __init__(
        self,
        events: EventStore,
        settings_store: AlertSettingsStore,
        dispatcher: AlertDispatcher,
        queue: DispatchQueue | None = None,
        hooks: HookRegistry | None = None,
    ) -> None:
        self._events = events
        self._store = settings_store
        self._dispatcher = dispatcher
        self._queue = queue
        self._hooks = hooks or HookRegistry()

    async def check(self) -> SpikeCheck:
        """Current duplicate count against the threshold, no side effects."""
        settings = await self._store.get()
        count = await self._events.count_duplicates_in_window(
            settings.scanning_window_hours,
        )
        return SpikeCheck(
            count=count,
            threshold=settings.threshold,
            window_hours=settings.scanning_window_hours,
            frequency=settings.alert_frequency,
        )

    async def check_after_duplicate(self, event: SyndicationEvent) -> SpikeCheck:
        result = await self.check()
        if not result.exceeded:
            return result

        logger.info(
            "Duplicate spike: %d duplicates in %dh (threshold %d) after event %s",
            result.count, result.window_hours, result.threshold, event.id,
        )
        self._hooks.spike_detected.fire(result)

        if result.frequency != AlertFrequency.IMMEDIATE:
            return result

        async def _send() -> None:
            await self._dispatcher.dispatch_spike(
                result.count, result.threshold, result.window_hours,
            )

        if self._queue is not None:
            self._queue.submit(_send)
        else:
            await _send()
        return result

    async def evaluate_heartbeat(self) -> bool:
        """Send a heartbeat summary if the window is at or above threshold.

        Returns:
            True if a heartbeat was dispatched.
        """
        settings = await self._store.get()
        window = settings.scanning_window_hours
        metrics = await self._events.metrics_for_window(window)

        if metrics.duplicates < settings.threshold:
            logger.info(
                "Heartbeat skipped: %d duplicates in %dh below threshold %d",
                metrics.duplicates, window, settings.threshold,
            )
            return False

        await self._dispatcher.dispatch_heartbeat(
            metrics, settings.threshold, window, settings.alert_frequency.label,
        )
        self._hooks.heartbeat_sent.fire(metrics)
        return True
