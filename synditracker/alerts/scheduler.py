"""Heartbeat scheduling for non-immediate alert frequencies.

One asyncio task per process. It sleeps until the next heartbeat is due or
the settings poll interval elapses, whichever comes first. On each wake it
re-reads ``AlertSettings`` so a frequency saved by another worker re-arms
this one, then runs the heartbeat if due.

States: ``Immediate`` (task only polls) and ``Heartbeat(6h|daily|weekly)``
(task fires every interval). A frequency change re-arms with the first run
one full interval after the change.
"""

import asyncio
import logging
from datetime import datetime, timezone

from synditracker.alerts.detector import SpikeDetector
from synditracker.alerts.schemas import AlertFrequency, AlertSettings
from synditracker.alerts.settings_store import AlertSettingsStore

logger = logging.getLogger(__name__)

STATUS_NOT_REQUIRED = "not_required"
STATUS_SCHEDULED = "scheduled"
STATUS_NOT_SCHEDULED = "not_scheduled"


class HeartbeatScheduler:
    """Arms, re-arms, and fires the periodic heartbeat evaluation.

    Lifecycle:
        1. ``start()`` - read settings, arm, spawn the loop
        2. ``apply(frequency)`` - cancel and re-arm (settings listener)
        3. ``stop()`` - cancel the loop, let an in-flight run finish
    """

    def __init__(
        self,
        detector: SpikeDetector,
        settings_store: AlertSettingsStore,
        poll_seconds: float = 60.0,
        stop_timeout: float = 5.0,
        enabled: bool = True,
    ) -> None:
        self._detector = detector
        self._store = settings_store
        self._poll_seconds = poll_seconds
        self._stop_timeout = stop_timeout
        self._enabled = enabled
        self._frequency: AlertFrequency | None = None
        self._next_run_at: datetime | None = None
        self._task: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None
        self._running = False
        self._listening = False

    @property
    def frequency(self) -> AlertFrequency | None:
        return self._frequency

    @property
    def next_run_at(self) -> datetime | None:
        return self._next_run_at

    def status(self) -> str:
        """``not_required`` | ``scheduled`` | ``not_scheduled`` for /health."""
        if self._frequency == AlertFrequency.IMMEDIATE:
            return STATUS_NOT_REQUIRED
        if (
            self._task is not None
            and not self._task.done()
            and self._next_run_at is not None
        ):
            return STATUS_SCHEDULED
        return STATUS_NOT_SCHEDULED

    async def start(self) -> None:
        if self._running:
            return

        settings = await self._store.get()
        if not self._listening:
            self._store.add_listener(self._on_settings_changed)
            self._listening = True

        if not self._enabled:
            self._frequency = settings.alert_frequency
            logger.info("Heartbeat scheduler disabled in this process")
            return

        self._running = True
        await self.apply(settings.alert_frequency)
        logger.info("HeartbeatScheduler started (frequency=%s)", self._frequency.value)

    async def apply(self, frequency: AlertFrequency) -> None:
        """Cancel the current task and arm ``frequency`` from now."""
        await self._cancel_task()
        self._arm(frequency)
        if self._running:
            self._task = asyncio.create_task(self._run(), name="heartbeat-scheduler")

    async def stop(self) -> None:
        """Stop firing; wait (bounded) for an in-flight heartbeat."""
        self._running = False
        await self._cancel_task()
        self._next_run_at = None

        if self._inflight is not None and not self._inflight.done():
            try:
                await asyncio.wait_for(self._inflight, timeout=self._stop_timeout)
            except asyncio.TimeoutError:
                logger.warning("In-flight heartbeat did not finish before shutdown")
            except Exception as e:
                logger.error("In-flight heartbeat failed during shutdown: %s", e)
        self._inflight = None
        logger.info("HeartbeatScheduler stopped")

    async def tick(self, now: datetime | None = None) -> bool:
        """Run the heartbeat if it is due at ``now``; re-arm for the next period.

        Returns:
            True if a heartbeat summary was dispatched.
        """
        now = now or datetime.now(timezone.utc)
        if self._next_run_at is None or now < self._next_run_at:
            return False

        interval = self._frequency.interval if self._frequency else None
        self._next_run_at = now + interval if interval else None

        self._inflight = asyncio.create_task(self._detector.evaluate_heartbeat())
        try:
            return await asyncio.shield(self._inflight)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Heartbeat evaluation failed: %s", e)
            return False

    def _arm(self, frequency: AlertFrequency) -> None:
        previous = self._frequency
        self._frequency = frequency
        interval = frequency.interval
        if interval is None:
            self._next_run_at = None
        else:
            self._next_run_at = datetime.now(timezone.utc) + interval
        if previous is not None and previous != frequency:
            logger.info(
                "Heartbeat re-armed: %s -> %s (next run %s)",
                previous.value, frequency.value, self._next_run_at,
            )

    async def _cancel_task(self) -> None:
        if self._task is None:
            return
        if self._task is not asyncio.current_task():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def _on_settings_changed(
        self, old: AlertSettings, new: AlertSettings,
    ) -> None:
        if not self._running:
            self._frequency = new.alert_frequency
            return
        if self._frequency != new.alert_frequency:
            await self.apply(new.alert_frequency)

    def _sleep_seconds(self) -> float:
        if self._next_run_at is None:
            return self._poll_seconds
        remaining = (self._next_run_at - datetime.now(timezone.utc)).total_seconds()
        return max(0.0, min(self._poll_seconds, remaining))

    async def _reconcile(self) -> None:
        settings = await self._store.get()
        if settings.alert_frequency != self._frequency:
            self._arm(settings.alert_frequency)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._sleep_seconds())
            try:
                await self._reconcile()
            except Exception as e:
                logger.warning("Heartbeat settings poll failed: %s", e)
            await self.tick()
