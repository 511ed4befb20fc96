"""Alert dispatcher orchestrating delivery across notification channels.

Each public operation composes one message kind, resolves the channels the
current ``AlertSettings`` enable, sends once per channel, writes an audit
record, and returns a ``DispatchResult``. Nothing here raises to the
caller and nothing is retried: a spike that fails to deliver is reported
again by the next duplicate or the next heartbeat.

Pattern: Orchestrator over stateless channels.
"""

import logging

from synditracker.alerts import messages
from synditracker.alerts.channels import (
    EmailChannel,
    NotificationChannel,
    WebhookChannel,
    is_allowed_webhook_url,
    parse_recipients,
)
from synditracker.alerts.repository import AlertRepository
from synditracker.alerts.schemas import (
    Alert,
    AlertKind,
    AlertMessage,
    AlertSettings,
    ChannelOutcome,
    DispatchResult,
)
from synditracker.alerts.settings_store import AlertSettingsStore
from synditracker.config.settings import Settings
from synditracker.errors import DispatchError
from synditracker.events.schemas import WindowMetrics
from synditracker.observability.metrics import MetricsCollector

logger = logging.getLogger(__name__)


class AlertDispatcher:
    """Sends composed alerts to email and webhook channels."""

    def __init__(
        self,
        settings_store: AlertSettingsStore,
        config: Settings,
        repository: AlertRepository | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._store = settings_store
        self._config = config
        self._repo = repository
        self._metrics = metrics

    # -- public operations ---------------------------------------------

    async def dispatch_spike(
        self,
        count: int,
        threshold: int,
        window_hours: int,
    ) -> DispatchResult:
        """Red spike alert to every enabled channel."""
        message = messages.compose_spike(
            count, threshold, window_hours, self._config.dashboard_url,
        )
        alert = Alert(
            alert_type=AlertKind.SPIKE.value,
            message=(
                f"{count} duplicates in the last {window_hours}h "
                f"(threshold {threshold})"
            ),
            duplicate_count=count,
            threshold=threshold,
            window_hours=window_hours,
        )
        return await self._dispatch(message, alert, email=True)

    async def dispatch_heartbeat(
        self,
        metrics: WindowMetrics,
        threshold: int,
        window_hours: int,
        frequency_label: str,
    ) -> DispatchResult:
        """Blue periodic summary to every enabled channel."""
        message = messages.compose_heartbeat(
            metrics, threshold, window_hours, frequency_label,
            self._config.dashboard_url,
        )
        alert = Alert(
            alert_type=AlertKind.HEARTBEAT.value,
            message=(
                f"{frequency_label} summary: {metrics.total} events, "
                f"{metrics.duplicates} duplicates ({metrics.duplicate_rate:.2f}%)"
            ),
            duplicate_count=metrics.duplicates,
            threshold=threshold,
            window_hours=window_hours,
        )
        return await self._dispatch(message, alert, email=True)

    async def dispatch_system_error(self, message: str) -> DispatchResult:
        """Orange error report, webhook only, when error alerts are enabled."""
        settings = await self._store.get()
        if not settings.error_alerts_enabled:
            logger.debug("System error alert skipped: error alerts disabled")
            return DispatchResult(
                kind=AlertKind.ERROR,
                outcomes=[ChannelOutcome(
                    "webhook", delivered=False, skipped=True,
                    reason="error alerts disabled",
                )],
            )

        composed = messages.compose_system_error(message, self._config.dashboard_url)
        alert = Alert(alert_type=AlertKind.ERROR.value, message=message)
        return await self._dispatch(
            composed, alert, email=False, settings=settings, require_enabled=False,
        )

    async def dispatch_test(self, site_name: str, site_url: str) -> DispatchResult:
        """Green manual test alert, webhook only."""
        composed = messages.compose_test(site_name, site_url, self._config.dashboard_url)
        alert = Alert(
            alert_type=AlertKind.TEST.value,
            message=f"Test alert for {site_name} ({site_url})",
        )
        return await self._dispatch(
            composed, alert, email=False, require_enabled=False,
        )

    # -- internals -----------------------------------------------------

    def _resolve_channels(
        self,
        settings: AlertSettings,
        kind: AlertKind,
        email: bool,
        require_enabled: bool,
    ) -> tuple[list[NotificationChannel], list[ChannelOutcome]]:
        """Channels to attempt, plus skip outcomes for those left out."""
        channels: list[NotificationChannel] = []
        skipped: list[ChannelOutcome] = []
        timeout = self._config.alert_dispatch_timeout_seconds

        if email and settings.email_enabled:
            recipients = parse_recipients(
                settings.email_recipients, self._config.admin_email,
            )
            channels.append(EmailChannel(
                recipients=recipients,
                host=self._config.smtp_host,
                port=self._config.smtp_port,
                sender=self._config.smtp_sender,
                username=self._config.smtp_user,
                password=self._config.smtp_password,
                use_tls=self._config.smtp_use_tls,
                timeout=timeout,
            ))

        if settings.webhook_enabled or not require_enabled:
            url = settings.webhook_url
            if not url:
                logger.info("Webhook %s alert skipped: no webhook URL configured", kind.value)
                skipped.append(ChannelOutcome(
                    "webhook", delivered=False, skipped=True, reason="not configured",
                ))
            elif not is_allowed_webhook_url(url, self._config.webhook_prefixes):
                logger.warning("Webhook %s alert skipped: invalid webhook URL", kind.value)
                skipped.append(ChannelOutcome(
                    "webhook", delivered=False, skipped=True, reason="invalid url",
                ))
            else:
                channels.append(WebhookChannel(url, timeout=timeout))

        return channels, skipped

    async def _dispatch(
        self,
        message: AlertMessage,
        alert: Alert,
        *,
        email: bool,
        settings: AlertSettings | None = None,
        require_enabled: bool = True,
    ) -> DispatchResult:
        if settings is None:
            settings = await self._store.get()

        channels, outcomes = self._resolve_channels(
            settings, message.kind, email, require_enabled,
        )

        for channel in channels:
            try:
                delivered = await channel.send(message)
                if not delivered:
                    raise DispatchError(channel.name, "channel reported failure")
                outcomes.append(ChannelOutcome(channel.name, delivered=True))
            except DispatchError as e:
                outcomes.append(ChannelOutcome(
                    channel.name, delivered=False, reason=e.reason,
                ))
            except Exception as e:
                logger.error(
                    "Channel %s raised while sending %s alert: %s",
                    channel.name, message.kind.value, e,
                )
                outcomes.append(ChannelOutcome(
                    channel.name, delivered=False, reason=str(e),
                ))

        result = DispatchResult(kind=message.kind, outcomes=outcomes)
        self._record(result)
        await self._persist(alert)
        return result

    def _record(self, result: DispatchResult) -> None:
        """Log delivery results and count them per channel."""
        kind = result.kind.value
        if self._metrics is not None:
            for o in result.outcomes:
                status = "skipped" if o.skipped else ("delivered" if o.delivered else "failed")
                self._metrics.record_dispatch(kind, o.channel, status)

        attempted = [o for o in result.outcomes if not o.skipped]
        failures = [o.channel for o in attempted if not o.delivered]
        successes = [o.channel for o in attempted if o.delivered]

        if not attempted:
            logger.info("No channel enabled for %s alert", kind)
        elif failures and not successes:
            logger.error("%s alert failed on all channels: %s", kind, failures)
        elif failures:
            logger.warning(
                "%s alert partial delivery: ok=%s failed=%s",
                kind, successes, failures,
            )
        else:
            logger.debug("%s alert delivered to %s", kind, successes)

    async def _persist(self, alert: Alert) -> None:
        if self._repo is None:
            return
        try:
            await self._repo.create(alert)
        except Exception as e:
            logger.warning("Failed to record %s alert: %s", alert.alert_type, e)
