"""Spike detection, heartbeat scheduling, and alert delivery."""

from synditracker.alerts.channels import (
    EmailChannel,
    NotificationChannel,
    WebhookChannel,
    is_allowed_webhook_url,
    parse_recipients,
)
from synditracker.alerts.detector import SpikeCheck, SpikeDetector
from synditracker.alerts.dispatcher import AlertDispatcher
from synditracker.alerts.queue import DispatchQueue
from synditracker.alerts.repository import AlertRepository
from synditracker.alerts.scheduler import HeartbeatScheduler
from synditracker.alerts.schemas import (
    Alert,
    AlertFrequency,
    AlertKind,
    AlertMessage,
    AlertSettings,
    ChannelOutcome,
    DispatchResult,
)
from synditracker.alerts.settings_store import AlertSettingsRepository, AlertSettingsStore

__all__ = [
    "Alert",
    "AlertDispatcher",
    "AlertFrequency",
    "AlertKind",
    "AlertMessage",
    "AlertRepository",
    "AlertSettings",
    "AlertSettingsRepository",
    "AlertSettingsStore",
    "ChannelOutcome",
    "DispatchQueue",
    "DispatchResult",
    "EmailChannel",
    "HeartbeatScheduler",
    "NotificationChannel",
    "SpikeCheck",
    "SpikeDetector",
    "WebhookChannel",
    "is_allowed_webhook_url",
    "parse_recipients",
]
