"""Schema definitions for alert settings, alert records, and dispatch results.

``AlertSettings`` is the process-wide, persisted configuration that the
spike detector and heartbeat scheduler read on every evaluation.
``Alert`` maps 1:1 to the ``alerts`` audit table.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

ScanningWindowHours = Literal[1, 6, 24]


class AlertFrequency(str, Enum):
    """How spike conditions reach the channels."""

    IMMEDIATE = "immediate"
    SIX_HOURS = "6h"
    DAILY = "daily"
    WEEKLY = "weekly"

    @property
    def interval(self) -> timedelta | None:
        """Heartbeat period, None for immediate delivery."""
        return _FREQUENCY_INTERVALS.get(self)

    @property
    def label(self) -> str:
        return _FREQUENCY_LABELS[self]


_FREQUENCY_INTERVALS: dict[AlertFrequency, timedelta] = {
    AlertFrequency.SIX_HOURS: timedelta(hours=6),
    AlertFrequency.DAILY: timedelta(days=1),
    AlertFrequency.WEEKLY: timedelta(weeks=1),
}

_FREQUENCY_LABELS: dict[AlertFrequency, str] = {
    AlertFrequency.IMMEDIATE: "Immediate",
    AlertFrequency.SIX_HOURS: "6-Hour",
    AlertFrequency.DAILY: "Daily",
    AlertFrequency.WEEKLY: "Weekly",
}


class AlertSettings(BaseModel):
    """Runtime alert configuration persisted in ``hub_settings``."""

    threshold: int = Field(
        default=5,
        ge=1,
        description="Duplicates within the scanning window that constitute a spike",
    )
    scanning_window_hours: ScanningWindowHours = Field(
        default=1,
        description="Trailing window, in hours, for spike counts",
    )
    alert_frequency: AlertFrequency = Field(
        default=AlertFrequency.IMMEDIATE,
        description="immediate, or a heartbeat cadence: 6h, daily, weekly",
    )
    email_enabled: bool = False
    email_recipients: str = Field(
        default="",
        description="Comma or newline separated addresses",
    )
    webhook_enabled: bool = False
    webhook_url: str = ""
    error_alerts_enabled: bool = Field(
        default=False,
        description="Send system error reports to the webhook",
    )

    @property
    def is_immediate(self) -> bool:
        return self.alert_frequency == AlertFrequency.IMMEDIATE


class AlertKind(str, Enum):
    """What a dispatched message reports."""

    SPIKE = "spike"
    HEARTBEAT = "heartbeat"
    ERROR = "error"
    TEST = "test"


VALID_ALERT_TYPES: frozenset[str] = frozenset(k.value for k in AlertKind)


@dataclass
class Alert:
    """A persisted alert audit record from the alerts table.

    Attributes:
        alert_type: spike, heartbeat, error, or test.
        message: Human-readable summary that was sent.
        duplicate_count: Duplicates observed when the alert fired.
        threshold: Threshold in force.
        window_hours: Scanning window in force.
        created_at: When the alert was dispatched.
        id: Database identifier, None until stored.
    """

    alert_type: str
    message: str
    duplicate_count: int = 0
    threshold: int = 0
    window_hours: int = 1
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    id: int | None = None

    def __post_init__(self) -> None:
        if self.alert_type not in VALID_ALERT_TYPES:
            raise ValueError(
                f"Invalid alert_type {self.alert_type!r}. "
                f"Must be one of: {sorted(VALID_ALERT_TYPES)}"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "alert_type": self.alert_type,
            "message": self.message,
            "duplicate_count": self.duplicate_count,
            "threshold": self.threshold,
            "window_hours": self.window_hours,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class AlertMessage:
    """A composed alert, rendered per channel by the channel itself.

    The webhook channel turns ``title``/``description``/``color``/``fields``
    into an embed; the email channel uses ``subject`` and ``body``.
    """

    kind: AlertKind
    title: str
    description: str
    color: int
    username: str
    footer: str
    subject: str = ""
    body: str = ""
    fields: list[dict[str, Any]] = field(default_factory=list)
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    dashboard_url: str | None = None


@dataclass
class ChannelOutcome:
    """Delivery outcome for one channel."""

    channel: str
    delivered: bool
    skipped: bool = False
    reason: str | None = None


@dataclass
class DispatchResult:
    """Tagged result of one dispatch operation."""

    kind: AlertKind
    outcomes: list[ChannelOutcome] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        """True if at least one channel accepted the message."""
        return any(o.delivered for o in self.outcomes)

    @property
    def attempted(self) -> list[str]:
        return [o.channel for o in self.outcomes if not o.skipped]

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "delivered": self.delivered,
            "outcomes": [
                {
                    "channel": o.channel,
                    "delivered": o.delivered,
                    "skipped": o.skipped,
                    "reason": o.reason,
                }
                for o in self.outcomes
            ],
        }
