"""
Pydantic models for API request/response validation.
"""

from typing import Any

from pydantic import BaseModel, Field

from synditracker.alerts.schemas import AlertFrequency, ScanningWindowHours


class MessageResponse(BaseModel):
    """Plain message body used by ingestion and error responses."""

    message: str = Field(..., description="Human-readable outcome")


class LogStoredResponse(MessageResponse):
    """Response for a stored syndication event."""

    id: int = Field(..., description="Stored event id")
    is_duplicate: bool = Field(
        ...,
        description="Same post_id and site_url seen in the previous 24 hours",
    )


class HealthChecks(BaseModel):
    database: str = Field(..., description="ok or error")
    cron: str = Field(..., description="not_required, scheduled, or not_scheduled")
    webhook: str = Field(..., description="configured, invalid, or not_configured")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="healthy or unhealthy")
    version: str
    timestamp: str = Field(..., description="ISO 8601 UTC")
    checks: HealthChecks


# Admin: keys


class KeyCreateRequest(BaseModel):
    site_name: str = Field(..., min_length=1, max_length=255)


class KeyItem(BaseModel):
    id: int
    key_value: str
    site_name: str
    status: str
    created_at: str | None = None
    last_seen: str | None = None


class KeysResponse(BaseModel):
    keys: list[KeyItem]
    total: int


# Admin: alert settings


class AlertSettingsUpdate(BaseModel):
    """Partial update; omitted fields keep their stored value."""

    threshold: int | None = Field(default=None, ge=1)
    scanning_window_hours: ScanningWindowHours | None = None
    alert_frequency: AlertFrequency | None = None
    email_enabled: bool | None = None
    email_recipients: str | None = None
    webhook_enabled: bool | None = None
    webhook_url: str | None = None
    error_alerts_enabled: bool | None = None


# Admin: metrics, logs, alerts


class MetricsResponse(BaseModel):
    all_time: dict[str, Any] = Field(..., description="total, duplicates, unique_partners, duplicate_rate")
    window: dict[str, Any] = Field(..., description="Current scanning window totals")
    active_keys: int


class EventItem(BaseModel):
    id: int | None
    post_id: int
    site_url: str
    site_name: str
    aggregator: str
    timestamp: str
    is_duplicate: bool


class LogsResponse(BaseModel):
    events: list[EventItem]
    total: int
    limit: int
    offset: int


class PurgeResponse(BaseModel):
    deleted: int


class AlertItem(BaseModel):
    id: int | None
    alert_type: str
    message: str
    duplicate_count: int
    threshold: int
    window_hours: int
    created_at: str


class AlertsResponse(BaseModel):
    alerts: list[AlertItem]
    total: int


class AlertTestRequest(BaseModel):
    site_name: str = "Synditracker Hub (Test)"
    site_url: str | None = None


class SystemErrorRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)


class DispatchResponse(BaseModel):
    kind: str
    delivered: bool
    outcomes: list[dict[str, Any]]
