"""
Health check endpoint.
"""

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from synditracker.alerts.channels import is_allowed_webhook_url
from synditracker.alerts.scheduler import (
    STATUS_NOT_REQUIRED,
    STATUS_NOT_SCHEDULED,
    STATUS_SCHEDULED,
)
from synditracker.alerts.schemas import AlertSettings
from synditracker.api.dependencies import HubServices, get_services
from synditracker.api.models import HealthChecks, HealthResponse
from synditracker.storage.database import Database

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _check_database(db: Database) -> str:
    try:
        return "ok" if await db.health_check() else "error"
    except Exception as e:
        logger.warning("Database health check failed", error=str(e))
        return "error"


def _webhook_status(settings: AlertSettings, prefixes: tuple[str, ...]) -> str:
    if not settings.webhook_enabled or not settings.webhook_url:
        return "not_configured"
    if is_allowed_webhook_url(settings.webhook_url, prefixes):
        return "configured"
    return "invalid"


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse, "description": "Database unavailable"}},
    summary="Service health check",
    description="Database connectivity, heartbeat schedule, and webhook configuration.",
)
async def health_check(services: HubServices = Depends(get_services)):
    database = await _check_database(services.database)
    alert_settings = await services.alert_settings.get()

    if alert_settings.is_immediate:
        cron = STATUS_NOT_REQUIRED
    elif services.scheduler.status() == STATUS_SCHEDULED:
        cron = STATUS_SCHEDULED
    else:
        cron = STATUS_NOT_SCHEDULED

    healthy = database == "ok"
    body = HealthResponse(
        status="healthy" if healthy else "unhealthy",
        version=services.settings.version,
        timestamp=datetime.now(timezone.utc).isoformat(),
        checks=HealthChecks(
            database=database,
            cron=cron,
            webhook=_webhook_status(alert_settings, services.settings.webhook_prefixes),
        ),
    )
    return JSONResponse(status_code=200 if healthy else 503, content=body.model_dump())
