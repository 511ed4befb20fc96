"""Administrative endpoints: keys, alert settings, metrics, logs, alerts."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
import structlog

from synditracker.alerts.schemas import VALID_ALERT_TYPES, AlertSettings
from synditracker.api.auth import verify_api_key
from synditracker.api.dependencies import HubServices, get_services
from synditracker.api.models import (
    AlertItem,
    AlertSettingsUpdate,
    AlertsResponse,
    AlertTestRequest,
    DispatchResponse,
    EventItem,
    KeyCreateRequest,
    KeyItem,
    KeysResponse,
    LogsResponse,
    MessageResponse,
    MetricsResponse,
    PurgeResponse,
    SystemErrorRequest,
)

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/admin", dependencies=[Depends(verify_api_key)])


# -- keys ---------------------------------------------------------------


@router.get("/keys", response_model=KeysResponse, summary="List site keys")
async def list_keys(services: HubServices = Depends(get_services)) -> KeysResponse:
    keys = await services.keys.list_keys()
    return KeysResponse(
        keys=[KeyItem(**k.to_dict()) for k in keys],
        total=len(keys),
    )


@router.post(
    "/keys",
    response_model=KeyItem,
    status_code=status.HTTP_201_CREATED,
    summary="Generate a site key",
)
async def create_key(
    body: KeyCreateRequest,
    services: HubServices = Depends(get_services),
) -> KeyItem:
    key = await services.keys.generate(body.site_name)
    return KeyItem(**key.to_dict())


@router.post(
    "/keys/{key_id}/revoke",
    response_model=MessageResponse,
    responses={404: {"description": "Key not found"}},
    summary="Revoke a site key",
)
async def revoke_key(
    key_id: int,
    services: HubServices = Depends(get_services),
) -> MessageResponse:
    if not await services.keys.revoke(key_id):
        raise HTTPException(status_code=404, detail=f"Key {key_id} not found")
    return MessageResponse(message="Key revoked")


@router.delete(
    "/keys/{key_id}",
    response_model=MessageResponse,
    responses={404: {"description": "Key not found"}},
    summary="Delete a site key",
)
async def delete_key(
    key_id: int,
    services: HubServices = Depends(get_services),
) -> MessageResponse:
    if not await services.keys.delete(key_id):
        raise HTTPException(status_code=404, detail=f"Key {key_id} not found")
    return MessageResponse(message="Key deleted")


# -- alert settings -----------------------------------------------------


@router.get("/settings/alerts", response_model=AlertSettings, summary="Current alert settings")
async def get_alert_settings(
    services: HubServices = Depends(get_services),
) -> AlertSettings:
    return await services.alert_settings.get()


@router.put(
    "/settings/alerts",
    response_model=AlertSettings,
    summary="Update alert settings",
    description=(
        "Partial update. A webhook URL outside the allowed providers is "
        "cleared rather than rejected. A frequency change re-arms the heartbeat."
    ),
)
async def update_alert_settings(
    body: AlertSettingsUpdate,
    services: HubServices = Depends(get_services),
) -> AlertSettings:
    current = await services.alert_settings.get()
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    updated = AlertSettings.model_validate({**current.model_dump(), **changes})
    saved = await services.alert_settings.save(updated)
    logger.info("Alert settings updated", fields=sorted(changes))
    return saved


# -- metrics and logs ---------------------------------------------------


@router.get("/metrics", response_model=MetricsResponse, summary="Ingestion metrics")
async def get_metrics(services: HubServices = Depends(get_services)) -> MetricsResponse:
    alert_settings = await services.alert_settings.get()
    all_time = await services.events.metrics()
    window = await services.events.metrics_for_window(alert_settings.scanning_window_hours)
    active = await services.keys.active_count()
    return MetricsResponse(
        all_time=all_time.to_dict(),
        window=window.to_dict(),
        active_keys=active,
    )


@router.get("/logs", response_model=LogsResponse, summary="Recent syndication events")
async def list_logs(
    limit: int = Query(default=50, ge=1, le=500, description="Maximum events to return"),
    offset: int = Query(default=0, ge=0, description="Offset for pagination"),
    services: HubServices = Depends(get_services),
) -> LogsResponse:
    events = await services.events.recent_events(limit=limit, offset=offset)
    total = await services.events.total_count()
    return LogsResponse(
        events=[EventItem(**e.to_dict()) for e in events],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.delete("/logs", response_model=PurgeResponse, summary="Purge all events")
async def purge_logs(services: HubServices = Depends(get_services)) -> PurgeResponse:
    deleted = await services.events.purge()
    logger.warning("Syndication events purged", deleted=deleted)
    return PurgeResponse(deleted=deleted)


# -- alerts -------------------------------------------------------------


@router.get("/alerts", response_model=AlertsResponse, summary="Alert audit trail")
async def list_alerts(
    alert_type: str | None = Query(
        default=None,
        description="Filter by type: spike, heartbeat, error, test",
    ),
    limit: int = Query(default=20, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    services: HubServices = Depends(get_services),
) -> AlertsResponse:
    if alert_type and alert_type not in VALID_ALERT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=(
                f"Invalid alert_type {alert_type!r}. "
                f"Must be one of: {sorted(VALID_ALERT_TYPES)}"
            ),
        )

    alerts = await services.alert_repository.get_recent(
        alert_type=alert_type, limit=limit, offset=offset,
    )
    total = await services.alert_repository.count(alert_type)
    return AlertsResponse(
        alerts=[AlertItem(**a.to_dict()) for a in alerts],
        total=total,
    )


@router.delete("/alerts", response_model=MessageResponse, summary="Clear the alert audit trail")
async def clear_alerts(services: HubServices = Depends(get_services)) -> MessageResponse:
    await services.alert_repository.clear()
    logger.warning("Alert audit trail cleared")
    return MessageResponse(message="Alerts cleared")


@router.post("/alerts/test", response_model=DispatchResponse, summary="Send a test alert")
async def send_test_alert(
    body: AlertTestRequest | None = None,
    services: HubServices = Depends(get_services),
) -> DispatchResponse:
    body = body or AlertTestRequest()
    site_url = body.site_url or services.settings.dashboard_url
    result = await services.dispatcher.dispatch_test(body.site_name, site_url)
    return DispatchResponse(**result.to_dict())


@router.post(
    "/alerts/error",
    response_model=DispatchResponse,
    summary="Report a system error",
    description="Forwarded to the webhook when error alerts are enabled.",
)
async def report_system_error(
    body: SystemErrorRequest,
    services: HubServices = Depends(get_services),
) -> DispatchResponse:
    result = await services.dispatcher.dispatch_system_error(body.message)
    return DispatchResponse(**result.to_dict())
