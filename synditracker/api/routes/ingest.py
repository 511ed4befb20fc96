"""Syndication event ingestion endpoint."""

import math
import re
import time
from typing import Any
from urllib.parse import urlsplit

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from synditracker.api.auth import verify_site_key
from synditracker.api.dependencies import HubServices, get_services
from synditracker.api.models import LogStoredResponse, MessageResponse
from synditracker.errors import ValidationError
from synditracker.events.schemas import SyndicationEvent

logger = structlog.get_logger(__name__)
router = APIRouter()

PING_AGGREGATOR = "Test"
UNKNOWN_AGGREGATOR = "Unknown"

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")
_LEADING_INT_RE = re.compile(r"^\s*[+-]?\d+")

MAX_POST_ID = 2**63 - 1
FORM_MEDIA_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def sanitize_post_id(value: Any) -> int:
    """Absolute integer; non-numeric or out of BIGINT range input becomes 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        post_id = abs(value)
    elif isinstance(value, float) and math.isfinite(value):
        post_id = abs(int(value))
    elif isinstance(value, str):
        match = _LEADING_INT_RE.match(value)
        if not match:
            return 0
        post_id = abs(int(match.group()))
    else:
        return 0
    return post_id if post_id <= MAX_POST_ID else 0


def sanitize_text(value: Any) -> str:
    """Single-line text with tags stripped and whitespace collapsed."""
    if value is None or isinstance(value, (dict, list)):
        return ""
    text = _TAG_RE.sub("", str(value))
    return _WS_RE.sub(" ", text).strip()


def sanitize_url(value: Any) -> str:
    """Trimmed http(s) URL, or empty string if it is anything else."""
    if not isinstance(value, str):
        return ""
    url = "".join(ch for ch in value.strip() if ch.isprintable() and not ch.isspace())
    try:
        parts = urlsplit(url)
    except ValueError:
        return ""
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        return ""
    return url


def sanitize_payload(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "post_id": sanitize_post_id(payload.get("post_id")),
        "site_url": sanitize_url(payload.get("site_url")),
        "site_name": sanitize_text(payload.get("site_name")),
        "aggregator": sanitize_text(payload.get("aggregator")) or UNKNOWN_AGGREGATOR,
    }


async def read_payload(request: Request) -> dict[str, Any]:
    """Request fields from a JSON object or a form-encoded body."""
    media_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if media_type in FORM_MEDIA_TYPES:
        form = await request.form()
        return {name: value for name, value in form.items() if isinstance(value, str)}

    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Invalid request body")
    if not isinstance(payload, dict):
        raise ValidationError("Invalid request body")
    return payload


def is_connectivity_ping(payload: dict[str, Any]) -> bool:
    return payload.get("aggregator") == PING_AGGREGATOR


@router.post(
    "/log",
    response_model=LogStoredResponse,
    responses={
        200: {"description": "Event stored, or connectivity ping acknowledged"},
        400: {"model": MessageResponse, "description": "Missing required fields"},
        401: {"model": MessageResponse, "description": "Missing site key"},
        403: {"model": MessageResponse, "description": "Invalid or revoked site key"},
        429: {"model": MessageResponse, "description": "Rate limit exceeded"},
        500: {"model": MessageResponse, "description": "Failed to store log"},
    },
    summary="Report a syndication event",
    description=(
        "Record that a site republished a post. Events repeating a post_id and "
        "site_url seen in the last 24 hours are stored flagged as duplicates. "
        "An aggregator of 'Test' only checks connectivity and stores nothing. "
        "Fields may be sent as a JSON object or form-encoded."
    ),
)
async def ingest_log(
    request: Request,
    key_id: int = Depends(verify_site_key),
    services: HubServices = Depends(get_services),
):
    start_time = time.perf_counter()

    payload = await read_payload(request)

    if is_connectivity_ping(payload):
        logger.info(
            "Connection test received",
            key_id=key_id,
            site_url=payload.get("site_url"),
        )
        return JSONResponse(status_code=200, content={"message": "Connection successful"})

    data = sanitize_payload(payload)
    if not data["post_id"] or not data["site_url"]:
        logger.warning("Validation failed: missing required fields", key_id=key_id)
        raise ValidationError("Missing required fields")

    allowed = services.hooks.aggregator_allowlist.apply(
        list(services.settings.aggregator_allowlist)
    )
    if data["aggregator"] not in allowed:
        logger.info("Aggregator not allow-listed", aggregator=data["aggregator"])
        data["aggregator"] = UNKNOWN_AGGREGATOR

    data = services.hooks.before_store.apply(data)

    event = await services.events.insert(
        SyndicationEvent(
            post_id=data["post_id"],
            site_url=data["site_url"],
            site_name=data.get("site_name", ""),
            aggregator=data.get("aggregator", UNKNOWN_AGGREGATOR),
        )
    )

    latency = time.perf_counter() - start_time
    services.metrics.record_event(event.aggregator, event.is_duplicate, latency)
    logger.info(
        "Log stored",
        event_id=event.id,
        post_id=event.post_id,
        site_url=event.site_url,
        aggregator=event.aggregator,
        is_duplicate=event.is_duplicate,
        latency_ms=round(latency * 1000, 2),
    )

    return LogStoredResponse(
        message="Log stored successfully",
        id=event.id,
        is_duplicate=event.is_duplicate,
    )
