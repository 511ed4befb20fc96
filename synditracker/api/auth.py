"""
API authentication.

Two schemes:

- ``X-Site-Key`` identifies a WordPress site on ``POST /log``. Missing is
  401, unknown or revoked is 403, a valid key over its request budget is
  429. A valid key gets its ``last_seen`` refreshed.
- ``X-API-KEY`` guards the ``/admin`` surface against ``ADMIN_API_KEYS``.
  When no admin keys are configured every request passes (dev mode).
"""

import structlog
from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from synditracker.api.dependencies import HubServices, get_hub_settings, get_services
from synditracker.config.settings import Settings
from synditracker.errors import AuthError, RateLimitError

logger = structlog.get_logger(__name__)

site_key_header = APIKeyHeader(name="X-Site-Key", auto_error=False)
api_key_header = APIKeyHeader(name="X-API-KEY", auto_error=False)


async def verify_site_key(
    site_key: str | None = Security(site_key_header),
    services: HubServices = Depends(get_services),
) -> int:
    """
    Resolve the ``X-Site-Key`` header to an active key id.

    Returns:
        The validated key id

    Raises:
        AuthError: If the key is missing (401) or invalid/revoked (403)
        RateLimitError: If the key exceeded its window budget (429)
    """
    if not site_key:
        services.metrics.record_auth_failure("missing")
        raise AuthError.missing()

    key_id = await services.keys.validate(site_key)
    if key_id is None:
        services.metrics.record_auth_failure("invalid")
        services.hooks.invalid_key_attempt.fire(site_key)
        logger.warning("Invalid site key attempt", key_suffix=site_key[-4:])
        raise AuthError.invalid()

    decision = await services.rate_limiter.check(key_id)
    if not decision.allowed:
        services.metrics.record_rate_limited()
        logger.info(
            "Site key rate limited",
            key_id=key_id,
            count=decision.count,
            retry_after=decision.retry_after,
        )
        raise RateLimitError(decision.retry_after)

    await services.keys.touch_last_seen(key_id)
    return key_id


async def verify_api_key(
    api_key: str | None = Security(api_key_header),
    settings: Settings = Depends(get_hub_settings),
) -> str:
    """
    Verify the admin API key from the ``X-API-KEY`` header.

    Raises:
        HTTPException: If the key is missing or not configured
    """
    valid_keys = settings.admin_keys

    if not valid_keys:
        return "dev-mode"

    if api_key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide X-API-KEY header.",
        )

    if api_key not in valid_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )

    return api_key
