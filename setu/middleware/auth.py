"""Admin API key check for catalog management endpoints.

The key travels in the ``X-Admin-API-Key`` header and is compared in
constant time against ``SETU_ADMIN_API_KEY``.  With no key configured,
development deployments let admin calls through (with a warning) while
production deployments refuse them outright.
"""

from __future__ import annotations

import hmac

import structlog
from fastapi import HTTPException, Request, Security
from fastapi.security import APIKeyHeader

from config.settings import settings

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

ADMIN_KEY_HEADER = "X-Admin-API-Key"

_api_key_header = APIKeyHeader(name=ADMIN_KEY_HEADER, auto_error=False)


def _deny(request: Request, event: str, status_code: int, detail: str) -> HTTPException:
    logger.warning(
        event,
        path=request.url.path,
        client_ip=request.client.host if request.client else "unknown",
    )
    headers = {"WWW-Authenticate": "ApiKey"} if status_code == 401 else None
    return HTTPException(status_code=status_code, detail=detail, headers=headers)


async def require_admin_api_key(
    request: Request,
    api_key: str | None = Security(_api_key_header),
) -> str:
    """Dependency guarding admin routes; returns the accepted key.

    Raises 401 when the header is absent, 403 when it is wrong, and 503
    in production when no key has been configured.
    """
    expected = settings.admin_api_key
    if not expected:
        if settings.is_production:
            logger.error("auth.admin_key_not_configured", env=settings.env)
            raise HTTPException(status_code=503, detail="Admin authentication is not configured.")
        logger.warning("auth.admin_key_not_configured", env=settings.env, allowed=True)
        return ""

    if not api_key:
        raise _deny(request, "auth.missing_api_key", 401, f"Missing {ADMIN_KEY_HEADER} header.")
    if not hmac.compare_digest(api_key.encode(), expected.encode()):
        raise _deny(request, "auth.invalid_api_key", 403, "Invalid API key.")
    return api_key
