"""Change notification webhook endpoints.

- POST /webhooks/changes - Receive a change-data-capture event and invalidate cache
- GET  /webhooks/health  - Report webhook configuration (no side effects)

Authentication runs as a dependency before the handler; the handler only
parses the payload and forwards it to the ingester.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Annotated, Any

import orjson
from fastapi import APIRouter, Depends, Request

from querycache.api.errors import BadRequestError, ForbiddenError, UnauthorizedError
from querycache.config import Settings
from querycache.errors import AuthenticationError, ConfigurationError, ValidationError
from querycache.events.ingester import ChangeNotificationIngester
from querycache.events.payload import parse_change_payload
from querycache.observability.logging import bound_request_id
from querycache.observability.metrics import get_metrics
from querycache.security.webhook import (
    SECRET_BODY_FIELD,
    SECRET_HEADERS,
    SIGNATURE_HEADERS,
    WebhookVerifier,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_ingester(request: Request) -> ChangeNotificationIngester:
    return request.app.state.ingester


def _client_ip(request: Request) -> str | None:
    """Extract client IP considering common proxy headers."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


async def verified_payload(request: Request) -> Any:
    """FastAPI dependency that authenticates the request and returns its JSON body.

    The body is parsed before authentication only to read an optional
    ``secret`` field; a body that isn't JSON can still authenticate by
    signature and is rejected afterwards.
    """
    settings = get_settings(request)
    verifier = WebhookVerifier(settings.webhook_secret, settings.webhook_require_validation)
    metrics = get_metrics(settings.enable_metrics)

    body = await request.body()
    try:
        payload: Any = orjson.loads(body) if body else None
    except orjson.JSONDecodeError:
        payload = None

    body_secret = payload.get(SECRET_BODY_FIELD) if isinstance(payload, dict) else None

    try:
        verifier.verify(
            body, request.headers, body_secret if isinstance(body_secret, str) else None
        )
    except ConfigurationError as e:
        logger.warning("Webhook secret not configured but validation is required")
        metrics.webhook_requests_total.labels(outcome="misconfigured").inc()
        raise UnauthorizedError(str(e)) from e
    except AuthenticationError as e:
        logger.warning(
            "Webhook authentication failed",
            extra={
                "ip": _client_ip(request),
                "user_agent": request.headers.get("User-Agent"),
                "has_secret_header": any(h in request.headers for h in SECRET_HEADERS),
                "has_signature_header": any(h in request.headers for h in SIGNATURE_HEADERS),
            },
        )
        metrics.webhook_requests_total.labels(outcome="unauthorized").inc()
        raise UnauthorizedError(str(e)) from e

    return payload


@router.post("/changes")
async def receive_change_notification(
    request: Request,
    payload: Annotated[Any, Depends(verified_payload)],
    settings: Annotated[Settings, Depends(get_settings)],
    ingester: Annotated[ChangeNotificationIngester, Depends(get_ingester)],
) -> dict[str, Any]:
    """Invalidate cached queries affected by an external change event."""
    metrics = get_metrics(settings.enable_metrics)

    if not settings.webhook_invalidation:
        metrics.webhook_requests_total.labels(outcome="disabled").inc()
        raise ForbiddenError()

    try:
        event = parse_change_payload(payload)
    except ValidationError as e:
        metrics.webhook_requests_total.labels(outcome="invalid").inc()
        raise BadRequestError(str(e)) from e

    with bound_request_id(request.headers.get("X-Request-ID") or event.event_id):
        outcome = await ingester.ingest(event)
    metrics.webhook_requests_total.labels(outcome="processed").inc()

    return {
        "success": True,
        "message": "Cache invalidated successfully",
        **outcome.to_dict(),
    }


@router.get("/health")
async def webhook_health(
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict[str, Any]:
    """Report whether webhook invalidation is enabled and a secret is configured."""
    return {
        "status": "ok",
        "webhook_invalidation_enabled": settings.webhook_invalidation,
        "webhook_secret_configured": bool(settings.webhook_secret),
        "timestamp": datetime.now(UTC).isoformat(),
    }
