"""Error responses for the querycache webhook API.

Every error is rendered as:

    {"success": false, "message": "..."}
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.responses import ORJSONResponse

logger = logging.getLogger(__name__)


class WebhookApiError(HTTPException):
    """Base exception for webhook API errors."""

    def __init__(self, status_code: int, text: str):
        self.text = text
        super().__init__(status_code=status_code, detail=text)

    def to_content(self) -> dict[str, object]:
        return {"success": False, "message": self.text}


class BadRequestError(WebhookApiError):
    """Invalid change payload (400)."""

    def __init__(self, text: str):
        super().__init__(status_code=400, text=text)


class UnauthorizedError(WebhookApiError):
    """Webhook authentication failed or is not configured (401)."""

    def __init__(self, text: str = "Unauthorized webhook request"):
        super().__init__(status_code=401, text=text)


class ForbiddenError(WebhookApiError):
    """Webhook invalidation is disabled (403)."""

    def __init__(self, text: str = "Webhook invalidation is not enabled"):
        super().__init__(status_code=403, text=text)


async def webhook_api_exception_handler(request: Request, exc: WebhookApiError) -> ORJSONResponse:
    """Exception handler for webhook API errors."""
    return ORJSONResponse(status_code=exc.status_code, content=exc.to_content())


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    """Exception handler for unexpected errors."""
    logger.exception("Failed to process webhook request")
    return ORJSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Failed to process webhook",
            "error": "Internal server error",
        },
    )
