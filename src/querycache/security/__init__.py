"""Security module for querycache.

Provides authentication of inbound change notification webhooks:
- Shared-secret header/body token
- HMAC-SHA256 / HMAC-SHA1 body signatures (constant-time comparison)
"""

from querycache.security.webhook import (
    SECRET_HEADERS,
    SIGNATURE_HEADERS,
    WebhookVerifier,
    parse_signature,
    sign_body,
)

__all__ = [
    "SECRET_HEADERS",
    "SIGNATURE_HEADERS",
    "WebhookVerifier",
    "parse_signature",
    "sign_body",
]
