"""Authentication of change notification webhooks.

A webhook request is accepted if either:

1. A shared secret supplied in a header (X-Webhook-Secret, X-Hook-Secret) or
   a ``secret`` body field exactly matches the configured secret, or
2. An HMAC of the raw request body, keyed with the configured secret,
   matches the signature header (X-Webhook-Signature, X-Hub-Signature).
   The algorithm comes from the signature prefix: ``sha256=`` or ``sha1=``;
   unprefixed signatures are sha256.

All comparisons are constant time. When validation is required but no
secret is configured, every request is refused.

Example:
    verifier = WebhookVerifier(secret="shared-secret")
    verifier.verify(body, request.headers, body_secret=payload.get("secret"))

    # Sign an outgoing notification
    headers = {SIGNATURE_HEADERS[0]: sign_body(body, "shared-secret")}
"""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Mapping
from dataclasses import dataclass

from querycache.errors import AuthenticationError, ConfigurationError

# Header names, checked in order
SECRET_HEADERS = ("X-Webhook-Secret", "X-Hook-Secret")
SIGNATURE_HEADERS = ("X-Webhook-Signature", "X-Hub-Signature")

SECRET_BODY_FIELD = "secret"

_ALGORITHMS = {
    "sha256": hashlib.sha256,
    "sha1": hashlib.sha1,
}
DEFAULT_ALGORITHM = "sha256"


def sign_body(body: bytes, secret: str | bytes, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Compute a prefixed signature value (e.g. ``sha256=ab12...``) for body."""
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    digest = hmac.new(secret, body, _ALGORITHMS[algorithm]).hexdigest()
    return f"{algorithm}={digest}"


def parse_signature(signature: str) -> tuple[str, str]:
    """Split a signature value into (algorithm, hex digest)."""
    for algorithm in _ALGORITHMS:
        prefix = f"{algorithm}="
        if signature.startswith(prefix):
            return algorithm, signature[len(prefix) :]
    return DEFAULT_ALGORITHM, signature


def _first_header(headers: Mapping[str, str], names: tuple[str, ...]) -> str | None:
    for name in names:
        value = headers.get(name)
        if value:
            return value
    return None


@dataclass(frozen=True)
class WebhookVerifier:
    """Verifies shared-secret or HMAC-signed webhook requests."""

    secret: str | None
    require_validation: bool = True

    @property
    def secret_configured(self) -> bool:
        return bool(self.secret)

    def verify_secret(self, provided: str | None) -> bool:
        if not provided or not self.secret:
            return False
        return hmac.compare_digest(provided.encode("utf-8"), self.secret.encode("utf-8"))

    def verify_signature(self, body: bytes, signature: str | None) -> bool:
        if not signature or not self.secret:
            return False

        algorithm, provided = parse_signature(signature)
        expected = hmac.new(
            self.secret.encode("utf-8"), body, _ALGORITHMS[algorithm]
        ).hexdigest()
        return hmac.compare_digest(expected.encode("ascii"), provided.strip().lower().encode())

    def verify(
        self,
        body: bytes,
        headers: Mapping[str, str],
        body_secret: str | None = None,
    ) -> None:
        """Authenticate a webhook request.

        Raises:
            ConfigurationError: validation is required but no secret is set
            AuthenticationError: neither the secret nor the signature matched
        """
        if not self.require_validation:
            return

        if not self.secret:
            raise ConfigurationError("Webhook authentication not configured")

        provided_secret = _first_header(headers, SECRET_HEADERS) or body_secret
        if self.verify_secret(provided_secret):
            return

        if self.verify_signature(body, _first_header(headers, SIGNATURE_HEADERS)):
            return

        raise AuthenticationError("Unauthorized webhook request")
