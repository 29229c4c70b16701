"""Caller identity resolution for API requests.

Authentication itself happens in the identity gateway in front of this service.
The gateway forwards the authenticated subject in ``X-User-Subject`` and signs
it with a shared secret so the API can trust the header.
"""

import base64
import hashlib
import hmac
from dataclasses import dataclass

from fastapi import Request

from core.config import settings
from core.errors import Unauthenticated


@dataclass(frozen=True)
class Identity:
    """Identity attributes forwarded by the gateway."""

    subject: str
    email: str = ""
    name: str | None = None
    username: str | None = None
    image_url: str | None = None


def _b64u_encode(data: bytes) -> str:
    """Base64-URL encode without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def sign(payload: bytes, secret: str) -> str:
    """Return the base64url HMAC-SHA256 signature of ``payload``."""
    mac = hmac.new(secret.encode(), payload, hashlib.sha256).digest()
    return _b64u_encode(mac)


def verify_identity_signature(subject: str, signature: str) -> bool:
    """
    Verify HMAC-SHA256 signature of the forwarded subject.

    Args:
        subject: Identity provider subject
        signature: Base64-URL encoded HMAC signature

    Returns:
        True if signature is valid
    """
    expected = sign(subject.encode(), settings.identity_shared_secret)
    return hmac.compare_digest(expected, signature or "")


def verify_webhook_signature(body: bytes, signature: str) -> bool:
    """Verify HMAC-SHA256 signature of an identity webhook body."""
    expected = sign(body, settings.identity_webhook_secret)
    return hmac.compare_digest(expected, signature or "")


async def identity_auth(request: Request) -> Identity:
    """
    Resolve the caller identity from gateway headers.

    Expects headers:
    - X-User-Subject: stable identity provider subject
    - X-Identity-Signature: HMAC-SHA256 signature of the subject
    - X-User-Email, X-User-Name, X-User-Username, X-User-Image (optional)

    Raises:
        Unauthenticated: If headers are missing or the signature is invalid
    """
    subject = request.headers.get("X-User-Subject")
    signature = request.headers.get("X-Identity-Signature")

    if not subject or not signature:
        raise Unauthenticated("Missing identity headers (X-User-Subject, X-Identity-Signature)")

    if not verify_identity_signature(subject, signature):
        raise Unauthenticated("Invalid identity signature")

    return Identity(
        subject=subject,
        email=request.headers.get("X-User-Email", ""),
        name=request.headers.get("X-User-Name"),
        username=request.headers.get("X-User-Username"),
        image_url=request.headers.get("X-User-Image"),
    )
