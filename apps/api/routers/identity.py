"""Identity provider webhook: keeps the user directory in sync."""

import json
import logging

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.deps import get_db
from core.auth import Identity, verify_webhook_signature
from core.errors import Unauthenticated, ValidationError
from services import users

router = APIRouter()
logger = logging.getLogger(__name__)


def _identity_from_payload(data: dict) -> Identity:
    emails = data.get("email_addresses") or []
    return Identity(
        subject=data["id"],
        email=emails[0].get("email_address", "") if emails else "",
        name=data.get("first_name"),
        username=data.get("username"),
        image_url=data.get("image_url"),
    )


@router.post("/webhook")
async def identity_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    x_webhook_signature: str | None = Header(None),
) -> dict[str, bool]:
    """
    Handle user lifecycle events from the identity provider.

    Supported events:
    - user.created / user.updated: upsert the directory record
    - user.deleted: delete the user and cascade to sessions, matches, requests, messages

    The body must be signed with HMAC-SHA256 (``X-Webhook-Signature``).
    """
    body = await request.body()
    if not verify_webhook_signature(body, x_webhook_signature or ""):
        logger.warning("Identity webhook rejected: invalid signature")
        raise Unauthenticated("Invalid webhook signature")

    try:
        payload = json.loads(body)
        event_type = payload["type"]
        data = payload["data"]
        subject = data["id"]
    except (ValueError, KeyError, TypeError) as e:
        raise ValidationError(f"Malformed webhook payload: {e}") from None

    if event_type in ("user.created", "user.updated"):
        await users.upsert_from_identity(db, _identity_from_payload(data))
    elif event_type == "user.deleted":
        await users.delete_from_identity(db, subject)
    else:
        logger.info(f"Ignoring identity event {event_type}")
        return {"ok": True, "handled": False}

    logger.info(f"Identity event {event_type} handled for {subject}")
    return {"ok": True, "handled": True}
