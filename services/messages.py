"""Message store: per-session chat messages, typing signals and leaving a chat."""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.workers.notifier import notifier
from core.config import settings
from core.db import utcnow
from core.errors import InvalidPhase, RateLimited, ValidationError
from core.metrics import messages_rate_limited_total, messages_sent_total
from core.redis import get_redis, message_rate_key, typing_key
from models import ChatSession, Message, User
from models.chat import PHASE_EXTENDED, STATUS_ACTIVE, STATUS_ENDED
from services import rate_limit
from services.sessions import end_session, load_for_participant
from services.users import profile_snapshot

logger = logging.getLogger(__name__)


def _session_snapshot(chat_session: ChatSession, user_id: int) -> dict[str, Any]:
    is_a = user_id == chat_session.user_a
    return {
        "id": chat_session.id,
        "phase": chat_session.phase,
        "status": chat_session.status,
        "started_at": chat_session.started_at,
        "ends_at": chat_session.ends_at,
        "ended_at": chat_session.ended_at,
        "my_decision": chat_session.a_wants_continue if is_a else chat_session.b_wants_continue,
        "my_skip_vote": bool(chat_session.a_wants_skip if is_a else chat_session.b_wants_skip),
        "skip_count": chat_session.skip_count,
    }


async def send(db: AsyncSession, session_id: int, user: User, content: str) -> dict[str, Any]:
    """
    Store a message in an active session.

    Raises:
        NotFound: If the session does not exist
        Unauthorized: If the caller is not a participant
        InvalidPhase: If the session is not active
        ValidationError: If the content is empty or too long
        RateLimited: If the sender exceeded the rolling message limit
    """
    chat_session = await load_for_participant(db, session_id, user)

    if chat_session.status != STATUS_ACTIVE:
        raise InvalidPhase("Messages can only be sent in an active chat")

    content = (content or "").strip()
    if not content:
        raise ValidationError("Message cannot be empty")
    if len(content) > settings.message_max_length:
        raise ValidationError(f"Message must be at most {settings.message_max_length} characters")

    redis = await get_redis()
    allowed = await rate_limit.hit(
        redis, message_rate_key(user.id), settings.message_rate_limit, settings.message_rate_window_seconds
    )
    if not allowed:
        messages_rate_limited_total.inc()
        logger.warning(f"Message rate limit hit: user={user.id}, session={session_id}")
        raise RateLimited("Too many messages. Please slow down.")

    message = Message(chat_session_id=chat_session.id, sender_id=user.id, content=content, created_at=utcnow())
    db.add(message)
    await db.commit()

    messages_sent_total.inc()
    await redis.delete(typing_key(session_id, user.id))
    await notifier.messages_changed(session_id)
    return {"success": True, "message_id": message.id}


async def list_messages(db: AsyncSession, session_id: int, user: User) -> dict[str, Any]:
    """
    Most recent messages of a session plus the state the chat screen needs.

    The counterpart profile is only revealed in the extended phase; during speed
    dating the counterpart stays anonymous.
    """
    chat_session = await load_for_participant(db, session_id, user)

    result = await db.execute(
        select(Message)
        .where(Message.chat_session_id == session_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(settings.message_list_limit)
    )
    messages = list(reversed(result.scalars().all()))

    counterpart_id = chat_session.counterpart_of(user.id)
    counterpart: dict[str, Any] | None = None
    if chat_session.phase == PHASE_EXTENDED:
        other = await db.get(User, counterpart_id)
        if other is not None:
            counterpart = {**profile_snapshot(other), "revealed": True}
    else:
        counterpart = {"id": None, "name": "Anonymous", "revealed": False}

    counterpart_typing = False
    if chat_session.status != STATUS_ENDED:
        redis = await get_redis()
        counterpart_typing = bool(await redis.exists(typing_key(session_id, counterpart_id)))

    return {
        "messages": [
            {
                "id": m.id,
                "sender_id": m.sender_id,
                "content": m.content,
                "created_at": m.created_at,
                "is_mine": m.sender_id == user.id,
            }
            for m in messages
        ],
        "session": _session_snapshot(chat_session, user.id),
        "counterpart": counterpart,
        "counterpart_typing": counterpart_typing,
        "caller_id": user.id,
    }


async def set_typing(db: AsyncSession, session_id: int, user: User, is_typing: bool) -> dict[str, bool]:
    """Set or clear the caller's short-lived typing signal."""
    chat_session = await load_for_participant(db, session_id, user)
    if chat_session.status == STATUS_ENDED:
        raise InvalidPhase("Chat has ended")

    redis = await get_redis()
    key = typing_key(session_id, user.id)
    if is_typing:
        await redis.setex(key, settings.typing_ttl_seconds, "1")
    else:
        await redis.delete(key)

    await notifier.typing_changed(session_id, user.id, is_typing)
    return {"success": True}


async def leave_chat(db: AsyncSession, session_id: int, user: User) -> dict[str, bool]:
    """End the chat for both participants and erase its messages. Idempotent."""
    chat_session = await load_for_participant(db, session_id, user, lock=True)

    if chat_session.status == STATUS_ENDED:
        return {"success": True}

    await end_session(db, chat_session, reason="left")
    await db.commit()

    logger.info(f"User {user.id} left session {session_id}")
    await notifier.session_updated(chat_session, "left")
    return {"success": True}
