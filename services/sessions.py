"""Chat session primitives shared by the queue, decisions, requests and messages."""

import logging
from datetime import timedelta

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.db import utcnow
from core.errors import NotFound, Unauthorized
from core.metrics import (
    chat_sessions_created_total,
    chat_sessions_ended_total,
    matches_created_total,
    messages_erased_total,
)
from models import ChatSession, Match, Message, User
from models.chat import PHASE_EXTENDED, PHASE_SPEED_DATING, STATUS_ACTIVE, STATUS_ENDED

logger = logging.getLogger(__name__)


def ordered_pair(user_x: int, user_y: int) -> tuple[int, int]:
    u_lo, u_hi = sorted((user_x, user_y))
    return u_lo, u_hi


async def find_active_session(db: AsyncSession, user_id: int) -> ChatSession | None:
    """Return the user's active session, if any."""
    result = await db.execute(
        select(ChatSession)
        .where(
            and_(
                ChatSession.status == STATUS_ACTIVE,
                or_(ChatSession.user_a == user_id, ChatSession.user_b == user_id),
            )
        )
        .order_by(ChatSession.started_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def find_open_session(db: AsyncSession, user_id: int) -> ChatSession | None:
    """
    Return the user's unresolved session, if any.

    A session waiting for the reveal still belongs to its participants: both
    deciding to continue makes it active again.
    """
    result = await db.execute(
        select(ChatSession)
        .where(
            and_(
                ChatSession.status != STATUS_ENDED,
                or_(ChatSession.user_a == user_id, ChatSession.user_b == user_id),
            )
        )
        .order_by(ChatSession.started_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def find_active_pair_session(db: AsyncSession, user_x: int, user_y: int) -> ChatSession | None:
    """Return the active session between two users, in either assignment."""
    u_lo, u_hi = ordered_pair(user_x, user_y)
    result = await db.execute(
        select(ChatSession)
        .where(and_(ChatSession.u_lo == u_lo, ChatSession.u_hi == u_hi, ChatSession.status == STATUS_ACTIVE))
        .limit(1)
    )
    return result.scalar_one_or_none()


async def load_for_participant(db: AsyncSession, session_id: int, user: User, *, lock: bool = False) -> ChatSession:
    """
    Load a session and check that the user takes part in it.

    Raises:
        NotFound: If the session does not exist
        Unauthorized: If the user is not a participant
    """
    query = select(ChatSession).where(ChatSession.id == session_id)
    if lock:
        query = query.with_for_update()
    result = await db.execute(query)
    chat_session = result.scalar_one_or_none()

    if chat_session is None:
        raise NotFound("Chat session not found")

    if not chat_session.is_participant(user.id):
        logger.warning(f"User {user.id} denied access to session {session_id}")
        raise Unauthorized("User not part of this chat session")

    return chat_session


def open_session(db: AsyncSession, user_a: int, user_b: int, *, phase: str, origin: str) -> ChatSession:
    """
    Add a new active session between two users.

    Speed dating sessions get a deadline; reopened (extended) sessions have no timer.
    """
    now = utcnow()
    u_lo, u_hi = ordered_pair(user_a, user_b)
    chat_session = ChatSession(
        user_a=user_a,
        user_b=user_b,
        u_lo=u_lo,
        u_hi=u_hi,
        phase=phase,
        status=STATUS_ACTIVE,
        started_at=now,
        ends_at=now + timedelta(minutes=settings.speed_dating_minutes) if phase == PHASE_SPEED_DATING else None,
        a_wants_skip=False,
        b_wants_skip=False,
    )
    db.add(chat_session)
    chat_sessions_created_total.labels(origin=origin).inc()
    return chat_session


async def record_match(db: AsyncSession, chat_session: ChatSession, path: str) -> Match:
    """Insert the Match for a session and move the session into the extended phase."""
    match = Match(
        user_a=chat_session.user_a,
        user_b=chat_session.user_b,
        u_lo=chat_session.u_lo,
        u_hi=chat_session.u_hi,
        chat_session_id=chat_session.id,
        matched_at=utcnow(),
    )
    db.add(match)

    chat_session.phase = PHASE_EXTENDED
    chat_session.status = STATUS_ACTIVE
    await db.flush()

    matches_created_total.labels(path=path).inc()
    logger.info(f"Match {match.id} created from session {chat_session.id} via {path}")
    return match


async def erase_messages(db: AsyncSession, session_id: int) -> int:
    """Irrevocably delete every message of a session."""
    result = await db.execute(delete(Message).where(Message.chat_session_id == session_id))
    erased = result.rowcount or 0
    messages_erased_total.inc(erased)
    return erased


async def end_session(db: AsyncSession, chat_session: ChatSession, reason: str, *, dequeue: bool = False) -> None:
    """
    Move a session to ``ended`` and erase its messages.

    Args:
        db: Database session
        chat_session: Session to end
        reason: Metrics label, e.g. "declined" or "left"
        dequeue: Also clear both participants' queue flags
    """
    chat_session.status = STATUS_ENDED
    chat_session.ended_at = utcnow()

    if dequeue:
        await db.execute(
            update(User).where(User.id.in_([chat_session.user_a, chat_session.user_b])).values(in_queue=False)
        )

    erased = await erase_messages(db, chat_session.id)
    chat_sessions_ended_total.labels(reason=reason).inc()
    logger.info(f"Session {chat_session.id} ended ({reason}), erased {erased} messages")
