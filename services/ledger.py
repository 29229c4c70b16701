"""Match ledger: history of successful pairings."""

from typing import Any

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFound, Unauthorized
from models import ChatRequest, ChatSession, Match, User
from models.chat import STATUS_ACTIVE
from models.chat_request import REQUEST_PENDING
from services.users import profile_snapshot


async def pending_request_for(db: AsyncSession, match_id: int) -> ChatRequest | None:
    result = await db.execute(
        select(ChatRequest)
        .where(and_(ChatRequest.match_id == match_id, ChatRequest.status == REQUEST_PENDING))
        .limit(1)
    )
    return result.scalar_one_or_none()


async def list_matches(db: AsyncSession, user: User) -> list[dict[str, Any]]:
    """
    List the user's matches, newest first.

    Each entry carries the counterpart's profile, whether the linked session is
    still active, and the pending chat request state. Matches whose counterpart
    no longer exists are skipped.
    """
    result = await db.execute(
        select(Match)
        .where(or_(Match.user_a == user.id, Match.user_b == user.id))
        .order_by(Match.matched_at.desc(), Match.id.desc())
    )
    matches = result.scalars().all()

    entries = []
    for match in matches:
        counterpart = await db.get(User, match.counterpart_of(user.id))
        if counterpart is None:
            continue

        chat_session = await db.get(ChatSession, match.chat_session_id)
        pending = await pending_request_for(db, match.id)

        entries.append(
            {
                "match_id": match.id,
                "matched_at": match.matched_at,
                "session_id": match.chat_session_id,
                "has_active_chat": chat_session is not None and chat_session.status == STATUS_ACTIVE,
                "has_pending_request": pending is not None,
                "is_request_sender": pending is not None and pending.from_user == user.id,
                "counterpart": profile_snapshot(counterpart),
            }
        )

    return entries


async def request_status(db: AsyncSession, match_id: int, user: User) -> dict[str, Any]:
    """Pending chat request state for one match, from the caller's point of view."""
    match = await db.get(Match, match_id)
    if match is None:
        raise NotFound("Match not found")
    if not match.is_participant(user.id):
        raise Unauthorized("User not part of this match")

    pending = await pending_request_for(db, match_id)
    if pending is None:
        return {"has_pending": False, "is_sender": False, "request_id": None}

    return {"has_pending": True, "is_sender": pending.from_user == user.id, "request_id": pending.id}
