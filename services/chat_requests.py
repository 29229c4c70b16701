"""Chat request protocol: reopen a chat with a past match without queueing."""

import logging
from typing import Any

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from apps.workers.notifier import notifier
from core.db import utcnow
from core.errors import AlreadyInActiveSession, Conflict, NotFound, Unauthorized
from core.metrics import chat_requests_total
from models import ChatRequest, Match, User
from models.chat import PHASE_EXTENDED
from models.chat_request import REQUEST_ACCEPTED, REQUEST_DECLINED, REQUEST_PENDING
from services.ledger import pending_request_for
from services.sessions import find_active_pair_session, find_open_session, open_session
from services.users import profile_snapshot

logger = logging.getLogger(__name__)


async def _load_addressed(db: AsyncSession, request_id: int, user: User) -> ChatRequest:
    result = await db.execute(select(ChatRequest).where(ChatRequest.id == request_id).with_for_update())
    request = result.scalar_one_or_none()

    if request is None:
        raise NotFound("Request not found")

    if request.to_user != user.id:
        logger.warning(f"User {user.id} tried to answer request {request_id} addressed to {request.to_user}")
        raise Unauthorized("Request is not addressed to this user")

    if request.status != REQUEST_PENDING:
        raise Conflict("Request is no longer pending")

    return request


async def send(db: AsyncSession, match_id: int, user: User) -> dict[str, int]:
    """
    Ask a past match to reopen the chat.

    Raises:
        NotFound: If the match does not exist
        Unauthorized: If the caller is not part of the match
        Conflict: If a request is already pending or the pair already has an active chat
    """
    match = await db.get(Match, match_id)
    if match is None:
        raise NotFound("Match not found")

    if not match.is_participant(user.id):
        raise Unauthorized("User not part of this match")

    if await pending_request_for(db, match_id) is not None:
        raise Conflict("A request is already pending for this match")

    if await find_active_pair_session(db, match.user_a, match.user_b) is not None:
        raise Conflict("You already have an active chat with this person")

    request = ChatRequest(
        from_user=user.id,
        to_user=match.counterpart_of(user.id),
        match_id=match_id,
        status=REQUEST_PENDING,
        created_at=utcnow(),
    )
    db.add(request)
    await db.commit()

    chat_requests_total.labels(action="sent").inc()
    logger.info(f"Chat request {request.id} sent: from={request.from_user}, to={request.to_user}, match={match_id}")
    await notifier.request_changed(request.id, request.status, request.from_user, request.to_user)
    return {"request_id": request.id}


async def list_pending(db: AsyncSession, user: User) -> list[dict[str, Any]]:
    """Pending requests addressed to the user, newest first, with sender profiles."""
    result = await db.execute(
        select(ChatRequest, Match)
        .join(Match, ChatRequest.match_id == Match.id)
        .where(and_(ChatRequest.to_user == user.id, ChatRequest.status == REQUEST_PENDING))
        .order_by(ChatRequest.created_at.desc(), ChatRequest.id.desc())
    )

    entries = []
    for request, match in result.all():
        sender = await db.get(User, request.from_user)
        if sender is None:
            continue
        entries.append(
            {
                "request_id": request.id,
                "match_id": request.match_id,
                "session_id": match.chat_session_id,
                "created_at": request.created_at,
                "from_user": profile_snapshot(sender),
            }
        )
    return entries


async def accept(db: AsyncSession, request_id: int, user: User) -> dict[str, int]:
    """
    Accept a pending request: open an extended session and relink the match.

    Raises:
        NotFound: If the request or its match does not exist
        Unauthorized: Unless the caller is the addressee
        Conflict: If the request is not pending or the pair already has an active chat
        AlreadyInActiveSession: If either user is still in another unresolved session
    """
    request = await _load_addressed(db, request_id, user)

    match = await db.get(Match, request.match_id)
    if match is None:
        raise NotFound("Match not found")

    if await find_active_pair_session(db, request.from_user, request.to_user) is not None:
        raise Conflict("You already have an active chat with this person")

    if await find_open_session(db, user.id) is not None:
        raise AlreadyInActiveSession("Finish your current chat before reopening this one.")
    if await find_open_session(db, request.from_user) is not None:
        raise AlreadyInActiveSession("The other person is in another chat right now.")

    # Neither participant keeps waiting in the queue once the chat is reopened
    await db.execute(
        update(User).where(User.id.in_([request.from_user, request.to_user])).values(in_queue=False)
    )
    chat_session = open_session(db, request.from_user, request.to_user, phase=PHASE_EXTENDED, origin="request")
    await db.flush()

    match.chat_session_id = chat_session.id
    request.status = REQUEST_ACCEPTED
    request.responded_at = utcnow()
    await db.commit()

    chat_requests_total.labels(action="accepted").inc()
    logger.info(f"Chat request {request_id} accepted, session {chat_session.id} opened for match {match.id}")

    await notifier.request_changed(request.id, request.status, request.from_user, request.to_user)
    await notifier.session_updated(chat_session, "reopened")
    return {"session_id": chat_session.id}


async def decline(db: AsyncSession, request_id: int, user: User) -> dict[str, bool]:
    """Decline a pending request. No session is created."""
    request = await _load_addressed(db, request_id, user)

    request.status = REQUEST_DECLINED
    request.responded_at = utcnow()
    await db.commit()

    chat_requests_total.labels(action="declined").inc()
    logger.info(f"Chat request {request_id} declined by user {user.id}")
    await notifier.request_changed(request.id, request.status, request.from_user, request.to_user)
    return {"success": True}
