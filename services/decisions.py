"""Chat session state machine: continue decisions and skip-to-reveal votes.

    active(speed_dating) --decision--> waiting_reveal --both true--> active(extended) + Match
                                                      --otherwise--> ended (messages erased)
    active(speed_dating) --both skip votes--> active(extended) + Match
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from apps.workers.notifier import notifier
from core.errors import InvalidPhase
from core.metrics import decisions_total, skip_votes_total
from models import User
from models.chat import PHASE_EXTENDED, PHASE_SPEED_DATING, STATUS_ACTIVE, STATUS_ENDED, STATUS_WAITING_REVEAL
from services.sessions import end_session, load_for_participant, record_match

logger = logging.getLogger(__name__)


async def make_decision(db: AsyncSession, session_id: int, user: User, wants_to_continue: bool) -> dict[str, Any]:
    """
    Record the caller's decision to continue or end the chat.

    Args:
        db: Database session
        session_id: Chat session ID
        user: Resolved caller
        wants_to_continue: Caller's choice

    Returns:
        {"both_decided", "match_created", "status", "phase"}

    Raises:
        NotFound: If the session does not exist
        Unauthorized: If the caller is not a participant
        InvalidPhase: If the session already ended or was already revealed
    """
    chat_session = await load_for_participant(db, session_id, user, lock=True)

    if chat_session.status == STATUS_ENDED or chat_session.phase == PHASE_EXTENDED:
        raise InvalidPhase("Decisions can only be made before the reveal")

    if user.id == chat_session.user_a:
        chat_session.a_wants_continue = wants_to_continue
    else:
        chat_session.b_wants_continue = wants_to_continue
    chat_session.status = STATUS_WAITING_REVEAL
    decisions_total.labels(choice="continue" if wants_to_continue else "end").inc()

    decision_a = chat_session.a_wants_continue
    decision_b = chat_session.b_wants_continue
    both_decided = decision_a is not None and decision_b is not None
    match = None

    if both_decided and decision_a and decision_b:
        match = await record_match(db, chat_session, path="decision")
    elif both_decided:
        await end_session(db, chat_session, reason="declined", dequeue=True)

    await db.commit()

    if match is not None:
        await notifier.match_created(match.id, match.user_a, match.user_b)
    await notifier.session_updated(chat_session, "decision")

    return {
        "both_decided": both_decided,
        "match_created": match is not None,
        "status": chat_session.status,
        "phase": chat_session.phase,
    }


async def skip_to_reveal(db: AsyncSession, session_id: int, user: User) -> dict[str, Any]:
    """
    Vote to skip the rest of speed dating and reveal profiles now.

    Voting twice counts once. When both participants voted, the match is
    created exactly as if both had decided to continue.

    Raises:
        NotFound: If the session does not exist
        Unauthorized: If the caller is not a participant
        InvalidPhase: Unless the session is still in speed dating with no decision recorded
    """
    chat_session = await load_for_participant(db, session_id, user, lock=True)

    if chat_session.phase != PHASE_SPEED_DATING or chat_session.status != STATUS_ACTIVE:
        raise InvalidPhase("Can only skip during speed dating, before anyone has decided")

    if user.id == chat_session.user_a:
        already_voted = chat_session.a_wants_skip
        chat_session.a_wants_skip = True
    else:
        already_voted = chat_session.b_wants_skip
        chat_session.b_wants_skip = True

    if not already_voted:
        skip_votes_total.inc()

    both_skipped = bool(chat_session.a_wants_skip and chat_session.b_wants_skip)
    match = None
    if both_skipped:
        match = await record_match(db, chat_session, path="skip")

    skip_count = chat_session.skip_count
    await db.commit()

    if match is not None:
        await notifier.match_created(match.id, match.user_a, match.user_b)
    await notifier.session_updated(chat_session, "skip_vote")

    return {"both_skipped": both_skipped, "match_created": match is not None, "skip_count": skip_count}
