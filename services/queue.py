"""Queue manager: admits users to the waiting pool and pairs them.

Pairing uses a claim-first, verify-second protocol. The chosen candidate's
queue flag is cleared with a conditional UPDATE before anything else is
checked, so no third joiner can claim the same candidate. Only then is the
candidate checked for an active session; if one exists, a concurrent joiner
already paired them, the candidate is left alone and the caller is queued
instead.
"""

import logging
from typing import Any

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from apps.workers.notifier import notifier
from core.errors import AlreadyInActiveSession
from core.metrics import match_queue_size, pairing_claim_conflicts_total, queue_joins_total, queue_leaves_total
from models import User
from models.chat import PHASE_SPEED_DATING
from services.sessions import find_active_session, find_open_session, open_session

logger = logging.getLogger(__name__)


async def _waiting_candidates(db: AsyncSession, user_id: int) -> list[int]:
    """Queue members other than the caller, oldest account first."""
    result = await db.execute(
        select(User.id).where(and_(User.in_queue.is_(True), User.id != user_id)).order_by(User.id)
    )
    return list(result.scalars().all())


async def _claim(db: AsyncSession, candidate_id: int) -> bool:
    """Take a candidate out of the queue; False if someone else got there first."""
    result = await db.execute(
        update(User).where(and_(User.id == candidate_id, User.in_queue.is_(True))).values(in_queue=False)
    )
    return result.rowcount == 1


async def _refresh_queue_gauge(db: AsyncSession) -> None:
    result = await db.execute(select(func.count(User.id)).where(User.in_queue.is_(True)))
    match_queue_size.set(result.scalar() or 0)


async def _enqueue(db: AsyncSession, user: User, outcome: str) -> dict[str, Any]:
    user.in_queue = True
    await db.commit()

    queue_joins_total.labels(outcome=outcome).inc()
    await _refresh_queue_gauge(db)
    await notifier.queue_changed(user.id, True)
    return {"matched": False, "session_id": None}


async def join(db: AsyncSession, user: User) -> dict[str, Any]:
    """
    Join the queue, pairing with a waiting user if there is one.

    Args:
        db: Database session
        user: Resolved caller

    Returns:
        {"matched": True, "session_id": id} when paired,
        {"matched": False, "session_id": None} when queued (including race re-queue)

    Raises:
        AlreadyInActiveSession: If the caller still has an active session or one waiting for the reveal
    """
    if await find_open_session(db, user.id) is not None:
        logger.warning(f"User {user.id} tried to join the queue while in an unresolved session")
        raise AlreadyInActiveSession(
            "You are already in an active chat session. Leave it before finding a new match."
        )

    candidates = await _waiting_candidates(db, user.id)
    if not candidates:
        logger.info(f"No one waiting, user {user.id} queued")
        return await _enqueue(db, user, "queued")

    # Claim first
    claimed_id = None
    for candidate_id in candidates:
        if await _claim(db, candidate_id):
            claimed_id = candidate_id
            break
        pairing_claim_conflicts_total.labels(stage="claim").inc()

    if claimed_id is None:
        logger.info(f"Every candidate was claimed concurrently, user {user.id} queued")
        return await _enqueue(db, user, "requeued")

    # Verify second: a concurrent joiner may have paired the candidate already
    if await find_open_session(db, claimed_id) is not None:
        pairing_claim_conflicts_total.labels(stage="verify").inc()
        logger.info(f"Candidate {claimed_id} already paired elsewhere, user {user.id} re-queued")
        return await _enqueue(db, user, "requeued")

    user.in_queue = False
    chat_session = open_session(db, user.id, claimed_id, phase=PHASE_SPEED_DATING, origin="queue")
    await db.commit()

    queue_joins_total.labels(outcome="matched").inc()
    logger.info(f"Paired users {user.id} and {claimed_id} in session {chat_session.id}")

    await _refresh_queue_gauge(db)
    await notifier.session_updated(chat_session, "paired")
    return {"matched": True, "session_id": chat_session.id}


async def leave(db: AsyncSession, user: User) -> dict[str, bool]:
    """Leave the queue. Idempotent."""
    was_queued = user.in_queue
    user.in_queue = False
    await db.commit()

    queue_leaves_total.inc()
    await _refresh_queue_gauge(db)
    if was_queued:
        await notifier.queue_changed(user.id, False)
    return {"success": True}


async def status(db: AsyncSession, user: User | None) -> dict[str, Any]:
    """
    Report queue and pairing state.

    An unknown user gets a default shape instead of an error so clients can
    tell "still syncing" apart from a real failure.
    """
    if user is None:
        return {"user_exists": False, "in_queue": False, "matched": False, "session_id": None}

    active = await find_active_session(db, user.id)
    if active is not None:
        return {"user_exists": True, "in_queue": False, "matched": True, "session_id": active.id}

    return {"user_exists": True, "in_queue": user.in_queue, "matched": False, "session_id": None}
