"""Queue endpoints: join, leave and pairing status."""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.deps import get_caller, get_db
from core.auth import Identity, identity_auth
from models import User
from services import queue, users

router = APIRouter()


@router.post("/join")
async def join_queue(db: AsyncSession = Depends(get_db), user: User = Depends(get_caller)) -> dict[str, Any]:
    """Join the queue; pairs immediately if someone is waiting."""
    return await queue.join(db, user)


@router.post("/leave")
async def leave_queue(db: AsyncSession = Depends(get_db), user: User = Depends(get_caller)) -> dict[str, bool]:
    """Leave the queue."""
    return await queue.leave(db, user)


@router.get("/status")
async def queue_status(
    db: AsyncSession = Depends(get_db), identity: Identity = Depends(identity_auth)
) -> dict[str, Any]:
    """
    Queue and pairing state for the caller.

    Never fails for an authenticated caller without a directory record; returns
    user_exists=false instead so the client can keep waiting for the sync.
    """
    user = await users.get_current(db, identity)
    return await queue.status(db, user)
