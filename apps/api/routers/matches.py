"""Match history endpoints."""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.deps import get_db, get_existing_caller
from models import User
from services import ledger

router = APIRouter()


@router.get("")
async def list_matches(
    db: AsyncSession = Depends(get_db), user: User = Depends(get_existing_caller)
) -> list[dict[str, Any]]:
    """The caller's matches, newest first."""
    return await ledger.list_matches(db, user)


@router.get("/{match_id}/request-status")
async def request_status(
    match_id: int, db: AsyncSession = Depends(get_db), user: User = Depends(get_existing_caller)
) -> dict[str, Any]:
    """Whether a chat request is pending for this match, and who sent it."""
    return await ledger.request_status(db, match_id, user)
