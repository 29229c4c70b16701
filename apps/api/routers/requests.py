"""Chat request endpoints for reconnecting with past matches."""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.deps import get_caller, get_db, get_existing_caller
from models import User
from services import chat_requests

router = APIRouter()


class SendRequestIn(BaseModel):
    """Request to reopen a chat with a past match."""

    match_id: int


@router.post("")
async def send_request(
    body: SendRequestIn, db: AsyncSession = Depends(get_db), user: User = Depends(get_caller)
) -> dict[str, int]:
    """Send a chat request to the other participant of a match."""
    return await chat_requests.send(db, body.match_id, user)


@router.get("/pending")
async def list_pending(
    db: AsyncSession = Depends(get_db), user: User = Depends(get_existing_caller)
) -> list[dict[str, Any]]:
    """Pending requests addressed to the caller."""
    return await chat_requests.list_pending(db, user)


@router.post("/{request_id}/accept")
async def accept_request(
    request_id: int, db: AsyncSession = Depends(get_db), user: User = Depends(get_caller)
) -> dict[str, int]:
    """Accept a request; returns the new session."""
    return await chat_requests.accept(db, request_id, user)


@router.post("/{request_id}/decline")
async def decline_request(
    request_id: int, db: AsyncSession = Depends(get_db), user: User = Depends(get_caller)
) -> dict[str, bool]:
    """Decline a request."""
    return await chat_requests.decline(db, request_id, user)
