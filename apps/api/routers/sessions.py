"""Chat session endpoints: decisions, skip votes, messages, typing and leaving."""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.deps import get_caller, get_db, get_existing_caller
from core.config import settings
from models import User
from services import decisions, messages

router = APIRouter()


class DecisionRequest(BaseModel):
    """Continue-or-end decision after speed dating."""

    wants_to_continue: bool


class SendMessageRequest(BaseModel):
    """New chat message."""

    # Length is enforced by the message store; this only bounds the request body
    content: str = Field(..., max_length=settings.message_max_length * 2)


class TypingRequest(BaseModel):
    """Typing indicator update."""

    is_typing: bool


@router.post("/{session_id}/decision")
async def make_decision(
    session_id: int,
    body: DecisionRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_caller),
) -> dict[str, Any]:
    """Record the caller's decision; resolves the session once both decided."""
    return await decisions.make_decision(db, session_id, user, body.wants_to_continue)


@router.post("/{session_id}/skip")
async def skip_to_reveal(
    session_id: int, db: AsyncSession = Depends(get_db), user: User = Depends(get_caller)
) -> dict[str, Any]:
    """Vote to skip the speed dating timer."""
    return await decisions.skip_to_reveal(db, session_id, user)


@router.post("/{session_id}/leave")
async def leave_chat(
    session_id: int, db: AsyncSession = Depends(get_db), user: User = Depends(get_caller)
) -> dict[str, bool]:
    """End the chat and erase its messages."""
    return await messages.leave_chat(db, session_id, user)


@router.post("/{session_id}/messages")
async def send_message(
    session_id: int,
    body: SendMessageRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_caller),
) -> dict[str, Any]:
    """Send a message to the session."""
    return await messages.send(db, session_id, user, body.content)


@router.get("/{session_id}/messages")
async def list_messages(
    session_id: int, db: AsyncSession = Depends(get_db), user: User = Depends(get_existing_caller)
) -> dict[str, Any]:
    """Recent messages, session state and counterpart for the chat screen."""
    return await messages.list_messages(db, session_id, user)


@router.post("/{session_id}/typing")
async def set_typing(
    session_id: int,
    body: TypingRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_existing_caller),
) -> dict[str, bool]:
    """Update the caller's typing indicator."""
    return await messages.set_typing(db, session_id, user, body.is_typing)
