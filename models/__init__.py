"""Database models."""

from models.chat import ChatSession
from models.chat_request import ChatRequest
from models.match import Match
from models.message import Message
from models.user import User

__all__ = [
    "User",
    "ChatSession",
    "Match",
    "ChatRequest",
    "Message",
]
