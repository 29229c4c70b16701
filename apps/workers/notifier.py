"""Notification service publishing change events to live subscribers.

Every committed mutation publishes a small JSON event on Redis pub/sub channels
keyed by the affected entity, so subscribers (the presentation layer's realtime
gateway) can re-run their queries without polling.

Channels:
- ``session:{id}``: state of one chat session changed (status, votes, messages)
- ``user:{id}``: something addressed to one user changed (queue, matches, requests)
"""

import json
import logging
from typing import Any

from core.redis import get_redis, session_channel, user_channel
from models import ChatSession

logger = logging.getLogger(__name__)


class Notifier:
    """Service for publishing change notifications."""

    async def publish(self, channel: str, event: str, **payload: Any) -> bool:
        """
        Publish one event on a channel.

        Args:
            channel: Redis channel name
            event: Event type, e.g. "session.updated"
            **payload: JSON-serialisable event fields

        Returns:
            True if published successfully
        """
        try:
            redis = await get_redis()
            await redis.publish(channel, json.dumps({"event": event, **payload}, default=str))
            return True
        except Exception as e:
            # The transaction is already committed; subscribers resync on their next query
            logger.error(f"Failed to publish {event} on {channel}: {e}")
            return False

    async def session_updated(self, session: ChatSession, reason: str) -> None:
        """Notify the session channel and both participants."""
        payload = {
            "session_id": session.id,
            "status": session.status,
            "phase": session.phase,
            "reason": reason,
        }
        await self.publish(session_channel(session.id), "session.updated", **payload)
        for user_id in (session.user_a, session.user_b):
            await self.publish(user_channel(user_id), "session.updated", **payload)

    async def messages_changed(self, session_id: int) -> None:
        await self.publish(session_channel(session_id), "messages.changed", session_id=session_id)

    async def typing_changed(self, session_id: int, user_id: int, is_typing: bool) -> None:
        await self.publish(
            session_channel(session_id), "typing.changed", session_id=session_id, user_id=user_id, is_typing=is_typing
        )

    async def queue_changed(self, user_id: int, in_queue: bool) -> None:
        await self.publish(user_channel(user_id), "queue.changed", user_id=user_id, in_queue=in_queue)

    async def match_created(self, match_id: int, user_a: int, user_b: int) -> None:
        for user_id in (user_a, user_b):
            await self.publish(user_channel(user_id), "match.created", match_id=match_id)

    async def request_changed(self, request_id: int, status: str, *user_ids: int) -> None:
        for user_id in user_ids:
            await self.publish(user_channel(user_id), "request.changed", request_id=request_id, status=status)


# Global notifier instance
notifier = Notifier()
