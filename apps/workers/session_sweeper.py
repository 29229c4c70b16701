"""Session sweeper: server-side enforcement of the speed dating deadline.

Clients normally surface the decision prompt themselves once ``ends_at``
passes. When ``SESSION_SWEEP_ENABLED`` is set, this worker also moves active
speed dating sessions whose deadline (plus a grace period) has passed into
``waiting_reveal``, so abandoned sessions stop counting as active.
"""

import asyncio
import logging
from datetime import timedelta

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from apps.workers.notifier import notifier
from core.config import settings
from core.db import AsyncSessionLocal, utcnow
from core.metrics import sessions_swept_total
from models import ChatSession
from models.chat import PHASE_SPEED_DATING, STATUS_ACTIVE, STATUS_WAITING_REVEAL

logger = logging.getLogger(__name__)


class SessionSweeper:
    """Worker that periodically moves expired speed dating sessions to reveal."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal) -> None:
        self.session_factory = session_factory
        self.running = False

    async def start(self) -> None:
        """Run sweeps until stopped."""
        self.running = True
        logger.info(f"Session sweeper started, interval={settings.session_sweep_interval_seconds}s")

        while self.running:
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("Error in session sweeper loop")
            await asyncio.sleep(settings.session_sweep_interval_seconds)

    async def stop(self) -> None:
        """Stop the sweeper after the current iteration."""
        self.running = False

    async def sweep_once(self) -> list[int]:
        """
        Move every overdue speed dating session to waiting_reveal.

        Returns:
            IDs of the sessions that were moved
        """
        cutoff = utcnow() - timedelta(seconds=settings.session_sweep_grace_seconds)

        async with self.session_factory() as db:
            result = await db.execute(
                select(ChatSession)
                .where(
                    and_(
                        ChatSession.phase == PHASE_SPEED_DATING,
                        ChatSession.status == STATUS_ACTIVE,
                        ChatSession.ends_at.is_not(None),
                        ChatSession.ends_at < cutoff,
                    )
                )
                .with_for_update(skip_locked=True)
            )
            overdue = list(result.scalars().all())

            for chat_session in overdue:
                chat_session.status = STATUS_WAITING_REVEAL
            await db.commit()

        for chat_session in overdue:
            await notifier.session_updated(chat_session, "timer_expired")

        if overdue:
            sessions_swept_total.inc(len(overdue))
            logger.info(f"Swept {len(overdue)} expired speed dating sessions")
        return [s.id for s in overdue]


async def main() -> None:
    """Run session sweeper."""
    logging.basicConfig(level=logging.INFO)
    if not settings.session_sweep_enabled:
        logger.info("Session sweeper disabled (SESSION_SWEEP_ENABLED=false), exiting")
        return

    sweeper = SessionSweeper()
    try:
        await sweeper.start()
    except KeyboardInterrupt:
        await sweeper.stop()


if __name__ == "__main__":
    asyncio.run(main())
