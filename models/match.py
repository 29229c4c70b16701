from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base, BigIntPK, utcnow


class Match(Base):
    """Durable record of a mutual-continue outcome."""

    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_a: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_b: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Ordered pair for deduplication: u_lo = min(user_a, user_b), u_hi = max(user_a, user_b)
    u_lo: Mapped[int] = mapped_column(BigInteger, nullable=False)
    u_hi: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Repointed when a chat request reopens a session between the pair
    chat_session_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("chat_sessions.id", ondelete="CASCADE"), nullable=False
    )
    matched_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("user_a <> user_b", name="chk_match_no_self"),
        Index("idx_match_pair", "u_lo", "u_hi"),
    )

    def is_participant(self, user_id: int) -> bool:
        return user_id in (self.user_a, self.user_b)

    def counterpart_of(self, user_id: int) -> int:
        return self.user_b if user_id == self.user_a else self.user_a

    def __repr__(self) -> str:
        return f"<Match(id={self.id}, user_a={self.user_a}, user_b={self.user_b}, session={self.chat_session_id})>"
