from datetime import datetime

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base, BigIntPK, utcnow

PHASE_SPEED_DATING = "speed_dating"
PHASE_EXTENDED = "extended"

STATUS_ACTIVE = "active"
STATUS_WAITING_REVEAL = "waiting_reveal"
STATUS_ENDED = "ended"


class ChatSession(Base):
    """One pairing between two users, from speed dating to the end of the chat."""

    __tablename__ = "chat_sessions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_a: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_b: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Ordered pair for symmetric lookups: u_lo = min(user_a, user_b), u_hi = max(user_a, user_b)
    u_lo: Mapped[int] = mapped_column(BigInteger, nullable=False)
    u_hi: Mapped[int] = mapped_column(BigInteger, nullable=False)
    phase: Mapped[str] = mapped_column(String(16), nullable=False, default=PHASE_SPEED_DATING)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_ACTIVE, index=True)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    ends_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)  # speed dating deadline
    ended_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    a_wants_continue: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=None)
    b_wants_continue: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=None)
    a_wants_skip: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    b_wants_skip: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("user_a <> user_b", name="chk_session_no_self"),
        CheckConstraint("phase IN ('speed_dating','extended')", name="chk_session_phase"),
        CheckConstraint("status IN ('active','waiting_reveal','ended')", name="chk_session_status"),
        # At most one active session per pair
        Index(
            "idx_session_pair_active",
            "u_lo",
            "u_hi",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    def is_participant(self, user_id: int) -> bool:
        return user_id in (self.user_a, self.user_b)

    def counterpart_of(self, user_id: int) -> int:
        return self.user_b if user_id == self.user_a else self.user_a

    @property
    def skip_count(self) -> int:
        return int(bool(self.a_wants_skip)) + int(bool(self.b_wants_skip))

    def __repr__(self) -> str:
        return f"<ChatSession(id={self.id}, phase={self.phase}, status={self.status})>"
