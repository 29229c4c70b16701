"""Chat request model for reopening a chat with a past match."""

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base, BigIntPK, utcnow

REQUEST_PENDING = "pending"
REQUEST_ACCEPTED = "accepted"
REQUEST_DECLINED = "declined"


class ChatRequest(Base):
    """Request from one matched user to reopen a chat with the other."""

    __tablename__ = "chat_requests"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    from_user: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    to_user: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    match_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=REQUEST_PENDING)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("status IN ('pending','accepted','declined')", name="chk_request_status"),
        Index("idx_requests_to_user_status", "to_user", "status"),
        # At most one pending request per match
        Index(
            "uq_request_pending_per_match",
            "match_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<ChatRequest(id={self.id}, from={self.from_user}, to={self.to_user}, status={self.status})>"
