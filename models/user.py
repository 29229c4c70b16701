from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base, BigIntPK, utcnow

GENDERS = ("male", "female", "other")
GENDER_PREFERENCES = ("male", "female", "both")


class User(Base):
    """Directory record for an identity provider subject."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    subject: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    in_queue: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)

    # Profile (edited by the owner, revealed after a match)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gender: Mapped[str | None] = mapped_column(String(16), nullable=True)  # male, female, other
    gender_preference: Mapped[str | None] = mapped_column(String(16), nullable=True)  # male, female, both
    bio: Mapped[str | None] = mapped_column(String(500), nullable=True)
    photos: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, subject={self.subject}, in_queue={self.in_queue})>"
