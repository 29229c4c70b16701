"""Profile endpoints for the calling user."""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.deps import get_caller, get_db
from models import User
from services import users

router = APIRouter()


class ProfileUpdate(BaseModel):
    """Partial profile update; omitted fields are left unchanged."""

    age: int | None = None
    gender: str | None = None  # male, female, other
    gender_preference: str | None = None  # male, female, both
    bio: str | None = None
    photos: list[str] | None = Field(default=None, description="Photo references from the storage collaborator")


def _me(user: User) -> dict[str, Any]:
    return {
        **users.profile_snapshot(user),
        "email": user.email,
        "image_url": user.image_url,
        "gender_preference": user.gender_preference,
        "in_queue": user.in_queue,
    }


@router.get("/me")
async def get_me(db: AsyncSession = Depends(get_db), user: User = Depends(get_caller)) -> dict[str, Any]:
    """Current user's profile; creates the directory record on first call."""
    await db.commit()
    return _me(user)


@router.patch("/me")
async def update_me(
    body: ProfileUpdate, db: AsyncSession = Depends(get_db), user: User = Depends(get_caller)
) -> dict[str, Any]:
    """Update the current user's profile."""
    user = await users.update_profile(db, user, body.model_dump(exclude_unset=True))
    return _me(user)
