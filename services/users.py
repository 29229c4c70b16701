"""User directory: identity resolution, profiles, and lifecycle cascades."""

import logging
from typing import Any

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import Identity
from core.db import utcnow
from core.errors import NotFound, ValidationError
from core.metrics import users_created_total
from models import ChatRequest, ChatSession, Match, Message, User
from models.user import GENDER_PREFERENCES, GENDERS

logger = logging.getLogger(__name__)

BIO_MAX_LENGTH = 500
MAX_PHOTOS = 6
MIN_AGE = 18
MAX_AGE = 120


def display_name(identity: Identity) -> str:
    """Pick a display name, preferring the username."""
    return identity.username or identity.name or "User"


def profile_snapshot(user: User) -> dict[str, Any]:
    """Profile attributes shown to a revealed counterpart."""
    return {
        "id": user.id,
        "name": user.name,
        "age": user.age,
        "gender": user.gender,
        "bio": user.bio,
        "photos": list(user.photos or []),
    }


async def get_by_subject(db: AsyncSession, subject: str) -> User | None:
    result = await db.execute(select(User).where(User.subject == subject))
    return result.scalar_one_or_none()


async def get_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_current(db: AsyncSession, identity: Identity) -> User | None:
    """Directory record for an identity, without creating one."""
    return await get_by_subject(db, identity.subject)


async def get_or_create(db: AsyncSession, identity: Identity) -> User:
    """
    Resolve the directory record for an identity, creating it if missing.

    The identity webhook may not have fired yet when a freshly signed-up user
    makes their first call, so every mutating entry point goes through here.
    The new row is flushed but not committed; the caller's transaction owns it.
    """
    user = await get_by_subject(db, identity.subject)
    if user is not None:
        return user

    user = User(
        subject=identity.subject,
        email=identity.email or "",
        name=display_name(identity),
        image_url=identity.image_url,
        in_queue=False,
        photos=[],
    )
    db.add(user)
    await db.flush()

    users_created_total.labels(source="request").inc()
    logger.info(f"User created on first request: subject={identity.subject}, id={user.id}")
    return user


async def require_user(db: AsyncSession, identity: Identity) -> User:
    """Resolve an existing directory record or fail with NotFound."""
    user = await get_by_subject(db, identity.subject)
    if user is None:
        raise NotFound("User not found")
    return user


def _validate_profile(changes: dict[str, Any]) -> None:
    age = changes.get("age")
    if age is not None and not MIN_AGE <= age <= MAX_AGE:
        raise ValidationError(f"Age must be between {MIN_AGE} and {MAX_AGE}")

    gender = changes.get("gender")
    if gender is not None and gender not in GENDERS:
        raise ValidationError(f"Invalid gender. Must be one of: {GENDERS}")

    preference = changes.get("gender_preference")
    if preference is not None and preference not in GENDER_PREFERENCES:
        raise ValidationError(f"Invalid gender preference. Must be one of: {GENDER_PREFERENCES}")

    bio = changes.get("bio")
    if bio is not None and len(bio) > BIO_MAX_LENGTH:
        raise ValidationError(f"Bio must be at most {BIO_MAX_LENGTH} characters")

    photos = changes.get("photos")
    if photos is not None and len(photos) > MAX_PHOTOS:
        raise ValidationError(f"At most {MAX_PHOTOS} photos allowed")


async def update_profile(db: AsyncSession, user: User, changes: dict[str, Any]) -> User:
    """Apply a validated partial profile update and commit."""
    _validate_profile(changes)

    for field in ("age", "gender", "gender_preference", "bio", "photos"):
        if field in changes:
            setattr(user, field, changes[field])
    user.updated_at = utcnow()

    await db.commit()
    logger.info(f"Profile updated: user={user.id}, fields={sorted(changes)}")
    return user


async def upsert_from_identity(db: AsyncSession, identity: Identity) -> User:
    """Create or refresh a directory record from an identity webhook event."""
    user = await get_by_subject(db, identity.subject)

    if user is None:
        user = User(
            subject=identity.subject,
            email=identity.email or "",
            name=display_name(identity),
            image_url=identity.image_url,
            in_queue=False,
            photos=[],
        )
        db.add(user)
        users_created_total.labels(source="webhook").inc()
    else:
        user.email = identity.email or user.email
        user.name = display_name(identity)
        user.image_url = identity.image_url
        user.updated_at = utcnow()

    await db.commit()
    return user


async def delete_from_identity(db: AsyncSession, subject: str) -> bool:
    """
    Delete a user and every entity that references them.

    Returns:
        False if the subject has no directory record
    """
    user = await get_by_subject(db, subject)
    if user is None:
        logger.info(f"Delete requested for unknown subject {subject}, nothing to do")
        return False

    session_ids = select(ChatSession.id).where(or_(ChatSession.user_a == user.id, ChatSession.user_b == user.id))
    match_ids = select(Match.id).where(or_(Match.user_a == user.id, Match.user_b == user.id))

    messages = await db.execute(
        delete(Message)
        .where(or_(Message.sender_id == user.id, Message.chat_session_id.in_(session_ids)))
        .execution_options(synchronize_session=False)
    )
    requests = await db.execute(
        delete(ChatRequest)
        .where(
            or_(
                ChatRequest.from_user == user.id,
                ChatRequest.to_user == user.id,
                ChatRequest.match_id.in_(match_ids),
            )
        )
        .execution_options(synchronize_session=False)
    )
    matches = await db.execute(
        delete(Match)
        .where(or_(Match.user_a == user.id, Match.user_b == user.id))
        .execution_options(synchronize_session=False)
    )
    sessions = await db.execute(
        delete(ChatSession)
        .where(or_(ChatSession.user_a == user.id, ChatSession.user_b == user.id))
        .execution_options(synchronize_session=False)
    )
    await db.delete(user)
    await db.commit()

    logger.info(
        f"Deleted user {subject}: messages={messages.rowcount}, requests={requests.rowcount}, "
        f"matches={matches.rowcount}, sessions={sessions.rowcount}"
    )
    return True
