"""Profile store: user lookup, registration and derived follow sets."""

import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agrisocial.auth.api_key import issue_api_key
from agrisocial.database import commit_or_raise
from agrisocial.errors import Conflict, NotFound, ValidationFailed
from agrisocial.models.follow import Follow
from agrisocial.models.user import USER_ROLES, APIKey, User
from agrisocial.timestamps import utcnow

logger = logging.getLogger(__name__)

# Roles a user may pick for themselves at sign-up. Experts are granted.
SELF_ASSIGNABLE_ROLES = ("farmer", "user")

PROFILE_FIELDS = ("display_name", "avatar_url", "region", "specialization")


@dataclass
class UserProfile:
    """A user together with both adjacency sets of the follow graph."""

    user: User
    followers: set[UUID] = field(default_factory=set)
    following: set[UUID] = field(default_factory=set)


class ProfileService:
    """Service for reading and creating user profiles."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: UUID) -> User:
        """Return the user or raise NotFound."""
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFound(f"User '{user_id}' not found")
        return user

    async def get_user_by_username(self, username: str) -> User:
        result = await self.db.execute(select(User).where(User.username == username))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFound(f"User '{username}' not found")
        return user

    async def require_users(self, *user_ids: UUID) -> dict[UUID, User]:
        """Load several users at once, raising NotFound for the first missing id."""
        result = await self.db.execute(select(User).where(User.id.in_(set(user_ids))))
        users = {user.id: user for user in result.scalars().all()}
        for user_id in user_ids:
            if user_id not in users:
                raise NotFound(f"User '{user_id}' not found")
        return users

    async def follower_ids(self, user_id: UUID) -> set[UUID]:
        result = await self.db.execute(
            select(Follow.follower_id).where(Follow.followed_id == user_id)
        )
        return set(result.scalars().all())

    async def following_ids(self, user_id: UUID) -> set[UUID]:
        result = await self.db.execute(
            select(Follow.followed_id).where(Follow.follower_id == user_id)
        )
        return set(result.scalars().all())

    async def get_profile(self, user_id: UUID) -> UserProfile:
        """Return the profile with its followers and following sets."""
        user = await self.get_user(user_id)
        return UserProfile(
            user=user,
            followers=await self.follower_ids(user.id),
            following=await self.following_ids(user.id),
        )

    async def register(
        self,
        username: str,
        email: str,
        display_name: str,
        role: str = "user",
        avatar_url: str | None = None,
        region: str | None = None,
    ) -> tuple[User, str]:
        """
        Create a profile on first sign-in together with its first API key.

        Returns:
            Tuple of (user, plaintext_api_key). The plaintext key is only
            available here.
        """
        if role not in USER_ROLES:
            raise ValidationFailed(f"Unknown role '{role}'")
        if role not in SELF_ASSIGNABLE_ROLES:
            raise ValidationFailed(f"Role '{role}' cannot be chosen at sign-up")

        existing = await self.db.execute(
            select(User.id).where((User.username == username) | (User.email == email.lower()))
        )
        if existing.first() is not None:
            raise Conflict("Username or email already exists")

        user = User(
            username=username,
            email=email.lower(),
            display_name=display_name,
            role=role,
            avatar_url=avatar_url,
            region=region,
            created_at=utcnow(),
        )
        self.db.add(user)
        await self.db.flush()

        issued = issue_api_key()
        self.db.add(
            APIKey(
                user_id=user.id,
                key_hash=issued.key_hash,
                key_prefix=issued.display_prefix,
                name="Initial key",
            )
        )

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("Username or email already exists")

        logger.info(f"Registered {role} profile {user.username} ({user.id})")
        return user, issued.plaintext

    async def update_profile(self, user: User, changes: dict) -> User:
        """Apply profile field changes; display_name cannot be blanked."""
        for key, value in changes.items():
            if key not in PROFILE_FIELDS:
                raise ValidationFailed(f"Field '{key}' cannot be updated")
            if key == "display_name" and not (value or "").strip():
                raise ValidationFailed("Display name cannot be empty")
            setattr(user, key, value)
        await commit_or_raise(self.db, "profile update")
        return user

    async def grant_role(
        self,
        user_id: UUID,
        role: str,
        specialization: str | None = None,
    ) -> User:
        """
        Set a profile's role from an operator path.

        This is how experts come to exist; registration never grants it.
        Specialization is kept only for experts.
        """
        if role not in USER_ROLES:
            raise ValidationFailed(f"Unknown role '{role}'")

        user = await self.get_user(user_id)
        previous = user.role
        user.role = role
        if role == "expert":
            if specialization is not None:
                user.specialization = specialization
        else:
            user.specialization = None
        await commit_or_raise(self.db, "role grant")

        logger.info(f"Role of {user.username} ({user.id}) changed from {previous} to {role}")
        return user
