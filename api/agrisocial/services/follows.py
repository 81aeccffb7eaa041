"""Follow graph manager."""

import logging
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agrisocial.database import commit_or_raise
from agrisocial.errors import ValidationFailed
from agrisocial.models.follow import Follow
from agrisocial.models.user import User
from agrisocial.services.profiles import ProfileService
from agrisocial.timestamps import utcnow

logger = logging.getLogger(__name__)


class FollowService:
    """
    Service for follow/unfollow between user profiles.

    Each relation is a single edge row, so one insert or delete updates the
    actor's following set and the target's followers set together.
    Both operations are idempotent.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.profiles = ProfileService(db)

    async def follow(self, actor_id: UUID, target_id: UUID) -> bool:
        """
        Make actor follow target.

        Returns:
            True if a new relation was created, False if it already existed.

        Raises:
            ValidationFailed: actor and target are the same user
            NotFound: either profile does not exist
            TransactionFailed: the write could not commit
        """
        if actor_id == target_id:
            raise ValidationFailed("You cannot follow yourself")
        await self.profiles.require_users(actor_id, target_id)

        if await self.is_following(actor_id, target_id):
            return False

        try:
            async with self.db.begin_nested():
                self.db.add(
                    Follow(follower_id=actor_id, followed_id=target_id, created_at=utcnow())
                )
        except IntegrityError:
            # A concurrent request created the same edge first
            logger.debug(f"Follow {actor_id} -> {target_id} already recorded")
            return False

        await commit_or_raise(self.db, "follow")
        return True

    async def unfollow(self, actor_id: UUID, target_id: UUID) -> bool:
        """
        Remove the actor -> target relation.

        Returns:
            True if a relation was removed, False if there was none.
        """
        if actor_id == target_id:
            raise ValidationFailed("You cannot unfollow yourself")
        await self.profiles.require_users(actor_id, target_id)

        result = await self.db.execute(
            delete(Follow).where(
                Follow.follower_id == actor_id,
                Follow.followed_id == target_id,
            )
        )
        await commit_or_raise(self.db, "unfollow")
        return (result.rowcount or 0) > 0

    async def is_following(self, actor_id: UUID, target_id: UUID) -> bool:
        result = await self.db.execute(
            select(Follow.follower_id).where(
                Follow.follower_id == actor_id,
                Follow.followed_id == target_id,
            )
        )
        return result.first() is not None

    async def list_followers(self, user_id: UUID) -> list[User]:
        """Users following user_id, most recent first."""
        await self.profiles.get_user(user_id)
        result = await self.db.execute(
            select(User)
            .join(Follow, Follow.follower_id == User.id)
            .where(Follow.followed_id == user_id)
            .order_by(Follow.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_following(self, user_id: UUID) -> list[User]:
        """Users that user_id follows, most recent first."""
        await self.profiles.get_user(user_id)
        result = await self.db.execute(
            select(User)
            .join(Follow, Follow.followed_id == User.id)
            .where(Follow.follower_id == user_id)
            .order_by(Follow.created_at.desc())
        )
        return list(result.scalars().all())
