"""Follow edge model for the social graph."""

from sqlalchemy import TIMESTAMP, CheckConstraint, Column, ForeignKey, Index, Uuid, func

from agrisocial.database import Base


class Follow(Base):
    """
    One directed follow relation.

    follower_id follows followed_id. A user's `following` set is every row
    where they are the follower, their `followers` set every row where they
    are followed, so a single row serves both adjacency lists.
    """

    __tablename__ = "follows"

    follower_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    followed_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("follower_id <> followed_id", name="ck_follows_not_self"),
        Index("idx_follows_followed", "followed_id"),
    )
