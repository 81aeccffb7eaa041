"""User profile and APIKey models."""

import uuid

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    String,
    Text,
    Uuid,
    false,
    func,
)
from sqlalchemy.orm import relationship

from agrisocial.database import Base

USER_ROLES = ("admin", "moderator", "farmer", "user", "expert")


class User(Base):
    """
    User profile.

    The followers/following sets are not stored here; they are derived
    from the follows edge table so both directions always agree.
    """

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(32), unique=True, nullable=False)
    email = Column(String, unique=True, nullable=False)
    display_name = Column(Text, nullable=False)
    role = Column(String(16), nullable=False, server_default="user")
    avatar_url = Column(Text)
    region = Column(Text)
    specialization = Column(Text)  # experts only
    is_verified = Column(Boolean, nullable=False, server_default=false())
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    last_seen_at = Column(TIMESTAMP(timezone=True))

    __table_args__ = (
        CheckConstraint(
            "role IN ('admin', 'moderator', 'farmer', 'user', 'expert')",
            name="ck_users_role",
        ),
    )

    api_keys = relationship("APIKey", back_populates="user", cascade="all, delete-orphan")


class APIKey(Base):
    """API key model for client authentication."""

    __tablename__ = "api_keys"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    key_hash = Column(Text, nullable=False, unique=True)
    key_prefix = Column(String(12), nullable=False)
    name = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    last_used_at = Column(TIMESTAMP(timezone=True))
    expires_at = Column(TIMESTAMP(timezone=True))
    revoked_at = Column(TIMESTAMP(timezone=True))

    user = relationship("User", back_populates="api_keys")
