"""Notification model for the inbox system."""

import uuid

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from agrisocial.database import Base

RECIPIENT_ROLES = ("farmer", "expert")
NOTIFICATION_TYPES = ("new_submission", "status_update", "new_message", "expert_response")
RESOURCE_TYPES = ("submission", "conversation")


class Notification(Base):
    """
    User notification model.

    The resource reference is a plain id with no foreign key: deleting the
    referenced submission or conversation leaves the notification alone.
    """

    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    recipient_role = Column(String(16), nullable=False)
    notification_type = Column(String(32), nullable=False)
    title = Column(Text, nullable=False)
    body = Column(Text, nullable=False)
    resource_type = Column(String(32))  # "submission" or "conversation"
    resource_id = Column(Uuid)
    payload = Column(JSON().with_variant(JSONB(), "postgresql"), default=dict)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
    read_at = Column(TIMESTAMP(timezone=True))

    __table_args__ = (
        CheckConstraint("recipient_role IN ('farmer', 'expert')", name="ck_notifications_role"),
        CheckConstraint(
            "notification_type IN ('new_submission', 'status_update', 'new_message', 'expert_response')",
            name="ck_notifications_type",
        ),
        Index("idx_notifications_recipient", "user_id", "recipient_role", "created_at"),
    )

    user = relationship("User", foreign_keys=[user_id])

    @property
    def read(self) -> bool:
        return self.read_at is not None
