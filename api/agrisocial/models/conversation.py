"""Conversation, participant and message models for direct messaging."""

from sqlalchemy import (
    TIMESTAMP,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship

from agrisocial.database import Base


class Conversation(Base):
    """
    Direct conversation between exactly two users.

    The primary key is derived from the sorted participant pair, so a pair
    can never own more than one conversation. The last_message_* columns are
    a cache of the newest message for inbox listings.
    """

    __tablename__ = "conversations"

    id = Column(Uuid, primary_key=True)
    user_low_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user_high_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    last_message_text = Column(Text, nullable=False)
    last_message_sender_id = Column(Uuid, nullable=False)
    last_message_at = Column(TIMESTAMP(timezone=True), nullable=False)
    message_count = Column(Integer, nullable=False, server_default=text("0"))
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_conversations_pair"),
        CheckConstraint("user_low_id <> user_high_id", name="ck_conversations_distinct"),
        Index("idx_conversations_last_message", "last_message_at"),
    )

    participants = relationship(
        "ConversationParticipant",
        back_populates="conversation",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.seq",
    )

    @property
    def participant_ids(self) -> tuple:
        return (self.user_low_id, self.user_high_id)

    def other_participant(self, user_id):
        """Return the id of the participant that is not user_id."""
        return self.user_high_id if user_id == self.user_low_id else self.user_low_id

    def participant(self, user_id) -> "ConversationParticipant | None":
        for entry in self.participants:
            if entry.user_id == user_id:
                return entry
        return None


class ConversationParticipant(Base):
    """Per-participant details and read cursor for a conversation."""

    __tablename__ = "conversation_participants"

    conversation_id = Column(
        Uuid,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    # Captured at creation time, not kept in sync with the profile
    display_name = Column(Text, nullable=False)
    avatar_url = Column(Text, nullable=False, server_default=text("''"))
    last_read_at = Column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (Index("idx_conversation_participants_user", "user_id"),)

    conversation = relationship("Conversation", back_populates="participants")


class Message(Base):
    """Immutable message in a conversation, numbered by seq."""

    __tablename__ = "messages"

    id = Column(Uuid, primary_key=True)
    conversation_id = Column(
        Uuid,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    seq = Column(Integer, nullable=False)
    sender_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    text = Column(Text, nullable=False)
    submission_id = Column(Uuid)  # context only, no cascade from submissions
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("conversation_id", "seq", name="uq_messages_conversation_seq"),
        Index("idx_messages_submission", "submission_id", "created_at"),
    )

    conversation = relationship("Conversation", back_populates="messages")
