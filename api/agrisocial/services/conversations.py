"""Conversation store and message log for direct messaging."""

import logging
import uuid
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agrisocial.config import settings
from agrisocial.database import commit_or_raise
from agrisocial.errors import (
    AppError,
    DeliveryWarning,
    NotFound,
    PermissionDenied,
    ValidationFailed,
)
from agrisocial.models.conversation import Conversation, ConversationParticipant, Message
from agrisocial.services.notifications import NotificationService, audience_for, preview
from agrisocial.services.profiles import ProfileService
from agrisocial.timestamps import TICK, as_utc, utcnow

logger = logging.getLogger(__name__)

# Namespace for deriving conversation ids from participant pairs
CONVERSATION_NAMESPACE = uuid.UUID("5b0f3c9e-2d43-4f7a-9a51-6c1d8e2f4b70")

CONVERSATION_STARTED_TEXT = "Conversation started"


def ordered_pair(user_a: UUID, user_b: UUID) -> tuple[UUID, UUID]:
    """Participants in canonical (low, high) order."""
    return (user_a, user_b) if str(user_a) < str(user_b) else (user_b, user_a)


def conversation_id_for(user_a: UUID, user_b: UUID) -> UUID:
    """Deterministic conversation id for an unordered pair of users."""
    low, high = ordered_pair(user_a, user_b)
    return uuid.uuid5(CONVERSATION_NAMESPACE, f"{low}:{high}")


def is_unread_for(conversation: Conversation, user_id: UUID) -> bool:
    """
    A conversation is unread for a participant when its newest message is
    newer than their read cursor and was sent by someone else.
    """
    participant = conversation.participant(user_id)
    if participant is None or conversation.last_message_sender_id == user_id:
        return False
    return as_utc(conversation.last_message_at) > as_utc(participant.last_read_at)


@dataclass
class SendOutcome:
    """A stored message plus any notification delivery warnings."""

    message: Message
    warnings: list[DeliveryWarning] = field(default_factory=list)


class ConversationService:
    """Service for one-to-one conversations and their message logs."""

    def __init__(self, db: AsyncSession, notifications: NotificationService | None = None):
        self.db = db
        self.profiles = ProfileService(db)
        self.notifications = notifications or NotificationService(db)

    @staticmethod
    def validate_text(text: str) -> str:
        """Return the trimmed message body or raise ValidationFailed."""
        body = (text or "").strip()
        if not body:
            raise ValidationFailed("Message text cannot be empty")
        if len(body) > settings.message_max_length:
            raise ValidationFailed(
                f"Message must be {settings.message_max_length} characters or less"
            )
        return body

    async def get_or_create_conversation(self, user_a: UUID, user_b: UUID) -> UUID:
        """
        Return the conversation id for the pair, creating it on first contact.

        The id is derived from the pair, so concurrent callers race on the
        same primary key and the loser simply reads the winner's row.
        """
        if user_a == user_b:
            raise ValidationFailed("A conversation needs two different users")

        conversation_id = conversation_id_for(user_a, user_b)
        if await self.db.get(Conversation, conversation_id) is not None:
            return conversation_id

        users = await self.profiles.require_users(user_a, user_b)
        low, high = ordered_pair(user_a, user_b)
        now = utcnow()
        conversation = Conversation(
            id=conversation_id,
            user_low_id=low,
            user_high_id=high,
            last_message_text=CONVERSATION_STARTED_TEXT,
            last_message_sender_id=user_a,
            last_message_at=now,
            message_count=0,
            created_at=now,
            updated_at=now,
            participants=[
                ConversationParticipant(
                    user_id=user_id,
                    display_name=users[user_id].display_name or users[user_id].username,
                    avatar_url=users[user_id].avatar_url or "",
                    last_read_at=now,
                )
                for user_id in (low, high)
            ],
        )

        try:
            async with self.db.begin_nested():
                self.db.add(conversation)
        except IntegrityError:
            logger.debug(f"Conversation {conversation_id} was created concurrently")
            return conversation_id

        await commit_or_raise(self.db, "conversation creation")
        logger.info(f"Started conversation {conversation_id} between {low} and {high}")
        return conversation_id

    async def get_conversation(
        self, conversation_id: UUID, user_id: UUID | None = None
    ) -> Conversation:
        """Load a conversation; when user_id is given it must be a participant."""
        result = await self.db.execute(
            select(Conversation)
            .where(Conversation.id == conversation_id)
            .execution_options(populate_existing=True)
        )
        conversation = result.scalar_one_or_none()
        if conversation is None:
            raise NotFound(f"Conversation '{conversation_id}' not found")
        if user_id is not None and conversation.participant(user_id) is None:
            raise PermissionDenied("You are not a participant in this conversation")
        return conversation

    async def _lock_conversation(self, conversation_id: UUID) -> Conversation:
        result = await self.db.execute(
            select(Conversation)
            .where(Conversation.id == conversation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        conversation = result.scalar_one_or_none()
        if conversation is None:
            raise NotFound(f"Conversation '{conversation_id}' not found")
        return conversation

    async def send_message(
        self,
        conversation_id: UUID,
        sender_id: UUID,
        text: str,
        submission_id: UUID | None = None,
    ) -> SendOutcome:
        """
        Append a message to an existing conversation.

        Holds the conversation row lock while numbering the message, so
        messages are totally ordered by seq. Sending advances the sender's
        own read cursor. The recipient notification is best effort and
        happens after the message has committed.
        """
        body = self.validate_text(text)
        conversation = await self._lock_conversation(conversation_id)
        participant = conversation.participant(sender_id)
        if participant is None:
            raise PermissionDenied("You are not a participant in this conversation")

        now = utcnow()
        last_at = as_utc(conversation.last_message_at)
        if now <= last_at:
            now = last_at + TICK

        seq = conversation.message_count + 1
        message = Message(
            id=uuid.uuid4(),
            conversation_id=conversation.id,
            seq=seq,
            sender_id=sender_id,
            text=body,
            submission_id=submission_id,
            created_at=now,
        )
        self.db.add(message)

        conversation.message_count = seq
        conversation.last_message_text = body
        conversation.last_message_sender_id = sender_id
        conversation.last_message_at = now
        conversation.updated_at = now
        participant.last_read_at = now

        await commit_or_raise(self.db, "message send")

        warnings: list[DeliveryWarning] = []
        if settings.notify_on_new_message:
            warnings = await self._notify_recipient(conversation, message)
        if warnings:
            # a failed delivery may have rolled the session back and expired it
            await self.db.refresh(message)
        return SendOutcome(message=message, warnings=warnings)

    async def _notify_recipient(
        self, conversation: Conversation, message: Message
    ) -> list[DeliveryWarning]:
        recipient_id = conversation.other_participant(message.sender_id)
        try:
            users = await self.profiles.require_users(message.sender_id, recipient_id)
        except AppError as exc:
            warning = DeliveryWarning(f"Message notification was not delivered: {exc.message}")
            logger.warning(warning.message)
            return [warning]
        sender = users[message.sender_id]
        sender_name = sender.display_name or sender.username

        if message.submission_id is not None and sender.role == "expert":
            notification_type = "expert_response"
            title = f"Expert response from {sender_name}"
        else:
            notification_type = "new_message"
            title = f"New message from {sender_name}"

        payload = {"message_id": str(message.id), "seq": message.seq}
        if message.submission_id is not None:
            payload["submission_id"] = str(message.submission_id)

        return await self.notifications.try_emit(
            recipient_id=recipient_id,
            recipient_role=audience_for(users[recipient_id].role),
            notification_type=notification_type,
            title=title,
            body=preview(message.text),
            resource_type="conversation",
            resource_id=conversation.id,
            payload=payload,
        )

    async def mark_read(self, conversation_id: UUID, user_id: UUID) -> ConversationParticipant:
        """Advance the participant's read cursor to now; other cursors are untouched."""
        conversation = await self.get_conversation(conversation_id, user_id)
        participant = conversation.participant(user_id)

        now = utcnow()
        last_at = as_utc(conversation.last_message_at)
        participant.last_read_at = max(now, last_at)
        await commit_or_raise(self.db, "mark conversation read")
        return participant

    async def list_conversations_for(self, user_id: UUID) -> list[Conversation]:
        """Conversations the user takes part in, most recent activity first."""
        result = await self.db.execute(
            select(Conversation)
            .where(
                or_(
                    Conversation.user_low_id == user_id,
                    Conversation.user_high_id == user_id,
                )
            )
            .order_by(Conversation.last_message_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def unread_count_for(self, user_id: UUID) -> int:
        conversations = await self.list_conversations_for(user_id)
        return sum(1 for conversation in conversations if is_unread_for(conversation, user_id))

    async def list_messages(
        self,
        conversation_id: UUID,
        after_seq: int | None = None,
        before_seq: int | None = None,
        limit: int | None = None,
    ) -> list[Message]:
        """
        Messages in send order.

        With after_seq the page starts just after it, which is how clients
        poll for new messages. Otherwise the page is the newest `limit`
        messages, older than before_seq when given, for scrolling back.
        """
        await self.get_conversation(conversation_id)

        query = select(Message).where(Message.conversation_id == conversation_id)
        if after_seq is not None:
            query = query.where(Message.seq > after_seq)
        if before_seq is not None:
            query = query.where(Message.seq < before_seq)

        if after_seq is None and limit is not None:
            result = await self.db.execute(query.order_by(Message.seq.desc()).limit(limit))
            return list(reversed(result.scalars().all()))

        query = query.order_by(Message.seq)
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())
