"""Conversation and message schemas."""

from uuid import UUID

from pydantic import BaseModel

from agrisocial.timestamps import isoformat


class StartConversationRequest(BaseModel):
    """Open (or reopen) the conversation with another user."""

    user_id: UUID


class ParticipantInfo(BaseModel):
    user_id: str
    display_name: str
    avatar_url: str
    last_read_at: str


class LastMessageInfo(BaseModel):
    text: str
    sender_id: str
    created_at: str


class ConversationResponse(BaseModel):
    """Conversation as seen by one participant."""

    id: str
    participants: list[ParticipantInfo]
    last_message: LastMessageInfo
    message_count: int
    unread: bool
    created_at: str
    updated_at: str


class ListConversationsResponse(BaseModel):
    items: list[ConversationResponse]


class SendMessageRequest(BaseModel):
    """Request to send a message. Blank text is rejected by the service."""

    text: str


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    seq: int
    sender_id: str | None
    text: str
    submission_id: str | None
    created_at: str


class SendMessageResponse(MessageResponse):
    warnings: list[str]


class ListMessagesResponse(BaseModel):
    items: list[MessageResponse]
    last_seq: int | None


class MarkConversationReadResponse(BaseModel):
    conversation_id: str
    last_read_at: str


def message_response(message) -> MessageResponse:
    """Build a MessageResponse from a Message model."""
    return MessageResponse(
        id=str(message.id),
        conversation_id=str(message.conversation_id),
        seq=message.seq,
        sender_id=str(message.sender_id) if message.sender_id else None,
        text=message.text,
        submission_id=str(message.submission_id) if message.submission_id else None,
        created_at=isoformat(message.created_at),
    )
