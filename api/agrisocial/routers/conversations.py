"""Conversations router for direct messaging."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from agrisocial.auth.dependencies import get_current_user
from agrisocial.database import get_db
from agrisocial.models.conversation import Conversation
from agrisocial.models.user import User
from agrisocial.schemas.conversations import (
    ConversationResponse,
    LastMessageInfo,
    ListConversationsResponse,
    ListMessagesResponse,
    MarkConversationReadResponse,
    ParticipantInfo,
    SendMessageRequest,
    SendMessageResponse,
    StartConversationRequest,
    message_response,
)
from agrisocial.services.conversations import ConversationService, is_unread_for
from agrisocial.timestamps import isoformat

router = APIRouter(prefix="/api/v1/conversations", tags=["Conversations"])


def _conversation_response(conversation: Conversation, viewer_id: UUID) -> ConversationResponse:
    return ConversationResponse(
        id=str(conversation.id),
        participants=[
            ParticipantInfo(
                user_id=str(p.user_id),
                display_name=p.display_name,
                avatar_url=p.avatar_url or "",
                last_read_at=isoformat(p.last_read_at),
            )
            for p in conversation.participants
        ],
        last_message=LastMessageInfo(
            text=conversation.last_message_text,
            sender_id=str(conversation.last_message_sender_id),
            created_at=isoformat(conversation.last_message_at),
        ),
        message_count=conversation.message_count,
        unread=is_unread_for(conversation, viewer_id),
        created_at=isoformat(conversation.created_at),
        updated_at=isoformat(conversation.updated_at),
    )


@router.post(
    "",
    response_model=ConversationResponse,
    status_code=status.HTTP_200_OK,
)
async def start_conversation(
    data: StartConversationRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ConversationResponse:
    """
    Get or create the conversation with another user.

    Both users always get the same conversation back.
    """
    service = ConversationService(db)
    conversation_id = await service.get_or_create_conversation(user.id, data.user_id)
    conversation = await service.get_conversation(conversation_id, user.id)
    return _conversation_response(conversation, user.id)


@router.get(
    "",
    response_model=ListConversationsResponse,
    status_code=status.HTTP_200_OK,
)
async def list_conversations(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ListConversationsResponse:
    """List the user's conversations, most recent activity first."""
    conversations = await ConversationService(db).list_conversations_for(user.id)
    return ListConversationsResponse(
        items=[_conversation_response(c, user.id) for c in conversations]
    )


@router.get(
    "/{conversation_id}",
    response_model=ConversationResponse,
    status_code=status.HTTP_200_OK,
)
async def get_conversation(
    conversation_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ConversationResponse:
    """Get one conversation the user takes part in."""
    conversation = await ConversationService(db).get_conversation(conversation_id, user.id)
    return _conversation_response(conversation, user.id)


@router.get(
    "/{conversation_id}/messages",
    response_model=ListMessagesResponse,
    status_code=status.HTTP_200_OK,
)
async def list_messages(
    conversation_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    after_seq: int | None = Query(default=None, ge=0, description="Only messages after this seq"),
    before_seq: int | None = Query(default=None, ge=1, description="Only messages before this seq"),
    limit: int = Query(default=100, ge=1, le=500, description="Maximum messages to return"),
) -> ListMessagesResponse:
    """
    List messages in send order.

    Without after_seq this is the newest page; pass before_seq set to the
    first seq on screen to load older ones. Clients poll with after_seq set
    to the last seq they have seen.
    """
    service = ConversationService(db)
    await service.get_conversation(conversation_id, user.id)
    messages = await service.list_messages(
        conversation_id, after_seq=after_seq, before_seq=before_seq, limit=limit
    )
    return ListMessagesResponse(
        items=[message_response(m) for m in messages],
        last_seq=messages[-1].seq if messages else after_seq,
    )


@router.post(
    "/{conversation_id}/messages",
    response_model=SendMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: UUID,
    data: SendMessageRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> SendMessageResponse:
    """Send a message in an existing conversation."""
    outcome = await ConversationService(db).send_message(conversation_id, user.id, data.text)
    return SendMessageResponse(
        **message_response(outcome.message).model_dump(),
        warnings=[w.message for w in outcome.warnings],
    )


@router.post(
    "/{conversation_id}/read",
    response_model=MarkConversationReadResponse,
    status_code=status.HTTP_200_OK,
)
async def mark_conversation_read(
    conversation_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> MarkConversationReadResponse:
    """Mark the conversation read up to now for the current user."""
    participant = await ConversationService(db).mark_read(conversation_id, user.id)
    return MarkConversationReadResponse(
        conversation_id=str(conversation_id),
        last_read_at=isoformat(participant.last_read_at),
    )
