"""Inbox router for notifications."""

import logging
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agrisocial.auth.dependencies import get_current_user
from agrisocial.database import get_db
from agrisocial.models.notification import Notification
from agrisocial.models.user import User
from agrisocial.schemas.inbox import (
    InboxSummaryResponse,
    ListNotificationsResponse,
    MarkAllReadResponse,
    MarkReadResponse,
    NotificationItem,
)
from agrisocial.services.conversations import ConversationService
from agrisocial.services.notifications import NotificationService, audience_for
from agrisocial.timestamps import isoformat

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/inbox", tags=["Inbox"])


def _notification_item(n: Notification) -> NotificationItem:
    return NotificationItem(
        id=str(n.id),
        recipient_role=n.recipient_role,
        notification_type=n.notification_type,
        title=n.title,
        body=n.body,
        resource_type=n.resource_type,
        resource_id=str(n.resource_id) if n.resource_id else None,
        payload=n.payload or {},
        created_at=isoformat(n.created_at),
        read=n.read,
        read_at=isoformat(n.read_at),
    )


# --- Inbox Summary ---


@router.get(
    "/summary",
    response_model=InboxSummaryResponse,
    status_code=status.HTTP_200_OK,
)
async def get_inbox_summary(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> InboxSummaryResponse:
    """
    Get inbox summary for session start.

    Returns counts of unread and total notifications, and unread conversations.
    """
    role = audience_for(user.role)
    unread_count, total_count = await NotificationService(db).summary(user.id, role)
    unread_conversations = await ConversationService(db).unread_count_for(user.id)

    return InboxSummaryResponse(
        recipient_role=role,
        unread_count=unread_count,
        total_count=total_count,
        unread_conversations=unread_conversations,
    )


# --- List Notifications ---


@router.get(
    "/notifications",
    response_model=ListNotificationsResponse,
    status_code=status.HTTP_200_OK,
)
async def list_notifications(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    cursor: str | None = Query(default=None, description="Pagination cursor"),
    limit: int = Query(default=20, ge=1, le=100, description="Items per page"),
    unread_only: bool = Query(default=False, description="Show only unread notifications"),
) -> ListNotificationsResponse:
    """
    List notifications with cursor-based pagination.

    Returns notifications ordered by created_at descending. If the store is
    unavailable the page degrades to an empty list.
    """
    # rollback below expires the session, so keep plain values
    user_id = user.id
    role = audience_for(user.role)

    before = None
    if cursor:
        try:
            before = datetime.fromisoformat(cursor)
        except ValueError:
            pass  # Invalid cursor, ignore

    try:
        notifications = await NotificationService(db).list(
            user_id,
            role,
            unread_only=unread_only,
            before=before,
            limit=limit + 1,
        )
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.warning(f"Notification fetch failed for {user_id} ({role}): {exc}")
        return ListNotificationsResponse(items=[], next_cursor=None, has_more=False)

    # Check if there are more items
    has_more = len(notifications) > limit
    if has_more:
        notifications = notifications[:limit]

    next_cursor = isoformat(notifications[-1].created_at) if notifications and has_more else None

    return ListNotificationsResponse(
        items=[_notification_item(n) for n in notifications],
        next_cursor=next_cursor,
        has_more=has_more,
    )


# --- Mark Notification as Read ---


@router.post(
    "/notifications/read-all",
    response_model=MarkAllReadResponse,
    status_code=status.HTTP_200_OK,
)
async def mark_all_notifications_read(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> MarkAllReadResponse:
    """Mark all unread notifications as read."""
    marked = await NotificationService(db).mark_all_read(user.id, audience_for(user.role))
    return MarkAllReadResponse(marked_count=marked)


@router.post(
    "/notifications/{notification_id}/read",
    response_model=MarkReadResponse,
    status_code=status.HTTP_200_OK,
)
async def mark_notification_read(
    notification_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> MarkReadResponse:
    """Mark a single notification as read."""
    notification = await NotificationService(db).mark_read(notification_id, recipient_id=user.id)
    return MarkReadResponse(
        id=str(notification.id),
        read_at=isoformat(notification.read_at),
    )


# --- Delete Notification ---


@router.delete(
    "/notifications/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_notification(
    notification_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> None:
    """Delete a notification. Deleting one that is already gone succeeds."""
    await NotificationService(db).delete(notification_id, recipient_id=user.id)
