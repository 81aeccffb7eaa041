"""Notification center: per-recipient inbox of typed event records."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agrisocial.config import settings
from agrisocial.database import commit_or_raise
from agrisocial.errors import AppError, DeliveryWarning, NotFound, ValidationFailed
from agrisocial.models.notification import (
    NOTIFICATION_TYPES,
    RECIPIENT_ROLES,
    RESOURCE_TYPES,
    Notification,
)
from agrisocial.models.user import User
from agrisocial.timestamps import utcnow

logger = logging.getLogger(__name__)


def audience_for(role: str) -> str:
    """Inbox audience of a profile role: experts read the expert inbox, everyone else the farmer inbox."""
    return "expert" if role == "expert" else "farmer"


def preview(text: str, length: int | None = None) -> str:
    """Shorten text for a notification body."""
    length = length or settings.message_preview_length
    if len(text) <= length:
        return text
    return text[:length] + "..."


class NotificationService:
    """Service for emitting and managing notifications."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _validate(
        recipient_role: str,
        notification_type: str,
        title: str,
        resource_type: str | None,
    ) -> None:
        if recipient_role not in RECIPIENT_ROLES:
            raise ValidationFailed(f"Unknown recipient role '{recipient_role}'")
        if notification_type not in NOTIFICATION_TYPES:
            raise ValidationFailed(f"Unknown notification type '{notification_type}'")
        if resource_type is not None and resource_type not in RESOURCE_TYPES:
            raise ValidationFailed(f"Unknown resource type '{resource_type}'")
        if not title.strip():
            raise ValidationFailed("Notification title cannot be empty")

    async def emit(
        self,
        recipient_id: UUID,
        recipient_role: str,
        notification_type: str,
        title: str,
        body: str,
        resource_type: str | None = None,
        resource_id: UUID | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Notification:
        """Append an unread notification for one recipient."""
        self._validate(recipient_role, notification_type, title, resource_type)

        notification = self._build(
            recipient_id, recipient_role, notification_type, title, body,
            resource_type, resource_id, payload,
        )
        self.db.add(notification)
        await self.db.flush()
        await self._enforce_retention(recipient_id, recipient_role)
        await commit_or_raise(self.db, "notification delivery")
        return notification

    async def emit_to_role(
        self,
        recipient_role: str,
        notification_type: str,
        title: str,
        body: str,
        resource_type: str | None = None,
        resource_id: UUID | None = None,
        payload: dict[str, Any] | None = None,
    ) -> list[Notification]:
        """Fan a notification out to every profile in the given audience."""
        self._validate(recipient_role, notification_type, title, resource_type)

        result = await self.db.execute(select(User.id).where(User.role == recipient_role))
        recipient_ids = list(result.scalars().all())
        if not recipient_ids:
            logger.info(f"No {recipient_role} profiles to receive '{notification_type}'")
            return []

        notifications = [
            self._build(
                recipient_id, recipient_role, notification_type, title, body,
                resource_type, resource_id, payload,
            )
            for recipient_id in recipient_ids
        ]
        self.db.add_all(notifications)
        await self.db.flush()
        for recipient_id in recipient_ids:
            await self._enforce_retention(recipient_id, recipient_role)
        await commit_or_raise(self.db, "notification delivery")
        return notifications

    async def try_emit(self, **kwargs: Any) -> list[DeliveryWarning]:
        """
        Best-effort emit for callers whose own change has already committed.

        Failures are logged and returned as warnings instead of raised.
        """
        return await self._best_effort(self.emit, kwargs)

    async def try_emit_to_role(self, **kwargs: Any) -> list[DeliveryWarning]:
        return await self._best_effort(self.emit_to_role, kwargs)

    async def _best_effort(self, emit, kwargs: dict[str, Any]) -> list[DeliveryWarning]:
        try:
            await emit(**kwargs)
        except (AppError, SQLAlchemyError) as exc:
            if isinstance(exc, SQLAlchemyError):
                await self.db.rollback()
            detail = exc.message if isinstance(exc, AppError) else str(exc)
            warning = DeliveryWarning(
                f"'{kwargs.get('notification_type')}' notification was not delivered: {detail}"
            )
            logger.warning(warning.message)
            return [warning]
        return []

    def _build(
        self,
        recipient_id: UUID,
        recipient_role: str,
        notification_type: str,
        title: str,
        body: str,
        resource_type: str | None,
        resource_id: UUID | None,
        payload: dict[str, Any] | None,
    ) -> Notification:
        return Notification(
            id=uuid.uuid4(),
            user_id=recipient_id,
            recipient_role=recipient_role,
            notification_type=notification_type,
            title=title,
            body=body,
            resource_type=resource_type,
            resource_id=resource_id,
            payload=payload or {},
            created_at=utcnow(),
        )

    async def _enforce_retention(self, recipient_id: UUID, recipient_role: str) -> None:
        """Drop the oldest notifications beyond the per-recipient cap."""
        cap = settings.notification_retention_limit
        if cap <= 0:
            return

        result = await self.db.execute(
            select(Notification.id)
            .where(
                Notification.user_id == recipient_id,
                Notification.recipient_role == recipient_role,
            )
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(cap)
        )
        stale_ids = list(result.scalars().all())
        if stale_ids:
            await self.db.execute(delete(Notification).where(Notification.id.in_(stale_ids)))
            logger.debug(f"Pruned {len(stale_ids)} notifications for {recipient_id}")

    async def list(
        self,
        recipient_id: UUID,
        recipient_role: str,
        unread_only: bool = False,
        before: datetime | None = None,
        limit: int | None = None,
    ) -> list[Notification]:
        """Notifications for a recipient and role, newest first."""
        if recipient_role not in RECIPIENT_ROLES:
            raise ValidationFailed(f"Unknown recipient role '{recipient_role}'")

        query = select(Notification).where(
            Notification.user_id == recipient_id,
            Notification.recipient_role == recipient_role,
        )
        if unread_only:
            query = query.where(Notification.read_at.is_(None))
        if before is not None:
            query = query.where(Notification.created_at < before)
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc())
        if limit is not None:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def summary(self, recipient_id: UUID, recipient_role: str) -> tuple[int, int]:
        """Return (unread_count, total_count)."""
        base = (
            Notification.user_id == recipient_id,
            Notification.recipient_role == recipient_role,
        )
        unread_result = await self.db.execute(
            select(func.count(Notification.id)).where(*base, Notification.read_at.is_(None))
        )
        total_result = await self.db.execute(select(func.count(Notification.id)).where(*base))
        return unread_result.scalar() or 0, total_result.scalar() or 0

    async def _get(self, notification_id: UUID, recipient_id: UUID | None) -> Notification | None:
        query = select(Notification).where(Notification.id == notification_id)
        if recipient_id is not None:
            query = query.where(Notification.user_id == recipient_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def mark_read(
        self, notification_id: UUID, recipient_id: UUID | None = None
    ) -> Notification:
        """Mark one notification read. Marking an already read one is a no-op."""
        notification = await self._get(notification_id, recipient_id)
        if notification is None:
            raise NotFound(f"Notification '{notification_id}' not found")

        if notification.read_at is None:
            notification.read_at = utcnow()
            await commit_or_raise(self.db, "mark notification read")
        return notification

    async def mark_all_read(self, recipient_id: UUID, recipient_role: str) -> int:
        """Mark every unread notification for the recipient read; returns how many changed."""
        unread = await self.list(recipient_id, recipient_role, unread_only=True)
        if not unread:
            return 0

        now = utcnow()
        for notification in unread:
            notification.read_at = now
        await commit_or_raise(self.db, "mark all notifications read")
        return len(unread)

    async def delete(self, notification_id: UUID, recipient_id: UUID | None = None) -> bool:
        """Delete one notification. Deleting a missing one is not an error."""
        notification = await self._get(notification_id, recipient_id)
        if notification is None:
            return False
        await self.db.delete(notification)
        await commit_or_raise(self.db, "delete notification")
        return True
