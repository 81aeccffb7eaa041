"""
Tests for NotificationService: per-recipient inbox of typed events.
"""

import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from agrisocial.config import settings
from agrisocial.errors import NotFound, ValidationFailed
from agrisocial.models.conversation import Conversation, Message
from agrisocial.models.submission import DiagnosisSubmission
from agrisocial.services.conversations import ConversationService
from agrisocial.services.notifications import NotificationService, audience_for, preview
from agrisocial.services.review import ReviewWorkflow


async def _emit(service: NotificationService, user: dict, title: str, role: str = "farmer"):
    return await service.emit(
        recipient_id=user["id"],
        recipient_role=role,
        notification_type="status_update",
        title=title,
        body=f"{title} body",
        resource_type="submission",
        resource_id=uuid.uuid4(),
    )


class TestHelpers:
    """Audience mapping and previews."""

    def test_audience_for_roles(self):
        assert audience_for("expert") == "expert"
        assert audience_for("farmer") == "farmer"
        assert audience_for("user") == "farmer"
        assert audience_for("moderator") == "farmer"

    def test_preview_truncates_long_text(self):
        assert preview("short", 10) == "short"
        assert preview("a" * 12, 10) == "a" * 10 + "..."


class TestEmit:
    """emit() appends unread notifications."""

    async def test_emit_creates_unread_notification(
        self, db_session: AsyncSession, test_user: dict
    ):
        service = NotificationService(db_session)
        notification = await _emit(service, test_user, "Diagnosis Approved")

        assert notification.read is False
        assert notification.read_at is None
        assert notification.payload == {}
        assert await service.summary(test_user["id"], "farmer") == (1, 1)

    async def test_emit_rejects_unknown_type(self, db_session: AsyncSession, test_user: dict):
        with pytest.raises(ValidationFailed):
            await NotificationService(db_session).emit(
                recipient_id=test_user["id"],
                recipient_role="farmer",
                notification_type="party_invite",
                title="Party",
                body="Come along",
            )

    async def test_emit_rejects_unknown_role(self, db_session: AsyncSession, test_user: dict):
        with pytest.raises(ValidationFailed):
            await _emit(NotificationService(db_session), test_user, "Hi", role="admin")

    async def test_emit_to_role_fans_out_to_experts(
        self,
        db_session: AsyncSession,
        test_user: dict,
        test_expert: dict,
        second_expert: dict,
    ):
        """Every expert gets a copy; farmers get nothing."""
        service = NotificationService(db_session)
        notifications = await service.emit_to_role(
            recipient_role="expert",
            notification_type="new_submission",
            title="New Diagnosis Submission",
            body="Amina Farmer has submitted a diagnosis for expert review",
        )

        assert {n.user_id for n in notifications} == {test_expert["id"], second_expert["id"]}
        assert await service.summary(test_expert["id"], "expert") == (1, 1)
        assert await service.summary(second_expert["id"], "expert") == (1, 1)
        assert await service.summary(test_user["id"], "farmer") == (0, 0)

    async def test_emit_to_role_without_recipients(self, db_session: AsyncSession, test_user: dict):
        notifications = await NotificationService(db_session).emit_to_role(
            recipient_role="expert",
            notification_type="new_submission",
            title="New Diagnosis Submission",
            body="Nobody to tell",
        )
        assert notifications == []

    async def test_try_emit_reports_failure_as_warning(
        self, db_session: AsyncSession, test_user: dict, monkeypatch
    ):
        """Store errors become DeliveryWarnings instead of exceptions."""
        service = NotificationService(db_session)

        async def broken_emit(**kwargs):
            raise OperationalError("INSERT", {}, Exception("disk full"))

        monkeypatch.setattr(service, "emit", broken_emit)
        warnings = await service.try_emit(
            recipient_id=test_user["id"],
            recipient_role="farmer",
            notification_type="status_update",
            title="Diagnosis Approved",
            body="Looks good",
        )

        assert len(warnings) == 1
        assert warnings[0].code == "DELIVERY_WARNING"
        assert "status_update" in warnings[0].message


class TestList:
    """list() ordering and filters."""

    async def test_list_newest_first(self, db_session: AsyncSession, test_user: dict):
        service = NotificationService(db_session)
        for title in ("first", "second", "third"):
            await _emit(service, test_user, title)

        notifications = await service.list(test_user["id"], "farmer")
        assert [n.title for n in notifications] == ["third", "second", "first"]

    async def test_list_is_scoped_to_recipient_and_role(
        self, db_session: AsyncSession, test_user: dict, second_user: dict
    ):
        service = NotificationService(db_session)
        await _emit(service, test_user, "mine")
        await _emit(service, second_user, "theirs")
        await _emit(service, test_user, "as expert", role="expert")

        notifications = await service.list(test_user["id"], "farmer")
        assert [n.title for n in notifications] == ["mine"]

    async def test_list_unread_only(self, db_session: AsyncSession, test_user: dict):
        service = NotificationService(db_session)
        read = await _emit(service, test_user, "read one")
        await _emit(service, test_user, "unread one")
        await service.mark_read(read.id)

        notifications = await service.list(test_user["id"], "farmer", unread_only=True)
        assert [n.title for n in notifications] == ["unread one"]


class TestMarkRead:
    """mark_read / mark_all_read."""

    async def test_mark_read_is_idempotent(self, db_session: AsyncSession, test_user: dict):
        service = NotificationService(db_session)
        notification = await _emit(service, test_user, "hello")

        first = await service.mark_read(notification.id, recipient_id=test_user["id"])
        read_at = first.read_at
        second = await service.mark_read(notification.id, recipient_id=test_user["id"])

        assert second.read is True
        assert second.read_at == read_at

    async def test_mark_read_unknown_raises_not_found(
        self, db_session: AsyncSession, test_user: dict
    ):
        with pytest.raises(NotFound):
            await NotificationService(db_session).mark_read(uuid.uuid4())

    async def test_mark_read_of_other_users_notification_not_found(
        self, db_session: AsyncSession, test_user: dict, second_user: dict
    ):
        service = NotificationService(db_session)
        notification = await _emit(service, test_user, "private")
        with pytest.raises(NotFound):
            await service.mark_read(notification.id, recipient_id=second_user["id"])

    async def test_mark_all_read_leaves_read_ones_unchanged(
        self, db_session: AsyncSession, test_user: dict, second_user: dict
    ):
        """All unread become read; previously read keep their read_at."""
        service = NotificationService(db_session)
        already = await _emit(service, test_user, "already read")
        await service.mark_read(already.id)
        original_read_at = already.read_at
        for title in ("a", "b", "c"):
            await _emit(service, test_user, title)
        await _emit(service, second_user, "not mine")

        marked = await service.mark_all_read(test_user["id"], "farmer")

        assert marked == 3
        notifications = await service.list(test_user["id"], "farmer")
        assert all(n.read for n in notifications)
        assert next(n for n in notifications if n.id == already.id).read_at == original_read_at
        assert await service.summary(second_user["id"], "farmer") == (1, 1)
        assert await service.mark_all_read(test_user["id"], "farmer") == 0


class TestDelete:
    """delete() and retention."""

    async def test_delete_is_idempotent(self, db_session: AsyncSession, test_user: dict):
        service = NotificationService(db_session)
        notification = await _emit(service, test_user, "bye")

        assert await service.delete(notification.id) is True
        assert await service.delete(notification.id) is False
        assert await service.summary(test_user["id"], "farmer") == (0, 0)

    async def test_retention_drops_oldest(
        self, db_session: AsyncSession, test_user: dict, monkeypatch
    ):
        monkeypatch.setattr(settings, "notification_retention_limit", 3)
        service = NotificationService(db_session)
        for title in ("n1", "n2", "n3", "n4", "n5"):
            await _emit(service, test_user, title)

        notifications = await service.list(test_user["id"], "farmer")
        assert [n.title for n in notifications] == ["n5", "n4", "n3"]

    async def test_delete_leaves_referenced_resources_untouched(
        self, db_session: AsyncSession, test_user: dict, test_expert: dict
    ):
        """Deleting notifications never changes the submission or conversation they point at."""
        workflow = ReviewWorkflow(db_session)
        submitted = await workflow.submit_diagnosis(
            test_user["user"], {"disease": "Leaf rust"}, "data:image/png;base64,AA=="
        )
        submission_id = submitted.submission.id
        await workflow.on_status_changed(
            submission_id, "approved", "Spray copper fungicide", expert=test_expert["user"]
        )

        conversations = ConversationService(db_session)
        conversation_id = await conversations.get_or_create_conversation(
            test_expert["id"], test_user["id"]
        )
        await conversations.send_message(conversation_id, test_expert["id"], "Check the lower leaves")

        service = NotificationService(db_session)
        inbox = await service.list(test_user["id"], "farmer")
        by_type = {n.notification_type: n for n in inbox}
        assert set(by_type) == {"status_update", "new_message"}
        assert by_type["status_update"].resource_id == submission_id
        assert by_type["new_message"].resource_id == conversation_id

        async def snapshot():
            submission = (
                await db_session.execute(
                    select(DiagnosisSubmission)
                    .where(DiagnosisSubmission.id == submission_id)
                    .execution_options(populate_existing=True)
                )
            ).scalar_one()
            conversation = (
                await db_session.execute(
                    select(Conversation)
                    .where(Conversation.id == conversation_id)
                    .execution_options(populate_existing=True)
                )
            ).scalar_one()
            messages = (
                await db_session.execute(
                    select(Message.seq, Message.sender_id, Message.text)
                    .where(Message.conversation_id == conversation_id)
                    .order_by(Message.seq)
                )
            ).all()
            return (
                submission.status,
                submission.expert_feedback,
                submission.expert_id,
                conversation.message_count,
                conversation.last_message_text,
                [tuple(row) for row in messages],
            )

        before = await snapshot()
        assert before[0] == "approved"
        assert before[3] == 1

        for notification in inbox:
            assert await service.delete(notification.id, test_user["id"]) is True

        assert await service.summary(test_user["id"], "farmer") == (0, 0)
        assert await snapshot() == before
