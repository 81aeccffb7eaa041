"""Expert review workflow for diagnosis submissions.

Binds the submission state machine to the notification center and the
conversation store:

- a new submission notifies every expert
- pending -> approved | rejected notifies the farmer
- messages about a submission go into the farmer/expert conversation,
  tagged with the submission id

Notification delivery is best effort. A committed state change is never
rolled back because its notification failed; the failures come back as
DeliveryWarning entries on the outcome instead.
"""

import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agrisocial.database import commit_or_raise
from agrisocial.errors import DeliveryWarning, NotFound, PermissionDenied, ValidationFailed
from agrisocial.models.conversation import Message
from agrisocial.models.submission import SUBMISSION_STATUSES, DiagnosisSubmission
from agrisocial.models.user import User
from agrisocial.services.conversations import ConversationService
from agrisocial.services.notifications import NotificationService
from agrisocial.timestamps import utcnow

logger = logging.getLogger(__name__)

REVIEW_DECISIONS = ("approved", "rejected")


@dataclass
class ReviewOutcome:
    """Result of a workflow step: the submission, an optional message, and delivery warnings."""

    submission: DiagnosisSubmission
    warnings: list[DeliveryWarning] = field(default_factory=list)
    message: Message | None = None


class ReviewWorkflow:
    """Service driving diagnosis submissions through expert review."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.notifications = NotificationService(db)
        self.conversations = ConversationService(db, notifications=self.notifications)

    # --- Submissions ---

    async def submit_diagnosis(
        self,
        farmer: User,
        diagnosis: dict[str, Any],
        image_data: str,
    ) -> ReviewOutcome:
        """Store a pending submission and tell the experts about it."""
        if farmer.role == "expert":
            raise PermissionDenied("Experts cannot submit diagnoses for review")
        if not image_data or not image_data.strip():
            raise ValidationFailed("Image data is required")

        submission = DiagnosisSubmission(
            farmer_id=farmer.id,
            farmer_name=farmer.display_name or farmer.username,
            diagnosis=diagnosis,
            image_data=image_data,
            submitted_at=utcnow(),
            status="pending",
        )
        self.db.add(submission)
        await commit_or_raise(self.db, "diagnosis submission")
        logger.info(f"Submission {submission.id} created by {farmer.id}")

        warnings = await self.on_submission_created(submission)
        if warnings:
            await self.db.refresh(submission)
        return ReviewOutcome(submission=submission, warnings=warnings)

    async def on_submission_created(self, submission: DiagnosisSubmission) -> list[DeliveryWarning]:
        """Notify the expert audience that a submission awaits review."""
        return await self.notifications.try_emit_to_role(
            recipient_role="expert",
            notification_type="new_submission",
            title="New Diagnosis Submission",
            body=f"{submission.farmer_name} has submitted a diagnosis for expert review",
            resource_type="submission",
            resource_id=submission.id,
            payload={"farmer_id": str(submission.farmer_id)},
        )

    async def get_submission(self, submission_id: UUID) -> DiagnosisSubmission:
        submission = await self.db.get(DiagnosisSubmission, submission_id)
        if submission is None:
            raise NotFound(f"Submission '{submission_id}' not found")
        return submission

    async def list_submissions(self, status: str | None = None) -> list[DiagnosisSubmission]:
        """All submissions, newest first, optionally filtered by status."""
        return await self._list(select(DiagnosisSubmission), status)

    async def list_submissions_for_farmer(
        self, farmer_id: UUID, status: str | None = None
    ) -> list[DiagnosisSubmission]:
        query = select(DiagnosisSubmission).where(DiagnosisSubmission.farmer_id == farmer_id)
        return await self._list(query, status)

    async def _list(self, query, status: str | None) -> list[DiagnosisSubmission]:
        if status is not None:
            if status not in SUBMISSION_STATUSES:
                raise ValidationFailed(f"Unknown status '{status}'")
            query = query.where(DiagnosisSubmission.status == status)
        result = await self.db.execute(query.order_by(DiagnosisSubmission.submitted_at.desc()))
        return list(result.scalars().all())

    async def delete_submission(self, submission_id: UUID, farmer_id: UUID) -> None:
        """
        Withdraw a submission.

        Notifications and messages that reference it are left in place.
        """
        submission = await self.get_submission(submission_id)
        if submission.farmer_id != farmer_id:
            raise PermissionDenied("You can only delete your own submissions")
        await self.db.delete(submission)
        await commit_or_raise(self.db, "submission delete")

    # --- Review ---

    async def on_status_changed(
        self,
        submission_id: UUID,
        new_status: str,
        feedback: str | None = None,
        expert: User | None = None,
    ) -> ReviewOutcome:
        """
        Move a pending submission to approved or rejected and notify the farmer.

        Raises:
            ValidationFailed: unknown decision, or the submission is no longer pending
            PermissionDenied: the reviewer is not an expert, or another expert owns it
        """
        if new_status not in REVIEW_DECISIONS:
            raise ValidationFailed(f"Status must be one of: {', '.join(REVIEW_DECISIONS)}")
        if expert is not None and expert.role != "expert":
            raise PermissionDenied("Only experts can review submissions")

        submission = await self.get_submission(submission_id)
        if submission.status != "pending":
            raise ValidationFailed(f"Submission has already been {submission.status}")
        if (
            expert is not None
            and submission.expert_id is not None
            and submission.expert_id != expert.id
        ):
            raise PermissionDenied("Another expert is handling this submission")

        feedback = feedback.strip() if feedback else None
        submission.status = new_status
        submission.expert_feedback = feedback or None
        submission.reviewed_at = utcnow()
        if expert is not None:
            submission.expert_id = expert.id
        await commit_or_raise(self.db, "submission review")
        logger.info(f"Submission {submission.id} {new_status}")

        warnings = await self.notifications.try_emit(
            recipient_id=submission.farmer_id,
            recipient_role="farmer",
            notification_type="status_update",
            title=f"Diagnosis {new_status.capitalize()}",
            body=feedback or f"Your diagnosis has been {new_status} by an expert",
            resource_type="submission",
            resource_id=submission.id,
            payload={"status": new_status},
        )
        if warnings:
            await self.db.refresh(submission)
        return ReviewOutcome(submission=submission, warnings=warnings)

    # --- Submission thread ---

    async def send_submission_message(
        self,
        submission_id: UUID,
        sender: User,
        text: str,
    ) -> ReviewOutcome:
        """
        Post a message about a submission.

        The message lands in the ordinary conversation between the farmer and
        the expert, tagged with the submission id, so both see it in their
        inbox. The first expert to write claims the submission.
        """
        body = ConversationService.validate_text(text)
        submission = await self.get_submission(submission_id)

        if sender.id == submission.farmer_id:
            if submission.expert_id is None:
                raise ValidationFailed("No expert has picked up this submission yet")
            recipient_id = submission.expert_id
        elif sender.role == "expert":
            if submission.expert_id is None:
                submission.expert_id = sender.id
            elif submission.expert_id != sender.id:
                raise PermissionDenied("Another expert is handling this submission")
            recipient_id = submission.farmer_id
        else:
            raise PermissionDenied("Only the farmer and the reviewing expert can post here")

        conversation_id = await self.conversations.get_or_create_conversation(
            sender.id, recipient_id
        )
        outcome = await self.conversations.send_message(
            conversation_id, sender.id, body, submission_id=submission.id
        )
        if outcome.warnings:
            await self.db.refresh(submission)
        return ReviewOutcome(
            submission=submission,
            warnings=outcome.warnings,
            message=outcome.message,
        )

    async def list_submission_messages(self, submission_id: UUID) -> list[Message]:
        """Messages tagged with the submission, in send order."""
        await self.get_submission(submission_id)
        result = await self.db.execute(
            select(Message)
            .where(Message.submission_id == submission_id)
            .order_by(Message.created_at, Message.seq)
        )
        return list(result.scalars().all())
