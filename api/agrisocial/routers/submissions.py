"""Submissions router for expert review of AI diagnoses."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from agrisocial.auth.dependencies import get_current_user, require_role
from agrisocial.database import get_db
from agrisocial.errors import PermissionDenied
from agrisocial.models.submission import DiagnosisSubmission
from agrisocial.models.user import User
from agrisocial.schemas.conversations import message_response
from agrisocial.schemas.submissions import (
    CreateSubmissionRequest,
    ListSubmissionMessagesResponse,
    ListSubmissionsResponse,
    ReviewRequest,
    SubmissionMessageRequest,
    SubmissionMessageResponse,
    SubmissionResponse,
    SubmissionWorkflowResponse,
)
from agrisocial.services.review import ReviewOutcome, ReviewWorkflow
from agrisocial.timestamps import isoformat

router = APIRouter(prefix="/api/v1/submissions", tags=["Submissions"])


def _submission_fields(submission: DiagnosisSubmission) -> dict:
    return {
        "id": str(submission.id),
        "farmer_id": str(submission.farmer_id),
        "farmer_name": submission.farmer_name,
        "diagnosis": submission.diagnosis or {},
        "image_data": submission.image_data,
        "submitted_at": isoformat(submission.submitted_at),
        "status": submission.status,
        "expert_feedback": submission.expert_feedback,
        "expert_id": str(submission.expert_id) if submission.expert_id else None,
        "reviewed_at": isoformat(submission.reviewed_at),
    }


def _workflow_response(outcome: ReviewOutcome) -> SubmissionWorkflowResponse:
    return SubmissionWorkflowResponse(
        **_submission_fields(outcome.submission),
        warnings=[w.message for w in outcome.warnings],
    )


def _check_can_view(submission: DiagnosisSubmission, user: User) -> None:
    if user.role != "expert" and submission.farmer_id != user.id:
        raise PermissionDenied("You can only view your own submissions")


# --- Submissions ---


@router.post(
    "",
    response_model=SubmissionWorkflowResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_submission(
    data: CreateSubmissionRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> SubmissionWorkflowResponse:
    """
    Submit a diagnosis for expert review.

    Every expert is notified. A failed notification does not undo the
    submission; it is reported in warnings.
    """
    outcome = await ReviewWorkflow(db).submit_diagnosis(user, data.diagnosis, data.image_data)
    return _workflow_response(outcome)


@router.get(
    "",
    response_model=ListSubmissionsResponse,
    status_code=status.HTTP_200_OK,
)
async def list_submissions(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    status_filter: str | None = Query(default=None, alias="status", description="Filter by status"),
) -> ListSubmissionsResponse:
    """
    List submissions, newest first.

    Experts see the whole review queue; everyone else sees their own.
    """
    workflow = ReviewWorkflow(db)
    if user.role == "expert":
        submissions = await workflow.list_submissions(status_filter)
    else:
        submissions = await workflow.list_submissions_for_farmer(user.id, status_filter)
    return ListSubmissionsResponse(
        items=[SubmissionResponse(**_submission_fields(s)) for s in submissions]
    )


@router.get(
    "/{submission_id}",
    response_model=SubmissionResponse,
    status_code=status.HTTP_200_OK,
)
async def get_submission(
    submission_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> SubmissionResponse:
    """Get a submission. Visible to its farmer and to experts."""
    submission = await ReviewWorkflow(db).get_submission(submission_id)
    _check_can_view(submission, user)
    return SubmissionResponse(**_submission_fields(submission))


@router.delete(
    "/{submission_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_submission(
    submission_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> None:
    """Withdraw your own submission. Related notifications stay in place."""
    await ReviewWorkflow(db).delete_submission(submission_id, user.id)


# --- Review ---


@router.post(
    "/{submission_id}/review",
    response_model=SubmissionWorkflowResponse,
    status_code=status.HTTP_200_OK,
)
async def review_submission(
    submission_id: UUID,
    data: ReviewRequest,
    db: AsyncSession = Depends(get_db),
    expert: User = Depends(require_role("expert")),
) -> SubmissionWorkflowResponse:
    """
    Approve or reject a pending submission.

    The farmer is notified with the decision and feedback.
    """
    outcome = await ReviewWorkflow(db).on_status_changed(
        submission_id, data.status, feedback=data.feedback, expert=expert
    )
    return _workflow_response(outcome)


# --- Submission Thread ---


@router.get(
    "/{submission_id}/messages",
    response_model=ListSubmissionMessagesResponse,
    status_code=status.HTTP_200_OK,
)
async def list_submission_messages(
    submission_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> ListSubmissionMessagesResponse:
    """Messages exchanged about a submission, in send order."""
    workflow = ReviewWorkflow(db)
    submission = await workflow.get_submission(submission_id)
    _check_can_view(submission, user)
    messages = await workflow.list_submission_messages(submission_id)
    return ListSubmissionMessagesResponse(items=[message_response(m) for m in messages])


@router.post(
    "/{submission_id}/messages",
    response_model=SubmissionMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_submission_message(
    submission_id: UUID,
    data: SubmissionMessageRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> SubmissionMessageResponse:
    """
    Message about a submission.

    The message is stored in the farmer/expert conversation, so it also
    shows up in both users' conversation lists.
    """
    outcome = await ReviewWorkflow(db).send_submission_message(submission_id, user, data.text)
    return SubmissionMessageResponse(
        **message_response(outcome.message).model_dump(),
        warnings=[w.message for w in outcome.warnings],
    )
