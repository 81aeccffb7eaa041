"""Diagnosis submission schemas."""

from typing import Any

from pydantic import BaseModel, field_validator

from agrisocial.schemas.conversations import MessageResponse


class CreateSubmissionRequest(BaseModel):
    """Submit an AI diagnosis for expert review."""

    diagnosis: dict[str, Any]
    image_data: str

    @field_validator("image_data")
    @classmethod
    def validate_image_data(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Image data cannot be empty")
        if len(v) > 10 * 1024 * 1024:  # 10MB
            raise ValueError("Image data must be 10MB or less")
        return v


class ReviewRequest(BaseModel):
    """Expert decision on a pending submission."""

    status: str
    feedback: str | None = None

    @field_validator("feedback")
    @classmethod
    def validate_feedback(cls, v: str | None) -> str | None:
        if v is not None and len(v) > 10000:
            raise ValueError("Feedback must be 10000 characters or less")
        return v


class SubmissionResponse(BaseModel):
    id: str
    farmer_id: str
    farmer_name: str
    diagnosis: dict[str, Any]
    image_data: str
    submitted_at: str
    status: str
    expert_feedback: str | None
    expert_id: str | None
    reviewed_at: str | None


class SubmissionWorkflowResponse(SubmissionResponse):
    """Submission state plus any non-fatal notification delivery warnings."""

    warnings: list[str]


class ListSubmissionsResponse(BaseModel):
    items: list[SubmissionResponse]


class SubmissionMessageRequest(BaseModel):
    text: str


class SubmissionMessageResponse(MessageResponse):
    warnings: list[str]


class ListSubmissionMessagesResponse(BaseModel):
    items: list[MessageResponse]
