"""Diagnosis submission model for the expert review workflow."""

import uuid

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB

from agrisocial.database import Base

SUBMISSION_STATUSES = ("pending", "approved", "rejected")


class DiagnosisSubmission(Base):
    """
    A farmer's crop diagnosis awaiting expert review.

    The diagnosis payload and image are opaque to this service.
    """

    __tablename__ = "diagnosis_submissions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    farmer_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    farmer_name = Column(Text, nullable=False)
    diagnosis = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
    image_data = Column(Text, nullable=False)
    submitted_at = Column(TIMESTAMP(timezone=True), nullable=False)
    status = Column(String(16), nullable=False, server_default="pending")
    expert_feedback = Column(Text)
    expert_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    reviewed_at = Column(TIMESTAMP(timezone=True))

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_diagnosis_submissions_status",
        ),
        Index("idx_diagnosis_submissions_farmer", "farmer_id", "submitted_at"),
        Index("idx_diagnosis_submissions_status", "status", "submitted_at"),
    )
