"""Database models for the AgriSocial API."""

from agrisocial.models.conversation import Conversation, ConversationParticipant, Message
from agrisocial.models.follow import Follow
from agrisocial.models.notification import Notification
from agrisocial.models.submission import DiagnosisSubmission
from agrisocial.models.user import APIKey, User

__all__ = [
    "User",
    "APIKey",
    "Follow",
    "Conversation",
    "ConversationParticipant",
    "Message",
    "Notification",
    "DiagnosisSubmission",
]
