"""Services for the AgriSocial API."""

from agrisocial.services.conversations import ConversationService, SendOutcome
from agrisocial.services.follows import FollowService
from agrisocial.services.notifications import NotificationService, audience_for
from agrisocial.services.profiles import ProfileService, UserProfile
from agrisocial.services.review import ReviewOutcome, ReviewWorkflow

__all__ = [
    "ConversationService",
    "SendOutcome",
    "FollowService",
    "NotificationService",
    "audience_for",
    "ProfileService",
    "UserProfile",
    "ReviewWorkflow",
    "ReviewOutcome",
]
