"""User-related Pydantic schemas."""

from pydantic import BaseModel


class UserProfileResponse(BaseModel):
    """Public profile with both sides of the follow graph."""

    user_id: str
    username: str
    display_name: str
    role: str
    avatar_url: str | None
    region: str | None
    specialization: str | None
    is_verified: bool
    created_at: str | None
    followers: list[str]
    following: list[str]
    follower_count: int
    following_count: int
    # Note: email is NOT included - it's private


class UserMeResponse(UserProfileResponse):
    """Response for GET /users/me endpoint."""

    email: str


class UpdateProfileRequest(BaseModel):
    """Request to update user profile."""

    display_name: str | None = None
    avatar_url: str | None = None
    region: str | None = None
    specialization: str | None = None


class UserSummary(BaseModel):
    """Compact user entry for follower lists."""

    user_id: str
    username: str
    display_name: str
    role: str
    avatar_url: str | None


class UserListResponse(BaseModel):
    items: list[UserSummary]


class FollowResponse(BaseModel):
    """Follow state after a follow/unfollow call."""

    user_id: str
    following: bool
    changed: bool
