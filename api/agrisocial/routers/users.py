"""Users router for profiles and the follow graph."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from agrisocial.auth.dependencies import get_current_user
from agrisocial.database import get_db
from agrisocial.models.user import User
from agrisocial.schemas.users import (
    FollowResponse,
    UpdateProfileRequest,
    UserListResponse,
    UserMeResponse,
    UserProfileResponse,
    UserSummary,
)
from agrisocial.services.follows import FollowService
from agrisocial.services.profiles import ProfileService, UserProfile
from agrisocial.timestamps import isoformat

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _profile_fields(profile: UserProfile) -> dict:
    user = profile.user
    return {
        "user_id": str(user.id),
        "username": user.username,
        "display_name": user.display_name,
        "role": user.role,
        "avatar_url": user.avatar_url,
        "region": user.region,
        "specialization": user.specialization,
        "is_verified": bool(user.is_verified),
        "created_at": isoformat(user.created_at),
        "followers": sorted(str(user_id) for user_id in profile.followers),
        "following": sorted(str(user_id) for user_id in profile.following),
        "follower_count": len(profile.followers),
        "following_count": len(profile.following),
    }


def _summary(user: User) -> UserSummary:
    return UserSummary(
        user_id=str(user.id),
        username=user.username,
        display_name=user.display_name,
        role=user.role,
        avatar_url=user.avatar_url,
    )


# --- Own Profile ---


@router.get(
    "/me",
    response_model=UserMeResponse,
    status_code=status.HTTP_200_OK,
)
async def get_current_user_profile(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> UserMeResponse:
    """Get the authenticated user's profile, including private fields."""
    profile = await ProfileService(db).get_profile(user.id)
    return UserMeResponse(email=user.email, **_profile_fields(profile))


@router.patch(
    "/me",
    response_model=UserMeResponse,
    status_code=status.HTTP_200_OK,
)
async def update_current_user_profile(
    data: UpdateProfileRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> UserMeResponse:
    """
    Update the authenticated user's profile.

    Only fields present in the request body are changed.
    """
    service = ProfileService(db)
    await service.update_profile(user, data.model_dump(exclude_unset=True))
    profile = await service.get_profile(user.id)
    return UserMeResponse(email=user.email, **_profile_fields(profile))


# --- Public Profiles ---


@router.get(
    "/by-username/{username}",
    response_model=UserProfileResponse,
    status_code=status.HTTP_200_OK,
)
async def get_user_by_username(
    username: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> UserProfileResponse:
    """Get a user's public profile by username."""
    service = ProfileService(db)
    target = await service.get_user_by_username(username)
    profile = await service.get_profile(target.id)
    return UserProfileResponse(**_profile_fields(profile))


@router.get(
    "/{user_id}",
    response_model=UserProfileResponse,
    status_code=status.HTTP_200_OK,
)
async def get_user_profile(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> UserProfileResponse:
    """
    Get a user's public profile.

    Returns public information only (no email or other private data).
    """
    profile = await ProfileService(db).get_profile(user_id)
    return UserProfileResponse(**_profile_fields(profile))


# --- Follow Graph ---


@router.post(
    "/{user_id}/follow",
    response_model=FollowResponse,
    status_code=status.HTTP_200_OK,
)
async def follow_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> FollowResponse:
    """Follow a user. Following someone already followed is a no-op."""
    created = await FollowService(db).follow(user.id, user_id)
    return FollowResponse(user_id=str(user_id), following=True, changed=created)


@router.delete(
    "/{user_id}/follow",
    response_model=FollowResponse,
    status_code=status.HTTP_200_OK,
)
async def unfollow_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> FollowResponse:
    """Unfollow a user. Unfollowing someone not followed is a no-op."""
    removed = await FollowService(db).unfollow(user.id, user_id)
    return FollowResponse(user_id=str(user_id), following=False, changed=removed)


@router.get(
    "/{user_id}/followers",
    response_model=UserListResponse,
    status_code=status.HTTP_200_OK,
)
async def list_followers(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> UserListResponse:
    """List the users following user_id."""
    followers = await FollowService(db).list_followers(user_id)
    return UserListResponse(items=[_summary(u) for u in followers])


@router.get(
    "/{user_id}/following",
    response_model=UserListResponse,
    status_code=status.HTTP_200_OK,
)
async def list_following(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> UserListResponse:
    """List the users user_id follows."""
    following = await FollowService(db).list_following(user_id)
    return UserListResponse(items=[_summary(u) for u in following])
