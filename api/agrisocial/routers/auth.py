"""Authentication router for profile registration."""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from agrisocial.config import settings
from agrisocial.database import get_db
from agrisocial.middleware.rate_limit import limiter
from agrisocial.schemas.auth import RegisterRequest, RegisterResponse
from agrisocial.services.profiles import ProfileService

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.register_rate_limit)
async def register(
    request: Request,
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> RegisterResponse:
    """
    Create a profile on first sign-in, with its first API key.

    Returns the plaintext API key - this is the only time it will be visible.
    """
    user, plaintext_key = await ProfileService(db).register(
        username=data.username,
        email=data.email,
        display_name=data.display_name,
        role=data.role,
        avatar_url=data.avatar_url,
        region=data.region,
    )

    return RegisterResponse(
        user_id=str(user.id),
        username=user.username,
        email=user.email,
        display_name=user.display_name,
        role=user.role,
        api_key=plaintext_key,
    )
