"""Authentication dependencies for FastAPI endpoints."""

import hmac
from datetime import timedelta

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from agrisocial.auth.api_key import fingerprint, is_well_formed
from agrisocial.database import get_db
from agrisocial.models.user import APIKey, User
from agrisocial.timestamps import as_utc, utcnow

# Minimum interval between last_seen_at updates to reduce write amplification
LAST_SEEN_UPDATE_INTERVAL = timedelta(minutes=5)


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": {
                "code": "UNAUTHORIZED",
                "message": message,
            }
        },
    )


async def get_current_user(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Validate the API key and return the authenticated user.

    Raises:
        HTTPException: 401 if API key is missing, invalid, revoked or expired
    """
    if not x_api_key:
        raise _unauthorized("API key required")

    if not is_well_formed(x_api_key):
        raise _unauthorized("Invalid API key format")

    key_hash = fingerprint(x_api_key)

    result = await db.execute(
        select(APIKey)
        .options(selectinload(APIKey.user))
        .where(APIKey.key_hash == key_hash)
        .where(APIKey.revoked_at.is_(None))
    )
    api_key = result.scalar_one_or_none()

    if not api_key:
        # Keep response time independent of whether the key exists
        hmac.compare_digest(key_hash, "0" * 64)
        raise _unauthorized("Invalid or revoked API key")

    now = utcnow()
    if api_key.expires_at is not None and as_utc(api_key.expires_at) < now:
        raise _unauthorized("API key has expired")

    # Sampled activity tracking, committed with the request's unit of work
    user = api_key.user
    if user.last_seen_at is None or now - as_utc(user.last_seen_at) > LAST_SEEN_UPDATE_INTERVAL:
        user.last_seen_at = now
        api_key.last_used_at = now

    return user


def require_role(*roles: str):
    """Dependency factory to require one of the given profile roles."""

    async def check_role(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": {
                        "code": "FORBIDDEN",
                        "message": f"Role '{' or '.join(roles)}' required",
                    }
                },
            )
        return user

    return check_role
