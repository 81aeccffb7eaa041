"""Authentication schemas for request/response validation."""

import re

from pydantic import BaseModel, EmailStr, field_validator


class RegisterRequest(BaseModel):
    """Profile registration (first sign-in) request schema."""

    username: str
    email: EmailStr
    display_name: str
    role: str = "user"
    avatar_url: str | None = None
    region: str | None = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        """Validate username format: 3-32 chars, lowercase alphanumeric and underscore only."""
        if not re.match(r"^[a-z0-9_]{3,32}$", v):
            raise ValueError(
                "Username must be 3-32 characters, lowercase letters, numbers, and underscores only"
            )
        return v

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Display name cannot be empty")
        if len(v) > 100:
            raise ValueError("Display name must be 100 characters or less")
        return v.strip()


class RegisterResponse(BaseModel):
    """Registration response schema."""

    user_id: str
    username: str
    email: str
    display_name: str
    role: str
    api_key: str  # Plaintext key - only returned once at registration!
