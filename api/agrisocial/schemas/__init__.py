"""Pydantic schemas for request/response validation."""

from agrisocial.schemas.auth import RegisterRequest, RegisterResponse

__all__ = [
    "RegisterRequest",
    "RegisterResponse",
]
