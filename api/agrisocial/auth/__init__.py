"""Authentication utilities for the AgriSocial API."""

from agrisocial.auth.api_key import IssuedKey, fingerprint, is_well_formed, issue_api_key

__all__ = [
    "IssuedKey",
    "fingerprint",
    "is_well_formed",
    "issue_api_key",
]
