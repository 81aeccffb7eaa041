"""Profile API keys.

A key is ``as_live_`` followed by 64 hex characters. Only an HMAC of the key
is stored; the plaintext is handed out once, at registration.
"""

import hashlib
import hmac
import re
import secrets
from typing import NamedTuple

from agrisocial.config import settings

API_KEY_PREFIX = "as_live_"
DISPLAY_PREFIX_LENGTH = 12

_KEY_PATTERN = re.compile(rf"^{API_KEY_PREFIX}[0-9a-f]{{64}}$")


class IssuedKey(NamedTuple):
    plaintext: str
    key_hash: str
    display_prefix: str


def issue_api_key() -> IssuedKey:
    plaintext = API_KEY_PREFIX + secrets.token_hex(32)
    return IssuedKey(
        plaintext=plaintext,
        key_hash=fingerprint(plaintext),
        display_prefix=plaintext[:DISPLAY_PREFIX_LENGTH],
    )


def is_well_formed(key: str) -> bool:
    """Cheap shape check so malformed headers never reach the database."""
    return bool(_KEY_PATTERN.match(key))


def fingerprint(key: str) -> str:
    return hmac.new(
        settings.api_key_secret.encode(),
        key.encode(),
        hashlib.sha256,
    ).hexdigest()
