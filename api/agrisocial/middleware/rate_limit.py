"""Rate limiting for unauthenticated endpoints using slowapi."""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Registration is the only anonymous write, so it is keyed by client IP
limiter = Limiter(key_func=get_remote_address)


def reset_limiter() -> None:
    """Reset the limiter storage. Used in tests to clear rate limit state."""
    limiter.reset()
