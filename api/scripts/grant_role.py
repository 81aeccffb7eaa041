"""Grant a role to an existing profile, e.g. to make someone an expert.

Usage: python scripts/grant_role.py <username> <role> [specialization]
"""

from __future__ import annotations

import asyncio
import logging
import sys

from agrisocial.config import configure_logging
from agrisocial.database import AsyncSessionLocal, engine
from agrisocial.errors import AppError
from agrisocial.services.profiles import ProfileService

logger = logging.getLogger("grant_role")


async def main(username: str, role: str, specialization: str | None) -> int:
    try:
        async with AsyncSessionLocal() as session:
            service = ProfileService(session)
            user = await service.get_user_by_username(username)
            await service.grant_role(user.id, role, specialization)
    except AppError as exc:
        logger.error(f"Could not grant {role} to {username}: {exc.message}")
        return 1
    finally:
        await engine.dispose()

    logger.info(f"{username} is now {role}")
    return 0


if __name__ == "__main__":
    configure_logging()
    if len(sys.argv) not in (3, 4):
        print(__doc__.strip().splitlines()[-1], file=sys.stderr)
        raise SystemExit(2)
    specialization = sys.argv[3] if len(sys.argv) == 4 else None
    raise SystemExit(asyncio.run(main(sys.argv[1], sys.argv[2], specialization)))
