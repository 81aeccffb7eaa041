"""Fail if Alembic migrations are out of sync with the AgriSocial models."""

from __future__ import annotations

import asyncio
import logging
import sys

from alembic.autogenerate import compare_metadata
from alembic.migration import MigrationContext
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from agrisocial import models  # noqa: F401  # Ensure models are registered
from agrisocial.config import configure_logging, settings
from agrisocial.database import Base, migrate_db

logger = logging.getLogger("check_migrations")


def _compare(connection) -> list[object]:
    context = MigrationContext.configure(connection, opts={"compare_type": True})
    return compare_metadata(context, Base.metadata)


async def main(db_url: str) -> int:
    await migrate_db("head", db_url)

    engine = create_async_engine(db_url)
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
        diffs = await conn.run_sync(_compare)
    await engine.dispose()

    if diffs:
        logger.error("Detected schema differences between models and migrations:")
        for diff in diffs:
            logger.error(f"  {diff}")
        return 1

    logger.info("No schema differences detected.")
    return 0


if __name__ == "__main__":
    configure_logging()
    url = sys.argv[1] if len(sys.argv) > 1 else settings.database_url
    raise SystemExit(asyncio.run(main(url)))
