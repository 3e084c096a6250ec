#!/usr/bin/env python
"""Create the Gitivity tables in the configured database."""

import asyncio

from gitivity.core.config import settings
from gitivity.core.logging import configure_logging
from gitivity.db import init_db


async def main() -> None:
    configure_logging()
    print(f"Initializing database: {settings.database_url}")

    await init_db()

    print("Database initialization complete!")


if __name__ == "__main__":
    asyncio.run(main())
