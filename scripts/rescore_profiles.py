#!/usr/bin/env python
"""Re-score every stored profile with the current scoring version.

Stored GitHub statistics are reused; nothing is fetched. Profiles keep
their ``updated_at`` so freshness checks still reflect the age of the data.
"""

import asyncio
import sys

from sqlalchemy import select, update

from gitivity.core.logging import configure_logging
from gitivity.db import async_session_maker
from gitivity.db.models import GitivityProfile
from gitivity.scoring import SCORE_VERSION, calculate_gitivity_score
from gitivity.services.profile_service import build_gitivity_stats, stats_from_stored

# Fix Windows asyncio
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


async def rescore_all(only_outdated: bool = True) -> None:
    print("=" * 60)
    print(f"RESCORING PROFILES (score version {SCORE_VERSION})")
    print("=" * 60)

    async with async_session_maker() as db:
        query = select(GitivityProfile)
        if only_outdated:
            query = query.where(GitivityProfile.score_version < SCORE_VERSION)
        result = await db.execute(query)
        profiles = result.scalars().all()

        count = 0
        for profile in profiles:
            old_score = profile.score
            stats = stats_from_stored(profile)
            breakdown = calculate_gitivity_score(stats)

            await db.execute(
                update(GitivityProfile)
                .where(GitivityProfile.id == profile.id)
                .values(
                    score=breakdown.total,
                    score_version=SCORE_VERSION,
                    stats=build_gitivity_stats(stats, breakdown).model_dump(mode="json"),
                    # Keep the age of the underlying GitHub data
                    updated_at=GitivityProfile.updated_at,
                )
            )
            count += 1

            if old_score != breakdown.total:
                print(f"  {profile.username}: {old_score} -> {breakdown.total}")

        await db.commit()

    print(f"\nRescored {count} profiles")


if __name__ == "__main__":
    configure_logging()
    asyncio.run(rescore_all(only_outdated="--all" not in sys.argv))
