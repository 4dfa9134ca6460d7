"""
Profile cache entry point.

Resolves the given conversation keys through a CacheCoordinator and logs
each profile, real or degraded:

    python main.py conv-1 conv-2
"""

import asyncio
import sys

from loguru import logger

from profile_cache.services import (
    CacheCoordinator,
    ProfileFallbackProvider,
    ProfileFetcher,
)
from profile_cache.settings import global_settings


async def main(keys: list[str]) -> None:
    """Resolve keys concurrently and log the results."""
    logger.info(f"Resolving {len(keys)} profiles...")

    headers = {}
    if global_settings.profile_api_token:
        headers["Authorization"] = f"Bearer {global_settings.profile_api_token}"

    async with ProfileFetcher(
        global_settings.profile_api_base_url,
        timeout=global_settings.profile_api_timeout,
        headers=headers,
    ) as fetcher:
        coordinator = CacheCoordinator(
            fetcher=fetcher,
            fallback=ProfileFallbackProvider(),
            config=global_settings.to_cache_config(),
        )
        async with coordinator:
            profiles = await asyncio.gather(*(coordinator.get(key) for key in keys))

            for key, profile in zip(keys, profiles):
                logger.info(f"{key}: {profile.model_dump_json()}")

            logger.info(f"Stats: {coordinator.stats().to_dict()}")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("usage: python main.py KEY [KEY ...]", file=sys.stderr)
        sys.exit(2)
    asyncio.run(main(sys.argv[1:]))
