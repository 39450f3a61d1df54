"""Example usage of the async purge API."""

import asyncio
import logging
import os
import sys

from acr_purge import (
    PurgeError,
    PurgeOptions,
    RegistryConfig,
    purge,
    unarchive,
)
from acr_purge.core.auth import basic_auth, login_url

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def registry_config() -> RegistryConfig:
    username = os.getenv("ACR_USERNAME")
    auth = basic_auth(username, os.getenv("ACR_PASSWORD", "")) if username else ""
    return RegistryConfig(login_url=login_url(os.getenv("ACR_REGISTRY", "myregistry")), auth=auth)


async def main():
    """Preview, then archive, tags older than three days."""
    config = registry_config()

    try:
        # Dry run first: nothing is deleted, candidates are only reported
        logger.info("Previewing purge...")
        preview = await purge(
            config,
            PurgeOptions(repository="myapp", ago="3d", filter="^build-.*", dry_run=True),
        )
        logger.info(f"{len(preview.deleted)} item(s) would be purged")

        # Move them to an archive repository instead of deleting them
        result = await purge(
            config,
            PurgeOptions(
                repository="myapp",
                ago="3d",
                filter="^build-.*",
                archive_repository="myapp-archive",
                continue_on_error=True,
            ),
        )
        for identifier, error in result.failed:
            logger.error(f"Could not purge {identifier}: {error}")

    except PurgeError as e:
        logger.error(f"Purge error: {e}")


async def restore(digest: str):
    """Bring an archived image back under its original tags."""
    try:
        restored = await unarchive(registry_config(), "myapp-archive", digest)
        logger.info(f"Restored: {restored}")
    except PurgeError as e:
        logger.error(f"Unarchive error: {e}")


if __name__ == "__main__":
    if len(sys.argv) > 1:
        print("=== Unarchive ===")
        asyncio.run(restore(sys.argv[1]))
    else:
        print("=== Purge ===")
        asyncio.run(main())
