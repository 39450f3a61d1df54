"""Purging of old tags."""

import logging
from datetime import datetime
from typing import Optional

from ..core.registry_client import RegistryClient
from ..core.types import PurgeOptions, PurgeResult, Tag
from .archive import DigestLocks, record_archived_tag
from .deletion import DeletionCoordinator
from .duration import cutoff_from_ago
from .pagination import iter_tag_pages
from .selection import TagSelector

logger = logging.getLogger(__name__)


def tag_identifier(login_url: str, repository: str, tag_name: str) -> str:
    """Printable identifier of a tag, e.g. "myreg.azurecr.io/app:v1"."""
    prefix = f"{login_url}/" if login_url else ""
    return f"{prefix}{repository}:{tag_name}"


async def purge_tags(
    client: RegistryClient,
    options: PurgeOptions,
    coordinator: DeletionCoordinator,
    login_url: str = "",
    now: Optional[datetime] = None,
) -> PurgeResult:
    """Untag every tag older than ``options.ago`` that matches the filter.

    The cutoff and the filter are validated before the first listing
    call. With an archive repository configured each tag is first
    appended to the archive record of its digest; the manifest itself is
    moved later by the dangling sweep.

    Raises:
        ParseError: If ``options.ago`` is malformed
        PatternError: If ``options.filter`` is not a valid expression
        Exception: The first deletion failure (fail-fast mode)
    """
    cutoff = cutoff_from_ago(options.ago, now)
    selector = TagSelector(cutoff, options.filter)
    locks = DigestLocks()
    logger.info(
        "Purging tags of %s last updated before %s", options.repository, cutoff.isoformat()
    )

    async def untag(tag: Tag) -> None:
        if options.archive_repository:
            await record_archived_tag(
                client, options.repository, tag.digest, tag.name, now, locks
            )
        await client.delete_tag(options.repository, tag.name)

    return await coordinator.process(
        iter_tag_pages(client, options.repository),
        selector.select,
        untag,
        lambda tag: tag_identifier(login_url, options.repository, tag.name),
    )
