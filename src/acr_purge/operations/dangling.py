"""Sweep of manifests no tag refers to."""

import logging
from datetime import datetime
from typing import Optional

from ..core.registry_client import RegistryClient
from ..core.types import ManifestAttributes, PurgeOptions, PurgeResult
from .archive import DigestLocks, archive_manifest
from .deletion import DeletionCoordinator
from .pagination import iter_manifest_pages
from .selection import select_dangling

logger = logging.getLogger(__name__)


def manifest_identifier(login_url: str, repository: str, digest: str) -> str:
    """Printable identifier of a manifest, e.g. "myreg.azurecr.io/app@sha256:..."."""
    prefix = f"{login_url}/" if login_url else ""
    return f"{prefix}{repository}@{digest}"


async def purge_dangling_manifests(
    client: RegistryClient,
    options: PurgeOptions,
    coordinator: DeletionCoordinator,
    login_url: str = "",
    now: Optional[datetime] = None,
) -> PurgeResult:
    """Delete, or archive, every manifest without tags.

    Manifests are enumerated afresh, so tags removed earlier in the same
    run are already reflected in the tag sets.
    """
    locks = DigestLocks()
    slot_locks = DigestLocks()
    logger.info("Sweeping dangling manifests of %s", options.repository)

    async def dispose(manifest: ManifestAttributes) -> None:
        if options.archive_repository:
            await archive_manifest(
                client,
                options.repository,
                options.archive_repository,
                manifest.digest,
                now=now,
                locks=locks,
                slot_locks=slot_locks,
            )
        else:
            await client.delete_manifest(options.repository, manifest.digest)

    return await coordinator.process(
        iter_manifest_pages(client, options.repository),
        select_dangling,
        dispose,
        lambda manifest: manifest_identifier(login_url, options.repository, manifest.digest),
    )
