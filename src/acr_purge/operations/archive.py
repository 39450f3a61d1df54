"""Reversible move of manifests into an archive repository.

Archiving never copies blob bytes: the config and layer blobs are
cross-mounted into the archive repository, the manifest is pushed there
under a synthesized tag, and an archive record (stored as metadata on both
sides) remembers which tags pointed at the digest. The source manifest is
only deleted once all of that succeeded.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from ..core.registry_client import RegistryClient
from ..core.types import ARCHIVE_METADATA_KEY, ArchiveRecord
from ..exceptions import MetadataError, RegistryError, ValidationError
from ..utils.digest import is_sha256_digest, short_hex, verify_digest
from ..utils.timestamps import utc_now

logger = logging.getLogger(__name__)


class DigestLocks:
    """One asyncio.Lock per key (a digest or an archive tag)."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]


def archive_tag_name(archive_repository: str, digest: str) -> str:
    """Tag under which a digest is stored in the archive repository.

    Logical name of the archive repository (last path segment) followed by
    the first 8 hex characters of the digest.

    Raises:
        ValidationError: If digest is not a sha256 digest
    """
    if not is_sha256_digest(digest):
        raise ValidationError(f"Reference has to be a sha256 digest: {digest!r}")
    logical_name = archive_repository.rstrip("/").rsplit("/", 1)[-1]
    return logical_name + short_hex(digest)


async def load_archive_record(
    client: RegistryClient, repository: str, digest: str
) -> Optional[ArchiveRecord]:
    """Fetch the archive record of a manifest, None if it has none.

    Raises:
        MetadataError: If the stored record cannot be decoded
    """
    value = await client.get_manifest_metadata(repository, digest, ARCHIVE_METADATA_KEY)
    if value is None:
        return None
    return ArchiveRecord.from_json(value)


async def record_archived_tag(
    client: RegistryClient,
    repository: str,
    digest: str,
    tag_name: Optional[str],
    now: Optional[datetime] = None,
    locks: Optional[DigestLocks] = None,
) -> ArchiveRecord:
    """Append a tag to the archive record of a digest and store it.

    A missing record is created; an existing one only grows.

    Args:
        client: Registry client
        repository: Source repository
        digest: Manifest digest
        tag_name: Tag being archived; None stores the record unchanged
            (or an empty one)
        now: Archive time, defaults to the current UTC time
        locks: Per-digest locks shared by the tasks of one run

    Returns:
        ArchiveRecord: The stored record

    Raises:
        MetadataError: If the record cannot be decoded or persisted
    """
    now = now or utc_now()
    lock = (locks or DigestLocks()).lock_for(digest)
    async with lock:
        record = await load_archive_record(client, repository, digest)
        if record is None:
            record = ArchiveRecord(
                digest=digest, original_repository=repository, last_update_time=now
            )
        if tag_name:
            record.append(tag_name, now)

        try:
            await client.update_manifest_metadata(
                repository, digest, ARCHIVE_METADATA_KEY, record.to_json()
            )
        except RegistryError as e:
            raise MetadataError(f"Cannot store archive record of {digest}: {e}") from e

    logger.debug("Archive record of %s now lists %s", digest, record.tag_names)
    return record


async def _check_archive_slot(
    client: RegistryClient,
    repository: str,
    archive_repository: str,
    archive_tag: str,
    digest: str,
) -> Optional[ArchiveRecord]:
    """Return the record already attached to the archive tag, if any.

    Raises:
        ValidationError: If the archive tag holds another digest, or the
            same digest archived from another repository
    """
    value = await client.get_tag_metadata(archive_repository, archive_tag, ARCHIVE_METADATA_KEY)
    if value is None:
        return None
    existing = ArchiveRecord.from_json(value)
    if existing.digest != digest:
        raise ValidationError(
            f"Archive tag {archive_repository}:{archive_tag} already holds "
            f"{existing.digest}, refusing to archive {digest}"
        )
    if existing.original_repository != repository:
        raise ValidationError(
            f"{digest} is already archived from {existing.original_repository} as "
            f"{archive_repository}:{archive_tag}, refusing to archive it from {repository}"
        )
    return existing


def _merge_records(existing: Optional[ArchiveRecord], record: ArchiveRecord) -> ArchiveRecord:
    # Tags archived by an earlier move of the same digest are kept
    if existing is None:
        return record
    tags = list(existing.tags) + [tag for tag in record.tags if tag not in existing.tags]
    return ArchiveRecord(
        digest=record.digest,
        original_repository=record.original_repository,
        last_update_time=record.last_update_time,
        tags=tags,
    )


async def archive_manifest(
    client: RegistryClient,
    repository: str,
    archive_repository: str,
    digest: str,
    tag_name: Optional[str] = None,
    now: Optional[datetime] = None,
    locks: Optional[DigestLocks] = None,
    slot_locks: Optional[DigestLocks] = None,
) -> str:
    """Move a manifest from a repository into the archive repository.

    Args:
        client: Registry client
        repository: Source repository
        archive_repository: Archive repository
        digest: Manifest digest
        tag_name: Tag being archived along with the manifest, if any
        now: Archive time, defaults to the current UTC time
        locks: Per-digest locks shared by the tasks of one run
        slot_locks: Per-archive-tag locks shared by the tasks of one run

    Returns:
        str: The archive-side tag name

    Raises:
        ValidationError: If digest is not a sha256 digest or the archive
            tag is taken by another digest or another repository
        MetadataError: If the archive record cannot be read or written
        RegistryError: If any registry call fails

    The source manifest is deleted last; any earlier failure leaves it
    in place.
    """
    archive_tag = archive_tag_name(archive_repository, digest)
    slot = (slot_locks or DigestLocks()).lock_for(f"{archive_repository}:{archive_tag}")
    async with slot:
        existing = await _check_archive_slot(
            client, repository, archive_repository, archive_tag, digest
        )

        record = await record_archived_tag(client, repository, digest, tag_name, now, locks)
        manifest = await client.get_manifest(repository, digest)

        for blob_digest in manifest.blob_digests:
            await client.cross_mount(archive_repository, blob_digest, repository)

        await client.put_manifest(archive_repository, archive_tag, manifest)
        try:
            await client.update_tag_metadata(
                archive_repository,
                archive_tag,
                ARCHIVE_METADATA_KEY,
                _merge_records(existing, record).to_json(),
            )
        except RegistryError as e:
            raise MetadataError(f"Cannot attach archive record to {archive_tag}: {e}") from e

    await client.delete_manifest(repository, digest)
    logger.info("Archived %s@%s as %s:%s", repository, digest, archive_repository, archive_tag)
    return archive_tag


async def unarchive_manifest(
    client: RegistryClient,
    archive_repository: str,
    reference: str,
    new_tag_name: Optional[str] = None,
    repository: Optional[str] = None,
    report: Optional[Callable[[str], None]] = None,
) -> list[str]:
    """Restore an archived manifest into its repository.

    Args:
        client: Registry client
        archive_repository: Archive repository
        reference: Digest of the archived manifest
        new_tag_name: Restore under this tag only, instead of the
            recorded tags
        repository: Destination repository, defaults to the recorded
            original repository
        report: Called once per restored reference

    Returns:
        list[str]: Restored references ("repo:tag", or "repo@digest" when
            the record lists no tag)

    Raises:
        ValidationError: If reference is not a digest or the archive
            holds a different manifest under its tag
        MetadataError: If the archive record is missing or invalid
        RegistryError: If any registry call fails
    """
    archive_tag = archive_tag_name(archive_repository, reference)

    value = await client.get_tag_metadata(archive_repository, archive_tag, ARCHIVE_METADATA_KEY)
    if value is None:
        raise MetadataError(f"No archive record for {reference} in {archive_repository}")
    record = ArchiveRecord.from_json(value)
    if record.digest != reference:
        raise ValidationError(
            f"{archive_repository}:{archive_tag} archives {record.digest}, not {reference}"
        )

    destination = repository or record.original_repository
    manifest = await client.get_manifest(archive_repository, archive_tag)
    if not verify_digest(manifest.raw, reference):
        raise ValidationError(f"Archived manifest does not match {reference}")

    for blob_digest in manifest.blob_digests:
        await client.cross_mount(destination, blob_digest, archive_repository)

    if new_tag_name:
        tag_names = [new_tag_name]
    else:
        tag_names = list(dict.fromkeys(record.tag_names))

    restored = []
    if tag_names:
        for tag_name in tag_names:
            await client.put_manifest(destination, tag_name, manifest)
            restored.append(f"{destination}:{tag_name}")
            if report:
                report(restored[-1])
    else:
        await client.put_manifest(destination, reference, manifest)
        restored.append(f"{destination}@{reference}")
        if report:
            report(restored[-1])

    # Deleting by digest would also drop any other archive tag pointing at it
    await client.delete_tag(archive_repository, archive_tag)
    logger.info("Unarchived %s from %s into %s", reference, archive_repository, destination)
    return restored
