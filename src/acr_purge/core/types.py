"""Core data types for registry purge operations."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import aiohttp

from ..exceptions import MetadataError
from ..utils.timestamps import format_timestamp, parse_timestamp
from .auth import get_hostname

# Metadata key holding the archive record of a manifest
ARCHIVE_METADATA_KEY = "acrarchiveinfo"

DOCKER_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
OCI_MANIFEST_V1 = "application/vnd.oci.image.manifest.v1+json"
MANIFEST_ACCEPT = ", ".join([DOCKER_MANIFEST_V2, OCI_MANIFEST_V1])


@dataclass(frozen=True)
class RegistryConfig:
    """Connection settings for one registry.

    Attributes:
        login_url: Registry login server (e.g. "myregistry.azurecr.io")
        auth: Basic credentials, or the value of the Authorization header
        timeout: Request timeout in seconds
        page_size: Number of entries requested per listing page
    """

    login_url: str
    auth: str | aiohttp.BasicAuth = ""
    timeout: int = 30
    page_size: int = 100

    @property
    def base_url(self) -> str:
        """Registry URL including the scheme."""
        return get_hostname(self.login_url).rstrip("/")


@dataclass(frozen=True)
class PurgeOptions:
    """Immutable settings of one purge run."""

    repository: str
    ago: str = "1d"
    filter: str | None = None
    archive_repository: str | None = None
    dangling_only: bool = False
    continue_on_error: bool = False
    dry_run: bool = False


@dataclass
class Tag:
    """Tag attributes as listed by the registry."""

    name: str
    digest: str
    last_update_time: datetime

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Tag":
        return cls(
            name=data["name"],
            digest=data["digest"],
            last_update_time=parse_timestamp(data["lastUpdateTime"]),
        )


@dataclass
class ManifestAttributes:
    """Manifest attributes as listed by the registry."""

    digest: str
    tags: list[str] = field(default_factory=list)

    @property
    def is_dangling(self) -> bool:
        """True if no tag references this manifest."""
        return not self.tags

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ManifestAttributes":
        # The registry sends null for untagged manifests
        return cls(digest=data["digest"], tags=list(data.get("tags") or []))


@dataclass
class Manifest:
    """Image manifest body.

    ``raw`` is kept verbatim so pushing it elsewhere yields the same digest.
    """

    raw: bytes
    media_type: str = DOCKER_MANIFEST_V2
    config_digest: str | None = None
    layer_digests: list[str] = field(default_factory=list)

    @property
    def blob_digests(self) -> list[str]:
        """Config digest (if any) followed by the layer digests."""
        digests = [self.config_digest] if self.config_digest else []
        return digests + list(self.layer_digests)

    @classmethod
    def from_bytes(cls, raw: bytes, media_type: str | None = None) -> "Manifest":
        """Build a manifest from its serialized body.

        Raises:
            ValueError: If the body is not a JSON object
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("Manifest must be a JSON object")

        config = data.get("config") or {}
        return cls(
            raw=raw,
            media_type=media_type or data.get("mediaType") or DOCKER_MANIFEST_V2,
            config_digest=config.get("digest"),
            layer_digests=[layer["digest"] for layer in data.get("layers") or []],
        )


@dataclass
class ArchivedTag:
    """One tag that pointed at an archived digest."""

    name: str
    archive_time: datetime


@dataclass
class ArchiveRecord:
    """Archive metadata attached to a manifest and to its archive-side tag."""

    digest: str
    original_repository: str
    last_update_time: datetime
    tags: list[ArchivedTag] = field(default_factory=list)

    @property
    def tag_names(self) -> list[str]:
        return [tag.name for tag in self.tags]

    def append(self, tag_name: str, when: datetime) -> None:
        """Record one more archived tag; prior entries are kept."""
        self.tags.append(ArchivedTag(name=tag_name, archive_time=when))
        self.last_update_time = when

    def to_json(self) -> str:
        return json.dumps(
            {
                "digest": self.digest,
                "originalRepository": self.original_repository,
                "lastUpdateTime": format_timestamp(self.last_update_time),
                "tags": [
                    {"name": tag.name, "archiveTime": format_timestamp(tag.archive_time)}
                    for tag in self.tags
                ],
            }
        )

    @classmethod
    def from_json(cls, value: str) -> "ArchiveRecord":
        """Decode a stored archive record.

        Raises:
            MetadataError: If the document is not a valid archive record
        """
        try:
            data = json.loads(value)
            return cls(
                digest=data["digest"],
                original_repository=data["originalRepository"],
                last_update_time=parse_timestamp(data["lastUpdateTime"]),
                tags=[
                    ArchivedTag(
                        name=tag["name"],
                        archive_time=parse_timestamp(tag["archiveTime"]),
                    )
                    for tag in data.get("tags") or []
                ],
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise MetadataError(f"Invalid archive record: {e}") from e


@dataclass
class PurgeResult:
    """Outcome of a purge run: deleted identifiers and per-item failures."""

    deleted: list[str] = field(default_factory=list)
    failed: list[tuple[str, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def extend(self, other: "PurgeResult") -> None:
        self.deleted.extend(other.deleted)
        self.failed.extend(other.failed)
