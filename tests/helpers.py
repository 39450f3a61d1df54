"""Test helpers: an in-memory registry speaking the RegistryClient interface."""

import asyncio
import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from acr_purge.core.types import DOCKER_MANIFEST_V2, Manifest, ManifestAttributes, Tag
from acr_purge.exceptions import RegistryError
from acr_purge.utils.digest import calculate_digest

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


def not_found(code: str, message: str) -> RegistryError:
    return RegistryError(code, message, 404)


def make_manifest(seed: str, layer_count: int = 2) -> tuple[Manifest, dict[str, bytes]]:
    """Build a manifest and its blobs from a seed string."""
    blobs = {}
    config_data = json.dumps({"architecture": "amd64", "os": "linux", "seed": seed}).encode()
    config_digest = calculate_digest(config_data)
    blobs[config_digest] = config_data

    layers = []
    for index in range(layer_count):
        data = f"{seed}-layer-{index}".encode()
        digest = calculate_digest(data)
        blobs[digest] = data
        layers.append(
            {
                "mediaType": "application/vnd.docker.image.rootfs.diff.tar.gzip",
                "size": len(data),
                "digest": digest,
            }
        )

    body = {
        "schemaVersion": 2,
        "mediaType": DOCKER_MANIFEST_V2,
        "config": {
            "mediaType": "application/vnd.docker.container.image.v1+json",
            "size": len(config_data),
            "digest": config_digest,
        },
        "layers": layers,
    }
    raw = json.dumps(body, indent=3).encode()
    return Manifest.from_bytes(raw, DOCKER_MANIFEST_V2), blobs


@dataclass
class FakeRepository:
    manifests: dict[str, bytes] = field(default_factory=dict)
    tags: dict[str, tuple[str, datetime]] = field(default_factory=dict)
    blobs: set[str] = field(default_factory=set)
    manifest_metadata: dict[tuple[str, str], str] = field(default_factory=dict)
    tag_metadata: dict[tuple[str, str], str] = field(default_factory=dict)

    def tags_of(self, digest: str) -> list[str]:
        return sorted(name for name, (target, _) in self.tags.items() if target == digest)


class FakeRegistry:
    """In-memory registry with the same coroutine API as RegistryClient.

    Every call is recorded in ``calls``; ``fail`` makes a given call raise.
    """

    def __init__(self, page_size: int = 100, now: datetime = NOW) -> None:
        self.page_size = page_size
        self.now = now
        self.repositories: dict[str, FakeRepository] = {}
        self.blob_store: dict[str, bytes] = {}
        self.calls: list[tuple] = []
        self._failures: dict[tuple[str, str], Exception] = {}
        self.registry_url = "https://fake.azurecr.io"

    # Test setup

    def repo(self, name: str) -> FakeRepository:
        return self.repositories.setdefault(name, FakeRepository())

    def push_image(
        self,
        repository: str,
        tags: dict[str, datetime] | list[str] | None = None,
        seed: str | None = None,
    ) -> str:
        """Store an image and point the given tags at it; returns its digest."""
        tags = tags or {}
        if isinstance(tags, list):
            tags = {name: self.now for name in tags}
        manifest, blobs = make_manifest(seed or f"{repository}-{sorted(tags)}")
        repo = self.repo(repository)
        self.blob_store.update(blobs)
        repo.blobs.update(blobs)
        digest = calculate_digest(manifest.raw)
        repo.manifests[digest] = manifest.raw
        for name, updated in tags.items():
            repo.tags[name] = (digest, updated)
        return digest

    def fail(self, method: str, key: str, error: Exception | None = None) -> None:
        """Make ``method`` raise when called for ``key`` (tag, digest or repo)."""
        self._failures[(method, key)] = error or RegistryError(
            "DENIED", f"{method} {key} denied", 403
        )

    def calls_to(self, method: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == method]

    async def _enter(self, method: str, *args: str) -> None:
        self.calls.append((method, *args))
        # Yield so that concurrent tasks really interleave
        await asyncio.sleep(0)
        for key in args:
            error = self._failures.get((method, key))
            if error is not None:
                raise error

    # RegistryClient interface

    async def check_registry_v2(self) -> bool:
        return True

    async def list_tags(self, repository: str, last: str = "", order_by: str = "") -> list[Tag]:
        await self._enter("list_tags", repository, last)
        repo = self.repo(repository)
        names = sorted(name for name in repo.tags if name > last)[: self.page_size]
        return [
            Tag(name=name, digest=repo.tags[name][0], last_update_time=repo.tags[name][1])
            for name in names
        ]

    async def list_manifests(
        self, repository: str, last: str = "", order_by: str = ""
    ) -> list[ManifestAttributes]:
        await self._enter("list_manifests", repository, last)
        repo = self.repo(repository)
        digests = sorted(d for d in repo.manifests if d > last)[: self.page_size]
        return [ManifestAttributes(digest=d, tags=repo.tags_of(d)) for d in digests]

    async def delete_tag(self, repository: str, tag: str) -> None:
        await self._enter("delete_tag", repository, tag)
        repo = self.repo(repository)
        if tag not in repo.tags:
            raise not_found("TAG_UNKNOWN", f"{repository}:{tag}")
        del repo.tags[tag]
        repo.tag_metadata = {k: v for k, v in repo.tag_metadata.items() if k[0] != tag}

    async def delete_manifest(self, repository: str, digest: str) -> None:
        await self._enter("delete_manifest", repository, digest)
        repo = self.repo(repository)
        if digest not in repo.manifests:
            raise not_found("MANIFEST_UNKNOWN", f"{repository}@{digest}")
        del repo.manifests[digest]
        for name in repo.tags_of(digest):
            del repo.tags[name]
        repo.manifest_metadata = {
            k: v for k, v in repo.manifest_metadata.items() if k[0] != digest
        }

    def _resolve(self, repository: str, reference: str) -> str:
        repo = self.repo(repository)
        if reference in repo.manifests:
            return reference
        if reference in repo.tags:
            return repo.tags[reference][0]
        raise not_found("MANIFEST_UNKNOWN", f"{repository}:{reference}")

    async def get_manifest(self, repository: str, reference: str) -> Manifest:
        await self._enter("get_manifest", repository, reference)
        digest = self._resolve(repository, reference)
        return Manifest.from_bytes(self.repo(repository).manifests[digest])

    async def put_manifest(self, repository: str, reference: str, manifest: Manifest) -> str:
        await self._enter("put_manifest", repository, reference)
        repo = self.repo(repository)
        missing = [d for d in manifest.blob_digests if d not in repo.blobs]
        if missing:
            raise RegistryError("MANIFEST_BLOB_UNKNOWN", f"missing {missing}", 400)
        digest = "sha256:" + hashlib.sha256(manifest.raw).hexdigest()
        repo.manifests[digest] = manifest.raw
        if reference != digest:
            repo.tags[reference] = (digest, self.now)
        return digest

    async def get_manifest_metadata(self, repository: str, digest: str, name: str):
        await self._enter("get_manifest_metadata", repository, digest)
        return self.repo(repository).manifest_metadata.get((digest, name))

    async def update_manifest_metadata(
        self, repository: str, digest: str, name: str, value: str
    ) -> None:
        await self._enter("update_manifest_metadata", repository, digest)
        repo = self.repo(repository)
        if digest not in repo.manifests:
            raise not_found("MANIFEST_UNKNOWN", digest)
        repo.manifest_metadata[(digest, name)] = value

    async def get_tag_metadata(self, repository: str, tag: str, name: str):
        await self._enter("get_tag_metadata", repository, tag)
        return self.repo(repository).tag_metadata.get((tag, name))

    async def update_tag_metadata(self, repository: str, tag: str, name: str, value: str) -> None:
        await self._enter("update_tag_metadata", repository, tag)
        repo = self.repo(repository)
        if tag not in repo.tags:
            raise not_found("TAG_UNKNOWN", tag)
        repo.tag_metadata[(tag, name)] = value

    async def cross_mount(self, repository: str, digest: str, source_repository: str) -> None:
        await self._enter("cross_mount", repository, digest)
        if digest not in self.repo(source_repository).blobs:
            raise RegistryError("BLOB_MOUNT_FAILED", digest, 202)
        self.repo(repository).blobs.add(digest)


class RecordingSink:
    """Collects the lines a purge run reports."""

    def __init__(self) -> None:
        self.lines: list[str] = []

    def __call__(self, line: str) -> None:
        self.lines.append(line)
