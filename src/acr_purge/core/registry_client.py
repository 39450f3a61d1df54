"""Azure Container Registry async client implementation."""

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from ..exceptions import RegistryError, TransportError
from .session import check_response, create_session, parse_json_response
from .types import MANIFEST_ACCEPT, Manifest, ManifestAttributes, RegistryConfig, Tag

logger = logging.getLogger(__name__)


class RegistryClient:
    """Async client for the registry operations the purge engine needs.

    Covers the Docker Registry v2 manifest/blob endpoints and the ACR
    ``/acr/v1`` listing and metadata endpoints.
    """

    def __init__(
        self,
        config: RegistryConfig,
        connector: Optional[aiohttp.TCPConnector] = None,
    ) -> None:
        """Initialize the registry client.

        Args:
            config: Registry configuration
            connector: aiohttp connector for connection pooling
        """
        self.config = config
        self.registry_url = config.base_url
        self.connector = connector
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "RegistryClient":
        """Enter async context manager."""
        if not self.session:
            self.session = await create_session(self.config, self.connector)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the client session."""
        if self.session and not self.session.closed:
            await self.session.close()

    async def _request(
        self,
        method: str,
        path: str,
        *expected: int,
        params: Optional[dict[str, str]] = None,
        data: Optional[bytes] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> tuple[int, bytes, dict[str, str]]:
        """Send one request and return status, body and headers.

        Raises:
            RegistryError: If the registry rejects the request
            TransportError: If the registry cannot be reached
        """
        if self.session is None:
            raise RuntimeError("RegistryClient must be used as an async context manager")

        url = f"{self.registry_url}{path}"
        try:
            async with self.session.request(
                method, url, params=params, data=data, headers=headers
            ) as resp:
                await check_response(resp, *expected)
                body = await resp.read()
                return resp.status, body, dict(resp.headers)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

    async def _get_json(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        if self.session is None:
            raise RuntimeError("RegistryClient must be used as an async context manager")

        url = f"{self.registry_url}{path}"
        try:
            async with self.session.get(url, params=params) as resp:
                await check_response(resp)
                return await parse_json_response(resp)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"GET {url} failed: {e}") from e

    def _listing_params(self, last: str, order_by: str) -> dict[str, str]:
        params = {"n": str(self.config.page_size)}
        if last:
            params["last"] = last
        if order_by:
            params["orderby"] = order_by
        return params

    async def check_registry_v2(self) -> bool:
        """Check if the registry supports v2 API.

        Returns:
            True if v2 API is supported
        """
        try:
            await self._request("GET", "/v2/", 200)
            return True
        except RegistryError:
            return False

    async def list_tags(
        self, repository: str, last: str = "", order_by: str = ""
    ) -> list[Tag]:
        """List one page of tags with their attributes.

        Args:
            repository: Repository name
            last: Name of the last tag of the previous page
            order_by: Optional ordering understood by the registry

        Returns:
            Tags of the page; empty once the listing is exhausted

        Raises:
            RegistryError: If listing fails
        """
        data = await self._get_json(
            f"/acr/v1/{repository}/_tags", self._listing_params(last, order_by)
        )
        try:
            return [Tag.from_api(item) for item in data.get("tags") or []]
        except (KeyError, TypeError, ValueError) as e:
            raise RegistryError("PARSE_ERROR", f"Invalid tag listing: {e}") from e

    async def list_manifests(
        self, repository: str, last: str = "", order_by: str = ""
    ) -> list[ManifestAttributes]:
        """List one page of manifests with their attributes.

        Args:
            repository: Repository name
            last: Digest of the last manifest of the previous page
            order_by: Optional ordering understood by the registry

        Returns:
            Manifests of the page; empty once the listing is exhausted

        Raises:
            RegistryError: If listing fails
        """
        data = await self._get_json(
            f"/acr/v1/{repository}/_manifests", self._listing_params(last, order_by)
        )
        try:
            return [
                ManifestAttributes.from_api(item)
                for item in data.get("manifests") or []
            ]
        except (KeyError, TypeError) as e:
            raise RegistryError("PARSE_ERROR", f"Invalid manifest listing: {e}") from e

    async def delete_tag(self, repository: str, tag: str) -> None:
        """Untag an image; the manifest itself is kept.

        Raises:
            RegistryError: If deletion fails
        """
        await self._request("DELETE", f"/acr/v1/{repository}/_tags/{tag}")

    async def delete_manifest(self, repository: str, digest: str) -> None:
        """Delete a manifest and every tag pointing at it.

        Raises:
            RegistryError: If deletion fails
        """
        await self._request("DELETE", f"/v2/{repository}/manifests/{digest}")

    async def get_manifest(self, repository: str, reference: str) -> Manifest:
        """Retrieve a manifest from the registry.

        Args:
            repository: Repository name
            reference: Tag or digest reference

        Returns:
            Manifest with its raw body

        Raises:
            RegistryError: If retrieval fails
        """
        _, body, headers = await self._request(
            "GET",
            f"/v2/{repository}/manifests/{reference}",
            headers={"Accept": MANIFEST_ACCEPT},
        )
        media_type = headers.get("Content-Type", "").split(";")[0].strip() or None
        try:
            return Manifest.from_bytes(body, media_type)
        except ValueError as e:
            raise RegistryError("MANIFEST_INVALID", f"Cannot parse manifest: {e}") from e

    async def put_manifest(
        self, repository: str, reference: str, manifest: Manifest
    ) -> str:
        """Upload a manifest under a tag or digest.

        Returns:
            Manifest digest reported by the registry

        Raises:
            RegistryError: If upload fails
        """
        _, _, headers = await self._request(
            "PUT",
            f"/v2/{repository}/manifests/{reference}",
            data=manifest.raw,
            headers={"Content-Type": manifest.media_type},
        )
        return headers.get("Docker-Content-Digest", "")

    async def _get_metadata(self, path: str) -> Optional[str]:
        try:
            _, body, _ = await self._request("GET", path, 200)
        except RegistryError as e:
            if e.not_found:
                return None
            raise
        return body.decode("utf-8")

    async def _update_metadata(self, path: str, value: str) -> None:
        await self._request(
            "PUT",
            path,
            data=value.encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )

    async def get_manifest_metadata(
        self, repository: str, digest: str, name: str
    ) -> Optional[str]:
        """Fetch a metadata document of a manifest, None if it does not exist."""
        return await self._get_metadata(
            f"/acr/v1/{repository}/_manifests/{digest}/_metadata/{name}"
        )

    async def update_manifest_metadata(
        self, repository: str, digest: str, name: str, value: str
    ) -> None:
        """Store a metadata document on a manifest."""
        await self._update_metadata(
            f"/acr/v1/{repository}/_manifests/{digest}/_metadata/{name}", value
        )

    async def get_tag_metadata(
        self, repository: str, tag: str, name: str
    ) -> Optional[str]:
        """Fetch a metadata document of a tag, None if it does not exist."""
        return await self._get_metadata(f"/acr/v1/{repository}/_tags/{tag}/_metadata/{name}")

    async def update_tag_metadata(
        self, repository: str, tag: str, name: str, value: str
    ) -> None:
        """Store a metadata document on a tag."""
        await self._update_metadata(
            f"/acr/v1/{repository}/_tags/{tag}/_metadata/{name}", value
        )

    async def cross_mount(
        self, repository: str, digest: str, source_repository: str
    ) -> None:
        """Mount a blob of another repository without uploading it again.

        Args:
            repository: Repository that gains the blob
            digest: Blob digest
            source_repository: Repository that already holds the blob

        Raises:
            RegistryError: If the registry did not mount the blob
        """
        status, _, _ = await self._request(
            "POST",
            f"/v2/{repository}/blobs/uploads/",
            201,
            202,
            params={"mount": digest, "from": source_repository},
        )
        # 202 means the registry opened an upload session instead of mounting
        if status != 201:
            raise RegistryError(
                "BLOB_MOUNT_FAILED",
                f"{digest} could not be mounted from {source_repository} into {repository}",
                status,
            )
        logger.debug("Mounted %s from %s into %s", digest, source_repository, repository)
