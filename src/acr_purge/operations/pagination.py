"""Cursor-based enumeration of registry listings."""

import logging
from typing import AsyncIterator, Awaitable, Callable, Optional, Sequence, TypeVar

from ..core.registry_client import RegistryClient
from ..core.types import ManifestAttributes, Tag

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def paginate(
    fetch_page: Callable[[str], Awaitable[Optional[Sequence[T]]]],
    key: Callable[[T], str],
) -> AsyncIterator[list[T]]:
    """Walk a listing API until it returns an empty page.

    The key of the last entry of each page is the cursor of the next
    request. Errors raised by ``fetch_page`` stop the walk and propagate.

    Args:
        fetch_page: Coroutine taking the cursor ("" for the first page)
        key: Extracts the cursor value of an entry

    Yields:
        list: Non-empty pages, in order
    """
    last = ""
    page_number = 0
    while True:
        page = await fetch_page(last)
        if not page:
            logger.debug("Listing exhausted after %d page(s)", page_number)
            return

        page_number += 1
        page = list(page)
        yield page
        last = key(page[-1])


def iter_tag_pages(
    client: RegistryClient, repository: str, order_by: str = ""
) -> AsyncIterator[list[Tag]]:
    """Enumerate all tags of a repository page by page."""

    async def fetch(last: str) -> list[Tag]:
        return await client.list_tags(repository, last=last, order_by=order_by)

    return paginate(fetch, lambda tag: tag.name)


def iter_manifest_pages(
    client: RegistryClient, repository: str, order_by: str = ""
) -> AsyncIterator[list[ManifestAttributes]]:
    """Enumerate all manifests of a repository page by page."""

    async def fetch(last: str) -> list[ManifestAttributes]:
        return await client.list_manifests(repository, last=last, order_by=order_by)

    return paginate(fetch, lambda manifest: manifest.digest)
