"""Selection of purge candidates by name pattern and age."""

import re
from datetime import datetime
from typing import Iterable

from ..core.types import ManifestAttributes, Tag
from ..exceptions import PatternError

MATCH_ALL = re.compile("")


def compile_filter(pattern: str | None) -> re.Pattern:
    """Compile a tag filter once, before any tag is looked at.

    Args:
        pattern: Regular expression searched in tag names; None or ""
            matches every tag

    Raises:
        PatternError: If the expression is invalid
    """
    if not pattern:
        return MATCH_ALL
    try:
        return re.compile(pattern)
    except re.error as e:
        raise PatternError(f"Invalid filter {pattern!r}: {e}") from e


class TagSelector:
    """Decides which tags of a page are eligible for purging.

    A tag is eligible if its name matches the filter and it was last
    updated strictly before the cutoff.
    """

    def __init__(self, cutoff: datetime, pattern: str | None = None) -> None:
        self.cutoff = cutoff
        self.filter = compile_filter(pattern)

    def matches(self, tag: Tag) -> bool:
        return self.filter.search(tag.name) is not None

    def is_old(self, tag: Tag) -> bool:
        return tag.last_update_time < self.cutoff

    def is_eligible(self, tag: Tag) -> bool:
        return self.matches(tag) and self.is_old(tag)

    def select(self, page: Iterable[Tag]) -> list[Tag]:
        return [tag for tag in page if self.is_eligible(tag)]


def select_dangling(page: Iterable[ManifestAttributes]) -> list[ManifestAttributes]:
    """Keep the manifests no tag points at."""
    return [manifest for manifest in page if manifest.is_dangling]
