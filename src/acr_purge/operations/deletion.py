"""Page-by-page concurrent deletion with error aggregation."""

import asyncio
import logging
from contextlib import aclosing
from typing import AsyncIterator, Awaitable, Callable, Optional, Sequence, TypeVar

from ..core.types import PurgeResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

Report = Callable[[str], None]


def log_report(identifier: str) -> None:
    """Default audit sink: one log line per purged identifier."""
    logger.info("Purged %s", identifier)


async def run_page(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[object]],
    identify: Callable[[T], str],
) -> PurgeResult:
    """Run one task per item and wait for all of them.

    A failing task does not cancel its siblings; every outcome is
    collected in item order.

    Args:
        items: Items of one page
        worker: Coroutine performing the deletion of one item
        identify: Printable identifier of an item

    Returns:
        PurgeResult: Successes and failures of the page
    """
    outcomes = await asyncio.gather(
        *(worker(item) for item in items), return_exceptions=True
    )

    result = PurgeResult()
    for item, outcome in zip(items, outcomes):
        identifier = identify(item)
        if isinstance(outcome, Exception):
            result.failed.append((identifier, outcome))
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            result.deleted.append(identifier)
    return result


class DeletionCoordinator:
    """Drives deletions page by page.

    Pages are strictly serialized: the next page is only fetched once
    every task of the current one has finished. By default the first
    failure of a page aborts the run; with ``continue_on_error`` failures
    are logged and collected instead.
    """

    def __init__(
        self,
        report: Optional[Report] = None,
        continue_on_error: bool = False,
        dry_run: bool = False,
    ) -> None:
        self.report = report or log_report
        self.continue_on_error = continue_on_error
        self.dry_run = dry_run

    async def process(
        self,
        pages: AsyncIterator[list[T]],
        select: Callable[[list[T]], list[T]],
        worker: Callable[[T], Awaitable[object]],
        identify: Callable[[T], str],
    ) -> PurgeResult:
        """Select and delete the items of every page.

        Raises:
            Exception: The first failure of a page, unless continue_on_error
        """
        total = PurgeResult()
        async with aclosing(pages) as page_iter:
            async for page in page_iter:
                items = select(page)
                logger.debug("%d of %d item(s) selected", len(items), len(page))
                if not items:
                    continue

                if self.dry_run:
                    for item in items:
                        self.report(f"would delete: {identify(item)}")
                        total.deleted.append(identify(item))
                    continue

                page_result = await run_page(items, worker, identify)
                for identifier in page_result.deleted:
                    self.report(identifier)
                total.extend(page_result)

                if not page_result.failed:
                    continue
                if self.continue_on_error:
                    for identifier, error in page_result.failed:
                        logger.error("Failed to purge %s: %s", identifier, error)
                    continue

                # The first failure is returned to the caller; report the rest
                for identifier, error in page_result.failed[1:]:
                    logger.warning("Also failed to purge %s: %s", identifier, error)
                raise page_result.failed[0][1]
        return total
