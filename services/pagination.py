"""
Pagination Engine Module

Drives cursor-based traversal of a feed until the endpoint reports that no
older page remains, yielding only tweets the crawler has not processed yet.
"""

import asyncio
from typing import AsyncIterator, Awaitable, Callable, Optional

from config import settings
from data.models import Cursor, FeedItem
from services.dedup import DedupFilter
from services.protocols import FeedSource, Reporter
from utils.exceptions import PaginationStalled
from utils.logger import get_logger

logger = get_logger(__name__)


class PaginationEngine:
    """Walks every page of a FeedSource and yields unseen items in page order."""

    def __init__(self, source: FeedSource, dedup: DedupFilter,
                 reporter: Optional[Reporter] = None,
                 page_delay: Optional[float] = None,
                 empty_page_backoff: Optional[float] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        """
        Initialize the engine.

        Args:
            source: Backend that lists pages.
            dedup: Filter applied to every page before items are yielded.
            reporter: Optional console reporter for progress text.
            page_delay: Seconds between consecutive page fetches.
            empty_page_backoff: Seconds to wait before retrying an empty page.
            sleep: Coroutine used for every pause (injectable for tests).
        """
        self.source = source
        self.dedup = dedup
        self.reporter = reporter
        self.page_delay = settings.PAGE_FETCH_DELAY if page_delay is None else page_delay
        self.empty_page_backoff = settings.EMPTY_PAGE_BACKOFF if empty_page_backoff is None else empty_page_backoff
        self.sleep = sleep
        self.pages_fetched = 0
        self.items_yielded = 0

    async def fetch_all(self, seed_cursor: Optional[Cursor] = None) -> AsyncIterator[FeedItem]:
        """
        Yield every unseen item of the feed, newest page first.

        Traversal ends when the endpoint reports no truncation or returns a
        cursor that does not advance. An empty page on a truncated feed is
        retried once after a backoff; a second empty page in a row raises.

        Args:
            seed_cursor: Cursor to start from, or None for the newest page.

        Yields:
            FeedItem: Items absent from the processed-ID snapshot.

        Raises:
            PaginationStalled: If two consecutive pages are empty while truncated.
            EndpointError: Propagated from the source without retry.
        """
        cursor = seed_cursor
        retrying_empty = False

        while True:
            if self.pages_fetched > 0 and not retrying_empty:
                await self.sleep(self.page_delay)

            page = await self.source.list_page(cursor)
            self.pages_fetched += 1

            if not page.items and page.cursor.truncated:
                if retrying_empty:
                    raise PaginationStalled(
                        f"{self.source.name} returned two empty pages in a row "
                        f"at position {cursor.min_position if cursor else None}"
                    )
                logger.warning(f"Empty page from {self.source.name} while more pages remain, "
                               f"retrying in {self.empty_page_backoff}s")
                retrying_empty = True
                await self.sleep(self.empty_page_backoff)
                continue
            retrying_empty = False

            for item in self.dedup.filter_unseen(page.items):
                self.items_yielded += 1
                yield item

            if self.reporter:
                self.reporter.status(f"Fetching {self.items_yielded} Tweets...")

            if not page.cursor.truncated:
                break
            if cursor is not None and page.cursor.min_position == cursor.min_position:
                logger.warning(f"Cursor of {self.source.name} did not advance past "
                               f"{cursor.min_position}, treating the feed as complete")
                break
            cursor = page.cursor

        logger.debug(f"Pagination finished after {self.pages_fetched} pages")
