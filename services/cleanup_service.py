"""
Cleanup Service Module

Deletes the authenticated user's tweets, or removes their likes, when the
tweets match a date range and keyword filter. Tweets are listed through the
same PaginationEngine as the crawler and removed with bounded concurrency.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional

import tweepy

from config import settings
from data.models import FeedItem
from services.dedup import DedupFilter
from services.executor import run_all
from services.pagination import PaginationEngine
from services.protocols import FeedSource, Reporter
from services.sdk_service import SdkBackend, call_client
from utils.helpers import contains_any
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class TweetFilter:
    """Date range and keyword filter; empty fields match everything."""
    since: Optional[date] = None            # inclusive
    until: Optional[date] = None            # exclusive
    keywords: List[str] = field(default_factory=list)

    def matches(self, item: FeedItem) -> bool:
        if self.since or self.until:
            if item.created_at is None:
                return False
            created = item.created_at
            if created.tzinfo is not None:
                created = created.astimezone(timezone.utc)
            day = created.date()
            if self.since and day < self.since:
                return False
            if self.until and day >= self.until:
                return False
        if self.keywords and not contains_any(item.text, self.keywords):
            return False
        return True


class CleanupService:
    """Service for deleting tweets and likes of the authenticated account."""

    def __init__(self, client: tweepy.Client, reporter: Optional[Reporter] = None,
                 max_concurrent: Optional[int] = None,
                 source: Optional[FeedSource] = None,
                 page_delay: Optional[float] = None):
        """
        Initialize the service.

        Args:
            client: Tweepy client with OAuth 1.0a user credentials.
            reporter: Optional console reporter.
            max_concurrent: Cap on simultaneous delete / unlike calls.
            source: Feed to list instead of the client's timeline or likes.
            page_delay: Seconds between page fetches.
        """
        self.client = client
        self.reporter = reporter
        self.max_concurrent = max_concurrent or settings.MAX_CONCURRENT_DELETES
        self.source = source
        self.page_delay = page_delay

    async def find_matching(self, feed: str, tweet_filter: TweetFilter) -> List[FeedItem]:
        """
        List every tweet of the feed that matches the filter.

        Args:
            feed: 'timeline' or 'likes'.
            tweet_filter: The filter to apply.

        Returns:
            List[FeedItem]: Matching tweets, newest first.
        """
        source = self.source or SdkBackend(self.client, feed=feed)
        engine = PaginationEngine(source, DedupFilter(), reporter=self.reporter, page_delay=self.page_delay)
        matches = []
        async for item in engine.fetch_all():
            if tweet_filter.matches(item):
                matches.append(item)
        logger.info(f"{len(matches)} of {engine.items_yielded} tweets in {feed} match the filter")
        return matches

    async def delete_tweets(self, tweet_filter: TweetFilter, dry_run: bool = False) -> List[int]:
        """
        Delete the authenticated user's tweets that match the filter.

        Args:
            tweet_filter: The filter to apply.
            dry_run: If True, only report what would be deleted.

        Returns:
            List[int]: IDs of the deleted (or, in dry-run mode, matching) tweets.
        """
        matches = await self.find_matching("timeline", tweet_filter)
        return await self._apply(matches, self.client.delete_tweet, "Deleting tweets", "Delete API", dry_run)

    async def delete_likes(self, tweet_filter: TweetFilter, dry_run: bool = False) -> List[int]:
        """
        Remove the authenticated user's likes on tweets that match the filter.

        Args:
            tweet_filter: The filter to apply.
            dry_run: If True, only report what would be unliked.

        Returns:
            List[int]: IDs of the unliked (or, in dry-run mode, matching) tweets.
        """
        matches = await self.find_matching("likes", tweet_filter)
        return await self._apply(matches, self.client.unlike, "Removing likes", "Unlike API", dry_run)

    async def _apply(self, matches: List[FeedItem], method, desc: str, context: str,
                     dry_run: bool) -> List[int]:
        ids = [item.id for item in matches]
        if dry_run:
            for item in matches:
                logger.info(f"DRY RUN: would process {item.id} ({item.created_at}): {(item.text or '')[:80]}")
            return ids
        if not ids:
            return ids

        bar = self.reporter.progress(len(ids), desc) if self.reporter else None

        def make_task(tweet_id: int):
            async def task():
                await call_client(method, tweet_id, user_auth=True, context=f"{context} at {tweet_id}")
                if bar is not None:
                    bar.update(1)
                return tweet_id
            return task

        try:
            done = await run_all([make_task(i) for i in ids], self.max_concurrent)
        finally:
            if bar is not None:
                bar.close()

        if self.reporter:
            self.reporter.succeed(f"{desc}: {len(done)} done.")
        return done


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD command line value."""
    if not value:
        return None
    return datetime.strptime(value, "%Y-%m-%d").date()
