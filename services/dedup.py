"""
Dedup Filter Module

Excludes feed items whose ID is already recorded as processed.
"""

from typing import Iterable, List, Set

from data.models import FeedItem


class DedupFilter:
    """
    In-memory view of the processed-ID set.

    The snapshot is taken once per top-level run. IDs recorded by another
    instance of the crawler while this run is in progress are not seen
    until the next run.
    """

    def __init__(self, processed_ids: Iterable[int] = ()):
        self.processed_ids: Set[int] = set(processed_ids)
        self.yielded_ids: Set[int] = set()

    def is_seen(self, tweet_id: int) -> bool:
        return tweet_id in self.processed_ids or tweet_id in self.yielded_ids

    def filter_unseen(self, items: Iterable[FeedItem]) -> List[FeedItem]:
        """
        Return the items that are neither processed nor already passed in this run.

        Args:
            items: Items of one feed page, in page order.

        Returns:
            List[FeedItem]: The unseen items, page order preserved.
        """
        unseen = []
        for item in items:
            if self.is_seen(item.id):
                continue
            self.yielded_ids.add(item.id)
            unseen.append(item)
        return unseen

    def mark_processed(self, tweet_ids: Iterable[int]) -> None:
        """Add IDs committed during this run to the snapshot."""
        self.processed_ids.update(tweet_ids)

    def __len__(self) -> int:
        return len(self.processed_ids)
