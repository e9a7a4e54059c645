"""
Data Models for the Collection Crawler

This module contains data classes and models used throughout the application:
pagination cursors, feed items, resolved media and rate-limit telemetry.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Tuple

from utils.helpers import permalink


@dataclass(frozen=True)
class Cursor:
    """Pagination boundary of one feed page."""
    max_position: Optional[str] = None
    min_position: Optional[str] = None  # older edge, sent back to fetch the next page
    truncated: bool = False             # True while more pages remain


@dataclass
class FeedItem:
    """A single tweet as listed by a feed page."""
    id: int
    author_handle: Optional[str] = None
    created_at: Optional[datetime] = None
    text: Optional[str] = None
    raw_media_block: Any = None         # passed untouched to MediaResolver


@dataclass
class FeedPage:
    """One page of a feed plus the cursor of the next page."""
    items: List[FeedItem]
    cursor: Cursor


class MediaKind(str, Enum):
    """Media types as named on the wire."""
    PHOTO = "photo"
    ANIMATED_GIF = "animated_gif"
    VIDEO = "video"


@dataclass
class MediaDescriptor:
    """Download-ready representation of one media attachment."""
    kind: MediaKind
    resolved_url: str
    candidate_variants: List[Tuple[str, int]] = field(default_factory=list)


@dataclass(frozen=True)
class RateLimitWindow:
    """Remaining calls and reset time learned from one response."""
    remaining: int
    reset_at: int                       # epoch seconds


@dataclass
class TweetDetail:
    """Parsed detail-fetch response of a single tweet."""
    tweet_id: int
    author_handle: str
    media_block: List[Any]
    created_at: Optional[datetime] = None


@dataclass
class DetailResponse:
    """A detail plus the rate-limit window reported alongside it."""
    detail: TweetDetail
    window: RateLimitWindow


@dataclass
class TweetMedia:
    """A processed tweet and its resolved media, in declared order."""
    tweet_id: int
    author_handle: str
    media: List[MediaDescriptor] = field(default_factory=list)

    @property
    def permalink(self) -> str:
        return permalink(self.author_handle, self.tweet_id)


@dataclass
class MediaPath:
    """A media URL paired with its deterministic destination on disk."""
    url: str
    file_path: str
    tweet_id: int
    media_index: int


@dataclass
class ProcessedTweet:
    """A row of the processed-ID store."""
    id: int
    url: str
