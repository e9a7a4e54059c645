"""
Service Protocol Definitions

This module defines typing.Protocol interfaces for services used by the
crawler. These protocols enable loose coupling, dependency injection, and
easier testing.

Protocols defined:
- FeedSource: Interface for a paginated feed plus its per-tweet detail endpoint
- Reporter: Interface for console status and progress output
"""

from typing import Protocol, Optional, Any

from data.models import Cursor, FeedPage, DetailResponse


class FeedSource(Protocol):
    """Protocol defining the interface of a feed backend.

    Implementations (HTTP, GraphQL and SDK backends) should provide methods for:
    - Listing one page of a feed given the previous page's cursor
    - Fetching a single tweet's detail together with the rate-limit window
    """

    name: str

    async def list_page(self, cursor: Optional[Cursor] = None) -> FeedPage:
        """Fetch one page of the feed.

        Args:
            cursor: Cursor of the previous page, or None for the first page.

        Returns:
            The page's items and the cursor of the next page.

        Raises:
            EndpointError: If the endpoint answers with a non-success status.
            MalformedResponse: If the page cannot be parsed.
        """
        ...

    async def fetch_detail(self, tweet_id: int) -> DetailResponse:
        """Fetch a tweet's detail including its media block.

        Args:
            tweet_id: ID of the tweet.

        Returns:
            The parsed detail and the rate-limit window of the call.

        Raises:
            RateLimited: If the endpoint answers 429.
            EndpointError: If the endpoint answers another non-success status.
            MalformedResponse: If the detail or rate-limit headers cannot be parsed.
        """
        ...


class Reporter(Protocol):
    """Protocol defining the interface for console status output."""

    def status(self, text: str) -> None:
        """Replace the current status line."""
        ...

    def succeed(self, text: str) -> None:
        """Report that the current step finished successfully."""
        ...

    def fail(self, text: str) -> None:
        """Report that the current step failed."""
        ...

    def progress(self, total: int, desc: str) -> Any:
        """Start a progress bar with update(n) and close() methods."""
        ...
