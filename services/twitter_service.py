"""
Twitter Service Module

This module handles the internal web API that the Twitter/X web client uses.
It provides the web-session feed backends:

- HttpHeaderBackend: lists a collection through the 1.1 collections endpoint
  and fetches tweet details through statuses/show.
- GraphQLBackend: lists a collection the same way and fetches tweet details
  through the GraphQL TweetDetail query.

Both authenticate with headers and cookies copied from a logged-in browser
session and share one injected aiohttp session.
"""

import asyncio
import json
from typing import Optional, Dict, Any

import aiohttp

from config import settings
from data.models import Cursor, FeedItem, FeedPage, TweetDetail, DetailResponse, RateLimitWindow
from utils.exceptions import EndpointError, MalformedResponse, RateLimited, TransportError
from utils.helpers import safe_get, require, require_int, parse_twitter_date
from utils.logger import get_logger

logger = get_logger(__name__)

TWEET_DETAIL_FEATURES = {
    "rweb_lists_timeline_redesign_enabled": True,
    "responsive_web_graphql_exclude_directive_enabled": True,
    "verified_phone_label_enabled": False,
    "creator_subscriptions_tweet_preview_api_enabled": True,
    "responsive_web_graphql_timeline_navigation_enabled": True,
    "responsive_web_graphql_skip_user_profile_image_extensions_enabled": False,
    "tweetypie_unmention_optimization_enabled": True,
    "responsive_web_edit_tweet_api_enabled": True,
    "graphql_is_translatable_rweb_tweet_is_translatable_enabled": True,
    "view_counts_everywhere_api_enabled": True,
    "longform_notetweets_consumption_enabled": True,
    "responsive_web_twitter_article_tweet_consumption_enabled": False,
    "tweet_awards_web_tipping_enabled": False,
    "freedom_of_speech_not_reach_fetch_enabled": True,
    "standardized_nudges_misinfo": True,
    "tweet_with_visibility_results_prefer_gql_limited_actions_policy_enabled": True,
    "longform_notetweets_rich_text_read_enabled": True,
    "longform_notetweets_inline_media_enabled": True,
    "responsive_web_media_download_video_enabled": False,
    "responsive_web_enhance_cards_enabled": False,
}


def parse_rate_limit_window(headers, context: str = "response") -> RateLimitWindow:
    """
    Read the rate-limit window from response headers.

    Args:
        headers: Case-insensitive response headers.
        context: Name of the call, used in error messages.

    Returns:
        RateLimitWindow: Remaining calls and reset epoch second.

    Raises:
        MalformedResponse: If either header is missing or not an integer.
    """
    remaining = headers.get("x-rate-limit-remaining")
    reset = headers.get("x-rate-limit-reset")
    if remaining is None or reset is None:
        raise MalformedResponse(f"missing rate limit headers in {context}")
    try:
        return RateLimitWindow(remaining=int(remaining), reset_at=int(reset))
    except ValueError:
        raise MalformedResponse(f"invalid rate limit headers in {context}: {remaining!r}, {reset!r}")


def parse_legacy_tweet(tweet: Dict[str, Any], author_handle: Optional[str] = None,
                       context: str = "tweet") -> TweetDetail:
    """
    Build a TweetDetail from a v1.1-style ("legacy") tweet object.

    Args:
        tweet: The legacy tweet JSON.
        author_handle: Screen name, when it is not embedded in the tweet.
        context: Name of the document, used in error messages.

    Returns:
        TweetDetail: The parsed detail; tweets without media get an empty block.
    """
    tweet_id = require_int(tweet, "id_str", context=context)
    handle = author_handle or require(tweet, "user", "screen_name", context=context)
    media = safe_get(tweet, "extended_entities", "media", default=[])
    return TweetDetail(
        tweet_id=tweet_id,
        author_handle=handle,
        media_block=media,
        created_at=parse_twitter_date(tweet.get("created_at")),
    )


class HttpHeaderBackend:
    """Collection feed served by the 1.1 endpoints of the web client."""

    name = "collection"

    def __init__(self, session: aiohttp.ClientSession, collection_id: str,
                 headers: Optional[Dict[str, str]] = None,
                 page_size: Optional[int] = None):
        """
        Initialize the backend.

        Args:
            session: Shared HTTP session.
            collection_id: Numeric collection ID, without the 'custom-' prefix.
            headers: Authenticated request headers, defaults to the configured web session.
            page_size: Entries per page.
        """
        self.session = session
        self.collection_id = collection_id
        self.headers = headers if headers is not None else settings.build_web_headers()
        self.page_size = page_size or settings.COLLECTION_PAGE_SIZE
        self.name = f"collection {collection_id}"

    async def _get(self, url: str, params: Dict[str, str], context: str):
        """
        Issue a GET and return (json, headers).

        Raises:
            RateLimited: On 429.
            EndpointError: On any other non-200 status.
            MalformedResponse: If the body is not JSON.
            TransportError: If the connection fails or times out.
        """
        try:
            async with self.session.get(url, params=params, headers=self.headers) as response:
                if response.status == 429:
                    reset = response.headers.get("x-rate-limit-reset")
                    raise RateLimited(int(reset) if reset and reset.isdigit() else None, context=context)
                if response.status != 200:
                    raise EndpointError(response.status, response.reason or "", context=context)
                try:
                    data = await response.json(content_type=None)
                except (json.JSONDecodeError, aiohttp.ContentTypeError) as e:
                    raise MalformedResponse(f"{context} body is not JSON: {e}")
                return data, response.headers
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(str(e) or type(e).__name__, context=context) from e

    async def list_page(self, cursor: Optional[Cursor] = None) -> FeedPage:
        """
        Fetch one page of the collection.

        Args:
            cursor: Cursor of the previous page; its min_position is sent as max_position.

        Returns:
            FeedPage: The page's entries and the next cursor.
        """
        params = {
            "tweet_mode": "extended",
            "count": str(self.page_size),
            "id": f"custom-{self.collection_id}",
        }
        if cursor is not None and cursor.min_position is not None:
            params["max_position"] = cursor.min_position

        data, _ = await self._get(settings.COLLECTION_ENTRIES_URL, params, "Collection entries api")
        return self.parse_collection_page(data)

    @staticmethod
    def parse_collection_page(data: Dict[str, Any]) -> FeedPage:
        """Parse a collections/entries.json response."""
        context = "collection timeline response"
        timeline = require(data, "response", "timeline", context=context)
        position = require(data, "response", "position", context=context)
        if not isinstance(timeline, list):
            raise MalformedResponse(f"timeline is not a list in {context}")

        truncated = require(position, "was_truncated", context=context)
        if isinstance(truncated, str):
            truncated = truncated.lower() == "true"
        max_position = position.get("max_position")
        min_position = position.get("min_position")
        cursor = Cursor(
            max_position=str(max_position) if max_position is not None else None,
            min_position=str(min_position) if min_position is not None else None,
            truncated=bool(truncated),
        )

        tweets = safe_get(data, "objects", "tweets", default={}) or {}
        users = safe_get(data, "objects", "users", default={}) or {}
        items = []
        for entry in timeline:
            tweet_id = require_int(entry, "tweet", "id", context=context)
            tweet = tweets.get(str(tweet_id), {})
            user = users.get(str(safe_get(tweet, "user", "id_str")), {})
            items.append(FeedItem(
                id=tweet_id,
                author_handle=user.get("screen_name"),
                created_at=parse_twitter_date(tweet.get("created_at")),
                text=tweet.get("full_text") or tweet.get("text"),
                raw_media_block=safe_get(tweet, "extended_entities", "media"),
            ))
        return FeedPage(items=items, cursor=cursor)

    async def fetch_detail(self, tweet_id: int) -> DetailResponse:
        """
        Fetch one tweet through statuses/show.

        Args:
            tweet_id: ID of the tweet.

        Returns:
            DetailResponse: Parsed tweet and the call's rate-limit window.
        """
        context = f"Statuses API at {tweet_id}"
        params = {"id": str(tweet_id), "tweet_mode": "extended"}
        data, headers = await self._get(settings.STATUS_SHOW_URL, params, context)
        return DetailResponse(
            detail=parse_legacy_tweet(data, context=context),
            window=parse_rate_limit_window(headers, context),
        )


class GraphQLBackend(HttpHeaderBackend):
    """Collection feed whose tweet details come from the GraphQL TweetDetail query."""

    def __init__(self, session: aiohttp.ClientSession, collection_id: str,
                 query_id: Optional[str] = None,
                 headers: Optional[Dict[str, str]] = None,
                 page_size: Optional[int] = None):
        """
        Initialize the backend.

        Args:
            session: Shared HTTP session.
            collection_id: Numeric collection ID, without the 'custom-' prefix.
            query_id: GraphQL query ID of TweetDetail, as seen in the web client.
            headers: Authenticated request headers.
            page_size: Entries per page.
        """
        super().__init__(session, collection_id, headers=headers, page_size=page_size)
        self.query_id = query_id or settings.GRAPHQL_TWEET_DETAIL_ID

    async def fetch_detail(self, tweet_id: int) -> DetailResponse:
        """
        Fetch one tweet through the TweetDetail query.

        Args:
            tweet_id: ID of the tweet.

        Returns:
            DetailResponse: Parsed focal tweet and the call's rate-limit window.
        """
        context = f"TweetDetail at {tweet_id}"
        variables = {
            "focalTweetId": str(tweet_id),
            "with_rux_injections": False,
            "includePromotedContent": True,
            "withCommunity": True,
            "withQuickPromoteEligibilityTweetFields": True,
            "withBirdwatchNotes": True,
            "withVoice": True,
            "withV2Timeline": True,
        }
        params = {
            "variables": json.dumps(variables, separators=(",", ":")),
            "features": json.dumps(TWEET_DETAIL_FEATURES, separators=(",", ":")),
        }
        url = f"{settings.GRAPHQL_URL}/{self.query_id}/TweetDetail"
        data, headers = await self._get(url, params, context)
        return DetailResponse(
            detail=self.parse_tweet_detail(data, tweet_id),
            window=parse_rate_limit_window(headers, context),
        )

    @staticmethod
    def parse_tweet_detail(data: Dict[str, Any], tweet_id: int) -> TweetDetail:
        """Find the focal tweet in a TweetDetail response and parse it."""
        context = f"TweetDetail at {tweet_id}"
        instructions = require(data, "data", "threaded_conversation_with_injections_v2", "instructions",
                               context=context)

        result = None
        for instruction in instructions:
            for entry in instruction.get("entries", []) or []:
                if entry.get("entryId") == f"tweet-{tweet_id}":
                    result = require(entry, "content", "itemContent", "tweet_results", "result", context=context)
                    break
            if result is not None:
                break
        if result is None:
            raise MalformedResponse(f"focal tweet missing in {context}")

        if result.get("__typename") == "TweetWithVisibilityResults":
            result = require(result, "tweet", context=context)

        legacy = require(result, "legacy", context=context)
        user = safe_get(result, "core", "user_results", "result", default={})
        handle = safe_get(user, "legacy", "screen_name") or safe_get(user, "core", "screen_name")
        if not handle:
            raise MalformedResponse(f"missing author screen_name in {context}")

        if "id_str" not in legacy:
            legacy = dict(legacy, id_str=result.get("rest_id", str(tweet_id)))
        return parse_legacy_tweet(legacy, author_handle=handle, context=context)
