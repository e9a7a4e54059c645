"""
SDK Service Module

This module handles the official Twitter API v2 through Tweepy.
It provides the SDK feed backend (likes and user timelines of the
authenticated account) and the client factory shared with the cleanup
commands.

Tweepy's Client is synchronous; its calls run in worker threads so the
event loop keeps serving the other in-flight requests. The client is
created with requests.Response as return type so rate-limit headers stay
available alongside the JSON body.
"""

import asyncio
from typing import Any, Dict, List, Optional

import requests
import tweepy

from config import settings
from data.models import Cursor, FeedItem, FeedPage, TweetDetail, DetailResponse
from services.twitter_service import parse_rate_limit_window
from utils.exceptions import ConfigurationError, EndpointError, MalformedResponse, RateLimited, TransportError
from utils.helpers import safe_get, require, require_int, parse_twitter_date
from utils.logger import get_logger

logger = get_logger(__name__)

EXPANSIONS = ["attachments.media_keys", "author_id"]
MEDIA_FIELDS = ["type", "url", "preview_image_url", "variants"]
TWEET_FIELDS = ["created_at", "attachments", "author_id"]
USER_FIELDS = ["username"]


def create_client() -> tweepy.Client:
    """
    Create a Tweepy client from the configured credentials.

    OAuth 1.0a user credentials are preferred; a Bearer Token alone gives
    app-only access, which is enough to read public tweets.

    Returns:
        tweepy.Client: A client returning raw requests.Response objects.

    Raises:
        ConfigurationError: If no credentials are configured.
    """
    if settings.TWITTER_API_KEY and settings.TWITTER_API_KEY_SECRET and \
            settings.TWITTER_ACCESS_TOKEN and settings.TWITTER_ACCESS_TOKEN_SECRET:
        logger.info("Using Twitter API with OAuth 1.0a user context")
        return tweepy.Client(
            bearer_token=settings.TWITTER_BEARER_TOKEN,
            consumer_key=settings.TWITTER_API_KEY,
            consumer_secret=settings.TWITTER_API_KEY_SECRET,
            access_token=settings.TWITTER_ACCESS_TOKEN,
            access_token_secret=settings.TWITTER_ACCESS_TOKEN_SECRET,
            return_type=requests.Response,
            wait_on_rate_limit=False,
        )
    if settings.TWITTER_BEARER_TOKEN:
        logger.info("Using Twitter API with app-only Bearer Token")
        return tweepy.Client(
            bearer_token=settings.TWITTER_BEARER_TOKEN,
            return_type=requests.Response,
            wait_on_rate_limit=False,
        )
    raise ConfigurationError("No valid Twitter authentication method found. "
                             "Please provide either OAuth 1.0a credentials or a Bearer Token.")


def has_user_context(client: tweepy.Client) -> bool:
    """Return True if the client carries OAuth 1.0a user credentials."""
    return bool(getattr(client, "access_token", None) and getattr(client, "consumer_key", None))


async def call_client(method, *args, context: str, **kwargs) -> requests.Response:
    """
    Run a blocking Tweepy call in a worker thread and classify its errors.

    Args:
        method: Bound tweepy.Client method.
        *args: Positional arguments of the method.
        context: Name of the call, used in error messages.
        **kwargs: Keyword arguments of the method.

    Returns:
        requests.Response: The raw response.

    Raises:
        RateLimited: On 429.
        EndpointError: On any other HTTP error.
        TransportError: If the request fails without a response.
    """
    try:
        return await asyncio.to_thread(method, *args, **kwargs)
    except tweepy.TooManyRequests as e:
        reset = e.response.headers.get("x-rate-limit-reset")
        raise RateLimited(int(reset) if reset and reset.isdigit() else None, context=context)
    except tweepy.HTTPException as e:
        raise EndpointError(e.response.status_code, e.response.reason or str(e), context=context)
    except requests.RequestException as e:
        raise TransportError(str(e) or type(e).__name__, context=context) from e


def link_media(tweet: Dict[str, Any], includes: Dict[str, Any], context: str) -> List[Dict[str, Any]]:
    """
    Return a tweet's included media in attachment order.

    Raises:
        MalformedResponse: If a media key does not match exactly one included media.
    """
    media_keys = safe_get(tweet, "attachments", "media_keys", default=[]) or []
    included = includes.get("media", []) or []
    linked = []
    for media_key in media_keys:
        matches = [m for m in included if m.get("media_key") == media_key]
        if len(matches) != 1:
            raise MalformedResponse(f"linking media key {media_key} failed in {context}")
        linked.append(matches[0])
    return linked


def usernames(includes: Dict[str, Any]) -> Dict[str, str]:
    """Map user IDs to usernames from an includes block."""
    return {str(u.get("id")): u.get("username") for u in includes.get("users", []) or []}


class SdkBackend:
    """Likes or timeline of the authenticated user, read through the v2 API."""

    def __init__(self, client: tweepy.Client, feed: str = "likes",
                 user_id: Optional[str] = None, page_size: Optional[int] = None):
        """
        Initialize the backend.

        Args:
            client: Tweepy client created with requests.Response as return type.
            feed: 'likes' or 'timeline'.
            user_id: Account to read; defaults to the authenticated user.
            page_size: Tweets per page (v2 max_results).
        """
        if feed not in ("likes", "timeline"):
            raise ValueError(f"SdkBackend serves 'likes' or 'timeline', got {feed}")
        self.client = client
        self.feed = feed
        self.user_id = user_id
        self.page_size = page_size or settings.SDK_PAGE_SIZE
        self.user_auth = has_user_context(client)
        self.name = feed

    async def resolve_user_id(self) -> str:
        """Look up the authenticated user's ID once."""
        if self.user_id is None:
            response = await call_client(self.client.get_me, user_auth=True, context="Users API (me)")
            self.user_id = str(require(response.json(), "data", "id", context="Users API (me)"))
            logger.debug(f"Authenticated as user {self.user_id}")
        return self.user_id

    async def list_page(self, cursor: Optional[Cursor] = None) -> FeedPage:
        """
        Fetch one page of likes or tweets.

        Args:
            cursor: Cursor of the previous page; its min_position holds the next_token.

        Returns:
            FeedPage: The page's tweets and the next cursor.
        """
        user_id = await self.resolve_user_id()
        if self.feed == "likes":
            method, context = self.client.get_liked_tweets, "Liked tweets API"
        else:
            method, context = self.client.get_users_tweets, "User tweets API"

        kwargs = dict(
            max_results=self.page_size,
            expansions=EXPANSIONS,
            media_fields=MEDIA_FIELDS,
            tweet_fields=TWEET_FIELDS,
            user_fields=USER_FIELDS,
            user_auth=self.user_auth,
        )
        if cursor is not None and cursor.min_position is not None:
            kwargs["pagination_token"] = cursor.min_position

        response = await call_client(method, user_id, context=context, **kwargs)
        return self.parse_page(response.json(), context)

    @staticmethod
    def parse_page(data: Dict[str, Any], context: str = "v2 page") -> FeedPage:
        """Parse a v2 tweet list response."""
        includes = data.get("includes", {}) or {}
        names = usernames(includes)
        items = []
        for tweet in data.get("data", []) or []:
            tweet_id = require_int(tweet, "id", context=context)
            items.append(FeedItem(
                id=tweet_id,
                author_handle=names.get(str(tweet.get("author_id"))),
                created_at=parse_twitter_date(tweet.get("created_at")),
                text=tweet.get("text"),
                raw_media_block=link_media(tweet, includes, f"{context} at {tweet_id}"),
            ))

        meta = data.get("meta", {}) or {}
        next_token = meta.get("next_token")
        cursor = Cursor(
            max_position=meta.get("newest_id"),
            min_position=next_token,
            truncated=next_token is not None,
        )
        return FeedPage(items=items, cursor=cursor)

    async def fetch_detail(self, tweet_id: int) -> DetailResponse:
        """
        Fetch one tweet with its media and author.

        Args:
            tweet_id: ID of the tweet.

        Returns:
            DetailResponse: Parsed tweet and the call's rate-limit window.
        """
        context = f"Tweets API at {tweet_id}"
        response = await call_client(
            self.client.get_tweet, tweet_id,
            expansions=EXPANSIONS,
            media_fields=MEDIA_FIELDS,
            tweet_fields=TWEET_FIELDS,
            user_fields=USER_FIELDS,
            user_auth=self.user_auth,
            context=context,
        )
        return DetailResponse(
            detail=self.parse_detail(response.json(), context),
            window=parse_rate_limit_window(response.headers, context),
        )

    @staticmethod
    def parse_detail(data: Dict[str, Any], context: str = "v2 tweet") -> TweetDetail:
        """Parse a v2 single tweet response."""
        tweet = require(data, "data", context=context)
        includes = data.get("includes", {}) or {}
        author_id = str(require(tweet, "author_id", context=context))
        handle = usernames(includes).get(author_id)
        if not handle:
            raise MalformedResponse(f"missing author {author_id} in {context}")
        return TweetDetail(
            tweet_id=require_int(tweet, "id", context=context),
            author_handle=handle,
            media_block=link_media(tweet, includes, context),
            created_at=parse_twitter_date(tweet.get("created_at")),
        )
