"""
Shared Test Fixtures for the Collection Crawler

This module provides common fixtures used across all test modules.
Fixtures include mocks for settings and logging, fake aiohttp sessions,
a fake clock, an in-memory processed-ID store, and payload factories for
the endpoint shapes the crawler parses.
"""

import pytest
from unittest.mock import MagicMock, patch
from typing import Optional, Dict, Any, List
import asyncio
import json
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def mock_settings():
    """
    Mock the settings module with test configuration values.

    This fixture patches the config.settings module with safe test values,
    preventing tests from reading real credentials from the environment.

    Usage:
        def test_something(mock_settings):
            mock_settings.GRAPHQL_TWEET_DETAIL_ID = None
            # ... test code

    Returns:
        MagicMock: A mock settings object with default test values.
    """
    with patch('config.settings') as mock_settings_module:
        # SDK credentials (use obvious test values)
        mock_settings_module.TWITTER_API_KEY = "test-twitter-api-key"
        mock_settings_module.TWITTER_API_KEY_SECRET = "test-twitter-api-secret"
        mock_settings_module.TWITTER_ACCESS_TOKEN = "test-twitter-access-token"
        mock_settings_module.TWITTER_ACCESS_TOKEN_SECRET = "test-twitter-access-secret"
        mock_settings_module.TWITTER_BEARER_TOKEN = "test-twitter-bearer"

        # Web session
        mock_settings_module.TWITTER_WEB_BEARER_TOKEN = "test-web-bearer"
        mock_settings_module.TWITTER_AUTH_TOKEN = "test-auth-token"
        mock_settings_module.TWITTER_CSRF_TOKEN = "test-csrf-token"
        mock_settings_module.GRAPHQL_TWEET_DETAIL_ID = "test-query-id"

        # Application Settings
        mock_settings_module.DB_PATH = ":memory:"
        mock_settings_module.COLLECTION_IDS = ["1000"]
        mock_settings_module.DESTINATION_DIRECTORY = "/tmp/test-fetched/"
        mock_settings_module.DEFAULT_BACKEND = "graphql"
        mock_settings_module.DEFAULT_FEED = "collection"
        mock_settings_module.SUPPORTED_BACKENDS = ["http", "graphql", "sdk"]
        mock_settings_module.SUPPORTED_FEEDS = ["collection", "likes", "timeline"]

        # Concurrency, pagination and rate limits
        mock_settings_module.MAX_CONCURRENT_DOWNLOADS = 25
        mock_settings_module.MAX_CONCURRENT_DETAIL_FETCHES = 25
        mock_settings_module.MAX_CONCURRENT_DELETES = 5
        mock_settings_module.CONNECTION_LIMIT = 25
        mock_settings_module.COLLECTION_PAGE_SIZE = 150
        mock_settings_module.SDK_PAGE_SIZE = 100
        mock_settings_module.PAGE_FETCH_DELAY = 0.5
        mock_settings_module.EMPTY_PAGE_BACKOFF = 3.0
        mock_settings_module.RATE_LIMIT_SAFETY_MARGIN = 5
        mock_settings_module.RATE_LIMIT_TICK = 1.0

        # Download and media policy
        mock_settings_module.DOWNLOAD_CHUNK_SIZE = 1024
        mock_settings_module.EXISTING_FILE_POLICY = "overwrite"
        mock_settings_module.EXISTING_FILE_POLICIES = ["overwrite", "skip"]
        mock_settings_module.SKIP_UNKNOWN_MEDIA = False
        mock_settings_module.SKIP_UNRESOLVED_MEDIA = False

        yield mock_settings_module


# =============================================================================
# Logging Fixtures
# =============================================================================

@pytest.fixture
def capture_logs():
    """
    Capture log messages for assertion in tests.

    Records are captured from the application logger, including DEBUG
    records that the console handler would otherwise filter out.

    Returns:
        list: A list that will contain captured log records.
    """
    import logging
    from utils.logger import ROOT_LOGGER_NAME

    class LogCapture(logging.Handler):
        def __init__(self):
            super().__init__()
            self.records = []

        def emit(self, record):
            self.records.append(record)

    handler = LogCapture()
    handler.setLevel(logging.DEBUG)

    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    original_level = app_logger.level
    app_logger.setLevel(logging.DEBUG)
    app_logger.addHandler(handler)

    yield handler.records

    app_logger.removeHandler(handler)
    app_logger.setLevel(original_level)


@pytest.fixture
def fake_reporter():
    """
    Reporter that records every status line instead of printing it.

    Returns:
        MagicMock: Reporter with `statuses`, `successes` and `failures` lists.
    """
    reporter = MagicMock()
    reporter.statuses = []
    reporter.successes = []
    reporter.failures = []
    reporter.status.side_effect = reporter.statuses.append
    reporter.succeed.side_effect = reporter.successes.append
    reporter.fail.side_effect = reporter.failures.append
    reporter.progress.side_effect = lambda total, desc: MagicMock()
    return reporter


# =============================================================================
# Async Helpers
# =============================================================================

def collect(async_iterable):
    """Drain an async iterator into a list from synchronous test code."""
    async def _drain():
        return [item async for item in async_iterable]
    return asyncio.run(_drain())


@pytest.fixture
def drain():
    """
    Fixture exposing collect() to test modules.

    Usage:
        def test_pages(drain):
            items = drain(engine.fetch_all())
    """
    return collect


class FakeClock:
    """Wall clock whose sleep() advances time instantly."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now
        self.sleeps: List[float] = []

    def time(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock():
    """
    Provide a FakeClock for rate-limit and pagination tests.

    Usage:
        governor = RateLimitGovernor(clock=fake_clock.time, sleep=fake_clock.sleep)
    """
    return FakeClock()


@pytest.fixture
def sleep_recorder():
    """
    Async sleep replacement that records the requested delays.

    Returns:
        callable: Coroutine function with a `calls` list attribute.
    """
    calls = []

    async def _sleep(seconds):
        calls.append(seconds)

    _sleep.calls = calls
    return _sleep


# =============================================================================
# HTTP Fixtures
# =============================================================================

class FakeStreamReader:
    """Stands in for aiohttp's StreamReader."""

    def __init__(self, body: bytes):
        self.body = body

    async def iter_chunked(self, size: int):
        for start in range(0, len(self.body), size):
            yield self.body[start:start + size]


class FakeResponse:
    """Minimal aiohttp.ClientResponse usable as an async context manager."""

    def __init__(self, status: int = 200, json_data: Any = None, body: bytes = b'',
                 headers: Optional[Dict[str, str]] = None, reason: Optional[str] = None):
        self.status = status
        self.reason = reason if reason is not None else {
            200: "OK", 404: "Not Found", 429: "Too Many Requests", 500: "Internal Server Error"
        }.get(status, "")
        self.headers = headers or {}
        self._json_data = json_data
        self.content = FakeStreamReader(body)

    async def json(self, content_type: Optional[str] = 'application/json'):
        if self._json_data is None:
            raise json.JSONDecodeError("Expecting value", "", 0)
        return self._json_data

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """
    Minimal aiohttp.ClientSession.

    Every GET is passed to `handler(url, params)`, which returns a
    FakeResponse. Calls are recorded in `calls` as (url, params, headers).
    """

    def __init__(self, handler):
        self.handler = handler
        self.calls = []

    def get(self, url, params=None, headers=None):
        self.calls.append((url, params, headers))
        return self.handler(url, params)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


@pytest.fixture
def fake_response():
    """
    Factory fixture for creating fake aiohttp responses.

    Usage:
        response = fake_response(status=200, json_data={'key': 'value'})
    """
    return FakeResponse


@pytest.fixture
def fake_session():
    """
    Factory fixture for creating fake aiohttp sessions.

    Usage:
        session = fake_session(lambda url, params: FakeResponse(body=b'data'))
    """
    return FakeSession


@pytest.fixture
def sdk_response():
    """
    Factory fixture for the requests.Response objects Tweepy returns.

    Usage:
        client.get_tweet.return_value = sdk_response({'data': {...}}, remaining=10)
    """
    def _create(json_data: Dict[str, Any], remaining: Optional[int] = 100,
                reset_at: Optional[int] = 1_700_000_000) -> MagicMock:
        response = MagicMock()
        response.status_code = 200
        response.json.return_value = json_data
        headers = {}
        if remaining is not None:
            headers["x-rate-limit-remaining"] = str(remaining)
        if reset_at is not None:
            headers["x-rate-limit-reset"] = str(reset_at)
        response.headers = headers
        return response

    return _create


# =============================================================================
# Store Fixtures
# =============================================================================

class MemoryStore:
    """In-memory ProcessedIdStore."""

    def __init__(self, ids=()):
        from data.models import ProcessedTweet
        self.rows = {i: ProcessedTweet(id=i, url=f"https://twitter.com/seed/status/{i}") for i in ids}
        self.batches = []
        self.closed = False

    def ensure_schema(self):
        pass

    def select_all(self):
        return [self.rows[i] for i in sorted(self.rows)]

    def get_processed_ids(self):
        return set(self.rows)

    def insert_batch(self, rows):
        rows = list(rows)
        self.batches.append(rows)
        for row in rows:
            self.rows.setdefault(row.id, row)
        return len(rows)

    def close(self):
        self.closed = True


@pytest.fixture
def memory_store():
    """
    Factory fixture for an in-memory processed-ID store.

    Usage:
        store = memory_store([1, 2, 3])
    """
    return MemoryStore


# =============================================================================
# Feed Fixtures
# =============================================================================

class FakeSource:
    """
    FeedSource serving canned pages and details.

    `pages` maps the requested cursor's min_position (None for the first
    page) to a FeedPage or to a list of FeedPages served in turn.
    """

    def __init__(self, pages, details=None, name="fake feed"):
        self.pages = {k: (list(v) if isinstance(v, list) else v) for k, v in pages.items()}
        self.details = details or {}
        self.name = name
        self.requested = []
        self.detail_requests = []

    async def list_page(self, cursor=None):
        key = cursor.min_position if cursor is not None else None
        self.requested.append(key)
        page = self.pages[key]
        if isinstance(page, list):
            page = page.pop(0) if len(page) > 1 else page[0]
        if isinstance(page, Exception):
            raise page
        return page

    async def fetch_detail(self, tweet_id):
        self.detail_requests.append(tweet_id)
        detail = self.details[tweet_id]
        if isinstance(detail, Exception):
            raise detail
        return detail


@pytest.fixture
def feed_source():
    """
    Factory fixture for a FakeSource.

    Usage:
        source = feed_source({None: page_factory([1, 2], min_position="a")})
    """
    return FakeSource


@pytest.fixture
def page_factory():
    """
    Factory fixture for FeedPage objects.

    Usage:
        page = page_factory([3, 2, 1], min_position="1", truncated=True)
    """
    from data.models import Cursor, FeedItem, FeedPage

    def _create(ids: List[int], min_position: Optional[str] = None,
                truncated: bool = False, author: str = "alice") -> FeedPage:
        items = [FeedItem(id=i, author_handle=author, text=f"tweet {i}") for i in ids]
        return FeedPage(items=items, cursor=Cursor(
            max_position=str(ids[0]) if ids else None,
            min_position=min_position,
            truncated=truncated,
        ))

    return _create


@pytest.fixture
def detail_factory():
    """
    Factory fixture for DetailResponse objects carrying one photo per tweet.

    Usage:
        response = detail_factory(42, author="bob", remaining=10)
    """
    from data.models import DetailResponse, RateLimitWindow, TweetDetail

    def _create(tweet_id: int, author: str = "alice", media: Optional[List[Dict[str, Any]]] = None,
                remaining: int = 1000, reset_at: int = 1_700_000_000) -> DetailResponse:
        if media is None:
            media = [photo_media(f"https://pbs.twimg.com/media/{tweet_id}.jpg")]
        return DetailResponse(
            detail=TweetDetail(tweet_id=tweet_id, author_handle=author, media_block=media),
            window=RateLimitWindow(remaining=remaining, reset_at=reset_at),
        )

    return _create


# =============================================================================
# Payload Factories
# =============================================================================

def photo_media(url: str = "https://pbs.twimg.com/media/abc.jpg") -> Dict[str, Any]:
    """A v1.1 photo entry."""
    return {"type": "photo", "media_url_https": url}


def video_media(variants: List[Dict[str, Any]], kind: str = "video") -> Dict[str, Any]:
    """A v1.1 video or animated_gif entry."""
    return {
        "type": kind,
        "media_url_https": "https://pbs.twimg.com/ext_tw_video_thumb/1/pu/img/thumb.jpg",
        "video_info": {"variants": variants},
    }


def legacy_tweet(tweet_id: int, screen_name: str = "alice", media: Optional[List[Dict[str, Any]]] = None,
                 created_at: str = "Wed Oct 10 20:19:24 +0000 2018") -> Dict[str, Any]:
    """A v1.1 tweet object, as returned by statuses/show."""
    tweet = {
        "id_str": str(tweet_id),
        "created_at": created_at,
        "full_text": f"tweet {tweet_id}",
        "user": {"id_str": "500", "screen_name": screen_name},
    }
    if media is not None:
        tweet["extended_entities"] = {"media": media}
    return tweet


@pytest.fixture
def payloads():
    """
    Namespace of payload builders for the endpoint shapes.

    Usage:
        payloads.legacy_tweet(1, media=[payloads.photo_media()])
    """
    namespace = MagicMock()
    namespace.photo_media = photo_media
    namespace.video_media = video_media
    namespace.legacy_tweet = legacy_tweet
    namespace.collection_page = collection_page
    namespace.tweet_detail = tweet_detail
    return namespace


def collection_page(ids: List[int], min_position: str = "100", truncated: Any = "true",
                    screen_name: str = "alice") -> Dict[str, Any]:
    """A collections/entries.json response."""
    return {
        "objects": {
            "tweets": {str(i): dict(legacy_tweet(i), user={"id_str": "500"}) for i in ids},
            "users": {"500": {"id_str": "500", "screen_name": screen_name}},
        },
        "response": {
            "timeline": [{"tweet": {"id": str(i), "sort_index": str(i)}} for i in ids],
            "position": {
                "max_position": str(ids[0]) if ids else "0",
                "min_position": min_position,
                "was_truncated": truncated,
            },
        },
    }


def tweet_detail(tweet_id: int, screen_name: str = "alice", media: Optional[List[Dict[str, Any]]] = None,
                 with_visibility: bool = False) -> Dict[str, Any]:
    """A GraphQL TweetDetail response whose focal tweet is tweet_id."""
    legacy = legacy_tweet(tweet_id, media=media)
    legacy.pop("user")
    result = {
        "__typename": "Tweet",
        "rest_id": str(tweet_id),
        "core": {"user_results": {"result": {"legacy": {"screen_name": screen_name}}}},
        "legacy": legacy,
    }
    if with_visibility:
        result = {"__typename": "TweetWithVisibilityResults", "tweet": result}
    return {
        "data": {
            "threaded_conversation_with_injections_v2": {
                "instructions": [
                    {"type": "TimelineClearCache"},
                    {
                        "type": "TimelineAddEntries",
                        "entries": [
                            {"entryId": "cursor-top-0", "content": {}},
                            {
                                "entryId": f"tweet-{tweet_id}",
                                "content": {"itemContent": {"tweet_results": {"result": result}}},
                            },
                        ],
                    },
                ]
            }
        }
    }
