"""
Configuration Settings for the Collection Crawler

This module centralizes all configuration settings for the crawler,
including environment variables, credentials, request headers and
application constants.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

from utils.helpers import parse_id_list

# Determine the application root directory
APP_ROOT = Path(__file__).resolve().parent.parent

# Load environment variables from .env file
load_dotenv(dotenv_path=os.path.join(APP_ROOT, '.env'))


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


# Twitter API Authentication (official SDK backend)
TWITTER_API_KEY = os.getenv("TWITTER_API_KEY")
TWITTER_API_KEY_SECRET = os.getenv("TWITTER_API_KEY_SECRET")
TWITTER_ACCESS_TOKEN = os.getenv("TWITTER_ACCESS_TOKEN")
TWITTER_ACCESS_TOKEN_SECRET = os.getenv("TWITTER_ACCESS_TOKEN_SECRET")
TWITTER_BEARER_TOKEN = os.getenv("TWITTER_BEARER_TOKEN")

# Web session (HTTP and GraphQL backends), copied from a logged-in browser
TWITTER_WEB_BEARER_TOKEN = os.getenv("TWITTER_WEB_BEARER_TOKEN")
TWITTER_AUTH_TOKEN = os.getenv("TWITTER_AUTH_TOKEN")
TWITTER_CSRF_TOKEN = os.getenv("TWITTER_CSRF_TOKEN")
GRAPHQL_TWEET_DETAIL_ID = os.getenv("GRAPHQL_TWEET_DETAIL_ID")

# Database Settings
DB_PATH = os.getenv("DB_PATH", os.path.join(APP_ROOT, "collections.db"))

# Application Settings
COLLECTION_IDS = parse_id_list(os.getenv("COLLECTION_IDS"))
DESTINATION_DIRECTORY = os.getenv("DESTINATION_DIRECTORY", "./fetched/")
DEFAULT_BACKEND = os.getenv("DEFAULT_BACKEND", "graphql")   # 'http', 'graphql' or 'sdk'
DEFAULT_FEED = os.getenv("DEFAULT_FEED", "collection")      # 'collection', 'likes' or 'timeline'

SUPPORTED_BACKENDS = ["http", "graphql", "sdk"]
SUPPORTED_FEEDS = ["collection", "likes", "timeline"]

# =============================================================================
# Concurrency Settings
# =============================================================================

MAX_CONCURRENT_DOWNLOADS = _env_int("MAX_CONCURRENT_DOWNLOADS", 25)         # Simultaneous media downloads
MAX_CONCURRENT_DETAIL_FETCHES = _env_int("MAX_CONCURRENT_DETAIL_FETCHES", 25)  # Simultaneous detail fetches
MAX_CONCURRENT_DELETES = _env_int("MAX_CONCURRENT_DELETES", 5)             # Simultaneous delete / unlike calls
CONNECTION_LIMIT = 25                # aiohttp connector limit shared by every component

# =============================================================================
# Pagination Settings
# =============================================================================

COLLECTION_PAGE_SIZE = 150           # Entries per collection page
SDK_PAGE_SIZE = 100                  # v2 API max_results per page
PAGE_FETCH_DELAY = 0.5               # Seconds between consecutive page fetches
EMPTY_PAGE_BACKOFF = 3.0             # Seconds to wait before retrying an empty page

# =============================================================================
# Rate Limit Settings
# =============================================================================

RATE_LIMIT_SAFETY_MARGIN = 5         # Seconds added to the reported reset time
RATE_LIMIT_TICK = 1.0                # Seconds between wait progress reports

# =============================================================================
# Download Settings
# =============================================================================

DOWNLOAD_CHUNK_SIZE = 64 * 1024      # Bytes per streamed write
EXISTING_FILE_POLICY = os.getenv("EXISTING_FILE_POLICY", "overwrite")   # 'overwrite' or 'skip'
EXISTING_FILE_POLICIES = ["overwrite", "skip"]

# Media resolution policy
SKIP_UNKNOWN_MEDIA = _env_bool("SKIP_UNKNOWN_MEDIA", False)         # Skip unknown media types instead of aborting
SKIP_UNRESOLVED_MEDIA = _env_bool("SKIP_UNRESOLVED_MEDIA", False)   # Skip media without a usable URL instead of aborting

# =============================================================================
# Endpoints
# =============================================================================

API_BASE_URL = "https://twitter.com/i/api"
COLLECTION_ENTRIES_URL = f"{API_BASE_URL}/1.1/collections/entries.json"
STATUS_SHOW_URL = f"{API_BASE_URL}/1.1/statuses/show.json"
GRAPHQL_URL = f"{API_BASE_URL}/graphql"

# Web Request Settings
USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'


def build_web_headers() -> dict:
    """
    Build the request headers of the web session backends.

    Returns:
        dict: Headers carrying the configured bearer token, cookies and CSRF token.
    """
    headers = {
        'User-Agent': USER_AGENT,
        'Accept': '*/*',
        'Accept-Language': 'en-US,en;q=0.5',
        'x-twitter-active-user': 'yes',
        'x-twitter-auth-type': 'OAuth2Session',
    }
    if TWITTER_WEB_BEARER_TOKEN:
        headers['Authorization'] = f"Bearer {TWITTER_WEB_BEARER_TOKEN}"
    if TWITTER_CSRF_TOKEN:
        headers['x-csrf-token'] = TWITTER_CSRF_TOKEN
    if TWITTER_AUTH_TOKEN or TWITTER_CSRF_TOKEN:
        cookies = []
        if TWITTER_AUTH_TOKEN:
            cookies.append(f"auth_token={TWITTER_AUTH_TOKEN}")
        if TWITTER_CSRF_TOKEN:
            cookies.append(f"ct0={TWITTER_CSRF_TOKEN}")
        headers['Cookie'] = "; ".join(cookies)
    return headers


def get_config_summary() -> dict:
    """
    Returns a summary of current configuration (without sensitive values).
    Useful for logging startup state.
    """
    return {
        "backends": {
            "sdk": bool(TWITTER_BEARER_TOKEN or (TWITTER_API_KEY and TWITTER_ACCESS_TOKEN)),
            "web_session": bool(TWITTER_WEB_BEARER_TOKEN and TWITTER_AUTH_TOKEN and TWITTER_CSRF_TOKEN),
            "graphql_query_id": bool(GRAPHQL_TWEET_DETAIL_ID),
        },
        "database": DB_PATH,
        "collections": len(COLLECTION_IDS),
        "download_settings": {
            "destination": DESTINATION_DIRECTORY,
            "max_concurrent": MAX_CONCURRENT_DOWNLOADS,
            "existing_files": EXISTING_FILE_POLICY,
        },
        "media_policy": {
            "skip_unknown": SKIP_UNKNOWN_MEDIA,
            "skip_unresolved": SKIP_UNRESOLVED_MEDIA,
        },
    }
