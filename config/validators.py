"""
Configuration Validation for the Collection Crawler

This module contains configuration validation logic.
Extracted from settings.py for better separation of concerns.
"""

from typing import Optional

from utils.exceptions import ConfigurationError
from utils.logger import get_logger

logger = get_logger(__name__)


def sdk_credentials_configured(settings) -> bool:
    """Return True when the SDK backend has either user-context or app-only credentials."""
    oauth1 = all([
        settings.TWITTER_API_KEY,
        settings.TWITTER_API_KEY_SECRET,
        settings.TWITTER_ACCESS_TOKEN,
        settings.TWITTER_ACCESS_TOKEN_SECRET
    ])
    return bool(oauth1 or settings.TWITTER_BEARER_TOKEN)


def validate_settings(backend: Optional[str] = None, feed: Optional[str] = None,
                      requires_user_context: bool = False):
    """
    Validate that all required settings are properly configured.

    Args:
        backend: Backend that will be used ('http', 'graphql' or 'sdk').
        feed: Feed that will be crawled ('collection', 'likes' or 'timeline').
        requires_user_context: True for commands that act on the authenticated
            user's account (deleting tweets or likes).

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    # Import settings here to avoid circular imports
    from config import settings

    backend = (backend or settings.DEFAULT_BACKEND).lower()
    feed = (feed or settings.DEFAULT_FEED).lower()

    errors = []

    if backend not in settings.SUPPORTED_BACKENDS:
        errors.append(f"Unknown backend '{backend}', expected one of {', '.join(settings.SUPPORTED_BACKENDS)}")
    if feed not in settings.SUPPORTED_FEEDS:
        errors.append(f"Unknown feed '{feed}', expected one of {', '.join(settings.SUPPORTED_FEEDS)}")

    # Feed / backend compatibility
    if feed == "collection" and backend == "sdk":
        errors.append("Collections are only available through the 'http' or 'graphql' backends.")
    if feed in ("likes", "timeline") and backend in ("http", "graphql"):
        errors.append(f"The '{feed}' feed is only available through the 'sdk' backend.")

    # Credentials per backend
    if backend in ("http", "graphql"):
        web_vars = [
            ("TWITTER_WEB_BEARER_TOKEN", settings.TWITTER_WEB_BEARER_TOKEN),
            ("TWITTER_AUTH_TOKEN", settings.TWITTER_AUTH_TOKEN),
            ("TWITTER_CSRF_TOKEN", settings.TWITTER_CSRF_TOKEN),
        ]
        for var_name, var_value in web_vars:
            if not var_value:
                errors.append(f"Missing required environment variable: {var_name}")
    if backend == "graphql" and not settings.GRAPHQL_TWEET_DETAIL_ID:
        errors.append("Missing required environment variable: GRAPHQL_TWEET_DETAIL_ID")
    if backend == "sdk" or requires_user_context:
        if not sdk_credentials_configured(settings):
            errors.append("No Twitter API credentials configured. "
                          "Please provide either OAuth 1.0a credentials or a Bearer Token.")
        elif (requires_user_context or feed in ("likes", "timeline")) and not settings.TWITTER_ACCESS_TOKEN:
            errors.append("OAuth 1.0a user credentials are required to act on the authenticated account.")

    if feed == "collection" and not settings.COLLECTION_IDS:
        logger.warning("COLLECTION_IDS is empty; collection IDs must be passed on the command line.")

    if settings.EXISTING_FILE_POLICY not in settings.EXISTING_FILE_POLICIES:
        errors.append(f"EXISTING_FILE_POLICY must be one of {', '.join(settings.EXISTING_FILE_POLICIES)}, "
                      f"got {settings.EXISTING_FILE_POLICY}")

    # Validate numeric settings are within reasonable bounds
    numeric_validations = [
        ("MAX_CONCURRENT_DOWNLOADS", settings.MAX_CONCURRENT_DOWNLOADS, 1, 500),
        ("MAX_CONCURRENT_DETAIL_FETCHES", settings.MAX_CONCURRENT_DETAIL_FETCHES, 1, 500),
        ("MAX_CONCURRENT_DELETES", settings.MAX_CONCURRENT_DELETES, 1, 100),
        ("COLLECTION_PAGE_SIZE", settings.COLLECTION_PAGE_SIZE, 1, 200),
        ("SDK_PAGE_SIZE", settings.SDK_PAGE_SIZE, 5, 100),
    ]

    for name, value, min_val, max_val in numeric_validations:
        if value < min_val or value > max_val:
            errors.append(f"{name} must be between {min_val} and {max_val}, got {value}")

    # Validate delays are not negative
    delay_settings = [
        ("PAGE_FETCH_DELAY", settings.PAGE_FETCH_DELAY),
        ("EMPTY_PAGE_BACKOFF", settings.EMPTY_PAGE_BACKOFF),
        ("RATE_LIMIT_SAFETY_MARGIN", settings.RATE_LIMIT_SAFETY_MARGIN),
    ]

    for name, value in delay_settings:
        if value < 0:
            errors.append(f"{name} must not be negative, got {value}")

    if settings.RATE_LIMIT_TICK <= 0:
        errors.append(f"RATE_LIMIT_TICK must be positive, got {settings.RATE_LIMIT_TICK}")

    # Raise all errors at once
    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)

    return True
