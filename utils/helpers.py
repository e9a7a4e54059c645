"""
Helper Utility Module

This module provides various helper functions used throughout the crawler:
strict and lenient nested-JSON access, URL extension handling and
date parsing for the different endpoint shapes.
"""

import os
import posixpath
from typing import Optional, Dict, Any, Iterable
from datetime import datetime
from urllib.parse import urlparse

from utils.exceptions import MalformedResponse

_MISSING = object()

def safe_get(data: Dict[str, Any], *keys, default: Any = None) -> Any:
    """
    Safely get a value from a nested dictionary.

    Args:
        data: The dictionary to search
        *keys: The keys to follow
        default: Default value if key doesn't exist

    Returns:
        The value at the specified keys or the default value
    """
    for key in keys:
        try:
            data = data[key]
        except (KeyError, TypeError, IndexError):
            return default
    return data

def require(data: Any, *keys, context: str = "response") -> Any:
    """
    Get a value from a nested JSON document, failing loudly when it is absent.

    Args:
        data: The parsed JSON document
        *keys: Keys / indexes to follow
        context: Name of the document, used in the error message

    Returns:
        The value at the specified path (never None)

    Raises:
        MalformedResponse: If any step of the path is missing or null
    """
    value = safe_get(data, *keys, default=_MISSING)
    if value is _MISSING or value is None:
        path = ".".join(str(k) for k in keys)
        raise MalformedResponse(f"missing '{path}' in {context}")
    return value

def require_int(data: Any, *keys, context: str = "response") -> int:
    """Like require(), but also converts the value to int."""
    value = require(data, *keys, context=context)
    try:
        return int(value)
    except (TypeError, ValueError):
        path = ".".join(str(k) for k in keys)
        raise MalformedResponse(f"'{path}' in {context} is not an integer: {value!r}")

def url_extension(url: str) -> str:
    """
    Extract the file extension of a media URL.

    The ':orig' size selector is stripped before the extension is taken,
    so 'https://pbs.twimg.com/media/abc.jpg:orig' yields '.jpg'.

    Args:
        url: The media URL

    Returns:
        str: The extension including the dot, or an empty string
    """
    path = urlparse(url).path.replace(":orig", "")
    return posixpath.splitext(path)[1]

def parse_twitter_date(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a timestamp as returned by either API generation.

    Handles the v1.1 format ('Wed Oct 10 20:19:24 +0000 2018') and the
    v2 ISO format ('2018-10-10T20:19:24.000Z').

    Args:
        value: The raw timestamp string

    Returns:
        Optional[datetime]: Timezone-aware datetime, or None if unparseable
    """
    if not value:
        return None
    for fmt in ("%a %b %d %H:%M:%S %z %Y", "%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z"):
        try:
            return datetime.strptime(value.replace("Z", "+0000"), fmt)
        except ValueError:
            continue
    return None

def permalink(author_handle: str, tweet_id: int) -> str:
    """Build the canonical web URL of a tweet."""
    return f"https://twitter.com/{author_handle}/status/{tweet_id}"

def parse_id_list(value: Optional[str]) -> list:
    """Split a comma-separated setting into a list of stripped, non-empty strings."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]

def contains_any(text: Optional[str], keywords: Iterable[str]) -> bool:
    """Case-insensitive check whether any keyword occurs in text."""
    if not text:
        return False
    lowered = text.lower()
    return any(k.lower() in lowered for k in keywords)

def ensure_dir_exists(directory: str) -> None:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        directory: The directory path to check/create
    """
    if not os.path.exists(directory):
        os.makedirs(directory, exist_ok=True)
