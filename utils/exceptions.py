"""
Custom Exception Classes for the Collection Crawler

This module defines custom exceptions for better error handling and
categorization of failures across the application.
"""

from typing import Optional


class CrawlerError(Exception):
    """Base exception for all crawler application errors."""
    pass


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(CrawlerError):
    """Raised when configuration validation fails or required settings are missing."""
    pass


# =============================================================================
# Feed Errors
# =============================================================================

class FeedError(CrawlerError):
    """Base exception for errors talking to a feed or detail endpoint."""
    pass


class EndpointError(FeedError):
    """Raised when an endpoint answers with a non-success status (other than 429)."""

    def __init__(self, status: Optional[int], reason: str, context: Optional[str] = None):
        self.status = status
        self.reason = reason
        self.context = context
        message = f"{context} returns {status} {reason}" if context else f"Endpoint returns {status} {reason}"
        super().__init__(message)


class RateLimited(FeedError):
    """Raised when an endpoint answers 429. Carries the epoch second the window resets."""

    def __init__(self, reset_at: Optional[int], context: Optional[str] = None):
        self.reset_at = reset_at
        self.context = context
        if reset_at is not None:
            from datetime import datetime
            reset_text = datetime.fromtimestamp(reset_at).strftime("%Y-%m-%d %H:%M:%S")
            message = f"Rate limit exceeded, resets at {reset_text}"
        else:
            message = "Rate limit exceeded, reset time unknown"
        if context:
            message = f"{message} ({context})"
        super().__init__(message)


class TransportError(FeedError):
    """Raised when a request fails without an HTTP status, e.g. a connection reset or a timeout."""

    def __init__(self, reason: str, context: Optional[str] = None):
        self.reason = reason
        self.context = context
        message = f"{context} failed: {reason}" if context else f"Request failed: {reason}"
        super().__init__(message)


class MalformedResponse(FeedError):
    """Raised when a response lacks an expected field or has an unexpected shape."""

    def __init__(self, context: str):
        self.context = context
        super().__init__(f"Malformed response: {context}")


class UnresolvedMedia(MalformedResponse):
    """Raised when a media entry parses but no download URL can be derived from it."""
    pass


class UnknownMediaKind(FeedError):
    """Raised when a media entry declares a type the resolver does not handle."""

    def __init__(self, kind: Optional[str], item_id: Optional[int] = None):
        self.kind = kind
        self.item_id = item_id
        where = f" at {item_id}" if item_id is not None else ""
        super().__init__(f"Unknown media type '{kind}'{where}")


class PaginationStalled(FeedError):
    """Raised when a truncated feed keeps returning empty pages."""
    pass


# =============================================================================
# Download Errors
# =============================================================================

class DownloadError(CrawlerError):
    """Raised when a media file cannot be written to disk."""
    pass


# =============================================================================
# Database Errors
# =============================================================================

class PersistenceError(CrawlerError):
    """Raised when the processed-ID store is unreachable or a transaction fails."""
    pass
