"""
Media Resolver Module

Turns a tweet's raw media block into download URLs, one per attachment.
Understands both the v1.1 / GraphQL shape (`media_url_https`,
`video_info.variants[].bitrate`) and the v2 shape (`url`,
`variants[].bit_rate`, `preview_image_url`). The strategy is picked from
the fields present in each entry.
"""

import posixpath
from typing import Any, List, Optional, Tuple

from config import settings
from data.models import MediaDescriptor, MediaKind
from utils.exceptions import MalformedResponse, UnknownMediaKind, UnresolvedMedia
from utils.logger import get_logger

logger = get_logger(__name__)

ORIGINAL_SIZE_SUFFIX = ":orig"


class MediaResolver:
    """Resolves media blocks to MediaDescriptors."""

    def __init__(self, skip_unknown_kinds: Optional[bool] = None,
                 skip_unresolved: Optional[bool] = None):
        """
        Initialize the resolver.

        Args:
            skip_unknown_kinds: Log and drop entries of an unknown type instead of raising.
            skip_unresolved: Log and drop entries without a usable URL instead of raising.
        """
        self.skip_unknown_kinds = settings.SKIP_UNKNOWN_MEDIA if skip_unknown_kinds is None else skip_unknown_kinds
        self.skip_unresolved = settings.SKIP_UNRESOLVED_MEDIA if skip_unresolved is None else skip_unresolved

    def resolve(self, media_block: Any, item_id: Optional[int] = None) -> List[MediaDescriptor]:
        """
        Resolve every media entry of a tweet, in declared order.

        Args:
            media_block: List of media entries as found in the detail response.
            item_id: ID of the tweet, for error messages.

        Returns:
            List[MediaDescriptor]: One descriptor per resolvable entry.

        Raises:
            MalformedResponse: If the block or an entry has an unexpected shape.
            UnknownMediaKind: If an entry's type is unknown and skipping is disabled.
            UnresolvedMedia: If no URL can be derived and skipping is disabled.
        """
        if media_block is None:
            return []
        if not isinstance(media_block, list):
            raise MalformedResponse(f"media block of {item_id} is not a list")

        descriptors = []
        for position, media in enumerate(media_block):
            try:
                descriptors.append(self.resolve_one(media, item_id))
            except UnknownMediaKind as e:
                if not self.skip_unknown_kinds:
                    raise
                logger.warning(f"Skipping media {position} of {item_id}: {e}")
            except UnresolvedMedia as e:
                if not self.skip_unresolved:
                    raise
                logger.warning(f"Skipping media {position} of {item_id}: {e}")
        return descriptors

    def resolve_one(self, media: Any, item_id: Optional[int] = None) -> MediaDescriptor:
        """Resolve a single media entry."""
        if not isinstance(media, dict):
            raise MalformedResponse(f"media entry of {item_id} is not an object")

        kind_name = media.get("type")
        if kind_name is None:
            raise MalformedResponse(f"media entry of {item_id} has no type")
        try:
            kind = MediaKind(kind_name)
        except ValueError:
            raise UnknownMediaKind(kind_name, item_id)

        if kind is MediaKind.PHOTO:
            return MediaDescriptor(kind=kind, resolved_url=self._photo_url(media, item_id))

        variants = self._variants(media, item_id)
        if variants:
            url = self.best_variant(variants)
            if url:
                return MediaDescriptor(kind=kind, resolved_url=url, candidate_variants=variants)

        if kind is MediaKind.ANIMATED_GIF and media.get("preview_image_url"):
            return MediaDescriptor(kind=kind, resolved_url=self.gif_url_from_thumbnail(media["preview_image_url"]),
                                   candidate_variants=variants)

        raise UnresolvedMedia(f"undefined media url at {item_id}")

    @staticmethod
    def _photo_url(media: dict, item_id: Optional[int]) -> str:
        url = media.get("media_url_https") or media.get("url")
        if not url:
            raise UnresolvedMedia(f"photo without url at {item_id}")
        if posixpath.splitext(url)[1].lower() == ".jpg":
            return f"{url}{ORIGINAL_SIZE_SUFFIX}"
        return url

    @staticmethod
    def _variants(media: dict, item_id: Optional[int]) -> List[Tuple[str, int]]:
        """Read bitrate variants from either shape; bitrate-less variants get -1."""
        raw = None
        video_info = media.get("video_info")
        if video_info is not None:
            if not isinstance(video_info, dict):
                raise MalformedResponse(f"video_info of {item_id} is not an object")
            raw = video_info.get("variants")
        if raw is None:
            raw = media.get("variants")
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise MalformedResponse(f"variants of {item_id} is not a list")

        variants = []
        for variant in raw:
            if not isinstance(variant, dict) or not variant.get("url"):
                raise MalformedResponse(f"variant without url at {item_id}")
            bitrate = variant.get("bitrate", variant.get("bit_rate"))
            try:
                bitrate = int(bitrate) if bitrate is not None else -1
            except (TypeError, ValueError):
                raise MalformedResponse(f"variant bitrate {bitrate!r} at {item_id} is not an integer")
            variants.append((variant["url"], bitrate))
        return variants

    @staticmethod
    def best_variant(variants: List[Tuple[str, int]]) -> str:
        """
        Pick the URL with the strictly highest bitrate; the first one wins ties.

        Variants without a bitrate (-1, e.g. HLS playlists) are never picked.

        Returns:
            str: The chosen URL, or an empty string if none qualifies.
        """
        highest_bitrate = -1
        best_url = ""
        for url, bitrate in variants:
            if bitrate > highest_bitrate:
                best_url = url
                highest_bitrate = bitrate
        return best_url

    @staticmethod
    def gif_url_from_thumbnail(preview_image_url: str) -> str:
        """Derive the mp4 of an animated gif from its thumbnail URL."""
        url = preview_image_url.replace("tweet_video_thumb", "tweet_video")
        return posixpath.splitext(url)[0] + ".mp4"
