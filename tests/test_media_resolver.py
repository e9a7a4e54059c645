"""
Tests for MediaResolver

Tests for resolving photos, videos and animated gifs from both the
v1.1 / GraphQL shape and the v2 shape, and for the skip policies.
"""

import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from data.models import MediaKind
from services.media_resolver import MediaResolver
from utils.exceptions import MalformedResponse, UnknownMediaKind, UnresolvedMedia


@pytest.fixture
def resolver():
    """A resolver that raises on unknown and unresolved media."""
    return MediaResolver(skip_unknown_kinds=False, skip_unresolved=False)


class TestPhotos:
    """Tests for photo resolution."""

    def test_jpg_gets_original_size_suffix(self, resolver, payloads):
        media = resolver.resolve([payloads.photo_media("https://pbs.twimg.com/media/abc.jpg")], 1)

        assert media[0].kind is MediaKind.PHOTO
        assert media[0].resolved_url == "https://pbs.twimg.com/media/abc.jpg:orig"

    def test_uppercase_jpg_gets_suffix(self, resolver, payloads):
        media = resolver.resolve([payloads.photo_media("https://pbs.twimg.com/media/abc.JPG")], 1)
        assert media[0].resolved_url.endswith(":orig")

    def test_png_left_unchanged(self, resolver, payloads):
        media = resolver.resolve([payloads.photo_media("https://pbs.twimg.com/media/abc.png")], 1)
        assert media[0].resolved_url == "https://pbs.twimg.com/media/abc.png"

    def test_v2_photo_url(self, resolver):
        """Test that a v2 photo entry uses its `url` field."""
        media = resolver.resolve([{"type": "photo", "url": "https://pbs.twimg.com/media/v2.jpg"}], 1)
        assert media[0].resolved_url == "https://pbs.twimg.com/media/v2.jpg:orig"

    def test_photo_without_url(self, resolver):
        with pytest.raises(UnresolvedMedia):
            resolver.resolve([{"type": "photo"}], 1)


class TestVideos:
    """Tests for video and animated gif resolution."""

    def test_highest_bitrate_wins(self, resolver, payloads):
        """
        Test that the variant with the highest bitrate is chosen.

        The bitrate-less playlist variant is ignored.
        """
        block = [payloads.video_media([
            {"content_type": "application/x-mpegURL", "url": "https://video.twimg.com/pl.m3u8"},
            {"bitrate": 832000, "content_type": "video/mp4", "url": "https://video.twimg.com/832.mp4"},
            {"bitrate": 2176000, "content_type": "video/mp4", "url": "https://video.twimg.com/2176.mp4"},
            {"bitrate": 256000, "content_type": "video/mp4", "url": "https://video.twimg.com/256.mp4"},
        ])]

        media = resolver.resolve(block, 1)

        assert media[0].kind is MediaKind.VIDEO
        assert media[0].resolved_url == "https://video.twimg.com/2176.mp4"
        assert len(media[0].candidate_variants) == 4

    def test_first_of_equal_bitrates_wins(self, resolver, payloads):
        block = [payloads.video_media([
            {"bitrate": 500, "url": "https://video.twimg.com/first.mp4"},
            {"bitrate": 500, "url": "https://video.twimg.com/second.mp4"},
        ])]

        assert resolver.resolve(block, 1)[0].resolved_url == "https://video.twimg.com/first.mp4"

    def test_gif_with_zero_bitrate(self, resolver, payloads):
        """Test that an animated gif's single 0-bitrate variant is accepted."""
        block = [payloads.video_media([{"bitrate": 0, "url": "https://video.twimg.com/tweet_video/g.mp4"}],
                                      kind="animated_gif")]

        media = resolver.resolve(block, 1)

        assert media[0].kind is MediaKind.ANIMATED_GIF
        assert media[0].resolved_url == "https://video.twimg.com/tweet_video/g.mp4"

    def test_v2_variants_use_bit_rate(self, resolver):
        block = [{
            "type": "video",
            "variants": [
                {"bit_rate": 100, "url": "https://video.twimg.com/low.mp4"},
                {"bit_rate": 900, "url": "https://video.twimg.com/high.mp4"},
            ],
        }]

        assert resolver.resolve(block, 1)[0].resolved_url == "https://video.twimg.com/high.mp4"

    def test_v2_gif_falls_back_to_thumbnail(self, resolver):
        """Test deriving a gif's mp4 URL from its preview image."""
        block = [{
            "type": "animated_gif",
            "preview_image_url": "https://pbs.twimg.com/tweet_video_thumb/XYZ.jpg",
        }]

        media = resolver.resolve(block, 1)

        assert media[0].resolved_url == "https://pbs.twimg.com/tweet_video/XYZ.mp4"

    def test_video_without_usable_variant(self, resolver, payloads):
        block = [payloads.video_media([{"url": "https://video.twimg.com/pl.m3u8"}])]

        with pytest.raises(UnresolvedMedia, match="undefined media url at 42"):
            resolver.resolve(block, 42)

    def test_variant_with_bad_bitrate(self, resolver, payloads):
        block = [payloads.video_media([{"bitrate": "fast", "url": "https://video.twimg.com/a.mp4"}])]

        with pytest.raises(MalformedResponse):
            resolver.resolve(block, 1)


class TestBlockShape:
    """Tests for the media block as a whole."""

    def test_none_is_no_media(self, resolver):
        assert resolver.resolve(None, 1) == []

    def test_order_is_preserved(self, resolver, payloads):
        block = [
            payloads.photo_media("https://pbs.twimg.com/media/b.png"),
            payloads.photo_media("https://pbs.twimg.com/media/a.png"),
        ]

        urls = [m.resolved_url for m in resolver.resolve(block, 1)]

        assert urls == ["https://pbs.twimg.com/media/b.png", "https://pbs.twimg.com/media/a.png"]

    def test_block_not_a_list(self, resolver):
        with pytest.raises(MalformedResponse):
            resolver.resolve({"type": "photo"}, 1)

    def test_entry_without_type(self, resolver):
        with pytest.raises(MalformedResponse):
            resolver.resolve([{"media_url_https": "https://pbs.twimg.com/media/a.jpg"}], 1)

    def test_unknown_kind_raises(self, resolver):
        with pytest.raises(UnknownMediaKind) as exc_info:
            resolver.resolve([{"type": "hologram"}], 9)
        assert exc_info.value.kind == "hologram"
        assert exc_info.value.item_id == 9


class TestSkipPolicies:
    """Tests for the configurable skip behaviour."""

    def test_skip_unknown_kind(self, payloads, capture_logs):
        """Test that unknown entries are logged and dropped when skipping is enabled."""
        resolver = MediaResolver(skip_unknown_kinds=True, skip_unresolved=False)
        block = [{"type": "hologram"}, payloads.photo_media("https://pbs.twimg.com/media/a.png")]

        media = resolver.resolve(block, 1)

        assert [m.resolved_url for m in media] == ["https://pbs.twimg.com/media/a.png"]
        assert any("hologram" in r.getMessage() for r in capture_logs)

    def test_skip_unresolved(self, payloads):
        resolver = MediaResolver(skip_unknown_kinds=False, skip_unresolved=True)
        block = [payloads.video_media([]), payloads.photo_media("https://pbs.twimg.com/media/a.png")]

        assert len(resolver.resolve(block, 1)) == 1

    def test_skip_unknown_does_not_hide_malformed(self):
        resolver = MediaResolver(skip_unknown_kinds=True, skip_unresolved=True)

        with pytest.raises(MalformedResponse):
            resolver.resolve(["not an object"], 1)
