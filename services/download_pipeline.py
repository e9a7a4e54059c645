"""
Media Download Pipeline Module

Downloads resolved media to deterministic file names with bounded
concurrency, then rewrites file timestamps so that a listing sorted by
date reproduces the order the media were fetched in.
"""

import asyncio
import os
import time
from typing import Iterable, List, Optional

import aiohttp

from config import settings
from data.models import MediaPath, TweetMedia
from services.executor import run_all
from services.protocols import Reporter
from utils.exceptions import DownloadError, EndpointError, RateLimited, TransportError
from utils.helpers import ensure_dir_exists, url_extension
from utils.logger import get_logger

logger = get_logger(__name__)

PARTIAL_SUFFIX = ".part"


def parse_reset_header(headers) -> Optional[int]:
    """Read x-rate-limit-reset from response headers, or None if absent or invalid."""
    value = headers.get("x-rate-limit-reset")
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


class MediaDownloadPipeline:
    """Writes resolved media to `{save_dir}/{author}_{tweet_id}_{index}{ext}`."""

    def __init__(self, session: aiohttp.ClientSession, save_dir: Optional[str] = None,
                 max_concurrent: Optional[int] = None,
                 existing_files: Optional[str] = None,
                 reporter: Optional[Reporter] = None,
                 chunk_size: Optional[int] = None):
        """
        Initialize the pipeline.

        Args:
            session: Shared HTTP session.
            save_dir: Destination directory.
            max_concurrent: Cap on simultaneous downloads.
            existing_files: 'overwrite' to always re-fetch, 'skip' to keep files already on disk.
            reporter: Optional console reporter.
            chunk_size: Bytes per streamed write.
        """
        self.session = session
        self.save_dir = save_dir or settings.DESTINATION_DIRECTORY
        self.max_concurrent = max_concurrent or settings.MAX_CONCURRENT_DOWNLOADS
        self.existing_files = existing_files or settings.EXISTING_FILE_POLICY
        if self.existing_files not in settings.EXISTING_FILE_POLICIES:
            raise ValueError(f"existing_files must be one of {settings.EXISTING_FILE_POLICIES}, "
                             f"got {self.existing_files}")
        self.reporter = reporter
        self.chunk_size = chunk_size or settings.DOWNLOAD_CHUNK_SIZE
        self.downloaded = 0
        self.skipped = 0

    def plan(self, tweet_medias: Iterable[TweetMedia]) -> List[MediaPath]:
        """
        Pair every media URL with its destination path.

        Args:
            tweet_medias: Processed tweets in fetch order.

        Returns:
            List[MediaPath]: One entry per media, tweet order then media order.
        """
        paths = []
        for tweet_media in tweet_medias:
            for index, media in enumerate(tweet_media.media):
                url = media.resolved_url
                file_name = f"{tweet_media.author_handle}_{tweet_media.tweet_id}_{index}{url_extension(url)}"
                paths.append(MediaPath(
                    url=url,
                    file_path=os.path.join(self.save_dir, file_name),
                    tweet_id=tweet_media.tweet_id,
                    media_index=index,
                ))
        return paths

    async def download_all(self, tweet_medias: Iterable[TweetMedia]) -> List[MediaPath]:
        """
        Download every media of the batch and stamp the files' timestamps.

        Args:
            tweet_medias: Processed tweets in fetch order.

        Returns:
            List[MediaPath]: The planned paths, all present on disk.

        Raises:
            RateLimited: If the media host answers 429.
            EndpointError: If the media host answers another non-success status.
            TransportError: If the connection fails or the body is cut off.
            DownloadError: If a file cannot be written.
        """
        paths = self.plan(tweet_medias)
        if not paths:
            logger.info("Nothing to download")
            return paths

        ensure_dir_exists(self.save_dir)
        bar = self.reporter.progress(len(paths), "Downloading") if self.reporter else None

        def make_task(media_path: MediaPath):
            async def task():
                await self.download_one(media_path)
                if bar is not None:
                    bar.update(1)
            return task

        try:
            await run_all([make_task(p) for p in paths], self.max_concurrent)
        finally:
            if bar is not None:
                bar.close()

        self.stamp_timestamps(paths)
        if self.reporter:
            self.reporter.succeed(f"Download is complete. {self.downloaded} downloaded, {self.skipped} skipped.")
        return paths

    async def download_one(self, media_path: MediaPath) -> bool:
        """
        Stream one URL to its destination file.

        An interrupted download leaves no file behind, so the 'skip' policy
        never mistakes a truncated file for a finished one.

        Returns:
            bool: False if the file existed and the policy is 'skip', True otherwise.
        """
        if self.existing_files == "skip" and os.path.exists(media_path.file_path):
            logger.debug(f"Skipping existing {os.path.basename(media_path.file_path)}")
            self.skipped += 1
            return False

        # Bytes land in a .part file that replaces the destination only once complete
        part_path = media_path.file_path + PARTIAL_SUFFIX
        context = f"Media download {media_path.url}"
        try:
            async with self.session.get(media_path.url) as response:
                if response.status == 429:
                    raise RateLimited(parse_reset_header(response.headers), context=media_path.url)
                if response.status < 200 or response.status >= 300:
                    raise EndpointError(response.status, response.reason or "", context=context)
                with open(part_path, "wb") as f:
                    async for chunk in response.content.iter_chunked(self.chunk_size):
                        f.write(chunk)
            os.replace(part_path, media_path.file_path)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(str(e) or type(e).__name__, context=context) from e
        except OSError as e:
            raise DownloadError(f"Failed to write {media_path.file_path}: {e}") from e
        finally:
            if os.path.exists(part_path):
                os.remove(part_path)

        self.downloaded += 1
        if self.reporter:
            self.reporter.status(f"Downloading {os.path.basename(media_path.file_path)}")
        return True

    @staticmethod
    def stamp_timestamps(paths: List[MediaPath], now: Optional[float] = None) -> None:
        """
        Set access and modified time of the n-th file to `now - n` seconds.

        The sequence runs across the whole batch so newer fetches sort first.
        Creation time can only be set on Windows and is left untouched.
        """
        now = time.time() if now is None else now
        for index, media_path in enumerate(paths):
            if not os.path.exists(media_path.file_path):
                continue
            stamp = now - index
            os.utime(media_path.file_path, (stamp, stamp))
