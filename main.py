"""
Collection Crawler Application

This is the main entry point for the collection crawler.
It lists the tweets of a collection (or of the account's likes or
timeline), resolves their photos, videos and gifs, downloads the media
and records every processed tweet so the next run skips it. It can also
delete the account's tweets or likes that match a filter.
"""

import sys
import argparse
import asyncio
import logging
from typing import Optional, List

import aiohttp

from config import settings
from config.validators import validate_settings
from data.database import DatabaseConnection
from data.models import ProcessedTweet, TweetMedia
from data.protocols import ProcessedIdStore
from services.cleanup_service import CleanupService, TweetFilter, parse_date
from services.dedup import DedupFilter
from services.download_pipeline import MediaDownloadPipeline
from services.media_resolver import MediaResolver
from services.pagination import PaginationEngine
from services.protocols import FeedSource, Reporter
from services.rate_limit import RateLimitGovernor
from services.reporter import ConsoleReporter, make_reporter
from services.sdk_service import SdkBackend, create_client
from services.twitter_service import HttpHeaderBackend, GraphQLBackend
from utils.exceptions import (
    CrawlerError, ConfigurationError, FeedError, DownloadError, PersistenceError, TransportError
)
from utils.logger import get_logger, setup_file_logging

# Set up logging
logger = get_logger(__name__)

class CollectionCrawler:
    """
    Main application class for the crawler.

    This class orchestrates pagination, detail fetching, media resolution,
    downloading and the processed-ID commit.
    """

    def __init__(self, store: Optional[ProcessedIdStore] = None,
                 reporter: Optional[Reporter] = None,
                 resolver: Optional[MediaResolver] = None,
                 client_factory=create_client):
        """
        Initialize the crawler.

        Args:
            store: Processed-ID store, defaults to the SQLite database.
            reporter: Console reporter.
            resolver: Media resolver, defaults to the configured skip policies.
            client_factory: Creates the Tweepy client for the SDK backend and cleanup.
        """
        self.store = store if store is not None else DatabaseConnection()
        self.reporter = reporter if reporter is not None else ConsoleReporter()
        self.resolver = resolver if resolver is not None else MediaResolver()
        self.client_factory = client_factory

    def build_sources(self, session: aiohttp.ClientSession, backend: str, feed: str,
                      collection_ids: List[str]) -> List[FeedSource]:
        """
        Create one feed backend per collection (or one for likes / timeline).

        Raises:
            ConfigurationError: If the combination is not supported.
        """
        if feed == "collection":
            if not collection_ids:
                raise ConfigurationError("No collection IDs given.")
            if backend == "http":
                return [HttpHeaderBackend(session, cid) for cid in collection_ids]
            if backend == "graphql":
                return [GraphQLBackend(session, cid) for cid in collection_ids]
            raise ConfigurationError(f"Collections cannot be read through the '{backend}' backend.")
        if backend != "sdk":
            raise ConfigurationError(f"The '{feed}' feed is only available through the 'sdk' backend.")
        return [SdkBackend(self.client_factory(), feed=feed)]

    async def fetch_media(self, source: FeedSource, tweet_ids: List[int]) -> List[TweetMedia]:
        """
        Fetch every tweet's detail under the rate-limit governor and resolve its media.

        Returns:
            List[TweetMedia]: One entry per tweet ID, in the given order.
        """
        governor = RateLimitGovernor(max_concurrent=settings.MAX_CONCURRENT_DETAIL_FETCHES,
                                     reporter=self.reporter)
        media_count = 0

        async def fetch(tweet_id: int):
            nonlocal media_count
            response = await source.fetch_detail(tweet_id)
            media = self.resolver.resolve(response.detail.media_block, tweet_id)
            media_count += len(media)
            self.reporter.status(f"Fetching {media_count} media URLs...")
            return TweetMedia(tweet_id=tweet_id, author_handle=response.detail.author_handle,
                              media=media), response.window

        tweet_medias = await governor.run(tweet_ids, fetch)
        self.reporter.succeed(f"Fetched {sum(len(t.media) for t in tweet_medias)} media URLs.")
        return tweet_medias

    async def save_feed(self, source: FeedSource, session: aiohttp.ClientSession,
                        dedup: DedupFilter, save_dir: str,
                        existing_files: Optional[str] = None) -> List[TweetMedia]:
        """
        Crawl one feed: list, resolve, download, then record the batch.

        The batch's IDs are committed only after every download succeeded.

        Returns:
            List[TweetMedia]: The processed tweets.
        """
        engine = PaginationEngine(source, dedup, reporter=self.reporter)
        items = [item async for item in engine.fetch_all()]
        self.reporter.succeed(f"Fetched {len(items)} Tweets from {source.name}.")
        if not items:
            return []

        tweet_medias = await self.fetch_media(source, [item.id for item in items])

        pipeline = MediaDownloadPipeline(session, save_dir, existing_files=existing_files,
                                         reporter=self.reporter)
        await pipeline.download_all(tweet_medias)

        self.store.insert_batch(ProcessedTweet(id=t.tweet_id, url=t.permalink) for t in tweet_medias)
        dedup.mark_processed(t.tweet_id for t in tweet_medias)
        return tweet_medias

    async def crawl(self, backend: str, feed: str, collection_ids: List[str],
                    save_dir: str, existing_files: Optional[str] = None) -> int:
        """
        Crawl every requested feed within one processed-ID snapshot.

        Returns:
            int: Number of tweets processed.
        """
        self.store.ensure_schema()
        dedup = DedupFilter(self.store.get_processed_ids())
        logger.info(f"{len(dedup)} tweets already processed")

        processed = 0
        connector = aiohttp.TCPConnector(limit=settings.CONNECTION_LIMIT)
        async with aiohttp.ClientSession(connector=connector) as session:
            for source in self.build_sources(session, backend, feed, collection_ids):
                logger.info(f"Crawling {source.name}")
                processed += len(await self.save_feed(source, session, dedup, save_dir, existing_files))
        return processed

    def run(self, backend: Optional[str] = None, feed: Optional[str] = None,
            collection_ids: Optional[List[str]] = None, save_dir: Optional[str] = None,
            existing_files: Optional[str] = None) -> bool:
        """
        Run the crawl workflow.

        Returns:
            bool: True if successful, False otherwise
        """
        backend = backend or settings.DEFAULT_BACKEND
        feed = feed or settings.DEFAULT_FEED
        collection_ids = collection_ids or settings.COLLECTION_IDS
        save_dir = save_dir or settings.DESTINATION_DIRECTORY

        try:
            processed = asyncio.run(self.crawl(backend, feed, collection_ids, save_dir, existing_files))
            logger.info(f"Processed {processed} new tweets")
            return True
        except ConfigurationError as e:
            logger.error(f"Configuration error: {e}")
            return False
        except (TransportError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.reporter.fail("Network request failed.")
            logger.error(f"{type(e).__name__}: {e}")
            return False
        except FeedError as e:
            self.reporter.fail("Failed to fetch tweets.")
            logger.error(f"{type(e).__name__}: {e}")
            return False
        except DownloadError as e:
            self.reporter.fail("Failed to download media.")
            logger.error(f"Download error: {e}")
            return False
        except PersistenceError as e:
            logger.error(f"Database error: {e}")
            return False
        except CrawlerError as e:
            logger.error(f"Crawler error: {e}")
            return False
        finally:
            self.store.close()

    def run_cleanup(self, kind: str, tweet_filter: TweetFilter, dry_run: bool = False) -> bool:
        """
        Delete tweets ('tweets') or likes ('likes') matching the filter.

        Returns:
            bool: True if successful, False otherwise
        """
        try:
            service = CleanupService(self.client_factory(), reporter=self.reporter)
            if kind == "tweets":
                removed = asyncio.run(service.delete_tweets(tweet_filter, dry_run=dry_run))
            else:
                removed = asyncio.run(service.delete_likes(tweet_filter, dry_run=dry_run))
            verb = "Matched" if dry_run else "Removed"
            logger.info(f"{verb} {len(removed)} {kind}")
            return True
        except FeedError as e:
            self.reporter.fail(f"Failed to delete {kind}.")
            logger.error(f"{type(e).__name__}: {e}")
            return False
        except CrawlerError as e:
            logger.error(f"Crawler error: {e}")
            return False

def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Collection media crawler')
    parser.add_argument('--log-file', type=str, default=None, help='Log file path')
    parser.add_argument('--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='INFO', help='Logging level')
    subparsers = parser.add_subparsers(dest='command', required=True)

    save = subparsers.add_parser('save', help='Save the media of collections, likes or the timeline')
    save.add_argument('--backend', choices=settings.SUPPORTED_BACKENDS, default=None,
                      help='Feed backend (default: DEFAULT_BACKEND)')
    save.add_argument('--feed', choices=settings.SUPPORTED_FEEDS, default=None,
                      help='Feed to crawl (default: DEFAULT_FEED)')
    save.add_argument('-i', '--id', dest='collection_ids', action='append', default=None,
                      help="Collection ID, digits only without 'custom-'. Repeatable.")
    save.add_argument('-o', '--out', dest='save_dir', default=None,
                      help='Directory to save media (default: DESTINATION_DIRECTORY)')
    save.add_argument('--existing-files', choices=settings.EXISTING_FILE_POLICIES, default=None,
                      help='What to do with files already on disk')
    save.add_argument('--skip-unknown-media', action='store_true',
                      help='Skip media of unknown type instead of aborting')
    save.add_argument('--skip-unresolved-media', action='store_true',
                      help='Skip media without a usable URL instead of aborting')

    for name, what in (('delete-tweets', 'tweets'), ('delete-likes', 'likes')):
        cleanup = subparsers.add_parser(name, help=f'Delete {what} matching a filter')
        cleanup.add_argument('--since', type=str, default=None, help='First day to include (YYYY-MM-DD)')
        cleanup.add_argument('--until', type=str, default=None, help='First day to exclude (YYYY-MM-DD)')
        cleanup.add_argument('--keyword', dest='keywords', action='append', default=[],
                             help='Keyword that must appear in the text. Repeatable, any match.')
        cleanup.add_argument('--dry-run', action='store_true', help='Only list what would be removed')

    return parser.parse_args(argv)

def main(argv: Optional[List[str]] = None):
    """Main entry point for the application."""
    # Parse command line arguments
    args = parse_arguments(argv)

    # Set up logging
    log_level = getattr(logging, args.log_level)
    setup_file_logging(args.log_file, log_level)

    logger.info(f"Starting crawler: {args.command}")
    logger.debug(f"Configuration: {settings.get_config_summary()}")

    reporter = make_reporter()

    try:
        if args.command == 'save':
            validate_settings(args.backend, args.feed)
            resolver = None
            if args.skip_unknown_media or args.skip_unresolved_media:
                resolver = MediaResolver(
                    skip_unknown_kinds=args.skip_unknown_media or None,
                    skip_unresolved=args.skip_unresolved_media or None,
                )
            crawler = CollectionCrawler(reporter=reporter, resolver=resolver)
            success = crawler.run(
                backend=args.backend,
                feed=args.feed,
                collection_ids=args.collection_ids,
                save_dir=args.save_dir,
                existing_files=args.existing_files,
            )
        else:
            validate_settings('sdk', 'timeline', requires_user_context=True)
            tweet_filter = TweetFilter(
                since=parse_date(args.since),
                until=parse_date(args.until),
                keywords=args.keywords,
            )
            kind = 'tweets' if args.command == 'delete-tweets' else 'likes'
            crawler = CollectionCrawler(reporter=reporter)
            success = crawler.run_cleanup(kind, tweet_filter, dry_run=args.dry_run)

        # Report status
        if success:
            logger.info("Crawler completed successfully")
            exit_code = 0
        else:
            logger.warning("Crawler completed with errors")
            exit_code = 1

    except ConfigurationError as e:
        logger.error(str(e))
        exit_code = 1
    except ValueError as e:
        logger.error(f"Invalid argument: {e}")
        exit_code = 1
    except Exception as e:
        logger.error(f"Unhandled exception in crawler: {e}", exc_info=True)
        exit_code = 2

    # Log application end
    logger.info(f"Crawler finished with exit code {exit_code}")
    return exit_code

if __name__ == "__main__":
    sys.exit(main())
