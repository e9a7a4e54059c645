"""
Database Module for the Collection Crawler

This module handles the SQLite database that records which tweets have
already been downloaded. It provides functions for connecting to the
database, creating the schema, reading the processed-ID snapshot and
appending processed tweets in one transaction.
"""

import sqlite3
from typing import Iterable, List, Optional, Set

from config import settings
from data.models import ProcessedTweet
from utils.exceptions import PersistenceError
from utils.logger import get_logger

logger = get_logger(__name__)

SCHEMA = "CREATE TABLE IF NOT EXISTS tweets(id integer not null primary key, url text);"


class DatabaseConnection:
    """Database connection manager for the processed-ID store."""

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize the database connection.

        Args:
            db_path: Path of the SQLite file, defaults to settings.DB_PATH.
        """
        self.db_path = db_path or settings.DB_PATH
        self.conn = None

    def connect(self) -> sqlite3.Connection:
        """
        Establish a connection to the database.

        Returns:
            sqlite3.Connection: The open connection.

        Raises:
            PersistenceError: If the database cannot be opened.
        """
        if self.conn is not None:
            return self.conn
        try:
            self.conn = sqlite3.connect(self.db_path)
            logger.debug(f"Connected to database {self.db_path}")
            return self.conn
        except sqlite3.Error as e:
            self.conn = None
            raise PersistenceError(f"Failed to open database {self.db_path}: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        if self.conn is None:
            return
        try:
            self.conn.close()
            logger.debug("Database connection closed")
        except sqlite3.Error as e:
            logger.error(f"Error closing database connection: {e}")
        finally:
            self.conn = None

    def ensure_schema(self) -> None:
        """
        Create the tweets table if it does not exist.

        Raises:
            PersistenceError: If the statement fails.
        """
        conn = self.connect()
        try:
            conn.execute(SCHEMA)
            conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to create schema: {e}") from e

    def select_all(self) -> List[ProcessedTweet]:
        """
        Read every processed tweet.

        Returns:
            List[ProcessedTweet]: All rows, in ID order.

        Raises:
            PersistenceError: If the query fails.
        """
        conn = self.connect()
        try:
            rows = conn.execute("SELECT id, url FROM tweets ORDER BY id").fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read processed tweets: {e}") from e
        return [ProcessedTweet(id=row[0], url=row[1]) for row in rows]

    def get_processed_ids(self) -> Set[int]:
        """
        Read the processed-ID snapshot.

        Returns:
            Set[int]: IDs of every processed tweet.
        """
        ids = {row.id for row in self.select_all()}
        logger.debug(f"Loaded {len(ids)} processed tweet IDs")
        return ids

    def insert_batch(self, rows: Iterable[ProcessedTweet]) -> int:
        """
        Append processed tweets in a single transaction.

        Either every row is stored or, on any failure, none is. Rows whose
        ID is already stored are ignored, so committing a retried batch is
        harmless.

        Args:
            rows: The processed tweets to record.

        Returns:
            int: Number of rows submitted.

        Raises:
            PersistenceError: If the transaction fails and was rolled back.
        """
        rows = list(rows)
        if not rows:
            return 0

        conn = self.connect()
        try:
            with conn:
                conn.executemany(
                    "INSERT OR IGNORE INTO tweets(id, url) VALUES(?, ?)",
                    [(row.id, row.url) for row in rows],
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to record {len(rows)} processed tweets: {e}") from e

        logger.info(f"Recorded {len(rows)} processed tweets")
        return len(rows)
