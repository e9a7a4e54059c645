"""
Data Layer Protocol Definitions

This module defines typing.Protocol interfaces for data layer operations.
These protocols enable dependency injection for database operations,
making services testable without real database connections.

Protocols defined:
- ProcessedIdStore: Interface for the append-only set of processed tweet IDs
"""

from typing import Protocol, Iterable, List, Set

from data.models import ProcessedTweet


class ProcessedIdStore(Protocol):
    """Protocol defining the interface for the processed-ID store.

    Implementations should provide methods for:
    - Reading every processed row (one snapshot per top-level run)
    - Appending a batch of rows in a single transaction

    Entries are never updated or removed by the crawler.
    """

    def select_all(self) -> List[ProcessedTweet]:
        """Return every processed row.

        Raises:
            PersistenceError: If the store cannot be read.
        """
        ...

    def get_processed_ids(self) -> Set[int]:
        """Return the IDs of every processed row.

        Raises:
            PersistenceError: If the store cannot be read.
        """
        ...

    def insert_batch(self, rows: Iterable[ProcessedTweet]) -> int:
        """Append rows atomically: either all rows are stored or none.

        Args:
            rows: The rows to append.

        Returns:
            The number of rows written.

        Raises:
            PersistenceError: If the transaction fails (nothing is stored).
        """
        ...

    def ensure_schema(self) -> None:
        """Create the backing table if it does not exist yet."""
        ...

    def close(self) -> None:
        """Release the underlying connection."""
        ...
