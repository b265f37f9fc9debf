"""
Storage package for the article scorer.

This package provides persistence for article records, with support for
different backends (PostgreSQL, Memory). Every backend offers the same
lookup, partial update, bulk update and filtered query operations the
pipeline stages need.
"""
from typing import Any, FrozenSet, List, Optional, Protocol

import structlog

from scorer.config import StorageBackend, StorageConfig
from scorer.models import ArticleFilter, ArticleRecord

# Set up structured logger
logger = structlog.get_logger()

# Fields a caller may change after creation
UPDATABLE_FIELDS: FrozenSet[str] = frozenset(ArticleRecord.model_fields) - {"id"}


class ArticleStore(Protocol):
    """Protocol defining the interface for article stores."""

    async def get(self, article_id: int) -> Optional[ArticleRecord]:
        """
        Get a record by identifier.

        Args:
            article_id: Record identifier

        Returns:
            Optional[ArticleRecord]: The record if it exists, None otherwise
        """
        ...

    async def get_by_hash(self, content_hash: str) -> Optional[ArticleRecord]:
        """
        Get a record by the hash of its link.

        Args:
            content_hash: MD5 hex digest of the article link

        Returns:
            Optional[ArticleRecord]: The record if it exists, None otherwise
        """
        ...

    async def create(self, **fields: Any) -> ArticleRecord:
        """
        Create a record and assign it the next identifier.

        Args:
            **fields: Initial field values; ``link`` is required

        Returns:
            ArticleRecord: The stored record
        """
        ...

    async def update(self, article_id: int, **fields: Any) -> ArticleRecord:
        """
        Update some fields of a record.

        Args:
            article_id: Record identifier
            **fields: Field values to set

        Returns:
            ArticleRecord: The updated record

        Raises:
            ArticleNotFoundError: If no record has this identifier
        """
        ...

    async def update_many(self, article_ids: List[int], **fields: Any) -> int:
        """
        Set the same field values on several records.

        Returns:
            int: Number of records updated
        """
        ...

    async def find(self, article_filter: ArticleFilter) -> List[ArticleRecord]:
        """
        Get all records matching a filter, ordered by identifier.
        """
        ...

    async def find_first(self, article_filter: ArticleFilter) -> Optional[ArticleRecord]:
        """Get the lowest-identifier record matching a filter."""
        ...

    async def close(self) -> None:
        """Close the store and release resources."""
        ...

    async def __aenter__(self) -> "ArticleStore":
        """Enter the async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit the async context manager."""
        await self.close()


class BaseArticleStore(ArticleStore):
    """
    Base class for article stores.

    Provides field validation and the operations that can be expressed in
    terms of the others.
    """

    def __init__(self, config: StorageConfig):
        self.config = config

    @staticmethod
    def _check_fields(fields: dict) -> None:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown article fields: {', '.join(sorted(unknown))}")

    async def get(self, article_id: int) -> Optional[ArticleRecord]:
        """Get record - to be implemented by subclasses."""
        raise NotImplementedError

    async def get_by_hash(self, content_hash: str) -> Optional[ArticleRecord]:
        """Get record by hash - to be implemented by subclasses."""
        raise NotImplementedError

    async def create(self, **fields: Any) -> ArticleRecord:
        """Create record - to be implemented by subclasses."""
        raise NotImplementedError

    async def update(self, article_id: int, **fields: Any) -> ArticleRecord:
        """Update record - to be implemented by subclasses."""
        raise NotImplementedError

    async def update_many(self, article_ids: List[int], **fields: Any) -> int:
        """Update records one by one; backends with bulk writes override this."""
        self._check_fields(fields)
        count = 0
        for article_id in article_ids:
            if await self.get(article_id) is not None:
                await self.update(article_id, **fields)
                count += 1
        return count

    async def find(self, article_filter: ArticleFilter) -> List[ArticleRecord]:
        """Find records - to be implemented by subclasses."""
        raise NotImplementedError

    async def find_first(self, article_filter: ArticleFilter) -> Optional[ArticleRecord]:
        records = await self.find(article_filter.model_copy(update={"limit": 1}))
        return records[0] if records else None

    async def __aenter__(self) -> "BaseArticleStore":
        """Enter the async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit the async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the store and release resources."""
        pass


async def get_article_store(config: StorageConfig) -> ArticleStore:
    """
    Get an article store based on configuration.

    Args:
        config: Storage configuration

    Returns:
        ArticleStore: Configured article store

    Raises:
        ValueError: If the storage configuration is invalid
    """
    if config.backend == StorageBackend.POSTGRES:
        from scorer.storage.postgres import PostgresArticleStore

        dsn = config.postgres_dsn
        if not dsn:
            raise ValueError("PostgreSQL storage backend requires postgres_dsn")

        logger.info("Using PostgreSQL article store", dsn=dsn.split("@")[-1] if "@" in dsn else dsn)
        return await PostgresArticleStore.create(config, dsn=dsn)

    from scorer.storage.memory import MemoryArticleStore
    logger.info("Using memory article store")
    return MemoryArticleStore(config)


# Import specific implementations to make them available
from scorer.storage.memory import MemoryArticleStore  # noqa: E402
from scorer.storage.postgres import PostgresArticleStore  # noqa: E402

__all__ = [
    "ArticleStore",
    "BaseArticleStore",
    "UPDATABLE_FIELDS",
    "get_article_store",
    "MemoryArticleStore",
    "PostgresArticleStore",
]
