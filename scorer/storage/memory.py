"""
Memory-based article store for the article scorer.

This module provides an in-memory store for tests and one-off runs where the
records only need to live as long as the process.
"""
import asyncio
from typing import Any, Dict, List, Optional

import structlog

from scorer.config import StorageConfig
from scorer.errors import ArticleNotFoundError
from scorer.models import ArticleFilter, ArticleRecord
from scorer.storage import BaseArticleStore

# Set up structured logger
logger = structlog.get_logger()


class MemoryArticleStore(BaseArticleStore):
    """
    In-memory article store implementation.

    Records are held as validated models and copied on the way in and out,
    so callers never share state with the store.
    """

    def __init__(self, config: Optional[StorageConfig] = None):
        super().__init__(config or StorageConfig())
        self._records: Dict[int, ArticleRecord] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def get(self, article_id: int) -> Optional[ArticleRecord]:
        async with self._lock:
            record = self._records.get(article_id)
            return record.model_copy(deep=True) if record else None

    async def get_by_hash(self, content_hash: str) -> Optional[ArticleRecord]:
        async with self._lock:
            for record in self._records.values():
                if record.hash == content_hash:
                    return record.model_copy(deep=True)
        return None

    async def create(self, **fields: Any) -> ArticleRecord:
        self._check_fields(fields)
        async with self._lock:
            record = ArticleRecord(id=self._next_id, **fields)
            self._records[record.id] = record
            self._next_id += 1
            logger.debug("Created article record", article_id=record.id, link=record.link)
            return record.model_copy(deep=True)

    async def update(self, article_id: int, **fields: Any) -> ArticleRecord:
        self._check_fields(fields)
        async with self._lock:
            record = self._records.get(article_id)
            if record is None:
                raise ArticleNotFoundError(article_id)
            # Re-validate so model invariants hold after every write
            updated = ArticleRecord.model_validate({**dict(record), **fields})
            self._records[article_id] = updated
            return updated.model_copy(deep=True)

    async def update_many(self, article_ids: List[int], **fields: Any) -> int:
        self._check_fields(fields)
        async with self._lock:
            count = 0
            for article_id in article_ids:
                record = self._records.get(article_id)
                if record is None:
                    continue
                self._records[article_id] = ArticleRecord.model_validate({**dict(record), **fields})
                count += 1
            return count

    async def find(self, article_filter: ArticleFilter) -> List[ArticleRecord]:
        async with self._lock:
            matches = [
                record.model_copy(deep=True)
                for article_id, record in sorted(self._records.items())
                if article_filter.matches(record)
            ]
        if article_filter.limit is not None:
            matches = matches[:article_filter.limit]
        return matches

    async def count(self) -> int:
        async with self._lock:
            return len(self._records)
