"""
PostgreSQL-based article store for the article scorer.

Records live in a single table whose columns mirror ArticleRecord; the LLM
metrics are kept as JSONB. The connection pool comes from the shared pool
registry in scorer.db.
"""
import json
from typing import Any, Dict, List, Optional, Tuple

import asyncpg
import structlog

from scorer.config import StorageConfig
from scorer.db.postgres_pool import get_pool, safe_dsn
from scorer.errors import ArticleNotFoundError
from scorer.models import AIMetrics, ArticleFilter, ArticleRecord
from scorer.storage import BaseArticleStore

logger = structlog.get_logger()

# Column order used for inserts; id is assigned by the database
COLUMNS: List[str] = [name for name in ArticleRecord.model_fields if name != "id"]


class PostgresArticleStore(BaseArticleStore):
    """
    PostgreSQL article store implementation.

    The pool is shared, so closing the store leaves it open for other users;
    scorer.db.close_pool() releases it at shutdown.
    """

    def __init__(self, config: StorageConfig, dsn: str):
        super().__init__(config)
        self.dsn = dsn
        self.table = config.table_name
        self.pool: Optional[asyncpg.Pool] = None

    @classmethod
    async def create(cls, config: StorageConfig, dsn: str) -> "PostgresArticleStore":
        """
        Create a new PostgreSQL article store.

        This factory method gets a shared connection pool and ensures
        the articles table exists.
        """
        store = cls(config, dsn)
        store.pool = await get_pool(config.model_copy(update={"postgres_dsn": dsn}))

        async with store.pool.acquire() as conn:
            await conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {store.table} (
                    id                 SERIAL PRIMARY KEY,
                    link               TEXT NOT NULL,
                    hash               TEXT NOT NULL UNIQUE,
                    title              TEXT NOT NULL DEFAULT '',
                    published_at       TEXT NOT NULL DEFAULT '',
                    position           TEXT NOT NULL DEFAULT '',
                    read_count         INTEGER NOT NULL DEFAULT 0,
                    online_count       INTEGER NOT NULL DEFAULT 0,
                    like_count         INTEGER NOT NULL DEFAULT 0,
                    forward_count      INTEGER NOT NULL DEFAULT 0,
                    comment_count      INTEGER NOT NULL DEFAULT 0,
                    cover              TEXT NOT NULL DEFAULT '',
                    category           TEXT NOT NULL DEFAULT '',
                    raw_html           TEXT NOT NULL DEFAULT '',
                    sanitized_html     TEXT NOT NULL DEFAULT '',
                    locked             BOOLEAN NOT NULL DEFAULT FALSE,
                    media_count        INTEGER NOT NULL DEFAULT 0,
                    word_count         INTEGER NOT NULL DEFAULT 0,
                    ref_count          INTEGER NOT NULL DEFAULT 0,
                    disease_principle  BOOLEAN NOT NULL DEFAULT FALSE,
                    local_relevance    BOOLEAN NOT NULL DEFAULT FALSE,
                    main_doctor_title  TEXT NOT NULL DEFAULT '',
                    story_count        INTEGER NOT NULL DEFAULT 0,
                    ai_metrics         JSONB NULL
                )
            """)
            await conn.execute(f"""
                CREATE INDEX IF NOT EXISTS {store.table}_category_idx
                ON {store.table} (category)
            """)

        logger.info("PostgreSQL article store initialized", dsn=safe_dsn(dsn), table=store.table)
        return store

    @staticmethod
    def _encode(name: str, value: Any) -> Any:
        if name != "ai_metrics" or value is None:
            return value
        if isinstance(value, AIMetrics):
            value = value.model_dump(by_alias=True)
        return json.dumps(value, ensure_ascii=False)

    @staticmethod
    def _decode(row: asyncpg.Record) -> ArticleRecord:
        data = dict(row)
        if isinstance(data.get("ai_metrics"), str):
            data["ai_metrics"] = json.loads(data["ai_metrics"])
        return ArticleRecord.model_validate(data)

    def _assignments(self, fields: Dict[str, Any], start: int) -> Tuple[str, List[Any]]:
        parts = []
        values = []
        for offset, (name, value) in enumerate(fields.items()):
            cast = "::jsonb" if name == "ai_metrics" else ""
            parts.append(f"{name} = ${start + offset}{cast}")
            values.append(self._encode(name, value))
        return ", ".join(parts), values

    @staticmethod
    def _where(article_filter: ArticleFilter) -> Tuple[str, List[Any]]:
        clauses: List[str] = []
        values: List[Any] = []

        def param(value: Any) -> str:
            values.append(value)
            return f"${len(values)}"

        if article_filter.ids is not None:
            clauses.append(f"id = ANY({param(list(article_filter.ids))}::int[])")
        if article_filter.locked is not None:
            clauses.append(f"locked = {param(article_filter.locked)}")
        if article_filter.has_raw_html is not None:
            clauses.append("raw_html <> ''" if article_filter.has_raw_html else "raw_html = ''")
        if article_filter.has_sanitized_html is not None:
            clauses.append(
                "sanitized_html <> ''" if article_filter.has_sanitized_html else "sanitized_html = ''"
            )
        if article_filter.has_ai_metrics is not None:
            clauses.append(
                "ai_metrics IS NOT NULL" if article_filter.has_ai_metrics else "ai_metrics IS NULL"
            )
        if article_filter.category is not None:
            clauses.append(f"category = {param(article_filter.category)}")
        if article_filter.id_lt is not None:
            clauses.append(f"id < {param(article_filter.id_lt)}")

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, values

    async def get(self, article_id: int) -> Optional[ArticleRecord]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(f"SELECT * FROM {self.table} WHERE id = $1", article_id)
        return self._decode(row) if row else None

    async def get_by_hash(self, content_hash: str) -> Optional[ArticleRecord]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(f"SELECT * FROM {self.table} WHERE hash = $1", content_hash)
        return self._decode(row) if row else None

    async def create(self, **fields: Any) -> ArticleRecord:
        self._check_fields(fields)
        # Validate with a placeholder id to fill defaults and the link hash
        draft = ArticleRecord(id=0, **fields)
        values = [self._encode(name, getattr(draft, name)) for name in COLUMNS]
        placeholders = ", ".join(
            f"${i}::jsonb" if name == "ai_metrics" else f"${i}"
            for i, name in enumerate(COLUMNS, start=1)
        )
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"INSERT INTO {self.table} ({', '.join(COLUMNS)}) "
                f"VALUES ({placeholders}) RETURNING *",
                *values,
            )
        record = self._decode(row)
        logger.debug("Created article record", article_id=record.id, link=record.link)
        return record

    async def update(self, article_id: int, **fields: Any) -> ArticleRecord:
        self._check_fields(fields)
        if not fields:
            record = await self.get(article_id)
            if record is None:
                raise ArticleNotFoundError(article_id)
            return record

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    f"SELECT * FROM {self.table} WHERE id = $1 FOR UPDATE", article_id
                )
                if row is None:
                    raise ArticleNotFoundError(article_id)
                # Validate the merged record before writing anything
                current = self._decode(row)
                ArticleRecord.model_validate({**dict(current), **fields})

                assignments, values = self._assignments(fields, start=2)
                row = await conn.fetchrow(
                    f"UPDATE {self.table} SET {assignments} WHERE id = $1 RETURNING *",
                    article_id,
                    *values,
                )
        return self._decode(row)

    async def update_many(self, article_ids: List[int], **fields: Any) -> int:
        self._check_fields(fields)
        if not article_ids or not fields:
            return 0
        if "raw_html" in fields or "sanitized_html" in fields:
            # Markup writes need the per-record invariant check
            return await super().update_many(article_ids, **fields)

        assignments, values = self._assignments(fields, start=2)
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                f"UPDATE {self.table} SET {assignments} WHERE id = ANY($1::int[])",
                list(article_ids),
                *values,
            )
        # asyncpg returns the command tag, e.g. "UPDATE 3"
        return int(result.split()[-1])

    async def find(self, article_filter: ArticleFilter) -> List[ArticleRecord]:
        where, values = self._where(article_filter)
        query = f"SELECT * FROM {self.table} {where} ORDER BY id"
        if article_filter.limit is not None:
            values.append(article_filter.limit)
            query += f" LIMIT ${len(values)}"
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *values)
        return [self._decode(row) for row in rows]
