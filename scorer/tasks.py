"""
Pipeline stage definitions for the article scorer.

Each stage works on article records through the store, in the order
fetch -> cleanup -> check -> static metrics -> analyze. Stages that perform a
multi-step mutation hold the record's advisory lock for the duration and
release it on every exit path.

The lock is a plain boolean column: it is checked and then set with no
compare-and-swap, so it only protects against re-entrant runs of this
pipeline, not against concurrent processes.
"""
from contextlib import asynccontextmanager
from enum import Enum
from typing import AsyncIterator, List, NamedTuple, Optional

import structlog
from prometheus_client import Counter

from scorer.errors import (
    ArticleLockedError,
    ArticleNotFoundError,
    MissingRawHtmlError,
    MissingSanitizedHtmlError,
)
from scorer.extractor import (
    ArticleText,
    StaticMetrics,
    compute_static_metrics,
    normalize_article_html,
    read_content,
    validate_content,
)
from scorer.fetcher.browser import BrowserPool, FetchOptions
from scorer.models import AIMetrics, ArticleFilter, ArticleRecord
from scorer.scoring import ContentScorer
from scorer.storage import ArticleStore

# Set up structured logger
logger = structlog.get_logger()

# Define metrics
STAGE_RUNS_TOTAL = Counter('scorer_stage_runs_total', 'Pipeline stage runs by outcome', ['stage', 'status'])
STAGE_ERRORS_TOTAL = Counter('scorer_stage_errors_total', 'Pipeline stage errors by type', ['stage', 'error_type'])


class StageStatus(str, Enum):
    """Outcome of a stage that does not report failure by raising."""
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


class BatchResult(NamedTuple):
    selected: int
    fetched: int
    failed: int


def _record(stage: str, status: StageStatus) -> StageStatus:
    STAGE_RUNS_TOTAL.labels(stage=stage, status=status.value).inc()
    return status


@asynccontextmanager
async def article_lock(store: ArticleStore, article_ids: List[int]) -> AsyncIterator[List[int]]:
    """
    Hold the advisory lock on a set of records.

    The lock is released when the block exits, whether it returns or raises.
    """
    await store.update_many(article_ids, locked=True)
    try:
        yield article_ids
    finally:
        await store.update_many(article_ids, locked=False)


async def _get_existing(store: ArticleStore, article_id: int) -> ArticleRecord:
    record = await store.get(article_id)
    if record is None:
        raise ArticleNotFoundError(article_id)
    return record


async def _get_sanitized(store: ArticleStore, article_id: int) -> ArticleRecord:
    """Fetch a record that is free and has been through the cleanup stage."""
    record = await _get_existing(store, article_id)
    if record.locked:
        raise ArticleLockedError(article_id)
    if not record.raw_html:
        raise MissingRawHtmlError(article_id)
    if not record.sanitized_html:
        raise MissingSanitizedHtmlError(article_id)
    return record


async def update_article_html(
    store: ArticleStore,
    browser_pool: BrowserPool,
    article_id: int,
    options: Optional[FetchOptions] = None,
) -> StageStatus:
    """
    Fetch and store the rendered page of one article.

    Locked records and records that already have markup are skipped. A
    failed fetch is logged and leaves the record as it was.

    Raises:
        ArticleNotFoundError: If the record does not exist
    """
    stage = "fetch"
    record = await _get_existing(store, article_id)
    if record.locked:
        logger.info("Article is locked, skipping", article_id=article_id, stage=stage)
        return _record(stage, StageStatus.SKIPPED)
    if record.raw_html:
        logger.info("Article already has html, skipping", article_id=article_id, stage=stage)
        return _record(stage, StageStatus.SKIPPED)

    async with article_lock(store, [article_id]):
        try:
            html = await browser_pool.fetch_page(record.link, options)
        except Exception as e:
            logger.error("Failed to fetch article html", article_id=article_id,
                         link=record.link, error=str(e))
            STAGE_ERRORS_TOTAL.labels(stage=stage, error_type=type(e).__name__).inc()
            return _record(stage, StageStatus.FAILED)

        if not html:
            logger.warning("Fetched page is empty", article_id=article_id, link=record.link)
            return _record(stage, StageStatus.FAILED)

        await store.update(article_id, raw_html=html)

    logger.info("Updated article html", article_id=article_id, length=len(html))
    return _record(stage, StageStatus.DONE)


async def bulk_update_article_html(
    store: ArticleStore,
    browser_pool: BrowserPool,
    article_ids: List[int],
    options: Optional[FetchOptions] = None,
) -> BatchResult:
    """
    Fetch the pages of several articles in parallel.

    Only unlocked records among article_ids that have no markup yet are
    fetched. Page results are matched to records by position; a page that
    failed to load leaves its record untouched.
    """
    stage = "bulk_fetch"
    records = await store.find(ArticleFilter(ids=article_ids, locked=False, has_raw_html=False))
    if not records:
        logger.info("No article to update", requested=len(article_ids))
        return BatchResult(selected=0, fetched=0, failed=0)

    ids = [record.id for record in records]
    fetched = 0
    async with article_lock(store, ids):
        try:
            htmls = await browser_pool.fetch_pages([record.link for record in records], options)
        except Exception as e:
            logger.error("Failed to fetch article batch", article_ids=ids, error=str(e))
            STAGE_ERRORS_TOTAL.labels(stage=stage, error_type=type(e).__name__).inc()
            _record(stage, StageStatus.FAILED)
            return BatchResult(selected=len(ids), fetched=0, failed=len(ids))

        for article_id, html in zip(ids, htmls):
            if not html:
                continue
            await store.update(article_id, raw_html=html)
            fetched += 1

    result = BatchResult(selected=len(ids), fetched=fetched, failed=len(ids) - fetched)
    logger.info("Updated article batch html", article_ids=ids, fetched=result.fetched,
                failed=result.failed)
    _record(stage, StageStatus.DONE if not result.failed else StageStatus.FAILED)
    return result


async def cleanup_article_html(store: ArticleStore, article_id: int) -> StageStatus:
    """
    Derive the sanitized, structure-extracted markup from the raw page.

    Raises:
        ArticleNotFoundError: If the record does not exist
        MissingRawHtmlError: If the page has not been fetched yet
    """
    stage = "cleanup"
    record = await _get_existing(store, article_id)
    if record.locked:
        logger.info("Article is locked, skipping", article_id=article_id, stage=stage)
        return _record(stage, StageStatus.SKIPPED)
    if not record.raw_html:
        raise MissingRawHtmlError(article_id)

    sanitized = normalize_article_html(record.raw_html)
    await store.update(article_id, sanitized_html=sanitized)
    logger.info("Cleaned article html", article_id=article_id,
                raw_length=len(record.raw_html), sanitized_length=len(sanitized))
    return _record(stage, StageStatus.DONE)


async def get_article_content(store: ArticleStore, article_id: int) -> ArticleText:
    """
    Read the plain-text title and body of a cleaned article.

    Raises:
        ArticleNotFoundError: If the record does not exist
        ArticleLockedError: If another stage holds the record
        MissingRawHtmlError: If the page has not been fetched yet
        MissingSanitizedHtmlError: If the cleanup stage has not run
    """
    record = await _get_sanitized(store, article_id)
    return read_content(record.sanitized_html)


async def check_article_content(store: ArticleStore, article_id: int) -> bool:
    """
    Check that a cleaned article has a usable title and body.

    Raises:
        NoUsableTitleError: If the title is too short
        NoUsableContentError: If the body is too short
        and everything get_article_content() raises
    """
    content = await get_article_content(store, article_id)
    return validate_content(content.title, content.body, article_id)


async def update_static_metrics(store: ArticleStore, article_id: int) -> StaticMetrics:
    """
    Compute and store the media and character counts of a cleaned article.

    Raises:
        the same errors as get_article_content()
    """
    record = await _get_sanitized(store, article_id)
    metrics = compute_static_metrics(record.sanitized_html)
    await store.update(article_id, media_count=metrics.media_count, word_count=metrics.word_count)
    logger.info("Updated static metrics", article_id=article_id,
                media_count=metrics.media_count, word_count=metrics.word_count)
    _record("static", StageStatus.DONE)
    return metrics


async def analyze_article(
    store: ArticleStore,
    scorer: ContentScorer,
    article_id: int,
    submit_plain_text: bool = False,
) -> AIMetrics:
    """
    Score a cleaned article with the LLM and store the result.

    The article must pass content validation first. Nothing is written when
    the model's answer does not fit the metrics schema.

    Raises:
        InvalidAIResponseError: If the response is malformed
        ContentValidationError: If the content is too thin to score
        and everything get_article_content() raises
    """
    stage = "analyze"
    record = await _get_sanitized(store, article_id)
    content = read_content(record.sanitized_html)
    validate_content(content.title, content.body, article_id)

    submission = f"{content.title}\n\n{content.body}" if submit_plain_text else record.sanitized_html

    async with article_lock(store, [article_id]):
        try:
            metrics = await scorer.score(submission)
        except Exception as e:
            logger.error("Failed to analyze article", article_id=article_id,
                         error_type=type(e).__name__, error=str(e))
            STAGE_ERRORS_TOTAL.labels(stage=stage, error_type=type(e).__name__).inc()
            _record(stage, StageStatus.FAILED)
            raise

        await store.update(
            article_id,
            ai_metrics=metrics,
            ref_count=metrics.index.ref_count,
            disease_principle=metrics.index.disease_principle,
            local_relevance=metrics.index.local_relevance,
            main_doctor_title=metrics.index.main_doctor_title,
            story_count=metrics.index.story_count,
        )

    logger.info("Analyzed article", article_id=article_id,
                ref_count=metrics.index.ref_count, story_count=metrics.index.story_count)
    _record(stage, StageStatus.DONE)
    return metrics
