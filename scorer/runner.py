"""
Batch runs of the pipeline stages over a selection of articles.

Every run works on the records matching the configured category and id
bound. A per-record error is logged with its type and the run moves on, so
"unusable content" (ContentValidationError) can be told apart from
infrastructure problems in the logs and the returned counts.
"""
from pathlib import Path
from typing import Dict, List, Optional

import structlog

from scorer.context import AppContext
from scorer.errors import ArticleLockedError, ContentValidationError, ScorerError
from scorer.extractor import text_summary
from scorer.fetcher.browser import FetchOptions
from scorer.importer import import_articles
from scorer.models import ArticleFilter, ArticleRecord
from scorer.report import export_articles
from scorer.tasks import (
    StageStatus,
    analyze_article,
    bulk_update_article_html,
    check_article_content,
    cleanup_article_html,
    update_static_metrics,
)

logger = structlog.get_logger()


def selection(app_context: AppContext, **criteria) -> ArticleFilter:
    """The configured article selection narrowed by extra criteria."""
    pipeline = app_context.settings.pipeline
    return ArticleFilter(category=pipeline.category, id_lt=pipeline.max_id, **criteria)


def _chunks(items: List[ArticleRecord], size: int) -> List[List[ArticleRecord]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


async def run_import(app_context: AppContext, path: Optional[Path] = None,
                     overwrite: Optional[bool] = None) -> Dict[str, int]:
    pipeline = app_context.settings.pipeline
    result = await import_articles(
        app_context.store,
        path or pipeline.import_path,
        overwrite=pipeline.import_overwrite if overwrite is None else overwrite,
    )
    return result._asdict()


async def run_fetch(app_context: AppContext) -> Dict[str, int]:
    """Fetch every selected article without markup, one batch at a time."""
    store = app_context.store
    candidates = await store.find(selection(app_context, has_raw_html=False, locked=False))
    if not candidates:
        logger.info("No article to fetch")
        return {"selected": 0, "fetched": 0, "failed": 0}

    browser_pool = await app_context.get_browser_pool()
    options = FetchOptions.batch(app_context.settings.browser)
    totals = {"selected": 0, "fetched": 0, "failed": 0}

    for batch in _chunks(candidates, app_context.settings.pipeline.batch_size):
        ids = [record.id for record in batch]
        result = await bulk_update_article_html(store, browser_pool, ids, options)
        for key, value in result._asdict().items():
            totals[key] += value
        logger.info("Fetched batch", article_ids=ids, fetched=result.fetched, failed=result.failed)

    logger.info("Fetch run complete", **totals)
    return totals


async def run_clean(app_context: AppContext) -> Dict[str, int]:
    """Sanitize and extract every selected article that has been fetched."""
    counts = {"done": 0, "skipped": 0, "failed": 0}
    for record in await app_context.store.find(selection(app_context, has_raw_html=True)):
        try:
            status = await cleanup_article_html(app_context.store, record.id)
        except ScorerError as e:
            logger.warning("Cleanup failed", article_id=record.id,
                           error_type=type(e).__name__, error=str(e))
            counts["failed"] += 1
            continue
        counts["skipped" if status == StageStatus.SKIPPED else "done"] += 1

    logger.info("Cleanup run complete", **counts)
    return counts


async def run_check(app_context: AppContext) -> Dict[str, int]:
    """Report which cleaned articles have a usable title and body."""
    counts = {"usable": 0, "unusable": 0, "skipped": 0}
    for record in await app_context.store.find(selection(app_context, has_sanitized_html=True)):
        try:
            await check_article_content(app_context.store, record.id)
        except ContentValidationError as e:
            logger.warning("Unusable content", article_id=record.id, reason=str(e),
                           preview=text_summary(record.sanitized_html, 80))
            counts["unusable"] += 1
            continue
        except ScorerError as e:
            logger.info("Skipping article", article_id=record.id,
                        error_type=type(e).__name__, error=str(e))
            counts["skipped"] += 1
            continue
        counts["usable"] += 1

    logger.info("Content check complete", **counts)
    return counts


async def run_static(app_context: AppContext) -> Dict[str, int]:
    """Compute static metrics for every cleaned article."""
    counts = {"done": 0, "skipped": 0}
    for record in await app_context.store.find(selection(app_context, has_sanitized_html=True)):
        try:
            await update_static_metrics(app_context.store, record.id)
        except ScorerError as e:
            logger.info("Skipping article", article_id=record.id,
                        error_type=type(e).__name__, error=str(e))
            counts["skipped"] += 1
            continue
        counts["done"] += 1

    logger.info("Static metrics run complete", **counts)
    return counts


async def run_analyze(app_context: AppContext, submit_plain_text: Optional[bool] = None) -> Dict[str, int]:
    """
    Score every cleaned, unlocked article that has no LLM metrics yet.

    Each candidate is attempted once per run; failures stay unscored and are
    picked up again by the next run.
    """
    if submit_plain_text is None:
        submit_plain_text = app_context.settings.scoring.submit_plain_text

    candidates = await app_context.store.find(
        selection(app_context, has_sanitized_html=True, has_ai_metrics=False, locked=False)
    )
    counts = {"analyzed": 0, "unusable": 0, "busy": 0, "failed": 0}
    if not candidates:
        logger.info("No article to analyze")
        return counts

    scorer = await app_context.get_scorer()
    for record in candidates:
        try:
            await analyze_article(app_context.store, scorer, record.id, submit_plain_text)
        except ContentValidationError as e:
            logger.warning("Unusable content", article_id=record.id, reason=str(e))
            counts["unusable"] += 1
        except ArticleLockedError:
            logger.info("Article is locked, skipping", article_id=record.id)
            counts["busy"] += 1
        except Exception as e:
            logger.error("Analysis failed", article_id=record.id,
                         error_type=type(e).__name__, error=str(e))
            counts["failed"] += 1
        else:
            counts["analyzed"] += 1

    logger.info("Analysis run complete", **counts)
    return counts


async def run_export(app_context: AppContext, path: Optional[Path] = None,
                     language: Optional[str] = None) -> int:
    report = app_context.settings.report
    records = await app_context.store.find(selection(app_context))
    return export_articles(
        records,
        path or report.output_path,
        language=language or report.language,
        encoding=report.encoding,
    )


async def run_pipeline(app_context: AppContext) -> None:
    """Run every stage in order, importing first when the export file exists."""
    import_path = app_context.settings.pipeline.import_path
    if import_path.exists():
        await run_import(app_context)
    else:
        logger.info("Import file not found, skipping import", path=str(import_path))

    await run_fetch(app_context)
    await run_clean(app_context)
    await run_check(app_context)
    await run_static(app_context)
    await run_analyze(app_context)
    await run_export(app_context)
