from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from scorer.errors import (
    ArticleLockedError,
    ArticleNotFoundError,
    FetchError,
    InvalidAIResponseError,
    MissingRawHtmlError,
    MissingSanitizedHtmlError,
    NoUsableContentError,
    NoUsableTitleError,
)
from scorer.scoring import ContentScorer
from scorer.tasks import (
    BatchResult,
    StageStatus,
    analyze_article,
    article_lock,
    bulk_update_article_html,
    check_article_content,
    cleanup_article_html,
    get_article_content,
    update_article_html,
    update_static_metrics,
)


async def _cleaned(store, html):
    record = await store.create(link="https://mp.weixin.qq.com/s/x", title="t")
    await store.update(record.id, raw_html=html)
    await cleanup_article_html(store, record.id)
    return record.id


def _scorer_returning(text):
    client = MagicMock()
    client.generate = AsyncMock(return_value=text)
    return ContentScorer(client)


# fetch

@pytest.mark.asyncio
async def test_fetch_stores_page_and_holds_lock(store, browser_pool, scenario_html):
    record = await store.create(link="https://mp.weixin.qq.com/s/a")
    seen_locked = []

    async def fetch_page(url, options=None):
        seen_locked.append((await store.get(record.id)).locked)
        return scenario_html

    browser_pool.fetch_page = AsyncMock(side_effect=fetch_page)

    assert await update_article_html(store, browser_pool, record.id) == StageStatus.DONE
    stored = await store.get(record.id)
    assert stored.raw_html == scenario_html
    assert stored.locked is False
    assert seen_locked == [True]


@pytest.mark.asyncio
async def test_fetch_failure_leaves_record_unchanged(store, browser_pool):
    record = await store.create(link="https://mp.weixin.qq.com/s/a")
    browser_pool.fetch_page = AsyncMock(side_effect=FetchError(record.link, "timeout"))

    assert await update_article_html(store, browser_pool, record.id) == StageStatus.FAILED
    stored = await store.get(record.id)
    assert stored.raw_html == ""
    assert stored.locked is False


@pytest.mark.asyncio
async def test_fetch_empty_page_is_not_stored(store, browser_pool):
    record = await store.create(link="l")
    browser_pool.fetch_page = AsyncMock(return_value="")

    assert await update_article_html(store, browser_pool, record.id) == StageStatus.FAILED
    assert (await store.get(record.id)).raw_html == ""


@pytest.mark.asyncio
async def test_fetch_skips_locked_and_fetched_records(store, browser_pool):
    locked = await store.create(link="a", locked=True)
    fetched = await store.create(link="b", raw_html="<html></html>")

    assert await update_article_html(store, browser_pool, locked.id) == StageStatus.SKIPPED
    assert await update_article_html(store, browser_pool, fetched.id) == StageStatus.SKIPPED
    browser_pool.fetch_page.assert_not_awaited()


@pytest.mark.asyncio
async def test_fetch_missing_record(store, browser_pool):
    with pytest.raises(ArticleNotFoundError):
        await update_article_html(store, browser_pool, 1)


# bulk fetch

@pytest.mark.asyncio
async def test_bulk_fetch_maps_results_by_position(store, browser_pool):
    ids = [(await store.create(link=link)).id for link in ("a", "b", "c")]
    browser_pool.fetch_pages = AsyncMock(return_value=["<a>", "", "<c>"])

    result = await bulk_update_article_html(store, browser_pool, ids)

    assert result == BatchResult(selected=3, fetched=2, failed=1)
    browser_pool.fetch_pages.assert_awaited_once_with(["a", "b", "c"], None)
    records = [await store.get(i) for i in ids]
    assert [r.raw_html for r in records] == ["<a>", "", "<c>"]
    assert not any(r.locked for r in records)


@pytest.mark.asyncio
async def test_bulk_fetch_excludes_locked_and_fetched(store, browser_pool):
    free = await store.create(link="free")
    locked = await store.create(link="locked", locked=True)
    done = await store.create(link="done", raw_html="<html></html>")

    result = await bulk_update_article_html(store, browser_pool, [free.id, locked.id, done.id])

    assert result.selected == 1
    browser_pool.fetch_pages.assert_awaited_once_with(["free"], None)
    assert (await store.get(locked.id)).locked is True
    assert (await store.get(done.id)).raw_html == "<html></html>"


@pytest.mark.asyncio
async def test_bulk_fetch_error_unlocks_every_record(store, browser_pool):
    ids = [(await store.create(link=link)).id for link in ("a", "b")]
    browser_pool.fetch_pages = AsyncMock(side_effect=RuntimeError("browser crashed"))

    result = await bulk_update_article_html(store, browser_pool, ids)

    assert result == BatchResult(selected=2, fetched=0, failed=2)
    for article_id in ids:
        record = await store.get(article_id)
        assert record.locked is False
        assert record.raw_html == ""


@pytest.mark.asyncio
async def test_bulk_fetch_nothing_selected(store, browser_pool):
    assert await bulk_update_article_html(store, browser_pool, [5, 6]) == BatchResult(0, 0, 0)
    browser_pool.fetch_pages.assert_not_awaited()


# cleanup

@pytest.mark.asyncio
async def test_cleanup_produces_extracted_markup(store, scenario_html, scenario_extracted):
    article_id = await _cleaned(store, scenario_html)
    assert (await store.get(article_id)).sanitized_html == scenario_extracted


@pytest.mark.asyncio
async def test_cleanup_preconditions(store):
    with pytest.raises(ArticleNotFoundError):
        await cleanup_article_html(store, 1)

    record = await store.create(link="l")
    with pytest.raises(MissingRawHtmlError):
        await cleanup_article_html(store, record.id)


@pytest.mark.asyncio
async def test_cleanup_skips_locked_record(store):
    record = await store.create(link="l", raw_html="<html></html>", locked=True)
    assert await cleanup_article_html(store, record.id) == StageStatus.SKIPPED
    assert (await store.get(record.id)).sanitized_html == ""


# content readers

@pytest.mark.asyncio
async def test_readers_require_raw_html(store):
    record = await store.create(link="l")
    with patch("scorer.tasks.read_content") as read_content, \
            patch("scorer.tasks.compute_static_metrics") as compute_static_metrics:
        with pytest.raises(MissingRawHtmlError):
            await get_article_content(store, record.id)
        with pytest.raises(MissingRawHtmlError):
            await update_static_metrics(store, record.id)
    read_content.assert_not_called()
    compute_static_metrics.assert_not_called()


@pytest.mark.asyncio
async def test_readers_require_sanitized_html(store):
    record = await store.create(link="l", raw_html="<html></html>")
    with pytest.raises(MissingSanitizedHtmlError):
        await get_article_content(store, record.id)


@pytest.mark.asyncio
async def test_readers_refuse_locked_record(store, scenario_html):
    article_id = await _cleaned(store, scenario_html)
    await store.update(article_id, locked=True)
    with pytest.raises(ArticleLockedError):
        await check_article_content(store, article_id)


@pytest.mark.asyncio
async def test_check_content(store, scenario_html):
    article_id = await _cleaned(store, scenario_html)
    assert await check_article_content(store, article_id) is True

    thin = await _cleaned(store, '<div class="rich_media_title">Good title</div>'
                                 '<div class="rich_media_content">short</div>')
    with pytest.raises(NoUsableContentError):
        await check_article_content(store, thin)


@pytest.mark.asyncio
async def test_update_static_metrics(store):
    article_id = await _cleaned(
        store,
        '<div class="rich_media_content"><img src="a.png"><video></video>字字字</div>',
    )
    metrics = await update_static_metrics(store, article_id)

    assert (metrics.media_count, metrics.word_count) == (2, 3)
    stored = await store.get(article_id)
    assert (stored.media_count, stored.word_count) == (2, 3)


# analyze

@pytest.mark.asyncio
async def test_analyze_stores_metrics(store, scenario_html, valid_ai_response):
    article_id = await _cleaned(store, scenario_html)
    scorer = _scorer_returning(valid_ai_response)

    metrics = await analyze_article(store, scorer, article_id)

    stored = await store.get(article_id)
    assert stored.ai_metrics == metrics
    assert stored.ref_count == 3
    assert stored.disease_principle is True
    assert stored.main_doctor_title == "主任医师"
    assert stored.story_count == 1
    assert stored.locked is False
    scorer.client.generate.assert_awaited_once_with(
        stored.sanitized_html, system_prompt=scorer.system_prompt
    )


@pytest.mark.asyncio
async def test_analyze_plain_text_submission(store, scenario_html, valid_ai_response):
    article_id = await _cleaned(store, scenario_html)
    scorer = _scorer_returning(valid_ai_response)

    await analyze_article(store, scorer, article_id, submit_plain_text=True)

    submitted = scorer.client.generate.await_args.args[0]
    assert submitted == "Hello World Title\n\nFull body text here exceeding twenty characters."


@pytest.mark.asyncio
async def test_analyze_invalid_response_writes_nothing(store, scenario_html):
    article_id = await _cleaned(store, scenario_html)
    before = await store.get(article_id)

    with pytest.raises(InvalidAIResponseError):
        await analyze_article(store, _scorer_returning("not json"), article_id)

    after = await store.get(article_id)
    assert after == before
    assert after.ai_metrics is None
    assert after.locked is False


@pytest.mark.asyncio
async def test_analyze_rejects_thin_content_before_scoring(store):
    article_id = await _cleaned(store, '<div class="rich_media_title">abc</div>'
                                       '<div class="rich_media_content">' + "x" * 40 + '</div>')
    scorer = _scorer_returning("{}")

    with pytest.raises(NoUsableTitleError):
        await analyze_article(store, scorer, article_id)
    scorer.client.generate.assert_not_awaited()


@pytest.mark.asyncio
async def test_analyze_refuses_locked_record(store, scenario_html):
    article_id = await _cleaned(store, scenario_html)
    await store.update(article_id, locked=True)
    scorer = _scorer_returning("{}")

    with pytest.raises(ArticleLockedError):
        await analyze_article(store, scorer, article_id)
    scorer.client.generate.assert_not_awaited()


# lock

@pytest.mark.asyncio
async def test_article_lock_released_on_error(store):
    ids = [(await store.create(link=link)).id for link in ("a", "b")]

    with pytest.raises(RuntimeError):
        async with article_lock(store, ids):
            assert all((await store.get(i)).locked for i in ids)
            raise RuntimeError("boom")

    assert not any((await store.get(i)).locked for i in ids)
