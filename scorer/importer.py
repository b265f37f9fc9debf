"""
Import of the WeChat official-account dashboard export.

The export is a CSV file with one article per row. Columns are read by
position:

    time, title, position, readCount, onlineCount, likeCount, forwardCount,
    commentCount, link, cover, category

optionally followed by manually recorded metrics:

    mediaCount, wordCount, refCount, diseasePrinciple, localRelevance,
    mainDoctorTitle, storyCount

Articles are keyed by the MD5 hash of their link, so importing the same
export twice does not create duplicates.
"""
import csv
import math
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Union

import structlog

from scorer.models import link_hash
from scorer.storage import ArticleStore

logger = structlog.get_logger()

BASE_COLUMNS = [
    "published_at",
    "title",
    "position",
    "read_count",
    "online_count",
    "like_count",
    "forward_count",
    "comment_count",
    "link",
    "cover",
    "category",
]

OPTIONAL_COLUMNS = [
    "media_count",
    "word_count",
    "ref_count",
    "disease_principle",
    "local_relevance",
    "main_doctor_title",
    "story_count",
]

INT_COLUMNS = {
    "read_count", "online_count", "like_count", "forward_count", "comment_count",
    "media_count", "word_count", "ref_count", "story_count",
}
BOOL_COLUMNS = {"disease_principle", "local_relevance"}

TRUE_TOKENS = {"是", "yes", "y", "true", "1"}
FALSE_TOKENS = {"否", "no", "n", "false", "0", ""}

# Everything derived from the fetched page; an overwrite puts the record back
# to "not fetched yet" unless the row itself carries recorded metrics
RESET_ON_OVERWRITE: Dict[str, Any] = {
    "raw_html": "",
    "sanitized_html": "",
    "ai_metrics": None,
    "media_count": 0,
    "word_count": 0,
    "ref_count": 0,
    "disease_principle": False,
    "local_relevance": False,
    "main_doctor_title": "",
    "story_count": 0,
}


class ImportResult(NamedTuple):
    created: int
    updated: int
    unchanged: int
    invalid: int


def parse_count(value: str) -> int:
    """
    Parse a dashboard count.

    The dashboard abbreviates large numbers with 万 (ten thousand), e.g.
    ``10万+`` or ``1.2万``; an empty cell counts as zero.
    """
    text = value.strip().replace(",", "").rstrip("+")
    if not text:
        return 0
    if text.endswith("万"):
        number = float(text[:-1]) * 10000
    else:
        number = float(text)
    if not math.isfinite(number):
        raise ValueError(f"not a finite count: {value!r}")
    return int(round(number))


def parse_flag(value: str) -> bool:
    token = value.strip().lower()
    if token in TRUE_TOKENS:
        return True
    if token in FALSE_TOKENS:
        return False
    raise ValueError(f"not a yes/no value: {value!r}")


def parse_row(row: List[str]) -> Dict[str, Any]:
    """
    Turn one CSV row into article fields.

    Raises:
        ValueError: If the row is too short, has no link, or a cell cannot be parsed
    """
    if len(row) < len(BASE_COLUMNS):
        raise ValueError(f"expected at least {len(BASE_COLUMNS)} columns, got {len(row)}")

    fields: Dict[str, Any] = {}
    for name, value in zip(BASE_COLUMNS + OPTIONAL_COLUMNS, row):
        if name in INT_COLUMNS:
            fields[name] = parse_count(value)
        elif name in BOOL_COLUMNS:
            fields[name] = parse_flag(value)
        else:
            fields[name] = value.strip()

    if not fields["link"]:
        raise ValueError("row has no link")
    return fields


async def import_articles(
    store: ArticleStore,
    csv_path: Union[str, Path],
    overwrite: bool = False,
    encoding: str = "utf-8-sig",
) -> ImportResult:
    """
    Create article records from a dashboard export.

    Args:
        store: Article store
        csv_path: Path to the export; the first row is a header
        overwrite: Refresh existing records with the row's values and clear
            their markup and page-derived metrics so the pipeline fetches
            and scores them again
        encoding: File encoding; the default also strips an Excel BOM

    Returns:
        ImportResult: Counts of created, updated, unchanged and invalid rows
    """
    created = updated = unchanged = invalid = 0

    with open(csv_path, newline="", encoding=encoding) as f:
        reader = csv.reader(f)
        next(reader, None)

        for line_no, row in enumerate(reader, start=2):
            if not any(cell.strip() for cell in row):
                continue
            try:
                fields = parse_row(row)
            except ValueError as e:
                logger.warning("Skipping malformed row", path=str(csv_path), line=line_no, error=str(e))
                invalid += 1
                continue

            content_hash = link_hash(fields["link"])
            existing = await store.get_by_hash(content_hash)

            if existing is None:
                record = await store.create(hash=content_hash, **fields)
                created += 1
                logger.info("Imported article", article_id=record.id, title=record.title)
            elif overwrite:
                await store.update(existing.id, **{**RESET_ON_OVERWRITE, **fields})
                updated += 1
                logger.info("Overwrote article", article_id=existing.id, title=fields["title"])
            else:
                unchanged += 1

    result = ImportResult(created=created, updated=updated, unchanged=unchanged, invalid=invalid)
    logger.info("Import complete", path=str(csv_path), **result._asdict())
    return result
