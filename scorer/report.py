"""
CSV report export.

One row per article with its static metrics, the scored values and the
model's justification for each. Column headers and yes/no tokens follow
the report language.
"""
import csv
from pathlib import Path
from typing import Dict, Iterable, List, Union

import structlog

from scorer.models import ArticleRecord

logger = structlog.get_logger()

HEADERS: Dict[str, List[str]] = {
    "zh": [
        "标题",
        "图片/视频引用（次）",
        "字数",
        "数据引用（次）",
        "描述疾病原理（是/否）",
        "本地相关性",
        "主要医护职称",
        "故事/案例引用（个）",
        "AI分析数据引用（次）",
        "AI分析描述疾病原理（是/否）",
        "AI分析本地相关性",
        "AI分析主要医护职称",
        "AI分析故事/案例引用（个）",
    ],
    "en": [
        "Title",
        "Images/videos",
        "Characters",
        "Data references",
        "Explains disease mechanism (yes/no)",
        "Local relevance",
        "Lead clinician title",
        "Stories/cases",
        "AI notes: data references",
        "AI notes: disease mechanism",
        "AI notes: local relevance",
        "AI notes: lead clinician title",
        "AI notes: stories/cases",
    ],
}

YES_NO: Dict[str, Dict[bool, str]] = {
    "zh": {True: "是", False: "否"},
    "en": {True: "Yes", False: "No"},
}


def article_row(record: ArticleRecord, language: str = "zh") -> List[Union[str, int]]:
    """Render one record as a report row."""
    yes_no = YES_NO[language]
    summary = record.ai_metrics.summary if record.ai_metrics else None
    return [
        record.title,
        record.media_count,
        record.word_count,
        record.ref_count,
        yes_no[record.disease_principle],
        yes_no[record.local_relevance],
        record.main_doctor_title,
        record.story_count,
        summary.ref_count if summary else "",
        summary.disease_principle if summary else "",
        summary.local_relevance if summary else "",
        summary.main_doctor_title if summary else "",
        summary.story_count if summary else "",
    ]


def export_articles(
    records: Iterable[ArticleRecord],
    path: Union[str, Path],
    language: str = "zh",
    encoding: str = "utf-8-sig",
) -> int:
    """
    Write the report CSV.

    Args:
        records: Articles to include, in output order
        path: Destination file; parent directories are created
        language: "zh" or "en"
        encoding: File encoding; the default adds a BOM so Excel reads UTF-8

    Returns:
        int: Number of article rows written
    """
    if language not in HEADERS:
        raise ValueError(f"Unsupported report language: {language}")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with open(path, "w", newline="", encoding=encoding) as f:
        writer = csv.writer(f)
        writer.writerow(HEADERS[language])
        for record in records:
            writer.writerow(article_row(record, language))
            count += 1

    logger.info("Exported article report", path=str(path), rows=count, language=language)
    return count
