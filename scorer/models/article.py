"""
ArticleRecord model for the article scorer.

This module defines the ArticleRecord model with the dashboard fields it is
imported with, the markup produced by the fetch and cleanup stages, and the
metrics computed from it, plus the ArticleFilter used to select records.
"""
import hashlib
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from scorer.models.metrics import AIMetrics


def link_hash(link: str) -> str:
    """Deduplication key for an article link."""
    return hashlib.md5(link.encode("utf-8")).hexdigest()


class ArticleRecord(BaseModel):
    """
    A single WeChat article and everything the pipeline knows about it.

    Records are created by the importer and updated in place by every
    pipeline stage; they are never deleted.
    """
    id: int
    link: str
    hash: str = ""

    # Dashboard export fields
    title: str = ""
    published_at: str = ""
    position: str = ""
    read_count: int = 0
    online_count: int = 0
    like_count: int = 0
    forward_count: int = 0
    comment_count: int = 0
    cover: str = ""
    category: str = ""

    # Pipeline state
    raw_html: str = ""
    sanitized_html: str = ""
    locked: bool = False

    # Static metrics
    media_count: int = 0
    word_count: int = 0

    # Scored values, mirrored from ai_metrics.index once the article is analyzed
    ref_count: int = 0
    disease_principle: bool = False
    local_relevance: bool = False
    main_doctor_title: str = ""
    story_count: int = 0
    ai_metrics: Optional[AIMetrics] = None

    @field_validator("raw_html", "sanitized_html", mode="before")
    @classmethod
    def none_to_empty(cls, v: Optional[str]) -> str:
        """Storage backends may hand back NULL for markup never set."""
        return v or ""

    @model_validator(mode="after")
    def fill_hash_and_check_markup(self) -> "ArticleRecord":
        if not self.hash:
            self.hash = link_hash(self.link)
        if self.sanitized_html and not self.raw_html:
            raise ValueError("sanitized_html cannot be set while raw_html is empty")
        return self


class ArticleFilter(BaseModel):
    """
    Predicate for selecting article records.

    Every criterion left as None matches all records.
    """
    ids: Optional[List[int]] = None
    locked: Optional[bool] = None
    has_raw_html: Optional[bool] = None
    has_sanitized_html: Optional[bool] = None
    has_ai_metrics: Optional[bool] = None
    category: Optional[str] = None
    # Exclusive upper bound
    id_lt: Optional[int] = None
    limit: Optional[int] = Field(default=None, gt=0)

    def matches(self, record: ArticleRecord) -> bool:
        """Evaluate the filter against a single record, ignoring limit."""
        if self.ids is not None and record.id not in self.ids:
            return False
        if self.locked is not None and record.locked != self.locked:
            return False
        if self.has_raw_html is not None and bool(record.raw_html) != self.has_raw_html:
            return False
        if (self.has_sanitized_html is not None
                and bool(record.sanitized_html) != self.has_sanitized_html):
            return False
        if (self.has_ai_metrics is not None
                and (record.ai_metrics is not None) != self.has_ai_metrics):
            return False
        if self.category is not None and record.category != self.category:
            return False
        if self.id_lt is not None and record.id >= self.id_lt:
            return False
        return True
