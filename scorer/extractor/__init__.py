"""
Extractor package for the article scorer.

This package turns rendered WeChat article markup into the canonical
fragment the rest of the pipeline works on, and reads text and metrics
back out of it.

The main components are:
- Sanitizer for stripping scripts, styles, links, iframes and inline styles
- Structural extractor for relocating and marking the title, meta and content regions
- Content reader and validator for the plain-text title and body
- Static metrics calculator for media and character counts
"""
from scorer.extractor.reader import ArticleText, read_content
from scorer.extractor.sanitizer import (
    SanitizeOptions,
    extract_text,
    sanitize,
    sanitize_advanced,
    text_summary,
)
from scorer.extractor.static_metrics import StaticMetrics, compute_static_metrics
from scorer.extractor.structure import extract_structure, strip_cosmetic_attributes
from scorer.extractor.validator import (
    MIN_CONTENT_LENGTH,
    MIN_TITLE_LENGTH,
    validate_content,
)


def normalize_article_html(raw_markup: str) -> str:
    """Run the sanitizer and the structural extractor over fetched markup."""
    return extract_structure(sanitize(raw_markup))


__all__ = [
    "ArticleText",
    "read_content",
    "SanitizeOptions",
    "extract_text",
    "sanitize",
    "sanitize_advanced",
    "text_summary",
    "StaticMetrics",
    "compute_static_metrics",
    "extract_structure",
    "strip_cosmetic_attributes",
    "MIN_CONTENT_LENGTH",
    "MIN_TITLE_LENGTH",
    "validate_content",
    "normalize_article_html",
]
