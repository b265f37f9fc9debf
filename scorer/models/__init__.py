"""
Central re-exports for the article scorer data models.

This module exposes the canonical models from their dedicated modules to
provide stable import paths as "scorer.models" without redefining types.
"""
from .article import ArticleFilter, ArticleRecord, link_hash
from .metrics import AIMetrics, AIMetricsIndex, AIMetricsSummary

__all__ = [
    "ArticleFilter",
    "ArticleRecord",
    "link_hash",
    "AIMetrics",
    "AIMetricsIndex",
    "AIMetricsSummary",
]
