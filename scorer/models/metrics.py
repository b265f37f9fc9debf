"""
LLM-derived article metrics.

The scoring model answers with camelCase JSON; these models accept either
camelCase keys or the snake_case attribute names and always dump camelCase
so the stored JSON matches what the model produced.
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    # Strict: a "3" or "yes" from the model is an error, not a value to coerce
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, strict=True)


class AIMetricsIndex(_CamelModel):
    """Scored values, one per metric."""
    ref_count: int
    disease_principle: bool
    local_relevance: bool
    main_doctor_title: str
    story_count: int


class AIMetricsSummary(_CamelModel):
    """The model's justification for each scored value."""
    ref_count: str
    disease_principle: str
    local_relevance: str
    main_doctor_title: str
    story_count: str


class AIMetrics(_CamelModel):
    """Complete, validated scoring response."""
    index: AIMetricsIndex
    summary: AIMetricsSummary
