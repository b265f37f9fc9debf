"""
Exception hierarchy for the article scorer.

Every error raised by the pipeline derives from ScorerError so that batch
tooling can catch the whole family, while the subclasses keep "unusable
content" apart from "infrastructure problem".
"""
from typing import Optional


class ScorerError(Exception):
    """Base error for the article scorer."""

    def __init__(self, message: str, article_id: Optional[int] = None):
        super().__init__(message)
        self.article_id = article_id


class ArticleNotFoundError(ScorerError):
    """The requested article record does not exist."""

    def __init__(self, article_id: int):
        super().__init__(f"article {article_id} not found", article_id)


class ArticleLockedError(ScorerError):
    """The article record is held by another pipeline stage."""

    def __init__(self, article_id: int):
        super().__init__(f"article {article_id} is locked", article_id)


class PreconditionError(ScorerError):
    """A stage was invoked before the data it depends on exists."""


class MissingRawHtmlError(PreconditionError):
    def __init__(self, article_id: int):
        super().__init__(f"article {article_id} has no raw html", article_id)


class MissingSanitizedHtmlError(PreconditionError):
    def __init__(self, article_id: int):
        super().__init__(f"article {article_id} has no sanitized html", article_id)


class ContentValidationError(ScorerError):
    """Extracted content is too thin to be worth scoring."""


class NoUsableTitleError(ContentValidationError):
    def __init__(self, article_id: Optional[int] = None):
        super().__init__("no usable title", article_id)


class NoUsableContentError(ContentValidationError):
    def __init__(self, article_id: Optional[int] = None):
        super().__init__("no usable content", article_id)


class FetchError(ScorerError):
    """Rendering a page in the headless browser failed."""

    def __init__(self, url: str, message: str):
        super().__init__(f"error fetching {url}: {message}")
        self.url = url


class InvalidAIResponseError(ScorerError):
    """The LLM returned something that does not match the metrics schema."""

    def __init__(self, message: str, raw_response: Optional[str] = None,
                 article_id: Optional[int] = None):
        super().__init__(message, article_id)
        self.raw_response = raw_response
