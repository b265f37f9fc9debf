"""
Minimum-signal checks applied before an article is sent for scoring.
"""
from typing import Optional

from scorer.errors import NoUsableContentError, NoUsableTitleError

MIN_TITLE_LENGTH = 5
MIN_CONTENT_LENGTH = 20


def validate_content(title: str, body: str, article_id: Optional[int] = None) -> bool:
    """
    Check that the recovered title and body are long enough to score.

    Raises:
        NoUsableTitleError: title is empty or shorter than MIN_TITLE_LENGTH
        NoUsableContentError: body is empty or shorter than MIN_CONTENT_LENGTH
    """
    if not title or len(title) < MIN_TITLE_LENGTH:
        raise NoUsableTitleError(article_id)
    if not body or len(body) < MIN_CONTENT_LENGTH:
        raise NoUsableContentError(article_id)
    return True
