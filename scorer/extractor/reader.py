"""
Plain-text access to extracted article markup.
"""
from typing import NamedTuple

from bs4 import BeautifulSoup

from scorer.extractor.structure import CONTENT_MARKER, TITLE_MARKER


class ArticleText(NamedTuple):
    """Title and body text recovered from the marker attributes."""
    title: str
    body: str


def _marked_text(soup: BeautifulSoup, marker: str) -> str:
    element = soup.select_one(f'[{marker}]')
    if element is None:
        return ''
    return element.get_text().strip()


def read_content(extracted_markup: str) -> ArticleText:
    """
    Read the title and body text out of extract_structure() output.

    A missing marker yields an empty string for that field.
    """
    soup = BeautifulSoup(extracted_markup or '', 'html.parser')
    return ArticleText(
        title=_marked_text(soup, TITLE_MARKER),
        body=_marked_text(soup, CONTENT_MARKER),
    )
