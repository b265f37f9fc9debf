"""
Metrics computed directly from the extracted markup.
"""
from typing import NamedTuple

from bs4 import BeautifulSoup

from scorer.extractor.structure import CONTENT_MARKER

MEDIA_TAGS = ['img', 'video']


class StaticMetrics(NamedTuple):
    media_count: int
    word_count: int


def compute_static_metrics(extracted_markup: str) -> StaticMetrics:
    """
    Count media elements and text characters inside the content region.

    word_count is a character count, which is the meaningful length measure
    for Chinese text. Without a content region both counts are zero.
    """
    soup = BeautifulSoup(extracted_markup or '', 'html.parser')
    region = soup.select_one(f'[{CONTENT_MARKER}]')
    if region is None:
        return StaticMetrics(media_count=0, word_count=0)

    return StaticMetrics(
        media_count=len(region.find_all(MEDIA_TAGS)),
        word_count=len(region.get_text().strip()),
    )
