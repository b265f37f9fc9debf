"""
Structural extraction of WeChat article pages.

A WeChat article page keeps its title, byline/date block and body in three
well-known containers. This module moves those containers to the top of an
otherwise empty body, tags each with a marker attribute so it can be found
again, and strips the cosmetic attributes WeChat sprinkles over every node.

The attribute stripping is a textual pass over the serialized fragment, not a
per-element operation: a literal ``class="..."`` inside body text is removed
along with the real attributes.
"""
import re
from typing import List, Optional, Tuple

import structlog
from bs4 import BeautifulSoup, Tag

logger = structlog.get_logger()

TITLE_SELECTOR = '.rich_media_title'
META_SELECTOR = '#meta_content'
CONTENT_SELECTOR = '.rich_media_content'

TITLE_MARKER = 'data-title'
META_MARKER = 'data-meta'
CONTENT_MARKER = 'data-content'

# (selector, marker) in output order
REGIONS: List[Tuple[str, str]] = [
    (TITLE_SELECTOR, TITLE_MARKER),
    (META_SELECTOR, META_MARKER),
    (CONTENT_SELECTOR, CONTENT_MARKER),
]

COSMETIC_ATTRIBUTES = [
    re.compile(r'\s+nodeleaf=""', re.IGNORECASE),
    re.compile(r'\s+leaf=""', re.IGNORECASE),
    re.compile(r'\s+class\s*=\s*["\'][^"\']*["\']', re.IGNORECASE),
    re.compile(r'\s+id\s*=\s*["\'][^"\']*["\']', re.IGNORECASE),
    re.compile(r'\s+role\s*=\s*["\'][^"\']*["\']', re.IGNORECASE),
]


def _ensure_body(soup: BeautifulSoup) -> Tag:
    """Return an empty body element, creating one when the document has none."""
    body = soup.body
    if body is not None:
        body.clear()
        return body

    root = soup.html or soup
    for child in list(root.contents):
        if getattr(child, 'name', None) != 'head':
            child.extract()
    body = soup.new_tag('body')
    root.append(body)
    return body


def strip_cosmetic_attributes(markup: str) -> str:
    """Remove leaf markers and every class, id and role attribute from markup."""
    for pattern in COSMETIC_ATTRIBUTES:
        markup = pattern.sub('', markup)
    return markup


def extract_structure(sanitized_markup: str) -> str:
    """
    Rebuild an article page around its title, meta and content regions.

    The first element matching each region selector is moved under the body
    in the order title, meta, content and tagged with its marker attribute.
    A selector without a match leaves its region out.

    Args:
        sanitized_markup: Output of the sanitizer

    Returns:
        str: ``<html>...</html>`` fragment holding only the marked regions
    """
    soup = BeautifulSoup(sanitized_markup or '', 'html.parser')

    regions: List[Optional[Tag]] = []
    for selector, marker in REGIONS:
        element = soup.select_one(selector)
        if element is not None:
            element.extract()
            element[marker] = ''
        regions.append(element)

    body = _ensure_body(soup)
    for element in regions:
        if element is not None:
            body.append(element)

    logger.debug(
        "Extracted article structure",
        regions=[marker for (_, marker), element in zip(REGIONS, regions) if element is not None],
    )

    root = soup.html or soup
    inner = strip_cosmetic_attributes(root.decode_contents())
    return f"<html>{inner}</html>"
