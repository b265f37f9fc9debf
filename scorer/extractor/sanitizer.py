"""
Markup sanitizer for fetched article pages.

Strips scripts, styles, stylesheet links, iframes and inline style attributes
from rendered page markup and normalizes whitespace. Matching is regex based
rather than parser based, so unbalanced or malformed markup degrades into a
best-effort result instead of raising.
"""
import html
import re
from typing import Any, List, Optional, Pattern

import bleach
from pydantic import BaseModel

SCRIPT_BLOCK = re.compile(r'<script\b[^>]*>[\s\S]*?</script>', re.IGNORECASE)
STYLE_BLOCK = re.compile(r'<style\b[^>]*>[\s\S]*?</style>', re.IGNORECASE)
IFRAME_BLOCK = re.compile(r'<iframe\b[^>]*>[\s\S]*?</iframe>', re.IGNORECASE)
LINK_TAG = re.compile(r'<link\b[^>]*>', re.IGNORECASE)
COMMENT = re.compile(r'<!--[\s\S]*?-->')
STYLE_ATTRIBUTE = re.compile(r'\s+style\s*=\s*["\'][^"\']*["\']', re.IGNORECASE)

# Opening or closing tags left without a partner once the blocks are gone.
# A tag cut off by the end of the input counts as well.
SCRIPT_ORPHAN = re.compile(r'</?script\b[^>]*(?:>|$)', re.IGNORECASE)
STYLE_ORPHAN = re.compile(r'</?style\b[^>]*(?:>|$)', re.IGNORECASE)
IFRAME_ORPHAN = re.compile(r'</?iframe\b[^>]*(?:>|$)', re.IGNORECASE)

BLANK_LINES = re.compile(r'\n\s*\n')
WHITESPACE = re.compile(r'\s+')


class SanitizeOptions(BaseModel):
    """Toggles for the individual steps of sanitize_advanced."""
    remove_scripts: bool = True
    remove_styles: bool = True
    remove_links: bool = True
    remove_iframes: bool = True
    remove_comments: bool = True
    remove_empty_lines: bool = True
    remove_excessive_whitespace: bool = True
    remove_style_attributes: bool = True


def _remove_until_stable(markup: str, patterns: List[Pattern]) -> str:
    """
    Apply removal patterns repeatedly until the markup stops changing.

    Removing one block can splice two fragments into a new match
    (``<scr<script></script>ipt>``), so a single pass is not enough to
    guarantee the tags are gone.
    """
    while True:
        previous = markup
        for pattern in patterns:
            markup = pattern.sub('', markup)
        if markup == previous:
            return markup


def _collapse_whitespace(markup: str, empty_lines: bool, runs: bool) -> str:
    if empty_lines:
        markup = BLANK_LINES.sub('\n', markup)
    if runs:
        markup = WHITESPACE.sub(' ', markup)
    return markup.strip()


def sanitize(raw_markup: Any) -> Any:
    """
    Remove non-content markup and collapse whitespace.

    Args:
        raw_markup: Rendered page markup

    Returns:
        The cleaned markup. Anything that is not a non-empty string is
        returned unchanged.
    """
    if not isinstance(raw_markup, str) or not raw_markup:
        return raw_markup

    markup = _remove_until_stable(raw_markup, [
        SCRIPT_BLOCK,
        STYLE_BLOCK,
        LINK_TAG,
        IFRAME_BLOCK,
        SCRIPT_ORPHAN,
        STYLE_ORPHAN,
        IFRAME_ORPHAN,
        STYLE_ATTRIBUTE,
    ])
    return _collapse_whitespace(markup, empty_lines=True, runs=True)


def sanitize_advanced(raw_markup: Any, options: Optional[SanitizeOptions] = None) -> Any:
    """
    Sanitize with individually switchable steps.

    Unlike sanitize(), this variant can also strip HTML comments.
    """
    if not isinstance(raw_markup, str) or not raw_markup:
        return raw_markup
    options = options or SanitizeOptions()

    patterns = []
    if options.remove_comments:
        patterns.append(COMMENT)
    if options.remove_scripts:
        patterns.extend([SCRIPT_BLOCK, SCRIPT_ORPHAN])
    if options.remove_styles:
        patterns.extend([STYLE_BLOCK, STYLE_ORPHAN])
    if options.remove_links:
        patterns.append(LINK_TAG)
    if options.remove_iframes:
        patterns.extend([IFRAME_BLOCK, IFRAME_ORPHAN])
    if options.remove_style_attributes:
        patterns.append(STYLE_ATTRIBUTE)

    # Orphan patterns must not eat the opening tag of a block that is still
    # to be removed whole, so blocks go first within each pass.
    patterns.sort(key=lambda p: p in (SCRIPT_ORPHAN, STYLE_ORPHAN, IFRAME_ORPHAN))

    markup = _remove_until_stable(raw_markup, patterns) if patterns else raw_markup
    return _collapse_whitespace(
        markup,
        empty_lines=options.remove_empty_lines,
        runs=options.remove_excessive_whitespace,
    )


def extract_text(markup: Any) -> Any:
    """Sanitize markup, drop every tag and decode entities into plain text."""
    if not isinstance(markup, str) or not markup:
        return markup

    # bleach re-escapes text, so entities are decoded afterwards
    text = bleach.clean(sanitize(markup), tags=frozenset(), strip=True, strip_comments=True)
    text = html.unescape(text).replace('\xa0', ' ')
    return WHITESPACE.sub(' ', text).strip()


def text_summary(markup: Any, max_length: int = 200) -> Any:
    """Return at most max_length characters of plain text, with an ellipsis if cut."""
    text = extract_text(markup)
    if not isinstance(text, str) or len(text) <= max_length:
        return text
    return text[:max_length] + '...'
