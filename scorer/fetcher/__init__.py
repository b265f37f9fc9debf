"""
Fetcher package for the article scorer.

This package renders article pages with a headless browser. WeChat
assembles article bodies client-side, so a plain HTTP request does not see
the content and every fetch goes through Playwright.

The main components are:
- Browser pool managing a shared Playwright browser and its contexts
- Fetch options describing the wait strategy for a page
"""
from scorer.fetcher.browser import BrowserContext, BrowserPool, FetchOptions

__all__ = [
    "BrowserContext",
    "BrowserPool",
    "FetchOptions",
]
