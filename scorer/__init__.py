"""
WeChat Article Scorer

A batch pipeline that fetches WeChat official-account articles, normalizes
their markup, scores the content with an LLM and exports a metrics report.
"""

__version__ = "0.1.0"
__author__ = "WeChat Article Scorer Team"
__description__ = "A pipeline for normalizing and scoring WeChat articles"
__license__ = "MIT"

# Package level constants
DEFAULT_IMPORT_PATH = "data/articles.csv"
DEFAULT_OUTPUT_PATH = "output/articles.csv"

# Version info tuple
VERSION_INFO = tuple(map(int, __version__.split('.')))
