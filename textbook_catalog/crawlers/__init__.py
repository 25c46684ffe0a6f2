"""
Page fetching and extraction for the textbook catalog site.
"""

from .http_client import PageFetcher, DEFAULT_USER_AGENT
from .extractors import (
    extract_cities,
    extract_districts,
    extract_leaf_records,
    iter_leaf_results,
    resolve_book_url
)

__all__ = [
    'PageFetcher',
    'DEFAULT_USER_AGENT',
    'extract_cities',
    'extract_districts',
    'extract_leaf_records',
    'iter_leaf_results',
    'resolve_book_url'
]
