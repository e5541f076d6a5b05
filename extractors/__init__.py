"""
Extractors for list and single-page scraping.

This package contains the field extraction helpers and the pure record
functions (URL resolution, content hashing, exclusion filtering).
"""

from .fields import (
    extract_field,
    extract_record,
    extract_single,
    read_value
)
from .list_page import (
    ContentDeduper,
    apply_exclusion_filter,
    content_hash,
    empty_hash,
    is_excluded,
    normalize_url,
    resolve_http_url
)

__all__ = [
    'ContentDeduper',
    'apply_exclusion_filter',
    'content_hash',
    'empty_hash',
    'extract_field',
    'extract_record',
    'extract_single',
    'is_excluded',
    'normalize_url',
    'read_value',
    'resolve_http_url'
]
