"""
Pure record functions for list extraction.

These functions are unit-testable and don't perform I/O.
They resolve URLs, hash records for deduplication, and apply the
caller-supplied exclusion filter.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Set
from urllib.parse import urljoin, urlparse

HASH_SEPARATOR = '|'


def normalize_url(base_url: str, href: str) -> str:
    """
    Convert a relative URL to an absolute URL.

    Args:
        base_url: The base URL to resolve against
        href: The href attribute (may be relative or absolute)

    Returns:
        Absolute URL string
    """
    return urljoin(base_url, href)


def resolve_http_url(base_url: str, value: Any) -> Optional[str]:
    """
    Resolve a field value to an absolute http(s) URL.

    Args:
        base_url: URL the value is relative to
        value: Extracted field value

    Returns:
        Absolute URL, or None if the value can't be resolved to http(s)
    """
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        absolute = urljoin(base_url, value.strip())
        parsed = urlparse(absolute)
    except ValueError:
        return None
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        return None
    return absolute


def content_hash(item: Dict[str, Any], field_names: Sequence[str]) -> str:
    """
    Build the deduplication key for a record.

    Every requested field's value is stringified (None becomes ''), trimmed
    and joined with HASH_SEPARATOR; the whole key is lowercased.

    Args:
        item: Extracted record
        field_names: Requested field names, in request order

    Returns:
        Normalized hash string
    """
    parts = []
    for name in field_names:
        value = item.get(name)
        parts.append(str(value if value is not None else '').strip())
    return HASH_SEPARATOR.join(parts).lower()


def empty_hash(field_names: Sequence[str]) -> str:
    """The degenerate hash of a record whose fields are all empty."""
    return HASH_SEPARATOR * (len(field_names) - 1)


class ContentDeduper:
    """
    Order-independent deduplication by content hash.

    One instance per scope: the list extractor makes a fresh one per page,
    the pagination controller keeps one for the whole request.
    """

    def __init__(self, field_names: Sequence[str]):
        self.field_names = list(field_names)
        self.seen: Set[str] = set()
        self._empty = empty_hash(self.field_names)

    def accept(self, item: Dict[str, Any]) -> bool:
        """Record `item` and return True if it hasn't been seen before."""
        key = content_hash(item, self.field_names)
        if key == self._empty or key in self.seen:
            return False
        self.seen.add(key)
        return True

    def filter(self, items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [item for item in items if self.accept(item)]


def _matches(value: str, existing: str, match_type: str) -> bool:
    if match_type == 'contains':
        return existing in value or value in existing
    if match_type == 'startsWith':
        return value.startswith(existing)
    if match_type == 'endsWith':
        return value.endswith(existing)
    return value == existing


def is_excluded(item: Dict[str, Any], field_name: str,
                existing_items: Sequence[Dict[str, Any]],
                match_type: str = 'exact') -> bool:
    """
    Check an item against previously seen records.

    Comparison is case-insensitive on trimmed strings. Items (or existing
    records) whose field isn't a non-empty string never match.

    Args:
        item: Newly extracted record
        field_name: Field to compare
        existing_items: Records supplied by the caller
        match_type: exact | contains | startsWith | endsWith

    Returns:
        True if the item should be dropped
    """
    value = item.get(field_name)
    if not isinstance(value, str) or not value.strip():
        return False
    value = value.strip().lower()

    for existing_item in existing_items:
        existing = existing_item.get(field_name) if isinstance(existing_item, dict) else None
        if not isinstance(existing, str) or not existing.strip():
            continue
        if _matches(value, existing.strip().lower(), match_type):
            return True
    return False


def apply_exclusion_filter(items: List[Dict[str, Any]], exclusion_filter) -> List[Dict[str, Any]]:
    """
    Drop items matching the exclusion filter.

    Args:
        items: Records to filter
        exclusion_filter: ExclusionFilter or None

    Returns:
        Remaining records, in order
    """
    if exclusion_filter is None or not exclusion_filter.is_active():
        return items
    return [
        item for item in items
        if not is_excluded(item, exclusion_filter.field_name,
                           exclusion_filter.existing_items, exclusion_filter.match_type)
    ]
