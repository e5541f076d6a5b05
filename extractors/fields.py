"""
Field value extraction through a PageAccess.

A field's selector chain is tried left to right against the item element
(or the whole document in single mode); the first match wins. Extraction
of one field never aborts the others: failures become None.
"""

import logging
from typing import Any, Dict, Optional, Sequence

from selector_utils import first_match

from .list_page import normalize_url

logger = logging.getLogger(__name__)


def read_value(page, element, field) -> Optional[str]:
    """
    Read a field's value from a matched element.

    Text is trimmed and an empty string becomes None. Attributes are read
    verbatim, except relative `href` values which are made absolute against
    the current page location.
    """
    if field.type == 'text':
        text = page.text(element)
        text = text.strip() if text else ''
        return text or None

    if not field.attr:
        return None
    value = page.attribute(element, field.attr)
    if not value:
        return None
    if field.attr == 'href' and not value.startswith('http'):
        try:
            return normalize_url(page.current_url(), value)
        except ValueError:
            return value
    return value


def extract_field(page, field, root: Any = None) -> Optional[str]:
    """
    Extract one field, scoped to `root` (None = whole document).

    An empty selector chain on a text field reads the root element itself.
    """
    selectors = field.selectors()
    if not selectors:
        if field.type == 'text' and root is not None:
            return read_value(page, root, field)
        return None

    selector, elements = first_match(page, selectors, root=root)
    if selector is None:
        return None
    return read_value(page, elements[0], field)


def extract_record(page, element, fields: Sequence, index: int) -> Dict[str, Any]:
    """
    Extract every field of one list item.

    Returns:
        Dict with `_index` followed by one entry per field
    """
    record: Dict[str, Any] = {'_index': index}
    for field in fields:
        try:
            record[field.name] = extract_field(page, field, root=element)
        except Exception as e:
            logger.debug(f"Error extracting field {field.name}: {e}")
            record[field.name] = None
    return record


def extract_single(page, fields: Sequence) -> Dict[str, Any]:
    """Extract fields at document level (single mode and detail pages)."""
    result: Dict[str, Any] = {}
    for field in fields:
        try:
            result[field.name] = extract_field(page, field)
        except Exception as e:
            logger.debug(f"Error extracting field {field.name}: {e}")
            result[field.name] = None
    return result
