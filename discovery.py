"""
Schema discovery.

Inspects a loaded page once and proposes a list-item selector, field
suggestions with confidence scores, and a pagination descriptor. All
heuristics are best-effort: a page may yield nothing useful.
"""

from __future__ import annotations

import logging
import re
from collections import OrderedDict
from typing import Optional

from models import DiscoveryResult, Suggestion
from pagination import detect_pagination
from selector_utils import first_match, split_selector_list

logger = logging.getLogger(__name__)

# Attributes that carry generic test identifiers
IDENTIFIER_ATTRIBUTES = ("data-testid", "data-test", "data-qa")

# (name, selector, type, attr, confidence, source)
SINGLE_PAGE_SIGNALS = [
    ("title", "h1", "text", None, 0.6, "h1"),
    ("subtitle", "h2", "text", None, 0.4, "h2"),
    ("og_title", 'meta[property="og:title"]', "attr", "content", 0.7, "meta"),
    ("description", 'meta[name="description"]', "attr", "content", 0.6, "meta"),
    ("canonical", 'link[rel="canonical"]', "attr", "href", 0.8, "link"),
    ("image", "img", "attr", "src", 0.3, "img"),
]

LIST_CLASS_CANDIDATES = [".card", ".item", ".result", ".listing", ".product", ".property-card"]

# Identifier counts needed for a list container: strict pass, then relaxed
LIST_THRESHOLDS = (5, 3)

LIST_SAMPLE_SIZE = 3

# Probed relative to sample list items; first resolving candidate per name wins
INNER_FIELD_CANDIDATES = [
    ("name", '[data-testid="title"]', "text", None, 0.9),
    ("title", 'h2, h3, [class*="title"]', "text", None, 0.85),
    ("link", 'a[data-testid="title-link"]', "attr", "href", 0.9),
    ("link", "a[href]", "attr", "href", 0.8),
    ("price", '[data-testid*="price"], [class*="price"]', "text", None, 0.9),
    ("rating", '[data-testid*="review"] div, [class*="rating"], [class*="score"]', "text", None, 0.8),
    ("image", "img[src]", "attr", "src", 0.8),
    ("supplier", '[class*="supplier"], [class*="seller"], [class*="vendor"], [class*="company"]', "text", None, 0.8),
    ("description", '[class*="desc"], p', "text", None, 0.8),
]

_NAME_RE = re.compile(r"(title|name)")
_PRICE_RE = re.compile(r"price")
_RATING_RE = re.compile(r"(review|rating|score)")
_LINK_RE = re.compile(r"(link|url)")


class SuggestionAccumulator:
    """
    Ordered, de-duplicated suggestions for one discovery run.

    Suggestions are keyed by (name, selector, type, attr); the first one
    added for a key is kept.
    """

    def __init__(self):
        self._items: OrderedDict = OrderedDict()

    def add(self, name: str, selector: str, type: str = "text", attr: Optional[str] = None,
            confidence: float = 0.5, source: str = "heuristic") -> bool:
        if not selector:
            return False
        key = (name, selector, type, attr or "")
        if key in self._items:
            return False
        self._items[key] = Suggestion(
            name=name, selector=selector, type=type, attr=attr,
            confidence=confidence, source=source,
        )
        return True

    def __len__(self) -> int:
        return len(self._items)

    def to_list(self) -> list[Suggestion]:
        return list(self._items.values())


def _add_single_page_signals(page, acc: SuggestionAccumulator) -> None:
    for name, selector, type_, attr, confidence, source in SINGLE_PAGE_SIGNALS:
        el = page.query_one(selector)
        if el is None:
            continue
        if type_ == "text":
            present = bool((page.text(el) or "").strip())
        else:
            present = bool(page.attribute(el, attr))
        if present:
            acc.add(name, selector, type_, attr, confidence, source)


def _add_identifier_hints(page, acc: SuggestionAccumulator) -> "OrderedDict[str, int]":
    """
    Classify elements carrying test identifiers and count each identifier.

    Returns:
        Ordered {selector: occurrences}, in document order of first sighting
    """
    counts: OrderedDict = OrderedDict()
    for attr_name in IDENTIFIER_ATTRIBUTES:
        for el in page.query_all(f"[{attr_name}]"):
            value = page.attribute(el, attr_name) or ""
            if not value or '"' in value:
                continue
            selector = f'[{attr_name}="{value}"]'
            counts[selector] = counts.get(selector, 0) + 1

            lower = value.lower()
            if _NAME_RE.search(lower):
                acc.add("name", selector, "text", None, 0.85, attr_name)
            if _PRICE_RE.search(lower):
                acc.add("price", f'[{attr_name}*="price"]', "text", None, 0.8, attr_name)
            if _RATING_RE.search(lower):
                acc.add(
                    "rating",
                    f'[{attr_name}*="review"], [{attr_name}*="rating"], [{attr_name}*="score"]',
                    "text", None, 0.6, attr_name,
                )
            if _LINK_RE.search(lower):
                acc.add("link", f'[{attr_name}*="link"]', "attr", "href", 0.8, attr_name)
    return counts


def _looks_like_record(page, element) -> bool:
    probe = ", ".join(
        [f'[{a}*="title"], [{a}*="name"]' for a in IDENTIFIER_ATTRIBUTES] + ["a"]
    )
    return page.query_one(probe, root=element) is not None


def find_list_selector(page, identifier_counts: "OrderedDict[str, int]") -> Optional[str]:
    """
    Pick the repeated container that most likely wraps one record each.

    For each threshold (strict, then relaxed): the most frequent identifier
    whose sample elements contain a title/name/link, else the first
    structural class candidate with enough matches.
    """
    for threshold in LIST_THRESHOLDS:
        repeated = sorted(
            ((sel, n) for sel, n in identifier_counts.items() if n >= threshold),
            key=lambda pair: pair[1],
            reverse=True,
        )
        for selector, _ in repeated:
            samples = page.query_all(selector)[:LIST_SAMPLE_SIZE]
            if any(_looks_like_record(page, el) for el in samples):
                logger.info(f"List container by identifier: {selector}")
                return selector

        for candidate in LIST_CLASS_CANDIDATES:
            if len(page.query_all(candidate)) >= threshold:
                logger.info(f"List container by class name: {candidate}")
                return candidate
    return None


def _add_inner_field_suggestions(page, acc: SuggestionAccumulator, list_selector: str) -> None:
    samples = page.query_all(list_selector)[:LIST_SAMPLE_SIZE]
    added = set()
    for name, selector, type_, attr, confidence in INNER_FIELD_CANDIDATES:
        if name in added:
            continue
        for item in samples:
            found, _ = first_match(page, split_selector_list(selector), root=item)
            if found:
                acc.add(name, selector, type_, attr, confidence, "heuristic")
                added.add(name)
                break


def discover_schema(page) -> DiscoveryResult:
    """
    Analyse the loaded document and propose an extraction configuration.

    Args:
        page: PageAccess with the target page loaded

    Returns:
        DiscoveryResult with mode, list selector, suggestions and pagination
    """
    acc = SuggestionAccumulator()

    _add_single_page_signals(page, acc)
    identifier_counts = _add_identifier_hints(page, acc)

    list_selector = find_list_selector(page, identifier_counts)
    if list_selector:
        _add_inner_field_suggestions(page, acc, list_selector)

    pagination = detect_pagination(page)

    if list_selector:
        mode = "list"
    elif len(acc):
        mode = "single"
    else:
        mode = "unknown"

    logger.info(f"Discovery: mode={mode}, {len(acc)} suggestions, pagination={pagination.type}")
    return DiscoveryResult(
        mode=mode,
        list_item_selector=list_selector,
        suggestions=acc.to_list(),
        pagination=pagination,
    )
