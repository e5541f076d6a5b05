"""
Shared "try a selector list, first match wins" resolution.

Field selectors, list containers and pagination controls are all given as
ordered fallback chains. resolve them through first_match() with a
predicate instead of repeating the loop at every call site.
"""

import logging
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

Predicate = Callable[[Any, List[Any]], bool]


def split_selector_list(selectors: Union[str, Sequence[str], None]) -> List[str]:
    """
    Split a comma-separated selector chain into its alternatives.

    Only top-level commas separate alternatives; commas inside parentheses,
    brackets or quotes belong to the selector (e.g. ``:is(h2, h3)``).

    Args:
        selectors: Selector chain string, or an already split list

    Returns:
        List of trimmed, non-empty selectors in their original order
    """
    if not selectors:
        return []
    if not isinstance(selectors, str):
        result = []
        for item in selectors:
            result.extend(split_selector_list(item))
        return result

    parts = []
    depth = 0
    quote = None
    current = []
    for ch in selectors:
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in ('"', "'"):
            quote = ch
        elif ch in '([':
            depth += 1
        elif ch in ')]':
            depth = max(depth - 1, 0)
        elif ch == ',' and depth == 0:
            parts.append(''.join(current))
            current = []
            continue
        current.append(ch)
    parts.append(''.join(current))

    return [p.strip() for p in parts if p.strip()]


def has_matches(minimum: int = 1) -> Predicate:
    """Predicate: the selector matched at least `minimum` elements."""
    def check(page, elements):
        return len(elements) >= minimum
    return check


def exists_and_enabled() -> Predicate:
    """Predicate: the first match exists and is not disabled."""
    def check(page, elements):
        return bool(elements) and page.is_enabled(elements[0])
    return check


def exists_and_visible() -> Predicate:
    """Predicate: at least one match is visible."""
    def check(page, elements):
        return any(page.is_visible(el) for el in elements)
    return check


def first_match(page, selectors: Union[str, Iterable[str]],
                predicate: Optional[Predicate] = None,
                root: Any = None) -> Tuple[Optional[str], List[Any]]:
    """
    Find the first selector in a fallback chain that satisfies `predicate`.

    Args:
        page: PageAccess to query
        selectors: Selector chain (comma string or list)
        predicate: Acceptance test, defaults to has_matches(1)
        root: Element to scope the query to (None = whole document)

    Returns:
        (selector, elements) for the winning selector, or (None, [])
    """
    predicate = predicate or has_matches(1)
    for selector in split_selector_list(selectors if isinstance(selectors, str) else list(selectors)):
        elements = page.query_all(selector, root=root)
        logger.debug(f"Selector '{selector}' matched {len(elements)} elements")
        if predicate(page, elements):
            return selector, elements
    return None, []
