"""
Pagination detection, strategy resolution and page advancing.

detect_pagination() inspects the loaded page once and describes its
controls. resolve_strategy() turns a requested strategy (or "auto") plus
caller overrides into concrete selectors. PageAdvancer moves the list to
its next batch by running the strategy handlers left to right
(load more -> traditional -> infinite scroll), starting at the resolved
strategy and never looping back.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from extractors.list_page import normalize_url
from models import PaginationDescriptor
from scrape_errors import NavigationError, PaginationStallError
from scraper_config import ScrapeSettings
from selector_utils import exists_and_enabled, exists_and_visible, first_match, has_matches, split_selector_list

logger = logging.getLogger(__name__)

NEXT_CONTROL_SELECTORS = [
    'a[rel="next"]:not([disabled])',
    'link[rel="next"]',
    'a[aria-label*="next" i]:not([disabled])',
    'button[aria-label*="next" i]:not([disabled])',
    'a[title*="next" i]:not([disabled])',
    'button[title*="next" i]:not([disabled])',
    'a.next:not([disabled])',
    'button.next:not([disabled])',
    'li.next a',
    '.pagination-next a',
]

PREV_CONTROL_SELECTORS = [
    'a[rel="prev"]',
    'a[aria-label*="prev" i]',
    'button[aria-label*="prev" i]',
    'a[title*="prev" i]',
    'a.prev, a.previous',
    'button.prev, button.previous',
    'li.prev a, li.previous a',
]

PAGE_NUMBER_SELECTORS = [
    '.pagination a',
    '.page-numbers a',
    'nav[aria-label*="pagination" i] a',
    '.pager a',
    'a[href*="page="]',
]

CURRENT_PAGE_SELECTORS = [
    '.pagination .active',
    '.pagination .current',
    '[aria-current="page"]',
    '.page-numbers.current',
]

TOTAL_PAGES_SELECTORS = [
    '[data-total-pages]',
    '.total-pages',
    '.pagination-total',
]

LOAD_MORE_SELECTORS = [
    'button[aria-label*="load more" i]',
    'button[aria-label*="show more" i]',
    'a[aria-label*="load more" i]',
    '.load-more',
    '.show-more',
    '[data-load-more]',
]

# Shared by detection and the click-by-text fallback
LOAD_MORE_PHRASES = ['load more', 'show more', 'view more', 'see more', 'more results', 'more properties']

LOAD_MORE_TEXT_RE = re.compile(r'\b(' + '|'.join(re.escape(p) for p in LOAD_MORE_PHRASES) + r')\b')

INFINITE_SCROLL_SELECTORS = [
    '[data-infinite-scroll]',
    '.infinite-scroll',
    '.infinite-scroll-component',
    '[data-scroll-loader]',
    '[data-lazy-load]',
    '.lazy-load',
]

INFINITE_SCROLL_GLOBALS_SCRIPT = "() => !!(window.InfiniteScroll || window.LazyLoad)"

STRATEGY_ORDER = ['load_more_button', 'traditional_pagination', 'infinite_scroll']

_INTEGER_RE = re.compile(r'^\d+$')
_CSS_IDENT_RE = re.compile(r'^-?[A-Za-z_][\w-]*$')


@dataclass
class ListSnapshot:
    """What the list looks like right now; compared to detect a page change."""
    href: str = ''
    count: int = 0
    first_text: str = ''


@dataclass
class ResolvedStrategy:
    strategy: str
    load_more_selector: Optional[str] = None
    next_button_selector: Optional[str] = None
    page_number_selectors: List[str] = field(default_factory=list)
    current_page_selector: Optional[str] = None


# --- detection ---


def _positive_integer(text: Optional[str]) -> bool:
    text = (text or '').strip()
    return bool(_INTEGER_RE.match(text)) and int(text) > 0


def _selector_for(page, element) -> Optional[str]:
    """Build a tag#id.class selector for a detected control, if it has hooks."""
    tag = page.tag_name(element) or ''
    element_id = page.attribute(element, 'id') or ''
    classes = [c for c in (page.attribute(element, 'class') or '').split() if _CSS_IDENT_RE.match(c)]
    if element_id and _CSS_IDENT_RE.match(element_id):
        return f'{tag}#{element_id}'
    if classes:
        return tag + ''.join(f'.{c}' for c in classes)
    return None


def click_load_more_by_text(page, phrases=None) -> bool:
    """Click the first visible button/link whose text contains a load-more phrase."""
    pattern = LOAD_MORE_TEXT_RE
    if phrases:
        pattern = re.compile(r'\b(' + '|'.join(re.escape(p) for p in phrases) + r')\b')
    for el in page.query_all('button, a[role="button"], a'):
        text = (page.text(el) or '').strip().lower()
        if not text or not pattern.search(text):
            continue
        if not page.is_visible(el):
            continue
        return page.click(el)
    return False


def find_load_more(page):
    """
    Locate a load-more control.

    Returns:
        (found, selector) - selector is None when the control was found by
        text but has no id/class to address it by
    """
    selector, _ = first_match(page, LOAD_MORE_SELECTORS, exists_and_visible())
    if selector:
        return True, selector

    for el in page.query_all('button, a[role="button"]'):
        text = (page.text(el) or '').strip().lower()
        if LOAD_MORE_TEXT_RE.search(text):
            return True, _selector_for(page, el)
    return False, None


def find_page_number_selectors(page) -> List[str]:
    """Selectors under which at least two positive-integer page links exist."""
    found = []
    for selector in PAGE_NUMBER_SELECTORS:
        numbered = [el for el in page.query_all(selector) if _positive_integer(page.text(el))]
        if len(numbered) >= 2:
            found.append(selector)
    return found


def has_infinite_scroll(page) -> bool:
    selector, _ = first_match(page, INFINITE_SCROLL_SELECTORS)
    if selector:
        return True
    try:
        return bool(page.evaluate(INFINITE_SCROLL_GLOBALS_SCRIPT))
    except Exception as e:
        logger.debug(f"Infinite scroll globals check failed: {e}")
        return False


def detect_pagination(page) -> PaginationDescriptor:
    """
    Describe the pagination controls on the loaded page.

    The overall type is classified by priority: load more, numbered pages,
    next/prev controls, scroll/lazy-load indicators, none.
    """
    next_selector, _ = first_match(page, NEXT_CONTROL_SELECTORS, exists_and_enabled())
    prev_selector, _ = first_match(page, PREV_CONTROL_SELECTORS)
    page_number_selectors = find_page_number_selectors(page)
    has_load_more, load_more_selector = find_load_more(page)
    infinite = has_infinite_scroll(page)
    current_selector, _ = first_match(page, CURRENT_PAGE_SELECTORS)
    total_selector, _ = first_match(page, TOTAL_PAGES_SELECTORS)

    if has_load_more:
        kind = 'load_more_button'
    elif page_number_selectors:
        kind = 'traditional_pagination'
    elif next_selector:
        kind = 'traditional_pagination'
    elif prev_selector:
        # Last page of a paginated list, unless it also lazy loads
        kind = 'infinite_scroll' if infinite else 'traditional_pagination'
    elif infinite:
        kind = 'infinite_scroll'
    else:
        kind = 'none'

    descriptor = PaginationDescriptor(
        type=kind,
        next_button_selector=next_selector,
        prev_button_selector=prev_selector,
        load_more_selector=load_more_selector,
        page_number_selectors=page_number_selectors,
        has_numbered_pages=bool(page_number_selectors),
        has_load_more=has_load_more,
        has_infinite_scroll=infinite,
        current_page_selector=current_selector,
        total_pages_selector=total_selector,
    )
    logger.info(f"Detected pagination: {kind}")
    return descriptor


# --- resolution ---


def resolve_strategy(requested: Optional[str], descriptor: Optional[PaginationDescriptor] = None,
                     next_button_selector: Optional[str] = None,
                     load_more_selector: Optional[str] = None,
                     page_number_selectors: Optional[List[str]] = None) -> ResolvedStrategy:
    """
    Decide the concrete strategy and the selectors each handler will use.

    Caller overrides always win over detected selectors. For "auto" the
    priority is load more, then traditional pagination, then infinite
    scroll as the default.

    Args:
        requested: Strategy name, "auto" or None (= auto)
        descriptor: Detected pagination controls, if any
        next_button_selector: Caller override
        load_more_selector: Caller override
        page_number_selectors: Caller override

    Returns:
        ResolvedStrategy
    """
    descriptor = descriptor or PaginationDescriptor()
    requested = requested or 'auto'

    effective_load_more = load_more_selector or descriptor.load_more_selector
    effective_next = next_button_selector or descriptor.next_button_selector
    effective_numbers = list(page_number_selectors or descriptor.page_number_selectors)

    if requested == 'auto':
        if load_more_selector or descriptor.has_load_more:
            strategy = 'load_more_button'
        elif effective_numbers or effective_next:
            strategy = 'traditional_pagination'
        else:
            strategy = 'infinite_scroll'
    else:
        strategy = requested

    return ResolvedStrategy(
        strategy=strategy,
        load_more_selector=effective_load_more,
        next_button_selector=effective_next,
        page_number_selectors=effective_numbers,
        current_page_selector=descriptor.current_page_selector,
    )


# --- advancing ---


class PageAdvancer:
    """
    Moves a list to its next batch.

    Handlers return True when the list visibly changed. advance() composes
    them left to right from the resolved strategy and raises
    PaginationStallError when none succeeds.
    """

    def __init__(self, page, resolved: ResolvedStrategy,
                 snapshot: Callable[[], ListSnapshot],
                 settings: Optional[ScrapeSettings] = None):
        self.page = page
        self.resolved = resolved
        self.snapshot = snapshot
        self.settings = settings or ScrapeSettings()
        self.handlers = {
            'load_more_button': self.load_more,
            'traditional_pagination': self.traditional,
            'infinite_scroll': self.infinite_scroll,
        }

    def pipeline(self) -> List[str]:
        strategy = self.resolved.strategy
        if strategy not in STRATEGY_ORDER:
            return []
        return STRATEGY_ORDER[STRATEGY_ORDER.index(strategy):]

    def advance(self) -> str:
        """
        Move to the next batch.

        Returns:
            Name of the strategy that succeeded

        Raises:
            PaginationStallError: If no strategy changed the page
        """
        steps = self.pipeline()
        if not steps:
            raise PaginationStallError("Pagination is disabled")

        before = self.snapshot()
        for name in steps:
            logger.info(f"Using pagination strategy: {name}")
            try:
                if self.handlers[name](before):
                    return name
            except NavigationError as e:
                logger.warning(f"Pagination strategy {name} failed: {e}")
            logger.info(f"Pagination strategy {name} did not change the page")
        raise PaginationStallError(f"No further page reached (tried {', '.join(steps)})")

    def _changed(self, before: ListSnapshot, after: ListSnapshot, compare_href: bool) -> bool:
        if compare_href and after.href != before.href:
            return True
        return after.count != before.count or after.first_text != before.first_text

    def _wait_for_change(self, before: ListSnapshot, timeout_ms: int, poll_ms: int,
                         compare_href: bool = True) -> bool:
        for _ in range(max(timeout_ms // poll_ms, 1)):
            if self._changed(before, self.snapshot(), compare_href):
                return True
            self.page.pause(poll_ms)
        return self._changed(before, self.snapshot(), compare_href)

    def _activate(self, element) -> bool:
        """Click a control; a <link rel=next> can't be clicked, so follow it."""
        if self.page.tag_name(element) == 'link':
            href = self.page.attribute(element, 'href')
            if not href:
                return False
            self.page.navigate(normalize_url(self.page.current_url(), href),
                               timeout_ms=self.settings.navigation_timeout_ms)
            return True
        return self.page.click(element)

    def load_more(self, before: ListSnapshot) -> bool:
        clicked = False
        for selector in split_selector_list(self.resolved.load_more_selector):
            el = self.page.query_one(selector)
            if el is not None and self.page.is_enabled(el):
                clicked = self.page.click(el)
                if clicked:
                    break
        if not clicked:
            clicked = click_load_more_by_text(self.page)
        if not clicked:
            return False

        self.page.pause(self.settings.pagination_click_settle_ms)
        return self._wait_for_change(before, self.settings.load_more_change_wait_ms,
                                     self.settings.pagination_poll_ms, compare_href=False)

    def traditional(self, before: ListSnapshot) -> bool:
        for selector in self.resolved.page_number_selectors:
            if self._numbered(selector, before):
                return True
        return self._next_button(before)

    def _current_page_number(self) -> int:
        selectors = CURRENT_PAGE_SELECTORS
        if self.resolved.current_page_selector:
            selectors = [self.resolved.current_page_selector] + selectors
        _, elements = first_match(self.page, selectors, has_matches(1))
        if elements:
            text = (self.page.text(elements[0]) or '').strip()
            if _INTEGER_RE.match(text):
                return int(text)
        return 1

    def _numbered(self, selector: str, before: ListSnapshot) -> bool:
        target = str(self._current_page_number() + 1)
        for el in self.page.query_all(selector):
            if (self.page.text(el) or '').strip() != target:
                continue
            if not self._activate(el):
                return False
            logger.info(f"Clicked page number {target}")
            self.page.wait_for_load(self.settings.page_change_wait_ms)
            return self._wait_for_change(before, self.settings.page_change_wait_ms,
                                         self.settings.pagination_poll_ms)
        return False

    def _next_button(self, before: ListSnapshot) -> bool:
        selectors = list(NEXT_CONTROL_SELECTORS)
        if self.resolved.next_button_selector:
            selectors = [self.resolved.next_button_selector]

        for selector in selectors:
            el = self.page.query_one(selector)
            if el is None or not self.page.is_enabled(el):
                continue
            if not self._activate(el):
                continue
            logger.info(f"Clicked next control '{selector}'")
            self.page.wait_for_load(self.settings.page_change_wait_ms)
            if self._wait_for_change(before, self.settings.page_change_wait_ms,
                                     self.settings.pagination_poll_ms):
                return True
        return False

    def infinite_scroll(self, before: ListSnapshot) -> bool:
        self.page.auto_scroll()
        if click_load_more_by_text(self.page):
            self.page.pause(self.settings.pagination_click_settle_ms)

        for _ in range(max(self.settings.page_change_wait_ms // self.settings.scroll_poll_ms, 1)):
            if self.snapshot().count > before.count:
                return True
            self.page.pause(self.settings.scroll_poll_ms)
        return self.snapshot().count > before.count
