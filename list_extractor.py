"""
List Extractor - reads one page's worth of list items.

Resolves a working list selector, triggers lazy loading until a target
count is reached or growth stagnates, then extracts, de-duplicates and
filters the items on the current page.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from extractors.fields import extract_record
from extractors.list_page import ContentDeduper, apply_exclusion_filter
from pagination import ListSnapshot, click_load_more_by_text
from scrape_errors import SelectorMissError, WaitTimeoutError
from scraper_config import ScrapeSettings
from selector_utils import first_match, has_matches, split_selector_list

logger = logging.getLogger(__name__)

# Tried only when the requested list selector matches nothing
GENERIC_LIST_SELECTORS = [
    '[class*="product"]',
    '[class*="item"]',
    '[class*="card"]',
    '[class*="result"]',
    'article',
    '.search-result',
    '.listing',
]

SNAPSHOT_TEXT_LENGTH = 80


class ListExtractor:
    """
    Extracts list items from the page currently loaded in `page`.

    One instance serves a whole request; the working selector is
    re-resolved on every page.
    """

    def __init__(self, page, fields: Sequence, settings: Optional[ScrapeSettings] = None,
                 exclusion_filter=None):
        """
        Args:
            page: PageAccess
            fields: FieldSpec list from the request
            settings: Timeouts and convergence bounds
            exclusion_filter: Optional ExclusionFilter
        """
        self.page = page
        self.fields = list(fields)
        self.field_names = [f.name for f in self.fields]
        self.settings = settings or ScrapeSettings()
        self.exclusion_filter = exclusion_filter
        self.working_selector: Optional[str] = None

    # --- selector resolution ---

    def candidate_selectors(self, list_selector: str) -> List[str]:
        alternatives = split_selector_list(list_selector)
        if len(alternatives) > 1:
            return alternatives
        return alternatives + GENERIC_LIST_SELECTORS

    def resolve_working_selector(self, list_selector: str) -> str:
        """
        Find the first candidate selector with at least one match.

        Raises:
            SelectorMissError: If no candidate matches anything
        """
        selector, elements = first_match(self.page, self.candidate_selectors(list_selector), has_matches(1))
        if selector is None:
            raise SelectorMissError(f"No list items found for '{list_selector}'")
        requested = split_selector_list(list_selector)
        if not requested or selector != requested[0]:
            logger.info(f"Using fallback list selector '{selector}' ({len(elements)} elements)")
        else:
            logger.info(f"Using list selector '{selector}' ({len(elements)} elements)")
        self.working_selector = selector
        return selector

    def count(self, selector: Optional[str] = None) -> int:
        selector = selector or self.working_selector
        if not selector:
            return 0
        return len(self.page.query_all(selector))

    def snapshot(self, list_selector: Optional[str] = None) -> ListSnapshot:
        """Current href, item count and first item text, for change detection."""
        selectors = [self.working_selector] if self.working_selector else split_selector_list(list_selector)
        _, items = first_match(self.page, selectors, has_matches(1))
        first_text = (self.page.text(items[0]) or '')[:SNAPSHOT_TEXT_LENGTH] if items else ''
        return ListSnapshot(href=self.page.current_url(), count=len(items), first_text=first_text)

    # --- lazy loading ---

    def _wait_for_growth(self, previous: int) -> int:
        latest = previous
        polls = max(self.settings.lazy_load_wait_ms // self.settings.lazy_load_poll_ms, 1)
        for _ in range(polls):
            latest = self.count()
            if latest > previous:
                return latest
            self.page.pause(self.settings.lazy_load_poll_ms)
        return latest

    def load_until(self, target: Optional[int]) -> int:
        """
        Trigger lazy loading until `target` items are on the page.

        Each round scrolls to the bottom, tries a load-more click and waits
        for the count to grow. A round without growth gets one corrective
        scroll nudge; rounds that still don't grow count as stagnant, and
        the loop stops after the configured number of consecutive stagnant
        rounds whether or not the target was reached.

        Returns:
            Matched element count after loading
        """
        count = self.count()
        if target is None:
            return count

        stagnant_rounds = 0
        while count < target:
            before = count
            self.page.auto_scroll()
            if click_load_more_by_text(self.page):
                self.page.pause(self.settings.load_more_settle_ms)
            count = self._wait_for_growth(before)

            if count <= before:
                stagnant_rounds += 1
                self.page.scroll_by(-self.settings.nudge_scroll_px)
                self.page.pause(self.settings.nudge_up_pause_ms)
                self.page.jump_to_bottom()
                self.page.pause(self.settings.nudge_down_pause_ms)
                nudged = self.count()
                if nudged > count:
                    count = nudged
                    stagnant_rounds = 0
            else:
                stagnant_rounds = 0

            if stagnant_rounds >= self.settings.lazy_load_max_stagnant_rounds:
                logger.info(f"Lazy loading stagnated at {count}/{target} items")
                break

        return count

    # --- extraction ---

    def extract_items(self, selector: str) -> List[Dict[str, Any]]:
        """Extract, de-duplicate and filter every item matching `selector`."""
        elements = self.page.query_all(selector)
        records = [extract_record(self.page, el, self.fields, index) for index, el in enumerate(elements)]

        deduper = ContentDeduper(self.field_names)
        unique = deduper.filter(records)
        removed = len(records) - len(unique)
        if removed:
            logger.info(f"Removed {removed} duplicate items on this page")

        filtered = apply_exclusion_filter(unique, self.exclusion_filter)
        excluded = len(unique) - len(filtered)
        if excluded:
            ef = self.exclusion_filter
            logger.info(
                f"Exclusion filter removed {excluded} items "
                f"('{ef.field_name}', {ef.match_type}, {len(ef.existing_items)} existing)"
            )
        return filtered

    def extract_page(self, list_selector: str, target: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Read the current page.

        Args:
            list_selector: Requested list item selector (may be a chain)
            target: Desired on-page element count for lazy loading, or None

        Returns:
            Items in document order, `_index` set to their position
        """
        try:
            selector = self.resolve_working_selector(list_selector)
        except SelectorMissError as e:
            logger.warning(f"{e}, returning no items")
            return []

        try:
            self.page.wait_for(selector, self.settings.selector_wait_ms)
        except WaitTimeoutError as e:
            logger.debug(f"Wait for '{selector}' failed, proceeding anyway: {e}")

        count = self.load_until(target)
        logger.info(f"{count} elements on page for '{selector}'")
        return self.extract_items(selector)
