"""
List Scraper - multi-page list extraction.

This module implements the list mode loop, which:
1. Extracts the items on the current page
2. Removes items already collected on earlier pages
3. Applies the pending offset and the per-page cap
4. Advances to the next batch until a limit, the page budget, or
   pagination itself ends the run
"""

import logging
import time
from typing import Any, Dict, List, Optional

from extractors.list_page import ContentDeduper
from list_extractor import ListExtractor
from models import ExtractionRequest
from pagination import PageAdvancer, detect_pagination, resolve_strategy
from scrape_errors import NavigationError, PaginationStallError, WaitTimeoutError
from scraper_config import ScrapeSettings

logger = logging.getLogger(__name__)


class ListScraper:
    """
    Request-driven list scraper.

    Walks the pages of one list, starting from the page already loaded,
    and collects unique items according to the request's offset, limit,
    min and page budget.
    """

    def __init__(self, page, request: ExtractionRequest,
                 settings: Optional[ScrapeSettings] = None,
                 started_at: Optional[float] = None):
        """
        Initialize the list scraper.

        Args:
            page: PageAccess with the first list page loaded
            request: Validated extraction request in list mode
            settings: Engine settings
            started_at: time.monotonic() of the request start (None = now)
        """
        self.page = page
        self.request = request
        self.settings = settings or ScrapeSettings()
        self.started_at = started_at if started_at is not None else time.monotonic()

        self.extractor = ListExtractor(page, request.fields, self.settings, request.exclusion_filter)
        self.deduper = ContentDeduper(request.field_names())
        self.pending_offset = request.skip
        self.items: List[Dict[str, Any]] = []

        # Statistics
        self.stats = {
            'pages_visited': 0,
            'items_extracted': 0,
            'duplicates_skipped': 0,
            'offset_skipped': 0,
            'strategies_used': [],
            'stop_reason': None,
        }

    def _remaining(self) -> Optional[int]:
        if self.request.max_items is None:
            return None
        return max(self.request.max_items - len(self.items), 0)

    def _page_target(self) -> Optional[int]:
        """On-page element count worth lazy loading for (remaining need + pending offset)."""
        remaining = self._remaining()
        if remaining is None:
            return None
        return remaining + self.pending_offset

    def _merge(self, batch: List[Dict[str, Any]]) -> int:
        """
        Merge one page's items into the aggregate.

        Returns:
            Number of items appended
        """
        unique = self.deduper.filter(batch)
        self.stats['duplicates_skipped'] += len(batch) - len(unique)

        if self.pending_offset:
            skipped = min(self.pending_offset, len(unique))
            unique = unique[skipped:]
            self.pending_offset -= skipped
            self.stats['offset_skipped'] += skipped
            if skipped:
                logger.info(f"Skipped {skipped} items for offset ({self.pending_offset} still pending)")

        # min alone is a floor: the whole page is kept
        remaining = self._remaining()
        if remaining is not None:
            unique = unique[:remaining]

        self.items.extend(unique)
        return len(unique)

    def _should_stop(self) -> bool:
        """
        Check whether collection is complete.

        Returns:
            True if we should stop, False otherwise
        """
        limit = self.request.max_items
        floor = self.request.min_items
        pages = self.request.max_pages

        if limit is not None and len(self.items) >= limit:
            self.stats['stop_reason'] = f"reached limit {limit}"
            return True

        if limit is None and floor is not None and len(self.items) >= floor:
            self.stats['stop_reason'] = f"reached min {floor}"
            return True

        if pages is not None and self.stats['pages_visited'] >= pages:
            self.stats['stop_reason'] = f"reached page budget {pages}"
            return True

        return False

    def _out_of_time(self) -> bool:
        elapsed = time.monotonic() - self.started_at
        if elapsed >= self.settings.max_duration_s:
            self.stats['stop_reason'] = f"duration ceiling {self.settings.max_duration_s}s"
            return True
        return False

    def _rewait(self) -> None:
        selector = (self.extractor.working_selector
                    or self.request.wait_for_selector
                    or self.request.list_item_selector)
        try:
            self.page.wait_for(selector, self.settings.selector_wait_ms)
        except WaitTimeoutError as e:
            logger.info(f"List did not reappear after advancing, extracting anyway: {e}")

    def _build_advancer(self) -> PageAdvancer:
        request = self.request
        descriptor = None
        if request.pagination_strategy != 'none':
            descriptor = detect_pagination(self.page)
        resolved = resolve_strategy(
            request.pagination_strategy,
            descriptor,
            next_button_selector=request.next_button_selector,
            load_more_selector=request.load_more_selector,
            page_number_selectors=request.page_number_selectors,
        )
        logger.info(f"Pagination strategy: {resolved.strategy}")
        return PageAdvancer(
            self.page,
            resolved,
            lambda: self.extractor.snapshot(request.list_item_selector),
            self.settings,
        )

    def scrape(self) -> List[Dict[str, Any]]:
        """
        Main scraping loop.

        Returns:
            Collected items, truncated to the limit when one is set
        """
        request = self.request
        logger.info("Starting list extraction")
        logger.info(f"List selector: {request.list_item_selector}")
        if request.max_items:
            logger.info(f"Limit: {request.max_items}")
        if request.min_items:
            logger.info(f"Min: {request.min_items}")
        if request.max_pages:
            logger.info(f"Max pages: {request.max_pages}")
        if request.skip:
            logger.info(f"Offset: {request.skip}")

        advancer = self._build_advancer()

        while True:
            batch = self.extractor.extract_page(request.list_item_selector, self._page_target())
            self.stats['pages_visited'] += 1
            self.stats['items_extracted'] += len(batch)
            added = self._merge(batch)
            logger.info(
                f"Page {self.stats['pages_visited']}: {len(batch)} items, "
                f"{added} new, {len(self.items)} total"
            )

            if self._should_stop() or self._out_of_time():
                break

            try:
                used = advancer.advance()
            except PaginationStallError as e:
                self.stats['stop_reason'] = f"pagination stalled: {e}"
                break
            except NavigationError as e:
                self.stats['stop_reason'] = f"navigation failed while paginating: {e}"
                break
            self.stats['strategies_used'].append(used)
            self._rewait()

        if request.max_items is not None:
            self.items = self.items[:request.max_items]

        logger.info("=" * 60)
        logger.info("List extraction complete!")
        logger.info(f"Pages visited: {self.stats['pages_visited']}")
        logger.info(f"Items collected: {len(self.items)}")
        logger.info(f"Duplicates skipped: {self.stats['duplicates_skipped']}")
        logger.info(f"Stopped: {self.stats['stop_reason']}")
        logger.info("=" * 60)
        return self.items
