"""
Deep enrichment of list items from their detail pages.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from extractors.fields import extract_single
from extractors.list_page import resolve_http_url
from models import ExtractionRequest
from page_access import navigate_with_retry
from scrape_errors import EnrichmentError, NavigationError, WaitTimeoutError
from scraper_config import ScrapeSettings

logger = logging.getLogger(__name__)

DETAIL_URL_KEY = '_detailUrl'


class DeepEnricher:
    """
    Visits each item's detail URL and overlays freshly extracted fields.

    A failure on one item leaves that item exactly as the list page
    produced it; enrichment then continues with the next item.
    """

    def __init__(self, page, request: ExtractionRequest,
                 settings: Optional[ScrapeSettings] = None,
                 started_at: Optional[float] = None):
        self.page = page
        self.request = request
        self.settings = settings or ScrapeSettings()
        self.started_at = started_at if started_at is not None else time.monotonic()
        self.stats = {'enriched': 0, 'skipped': 0, 'failed': 0}

    def detail_url(self, item: Dict[str, Any]) -> Optional[str]:
        value = item.get(self.request.detail_url_field_name)
        if value is None:
            return None
        url = resolve_http_url(self.request.url, value)
        if url is None:
            raise EnrichmentError(f"Cannot resolve detail URL from {value!r}")
        return url

    def _load(self, url: str) -> None:
        try:
            navigate_with_retry(self.page, url, self.settings.navigation_wait_chain,
                                self.settings.navigation_timeout_ms)
        except NavigationError as e:
            raise EnrichmentError(f"Detail page failed: {e}") from e

        if self.request.wait_for_selector:
            try:
                self.page.wait_for(self.request.wait_for_selector, self.settings.selector_wait_ms)
            except WaitTimeoutError as e:
                logger.debug(f"Detail page wait timed out, extracting anyway: {e}")

    def enrich_item(self, item: Dict[str, Any]) -> Dict[str, Any]:
        """
        Return `item` overlaid with values from its detail page.

        Raises:
            EnrichmentError: If the detail URL can't be resolved or loaded
        """
        url = self.detail_url(item)
        if url is None:
            self.stats['skipped'] += 1
            return item

        self._load(url)
        detail = extract_single(self.page, self.request.fields)

        enriched = dict(item)
        for name, value in detail.items():
            if value is not None:
                enriched[name] = value
        enriched[DETAIL_URL_KEY] = url
        self.stats['enriched'] += 1
        return enriched

    def enrich(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Enrich every item in order.

        Items past the duration ceiling are returned unchanged.
        """
        logger.info(f"Deep search: enriching {len(items)} items via '{self.request.detail_url_field_name}'")
        results = []
        for position, item in enumerate(items):
            if time.monotonic() - self.started_at >= self.settings.max_duration_s:
                logger.warning(
                    f"Duration ceiling reached, {len(items) - position} items left unenriched"
                )
                results.extend(items[position:])
                break
            try:
                results.append(self.enrich_item(item))
            except EnrichmentError as e:
                logger.warning(f"Enrichment failed for item {position + 1}: {e}")
                self.stats['failed'] += 1
                results.append(item)

        logger.info(
            f"Deep search done: {self.stats['enriched']} enriched, "
            f"{self.stats['failed']} failed, {self.stats['skipped']} without URL"
        )
        return results
