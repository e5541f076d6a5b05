"""
Request-level entry points.

run_discovery() and run_extraction() validate their input, acquire exactly
one page session, load the target URL and hand the page to the discovery
or extraction components. The session is released on every exit path.
"""

import logging
import time
from typing import Any, Dict, Optional, Union

from consent import dismiss_consent
from discovery import discover_schema
from enrichment import DeepEnricher
from extractors.fields import extract_single
from list_extractor import GENERIC_LIST_SELECTORS
from list_scraper import ListScraper
from models import (
    DiscoveryResult,
    ExtractionRequest,
    ExtractionResult,
    parse_discovery_request,
    parse_extraction_request
)
from page_access import browser_session, navigate_with_retry
from scrape_errors import WaitTimeoutError
from scraper_config import ScrapeSettings

logger = logging.getLogger(__name__)

# Discovery doesn't wait for the network to go idle
DISCOVERY_WAIT_CHAIN = ("domcontentloaded", "domcontentloaded")


def load_page(page, url: str, settings: ScrapeSettings, wait_chain=None) -> None:
    """
    Navigate (with one relaxed retry), let the page settle and dismiss consent.

    Raises:
        NavigationError: If the page could not be loaded at all
    """
    navigate_with_retry(page, url, wait_chain or settings.navigation_wait_chain,
                        settings.navigation_timeout_ms)
    page.pause(settings.settle_after_navigation_ms)
    dismiss_consent(page, settings.consent_settle_ms)


def wait_for_content(page, request: ExtractionRequest, settings: ScrapeSettings) -> Optional[str]:
    """
    Wait for the list (or the requested wait selector) to appear.

    In list mode, a miss falls back to the generic list selectors with a
    shorter wait each. Nothing appearing is not an error: the page gets an
    extra settle and extraction proceeds.

    Returns:
        The selector that appeared, or None
    """
    selector = request.wait_for_selector or request.list_item_selector
    if selector:
        try:
            page.wait_for(selector, settings.selector_wait_ms)
            logger.info(f"Found '{selector}'")
            return selector
        except WaitTimeoutError as e:
            logger.info(f"{e}, trying alternatives")

    if request.mode == "list":
        for alternative in GENERIC_LIST_SELECTORS:
            try:
                page.wait_for(alternative, settings.alternative_selector_wait_ms)
                logger.info(f"Found alternative selector '{alternative}'")
                return alternative
            except WaitTimeoutError:
                continue

    logger.info("No list selector appeared, proceeding anyway")
    page.pause(settings.settle_without_list_ms)
    return None


def run_discovery(url: str, timeout_ms: Optional[int] = None,
                  settings: Optional[ScrapeSettings] = None,
                  page_factory=browser_session) -> DiscoveryResult:
    """
    Load `url` and propose an extraction configuration for it.

    Args:
        url: Page to analyse
        timeout_ms: Navigation timeout override (clamped)
        settings: Engine settings
        page_factory: Callable(settings) returning a context manager that yields a PageAccess

    Returns:
        DiscoveryResult

    Raises:
        ValidationError: Bad url, before any page access
        NavigationError: The page could not be loaded
    """
    request = parse_discovery_request({"url": url, "timeoutMs": timeout_ms})
    settings = (settings or ScrapeSettings()).with_timeout(request.timeout_ms)

    logger.info(f"Discovering schema for {request.url}")
    with page_factory(settings) as page:
        load_page(page, request.url, settings, DISCOVERY_WAIT_CHAIN)
        return discover_schema(page)


def run_extraction(request: Union[ExtractionRequest, Dict[str, Any]],
                   settings: Optional[ScrapeSettings] = None,
                   page_factory=browser_session) -> ExtractionResult:
    """
    Run one extraction request end to end.

    Args:
        request: ExtractionRequest or its wire-format dict
        settings: Engine settings
        page_factory: Callable(settings) returning a context manager that yields a PageAccess

    Returns:
        ExtractionResult (list items or single-page values)

    Raises:
        ValidationError: Malformed request, before any page access
        NavigationError: The start page could not be loaded
    """
    request = parse_extraction_request(request)
    settings = (settings or ScrapeSettings()).with_timeout(request.timeout_ms)
    started_at = time.monotonic()

    logger.info(f"Extracting {request.mode} from {request.url}")
    with page_factory(settings) as page:
        load_page(page, request.url, settings)
        wait_for_content(page, request, settings)

        if request.mode == "single":
            data = extract_single(page, request.fields)
            found = sum(1 for v in data.values() if v is not None)
            logger.info(f"Single extraction: {found}/{len(data)} fields found")
            return ExtractionResult(mode="single", data=data)

        items = ListScraper(page, request, settings, started_at).scrape()

        if request.deep_search and items:
            items = DeepEnricher(page, request, settings, started_at).enrich(items)

    logger.info(f"Extraction complete: {len(items)} items in {time.monotonic() - started_at:.1f}s")
    return ExtractionResult(mode="list", data=items)
