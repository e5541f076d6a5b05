"""
Static page access backed by BeautifulSoup.

StaticHtmlPage implements the PageAccess protocol over parsed HTML, with
no JavaScript. Pages come from a preloaded {url: html} map or, with
fetch=True, from curl_cffi using Chrome impersonation. Clicking a real link
navigates to its href; every other click is only recorded.
"""

import logging
import re
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag
from curl_cffi import requests
from curl_cffi.requests import exceptions as requests_exceptions
from soupsieve import SelectorSyntaxError

from scrape_errors import NavigationError, WaitTimeoutError

logger = logging.getLogger(__name__)

_HIDDEN_STYLE_RE = re.compile(r"(display\s*:\s*none|visibility\s*:\s*hidden)", re.IGNORECASE)


class StaticHtmlPage:
    """PageAccess over static HTML documents."""

    def __init__(self, pages: Optional[Dict[str, str]] = None, fetch: bool = False,
                 impersonate: str = "chrome120", timeout_ms: int = 60000):
        """
        Args:
            pages: Preloaded documents keyed by URL
            fetch: Fetch URLs missing from `pages` over HTTP
            impersonate: curl_cffi browser fingerprint to use when fetching
            timeout_ms: HTTP timeout when fetching
        """
        self.pages = dict(pages or {})
        self.fetch = fetch
        self.impersonate = impersonate
        self.timeout_ms = timeout_ms
        self.history: List[str] = []
        self.clicked: List[Tag] = []
        self.scroll_count = 0
        self._url = "about:blank"
        self._soup = BeautifulSoup("", "lxml")
        self._session = None

    # --- navigation ---

    def _fetch_html(self, url: str, timeout_ms: Optional[int]) -> str:
        if self._session is None:
            self._session = requests.Session()
        try:
            response = self._session.get(
                url,
                impersonate=self.impersonate,
                timeout=(timeout_ms or self.timeout_ms) / 1000,
            )
        except requests_exceptions.RequestException as e:
            raise NavigationError(f"Fetch failed for {url}: {e}", url=url) from e
        if response.status_code >= 400:
            raise NavigationError(f"Fetch failed for {url}: HTTP {response.status_code}", url=url)
        return response.text

    def navigate(self, url, wait_until="domcontentloaded", timeout_ms=None):
        html = self.pages.get(url)
        if html is None and self.fetch:
            html = self._fetch_html(url, timeout_ms)
            self.pages[url] = html
        if html is None:
            raise NavigationError(f"No page available for {url}", url=url)
        self.load_html(url, html)

    def load_html(self, url: str, html: str) -> None:
        """Replace the current document."""
        self._url = url
        self._soup = BeautifulSoup(html, "lxml")
        self.history.append(url)
        logger.debug(f"Loaded {url}")

    # --- querying ---

    def query_all(self, selector, root=None):
        scope = root if root is not None else self._soup
        try:
            return scope.select(selector)
        except (SelectorSyntaxError, NotImplementedError, ValueError) as e:
            logger.debug(f"Selector '{selector}' failed: {e}")
            return []

    def query_one(self, selector, root=None):
        matches = self.query_all(selector, root=root)
        return matches[0] if matches else None

    def text(self, element):
        if element is None:
            return None
        return element.get_text()

    def attribute(self, element, name):
        value = element.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    def tag_name(self, element):
        return element.name or ""

    def is_visible(self, element):
        node = element
        while isinstance(node, Tag) and node.name not in ("[document]", "html"):
            if node.has_attr("hidden"):
                return False
            if node.name == "input" and node.get("type") == "hidden":
                return False
            if _HIDDEN_STYLE_RE.search(node.get("style", "")):
                return False
            node = node.parent
        return True

    def is_enabled(self, element):
        if element.has_attr("disabled"):
            return False
        if element.get("aria-disabled") == "true":
            return False
        return "disabled" not in (element.get("class") or [])

    # --- interaction ---

    def click(self, element):
        if element is None:
            return False
        self.clicked.append(element)
        href = (element.get("href") or "").strip()
        if element.name in ("a", "link") and href and not href.startswith(("#", "javascript:")):
            target = urljoin(self._url, href)
            try:
                self.navigate(target)
            except NavigationError as e:
                logger.debug(f"Click navigation failed: {e}")
                return False
        return True

    def evaluate(self, script, arg=None):
        return None

    def auto_scroll(self):
        self.scroll_count += 1

    def scroll_by(self, dy):
        self.scroll_count += 1

    def jump_to_bottom(self):
        self.scroll_count += 1

    # --- waiting ---

    def wait_for(self, selector, timeout_ms):
        if not any(self.is_visible(el) for el in self.query_all(selector)):
            raise WaitTimeoutError(f"Timed out waiting for '{selector}'")

    def wait_for_load(self, timeout_ms):
        return True

    def pause(self, ms):
        pass

    def current_url(self):
        return self._url

    def content(self):
        return str(self._soup)

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None


@contextmanager
def static_session(settings=None) -> Iterator[StaticHtmlPage]:
    """
    Page factory for static mode: fetches pages over HTTP, no browser.

    Accepts the same ScrapeSettings as browser_session.
    """
    timeout_ms = settings.navigation_timeout_ms if settings is not None else 60000
    page = StaticHtmlPage(fetch=True, timeout_ms=timeout_ms)
    logger.info("Static page access initialized (no JavaScript)")
    try:
        yield page
    finally:
        page.close()
