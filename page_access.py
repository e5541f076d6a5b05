"""
Page access capability.

The engine talks to pages only through the PageAccess protocol. This module
also provides the Playwright-backed implementation and browser_session(),
which owns the browser for exactly one request and always releases it.
"""

from __future__ import annotations

import json
import logging
import random
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page, TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from scrape_errors import NavigationError, WaitTimeoutError
from scraper_config import ScrapeSettings

logger = logging.getLogger(__name__)

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--disable-features=VizDisplayCompositor,TranslateUI",
    "--disable-extensions",
    "--disable-gpu",
    "--no-first-run",
    "--no-default-browser-check",
    "--no-pings",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--disable-ipc-flooding-protection",
    "--lang=en-US,en",
]

STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {get: () => undefined});
window.chrome = window.chrome || {runtime: {}};
Object.defineProperty(navigator, 'language', {get: () => 'en-US'});
Object.defineProperty(navigator, 'languages', {get: () => ['en-US', 'en']});
Object.defineProperty(navigator, 'platform', {get: () => 'Win32'});
Object.defineProperty(navigator, 'hardwareConcurrency', {get: () => 4});
Object.defineProperty(navigator, 'connection', {
    get: () => ({effectiveType: '4g', downlink: 2.5, rtt: 150})
});
Object.defineProperty(navigator, 'plugins', {
    get: () => [
        {name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer', description: 'Portable Document Format'},
        {name: 'Chrome PDF Viewer', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai', description: ''},
        {name: 'Native Client', filename: 'internal-nacl-plugin', description: ''}
    ]
});
Object.defineProperty(document, 'hidden', {get: () => false});
Object.defineProperty(document, 'visibilityState', {get: () => 'visible'});
if (navigator.permissions && navigator.permissions.query) {
    const originalQuery = navigator.permissions.query.bind(navigator.permissions);
    navigator.permissions.query = (parameters) => (
        parameters.name === 'notifications'
            ? Promise.resolve({state: Notification.permission})
            : originalQuery(parameters)
    );
}
if (window.WebGLRenderingContext) {
    const getParameter = WebGLRenderingContext.prototype.getParameter;
    WebGLRenderingContext.prototype.getParameter = function (parameter) {
        if (parameter === 37445) return 'Intel Inc.';
        if (parameter === 37446) return 'Intel Iris OpenGL Engine';
        return getParameter.call(this, parameter);
    };
}
"""

AUTO_SCROLL_SCRIPT = """
async () => {
    await new Promise((resolve) => {
        let total = 0;
        const distance = 600;
        const timer = setInterval(() => {
            const { scrollHeight } = document.body;
            window.scrollBy(0, distance);
            total += distance;
            if (total >= scrollHeight - window.innerHeight - 200) {
                clearInterval(timer);
                resolve();
            }
        }, 120);
    });
}
"""

CLICK_SCRIPT = """
(el) => {
    el.scrollIntoView({behavior: 'auto', block: 'center'});
    el.click();
}
"""

ENABLED_SCRIPT = """
(el) => !el.hasAttribute('disabled')
    && el.getAttribute('aria-disabled') !== 'true'
    && !(el.className && String(el.className).split(/\\s+/).includes('disabled'))
"""


class PageAccess(Protocol):
    """
    Abstract page capability the engine depends on.

    Element handles are opaque: only the page that returned them knows how
    to read them.
    """

    def navigate(self, url: str, wait_until: str = "domcontentloaded",
                 timeout_ms: Optional[int] = None) -> None:
        """Load `url`. Raises NavigationError on failure."""
        ...

    def query_all(self, selector: str, root: Any = None) -> list:
        """All matches of `selector` (an invalid selector matches nothing)."""
        ...

    def query_one(self, selector: str, root: Any = None) -> Any:
        ...

    def text(self, element: Any) -> Optional[str]:
        """Raw textContent of an element."""
        ...

    def attribute(self, element: Any, name: str) -> Optional[str]:
        ...

    def tag_name(self, element: Any) -> str:
        ...

    def is_visible(self, element: Any) -> bool:
        ...

    def is_enabled(self, element: Any) -> bool:
        ...

    def click(self, element: Any) -> bool:
        """Click an element. Returns False if the click could not be issued."""
        ...

    def evaluate(self, script: str, arg: Any = None) -> Any:
        ...

    def auto_scroll(self) -> None:
        """Scroll down in steps until the bottom of the document."""
        ...

    def scroll_by(self, dy: int) -> None:
        ...

    def jump_to_bottom(self) -> None:
        ...

    def wait_for(self, selector: str, timeout_ms: int) -> None:
        """Wait until `selector` is visible. Raises WaitTimeoutError."""
        ...

    def wait_for_load(self, timeout_ms: int) -> bool:
        ...

    def pause(self, ms: int) -> None:
        ...

    def current_url(self) -> str:
        ...

    def content(self) -> str:
        ...


class PlaywrightPage:
    """PageAccess backed by a Playwright sync Page."""

    def __init__(self, page: Page, settings: Optional[ScrapeSettings] = None):
        self.page = page
        self.settings = settings or ScrapeSettings()

    def navigate(self, url, wait_until="domcontentloaded", timeout_ms=None):
        timeout = timeout_ms or self.settings.navigation_timeout_ms
        try:
            self.page.goto(url, wait_until=wait_until, timeout=timeout)
        except (PlaywrightTimeoutError, PlaywrightError) as e:
            raise NavigationError(f"Navigation to {url} failed ({wait_until}): {e}", url=url) from e

    def query_all(self, selector, root=None):
        scope = root if root is not None else self.page
        try:
            return scope.query_selector_all(selector)
        except PlaywrightError as e:
            logger.debug(f"Selector '{selector}' failed: {e}")
            return []

    def query_one(self, selector, root=None):
        scope = root if root is not None else self.page
        try:
            return scope.query_selector(selector)
        except PlaywrightError as e:
            logger.debug(f"Selector '{selector}' failed: {e}")
            return None

    def text(self, element):
        try:
            return element.text_content()
        except PlaywrightError:
            return None

    def attribute(self, element, name):
        try:
            return element.get_attribute(name)
        except PlaywrightError:
            return None

    def tag_name(self, element):
        try:
            return element.evaluate("el => el.tagName.toLowerCase()")
        except PlaywrightError:
            return ""

    def is_visible(self, element):
        try:
            box = element.bounding_box()
        except PlaywrightError:
            return False
        return bool(box and box["width"] > 0 and box["height"] > 0)

    def is_enabled(self, element):
        try:
            return bool(element.evaluate(ENABLED_SCRIPT))
        except PlaywrightError:
            return False

    def click(self, element):
        try:
            element.evaluate(CLICK_SCRIPT)
            return True
        except PlaywrightError as e:
            logger.debug(f"Click failed: {e}")
            return False

    def evaluate(self, script, arg=None):
        return self.page.evaluate(script, arg)

    def auto_scroll(self):
        try:
            self.page.evaluate(AUTO_SCROLL_SCRIPT)
        except PlaywrightError as e:
            logger.debug(f"Auto-scroll failed: {e}")

    def scroll_by(self, dy):
        try:
            self.page.evaluate("(dy) => window.scrollBy(0, dy)", dy)
        except PlaywrightError as e:
            logger.debug(f"Scroll failed: {e}")

    def jump_to_bottom(self):
        try:
            self.page.evaluate("() => window.scrollBy(0, document.body.scrollHeight)")
        except PlaywrightError as e:
            logger.debug(f"Scroll failed: {e}")

    def wait_for(self, selector, timeout_ms):
        try:
            self.page.wait_for_selector(selector, state="visible", timeout=timeout_ms)
        except (PlaywrightTimeoutError, PlaywrightError) as e:
            raise WaitTimeoutError(f"Timed out waiting for '{selector}'") from e

    def wait_for_load(self, timeout_ms):
        try:
            self.page.wait_for_load_state("domcontentloaded", timeout=timeout_ms)
            return True
        except (PlaywrightTimeoutError, PlaywrightError):
            return False

    def pause(self, ms):
        self.page.wait_for_timeout(ms)

    def current_url(self):
        return self.page.url

    def content(self):
        return self.page.content()


def _create_context(browser, settings: ScrapeSettings):
    """Create a browser context with fingerprint smoothing settings."""
    vw, vh = settings.viewport
    ctx = browser.new_context(
        viewport={"width": vw + random.randint(-20, 20), "height": vh + random.randint(-20, 20)},
        user_agent=settings.user_agent,
        locale=settings.locale,
        timezone_id=settings.timezone_id,
        extra_http_headers=settings.extra_headers,
    )

    if settings.cookies_file:
        cf = Path(settings.cookies_file)
        if cf.exists():
            try:
                ctx.add_cookies(json.loads(cf.read_text()))
                logger.info("Loaded saved session cookies")
            except (ValueError, PlaywrightError) as e:
                logger.warning(f"Could not load cookies: {e}")

    return ctx


def _save_cookies(ctx, settings: ScrapeSettings) -> None:
    if not settings.cookies_file:
        return
    try:
        cf = Path(settings.cookies_file)
        cf.parent.mkdir(parents=True, exist_ok=True)
        cf.write_text(json.dumps(ctx.cookies(), indent=2))
    except (OSError, PlaywrightError) as e:
        logger.debug(f"Could not save cookies: {e}")


@contextmanager
def browser_session(settings: Optional[ScrapeSettings] = None) -> Iterator[PlaywrightPage]:
    """
    Acquire one browser page for a single request.

    The browser is closed on every exit path, including exceptions raised
    by the caller.
    """
    settings = settings or ScrapeSettings()
    with sync_playwright() as p:
        browser = p.chromium.launch(headless=settings.headless, args=BROWSER_ARGS)
        mode = "headless" if settings.headless else "visible"
        logger.info(f"Playwright browser initialized ({mode} mode)")
        try:
            ctx = _create_context(browser, settings)
            page = ctx.new_page()
            page.add_init_script(STEALTH_SCRIPT)
            page.set_default_navigation_timeout(settings.navigation_timeout_ms)
            page.set_default_timeout(settings.navigation_timeout_ms)
            try:
                yield PlaywrightPage(page, settings)
            finally:
                _save_cookies(ctx, settings)
        finally:
            try:
                browser.close()
                logger.info("Browser closed")
            except PlaywrightError as e:
                logger.warning(f"Error closing browser: {e}")


def navigate_with_retry(page, url: str, wait_chain, timeout_ms: Optional[int] = None) -> str:
    """
    Navigate, relaxing the wait condition once on failure.

    Args:
        page: PageAccess
        url: Target URL
        wait_chain: Wait conditions tried in order, e.g. ("networkidle", "domcontentloaded")
        timeout_ms: Per-attempt navigation timeout

    Returns:
        The wait condition that succeeded

    Raises:
        NavigationError: If every attempt failed
    """
    last_error = None
    for wait_until in wait_chain:
        try:
            page.navigate(url, wait_until=wait_until, timeout_ms=timeout_ms)
            logger.info(f"Navigated to {url} ({wait_until})")
            return wait_until
        except NavigationError as e:
            logger.warning(f"Navigation attempt failed: {e}")
            last_error = e
    raise NavigationError(f"Could not load {url}: {last_error}", url=url)
