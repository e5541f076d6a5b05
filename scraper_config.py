"""
Configuration settings for the list scraper.

Module-level constants hold the defaults; ScrapeSettings carries them per
request so that callers (request files, the API, tests) can tune timeouts
and convergence bounds without touching this file.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional, Tuple

from scrape_errors import ValidationError

# Browser headless mode
# False = browser window visible (useful for debugging selectors)
HEADLESS = True

# Navigation timeout in milliseconds, clamped to [MIN, MAX]
NAVIGATION_TIMEOUT_MS = 60000
MIN_NAVIGATION_TIMEOUT_MS = 10000
MAX_NAVIGATION_TIMEOUT_MS = 120000

# Wait conditions tried in order for the top-level navigation
NAVIGATION_WAIT_CHAIN = ("networkidle", "domcontentloaded")

# Selector waits
SELECTOR_WAIT_MS = 15000
ALTERNATIVE_SELECTOR_WAIT_MS = 5000

# Pauses to let dynamic content settle
SETTLE_AFTER_NAVIGATION_MS = 2000
SETTLE_WITHOUT_LIST_MS = 3000
CONSENT_SETTLE_MS = 1000

# Lazy-load convergence: give up after this many rounds without growth
LAZY_LOAD_MAX_STAGNANT_ROUNDS = 5
LAZY_LOAD_WAIT_MS = 10000
LAZY_LOAD_POLL_MS = 400
LOAD_MORE_SETTLE_MS = 1500
NUDGE_SCROLL_PX = 400
NUDGE_UP_PAUSE_MS = 600
NUDGE_DOWN_PAUSE_MS = 1000

# Pagination: how long to wait for the list to change after an advance
PAGINATION_CLICK_SETTLE_MS = 2000
LOAD_MORE_CHANGE_WAIT_MS = 10000
PAGE_CHANGE_WAIT_MS = 8000
PAGINATION_POLL_MS = 500
SCROLL_POLL_MS = 400

# Coarse ceiling for a whole request, in seconds
MAX_DURATION_S = 120

VIEWPORT = (1366, 1000)
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
LOCALE = "en-US"
TIMEZONE_ID = "America/New_York"


def clamp_timeout(timeout_ms: Optional[int]) -> int:
    """Clamp a navigation timeout into the supported range."""
    if timeout_ms is None:
        timeout_ms = NAVIGATION_TIMEOUT_MS
    return min(max(int(timeout_ms), MIN_NAVIGATION_TIMEOUT_MS), MAX_NAVIGATION_TIMEOUT_MS)


@dataclass
class ScrapeSettings:
    """Tunable timeouts and bounds for one extraction or discovery run."""
    headless: bool = HEADLESS
    navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS
    navigation_wait_chain: Tuple[str, ...] = NAVIGATION_WAIT_CHAIN
    selector_wait_ms: int = SELECTOR_WAIT_MS
    alternative_selector_wait_ms: int = ALTERNATIVE_SELECTOR_WAIT_MS
    settle_after_navigation_ms: int = SETTLE_AFTER_NAVIGATION_MS
    settle_without_list_ms: int = SETTLE_WITHOUT_LIST_MS
    consent_settle_ms: int = CONSENT_SETTLE_MS
    lazy_load_max_stagnant_rounds: int = LAZY_LOAD_MAX_STAGNANT_ROUNDS
    lazy_load_wait_ms: int = LAZY_LOAD_WAIT_MS
    lazy_load_poll_ms: int = LAZY_LOAD_POLL_MS
    load_more_settle_ms: int = LOAD_MORE_SETTLE_MS
    nudge_scroll_px: int = NUDGE_SCROLL_PX
    nudge_up_pause_ms: int = NUDGE_UP_PAUSE_MS
    nudge_down_pause_ms: int = NUDGE_DOWN_PAUSE_MS
    pagination_click_settle_ms: int = PAGINATION_CLICK_SETTLE_MS
    load_more_change_wait_ms: int = LOAD_MORE_CHANGE_WAIT_MS
    page_change_wait_ms: int = PAGE_CHANGE_WAIT_MS
    pagination_poll_ms: int = PAGINATION_POLL_MS
    scroll_poll_ms: int = SCROLL_POLL_MS
    max_duration_s: float = MAX_DURATION_S
    viewport: Tuple[int, int] = VIEWPORT
    user_agent: str = USER_AGENT
    locale: str = LOCALE
    timezone_id: str = TIMEZONE_ID
    cookies_file: Optional[str] = None
    extra_headers: Dict[str, str] = field(
        default_factory=lambda: {"Accept-Language": "en-US,en;q=0.9"}
    )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ScrapeSettings':
        """
        Build settings from a mapping (e.g. the `settings:` block of a request file).

        Raises:
            ValidationError: If the mapping has keys that are not settings
        """
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise ValidationError("'settings' must be a mapping")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(unknown)}")

        values = dict(data)
        for key in ("navigation_wait_chain", "viewport"):
            if key in values and isinstance(values[key], list):
                values[key] = tuple(values[key])
        if "navigation_timeout_ms" in values:
            values["navigation_timeout_ms"] = clamp_timeout(values["navigation_timeout_ms"])
        return cls(**values)

    def with_timeout(self, timeout_ms: Optional[int]) -> 'ScrapeSettings':
        """Return a copy whose navigation timeout is the clamped request timeout."""
        if timeout_ms is None:
            return self
        return replace(self, navigation_timeout_ms=clamp_timeout(timeout_ms))
