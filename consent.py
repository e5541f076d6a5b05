"""
Best-effort cookie consent dismissal.

Runs before any analysis. Every failure is logged at debug level and
otherwise ignored: a banner left on screen must never fail a request.
"""

import logging
import re

logger = logging.getLogger(__name__)

CONSENT_SELECTORS = [
    "button#onetrust-accept-btn-handler",
    "button[aria-label='Accept']",
    "button[data-testid='accept-cookies-button']",
    "button[aria-label='Accept all']",
    "button[aria-label='I agree']",
    "button[id*='accept']",
    "button[class*='accept']",
    "button[class*='consent']",
    "a[class*='accept']",
    ".cookie-accept",
    "[data-role='accept']",
]

# Button phrases tried before the broad scan
CONSENT_BUTTON_PHRASES = ["accept", "i accept", "ok", "同意", "确定"]

CONSENT_SCAN_PHRASES = ["accept", "i agree", "got it", "agree & close", "ok", "同意", "确定", "allow"]

# Consent controls carry short labels; longer text is page content
MAX_LABEL_LENGTH = 40


def _has_phrase(text: str, phrase: str) -> bool:
    return re.search(r'(?<![a-z])' + re.escape(phrase) + r'(?![a-z])', text) is not None


def _click_by_phrase(page, selector: str, phrases, require_visible: bool) -> bool:
    for el in page.query_all(selector):
        text = (page.text(el) or "").strip().lower()
        if not text or len(text) > MAX_LABEL_LENGTH:
            continue
        if not any(_has_phrase(text, p) for p in phrases):
            continue
        if require_visible and not page.is_visible(el):
            continue
        return page.click(el)
    return False


def dismiss_consent(page, settle_ms: int = 1000) -> bool:
    """
    Click a cookie/consent control if one is present.

    Returns:
        True if something was clicked
    """
    try:
        for selector in CONSENT_SELECTORS:
            el = page.query_one(selector)
            if el is not None and page.click(el):
                logger.info(f"Dismissed consent banner via '{selector}'")
                page.pause(settle_ms)
                return True

        for phrase in CONSENT_BUTTON_PHRASES:
            if _click_by_phrase(page, 'button, a[role="button"]', [phrase], require_visible=False):
                logger.info(f"Dismissed consent banner via button text '{phrase}'")
                page.pause(settle_ms)
                return True

        if _click_by_phrase(page, 'button, a[role="button"], a', CONSENT_SCAN_PHRASES, require_visible=True):
            logger.info("Dismissed consent banner via text scan")
            page.pause(settle_ms)
            return True
    except Exception as e:
        logger.debug(f"Consent dismissal failed: {e}")
    return False
