"""
Scraper API Server

FastAPI server exposing schema discovery and extraction over HTTP, so a
form UI, n8n, or any HTTP client can drive the scraper.

Usage:
    python -m uvicorn api_server:app --host 0.0.0.0 --port 8080
    # or: python scraper.py serve --port 8080
"""

import logging
import os
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

import scraper_config
from engine import run_discovery, run_extraction
from page_access import browser_session
from scrape_errors import NavigationError, ScrapeError, ValidationError
from scraper_config import ScrapeSettings
from static_page import static_session

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Scraper API",
    description="Heuristic schema discovery and multi-page list extraction",
    version="1.0.0",
)

# --- Configuration ---

STATIC_MODE = os.environ.get("SCRAPER_STATIC", "").lower() in ("1", "true", "yes")
HEADLESS = os.environ.get("SCRAPER_HEADLESS", "true").lower() not in ("0", "false", "no")
COOKIES_FILE = os.environ.get("SCRAPER_COOKIES_FILE") or None


# --- Request models ---


class DiscoverBody(BaseModel):
    url: str = ""
    timeoutMs: Optional[int] = None


# --- Dependencies ---


def get_settings() -> ScrapeSettings:
    return ScrapeSettings(headless=HEADLESS, cookies_file=COOKIES_FILE)


def get_page_factory():
    """Page session factory; overridden in tests."""
    return static_session if STATIC_MODE else browser_session


# --- Error mapping ---


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


@app.exception_handler(ScrapeError)
async def scrape_error_handler(request: Request, exc: ScrapeError):
    if isinstance(exc, ValidationError):
        status_code = 400
    elif isinstance(exc, NavigationError):
        status_code = 502
    else:
        status_code = 500
    logger.warning(f"{request.url.path} failed ({status_code}): {exc}")
    return _error_response(status_code, str(exc))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"{request.url.path} failed: {type(exc).__name__}: {exc}", exc_info=exc)
    return _error_response(500, str(exc) or type(exc).__name__)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    messages = [e.get("msg", "") for e in exc.errors()]
    return _error_response(400, "; ".join(m for m in messages if m) or "Invalid request body")


# --- Routes ---


@app.get("/health")
def health():
    return {
        "status": "ok",
        "mode": "static" if STATIC_MODE else "browser",
        "max_duration_s": scraper_config.MAX_DURATION_S,
    }


@app.post("/api/discover")
def discover(body: DiscoverBody,
             settings: ScrapeSettings = Depends(get_settings),
             page_factory=Depends(get_page_factory)):
    """Propose a list selector, field suggestions and pagination for a URL."""
    result = run_discovery(body.url, body.timeoutMs, settings=settings, page_factory=page_factory)
    return result.to_response()


@app.post("/api/scrape")
def scrape(payload: dict[str, Any] = Body(...),
           settings: ScrapeSettings = Depends(get_settings),
           page_factory=Depends(get_page_factory)):
    """Run an extraction request (single or list mode)."""
    result = run_extraction(payload, settings=settings, page_factory=page_factory)
    return result.to_response()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    port = int(os.environ.get("SCRAPER_API_PORT", "8080"))
    uvicorn.run(app, host="0.0.0.0", port=port)
