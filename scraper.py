"""
Heuristic web scraper CLI.

Commands:
- discover: propose a list selector, field suggestions and pagination for a URL
- extract: run an extraction request from a YAML file
- validate: check a request file without touching the network
- serve: run the HTTP API
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from engine import run_discovery, run_extraction
from page_access import browser_session
from request_loader import load_request, validate_request
from scrape_errors import ScrapeError
from scraper_config import ScrapeSettings
from static_page import static_session

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    # Logs go to stderr; stdout carries only JSON output
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )


def _emit(payload: dict, output: str = None) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output:
        path = Path(output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding='utf-8')
        logger.info(f"Results saved to: {path}")
    else:
        print(text)


def _fail(message: str) -> None:
    print(json.dumps({"error": message}, ensure_ascii=False))
    sys.exit(1)


def _page_factory(args):
    return static_session if args.static else browser_session


def _run_discover(args) -> None:
    settings = ScrapeSettings(headless=not args.visible)
    result = run_discovery(args.url, args.timeout_ms, settings=settings,
                           page_factory=_page_factory(args))
    _emit(result.to_response())


def _run_extract(args) -> None:
    request, settings = load_request(args.request)
    for warning in validate_request(request):
        logger.warning(f"  - {warning}")
    if args.visible:
        settings.headless = False

    result = run_extraction(request, settings=settings, page_factory=_page_factory(args))
    _emit(result.to_response(), args.output)


def _run_validate(args) -> None:
    logger.info(f"Loading request: {args.file}")
    request, settings = load_request(args.file)

    logger.info("✓ Request loaded successfully")
    logger.info(f"  URL: {request.url}")
    logger.info(f"  Mode: {request.mode}")
    if request.mode == 'list':
        logger.info(f"  List selector: {request.list_item_selector}")
        logger.info(f"  Pagination: {request.pagination_strategy}")
    logger.info(f"  Fields: {', '.join(request.field_names())}")
    if request.deep_search:
        logger.info(f"  Deep search via: {request.detail_url_field_name}")
    logger.info(f"  Navigation timeout: {settings.navigation_timeout_ms} ms")

    warnings = validate_request(request)
    if warnings:
        logger.warning("Validation warnings:")
        for warning in warnings:
            logger.warning(f"  - {warning}")
    else:
        logger.info("✓ No validation warnings")

    _emit({"ok": True, "warnings": warnings})


def _run_serve(args) -> None:
    import uvicorn

    if args.static:
        os.environ["SCRAPER_STATIC"] = "1"
    if args.visible:
        os.environ["SCRAPER_HEADLESS"] = "0"
    uvicorn.run("api_server:app", host=args.host, port=args.port)


def main(argv=None):
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description='Heuristic list and page scraper',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scraper.py discover https://example.com/search?q=chairs
  python scraper.py extract --request requests/chairs.yaml --output out/chairs.json
  python scraper.py validate requests/chairs.yaml
  python scraper.py --static extract --request requests/chairs.yaml
  python scraper.py serve --port 8080
        """
    )

    # Global options
    parser.add_argument('--visible', action='store_true', help='Run browser in visible mode')
    parser.add_argument('--static', action='store_true',
                        help='Fetch pages over HTTP without a browser (no JavaScript)')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')

    sub = parser.add_subparsers(dest='command', required=True)

    p_discover = sub.add_parser('discover', help='Suggest selectors for a page')
    p_discover.add_argument('url')
    p_discover.add_argument('--timeout-ms', type=int, help='Navigation timeout (10000-120000)')

    p_extract = sub.add_parser('extract', help='Run an extraction request file')
    p_extract.add_argument('--request', required=True, help='Request YAML file')
    p_extract.add_argument('--output', help='Write JSON results to this file instead of stdout')

    p_validate = sub.add_parser('validate', help='Check a request file')
    p_validate.add_argument('file')

    p_serve = sub.add_parser('serve', help='Run the HTTP API')
    p_serve.add_argument('--host', default='0.0.0.0')
    p_serve.add_argument('--port', type=int, default=8080)

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    handlers = {
        'discover': _run_discover,
        'extract': _run_extract,
        'validate': _run_validate,
        'serve': _run_serve,
    }

    try:
        handlers[args.command](args)
    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        _fail(str(e))
    except ScrapeError as e:
        logger.error(f"{type(e).__name__}: {e}")
        _fail(str(e))
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        _fail(str(e) or type(e).__name__)


if __name__ == "__main__":
    main()
