"""
Tests for multi-page extraction through the engine entry point.

Every test drives StaticHtmlPage over saved pages; no network or browser.
"""

import unittest
from contextlib import contextmanager
from pathlib import Path

from engine import run_extraction
from list_scraper import ListScraper
from models import parse_extraction_request
from scrape_errors import NavigationError, ValidationError
from scraper_config import ScrapeSettings
from static_page import StaticHtmlPage

FIXTURES = Path(__file__).parent / "fixtures"
LIST_URL = "https://shop.example.com/products"
PAGE_2_URL = "https://shop.example.com/products?page=2"

FIELDS = [
    {"name": "title", "selector": ".title"},
    {"name": "price", "selector": ".price"},
    {"name": "link", "selector": "a", "type": "attr", "attr": "href"},
]


def _request(**overrides):
    data = {
        "url": LIST_URL,
        "mode": "list",
        "listItemSelector": ".product-card",
        "fields": FIELDS,
    }
    data.update(overrides)
    return data


def _factory(page):
    @contextmanager
    def factory(settings):
        yield page
    return factory


def _failing_factory(settings):
    raise AssertionError("page access must not happen")


class TestPaginatedExtraction(unittest.TestCase):

    def setUp(self):
        """Load the two saved list pages."""
        self.page = StaticHtmlPage({
            LIST_URL: (FIXTURES / "list_page_1.html").read_text(encoding="utf-8"),
            PAGE_2_URL: (FIXTURES / "list_page_2.html").read_text(encoding="utf-8"),
        })

    def run_request(self, **overrides):
        return run_extraction(_request(**overrides), page_factory=_factory(self.page))

    def titles(self, result):
        return [item["title"] for item in result.data]

    def test_limit_across_two_pages(self):
        result = self.run_request(pages=2, limit=15)
        self.assertEqual(result.count, 15)
        self.assertEqual(self.page.history, [LIST_URL, PAGE_2_URL])
        self.assertEqual(self.titles(result), [f"Chair {i}" for i in range(1, 16)])

    def test_limit_within_first_page(self):
        result = self.run_request(limit=4)
        self.assertEqual(self.titles(result), ["Chair 1", "Chair 2", "Chair 3", "Chair 4"])
        self.assertEqual(self.page.history, [LIST_URL])

    def test_offset_skips_leading_items(self):
        result = self.run_request(offset=3, limit=5)
        self.assertEqual(self.titles(result), ["Chair 4", "Chair 5", "Chair 6", "Chair 7", "Chair 8"])

    def test_offset_carries_across_pages(self):
        result = self.run_request(offset=12, limit=5, pages=2)
        self.assertEqual(self.titles(result), ["Chair 13", "Chair 14", "Chair 15", "Chair 16", "Chair 17"])

    def test_min_without_limit_keeps_whole_page(self):
        result = self.run_request(min=5)
        self.assertEqual(result.count, 10)
        self.assertEqual(self.page.history, [LIST_URL])

    def test_min_without_limit_paginates_until_reached(self):
        result = self.run_request(min=15)
        self.assertEqual(result.count, 20)
        self.assertEqual(self.page.history, [LIST_URL, PAGE_2_URL])

    def test_page_budget(self):
        result = self.run_request(pages=1)
        self.assertEqual(result.count, 10)
        self.assertEqual(self.page.history, [LIST_URL])

    def test_stall_returns_partial_results(self):
        # Page 3 isn't available: the second advance fails and the loop stops
        result = self.run_request(limit=50)
        self.assertEqual(result.count, 20)
        self.assertEqual(self.page.history, [LIST_URL, PAGE_2_URL])

    def test_strategy_none_reads_one_page(self):
        result = self.run_request(paginationStrategy="none", limit=50)
        self.assertEqual(result.count, 10)

    def test_exclusion_filter_across_pages(self):
        existing = [{"title": "Chair 1"}, {"title": "Chair 12"}]
        result = self.run_request(
            pages=2,
            exclusionFilter={"fieldName": "title", "existingItems": existing, "matchType": "exact"},
        )
        titles = self.titles(result)
        self.assertEqual(len(titles), 18)
        self.assertNotIn("Chair 1", titles)
        self.assertNotIn("Chair 12", titles)

    def test_response_shape(self):
        response = self.run_request(limit=2).to_response()
        self.assertEqual(response["ok"], True)
        self.assertEqual(response["mode"], "list")
        self.assertEqual(response["count"], 2)
        self.assertEqual(response["data"][0]["_index"], 0)


class TestCrossPageDeduplication(unittest.TestCase):

    def test_repeated_items_on_next_page_dropped(self):
        page_1 = (FIXTURES / "list_page_1.html").read_text(encoding="utf-8")
        # Page 2 repeats the first page's cards
        page_2 = page_1.replace('<li class="active"><span>1</span></li>', '<li><a href="/products">1</a></li>')
        page_2 = page_2.replace('<li><a href="/products?page=2">2</a></li>', '<li class="active"><span>2</span></li>')
        page = StaticHtmlPage({LIST_URL: page_1, PAGE_2_URL: page_2})
        page.navigate(LIST_URL)

        request = parse_extraction_request(_request(pages=2))
        scraper = ListScraper(page, request)
        items = scraper.scrape()
        self.assertEqual(len(items), 10)
        self.assertEqual(scraper.stats["pages_visited"], 2)
        self.assertEqual(scraper.stats["duplicates_skipped"], 10)
        self.assertEqual(scraper.stats["strategies_used"], ["traditional_pagination"])


class TestScraperStats(unittest.TestCase):

    def test_one_advance_for_two_pages(self):
        page = StaticHtmlPage({
            LIST_URL: (FIXTURES / "list_page_1.html").read_text(encoding="utf-8"),
            PAGE_2_URL: (FIXTURES / "list_page_2.html").read_text(encoding="utf-8"),
        })
        page.navigate(LIST_URL)
        scraper = ListScraper(page, parse_extraction_request(_request(pages=2, limit=15)))
        self.assertEqual(len(scraper.scrape()), 15)
        self.assertEqual(scraper.stats["strategies_used"], ["traditional_pagination"])
        self.assertEqual(scraper.stats["stop_reason"], "reached limit 15")

    def test_duration_ceiling_stops_between_pages(self):
        page = StaticHtmlPage({
            LIST_URL: (FIXTURES / "list_page_1.html").read_text(encoding="utf-8"),
            PAGE_2_URL: (FIXTURES / "list_page_2.html").read_text(encoding="utf-8"),
        })
        page.navigate(LIST_URL)
        request = parse_extraction_request(_request(pages=2))
        scraper = ListScraper(page, request, ScrapeSettings(max_duration_s=0))
        self.assertEqual(len(scraper.scrape()), 10)
        self.assertIn("duration ceiling", scraper.stats["stop_reason"])


class TestRequestFailures(unittest.TestCase):

    def test_min_greater_than_limit_rejected_before_page_access(self):
        with self.assertRaises(ValidationError):
            run_extraction(_request(min=10, limit=5), page_factory=_failing_factory)

    def test_missing_list_selector_rejected_before_page_access(self):
        with self.assertRaises(ValidationError):
            run_extraction(_request(listItemSelector=None), page_factory=_failing_factory)

    def test_unreachable_start_page(self):
        page = StaticHtmlPage({})
        with self.assertRaises(NavigationError):
            run_extraction(_request(), page_factory=_factory(page))

    def test_single_mode(self):
        page = StaticHtmlPage({LIST_URL: (FIXTURES / "list_page_1.html").read_text(encoding="utf-8")})
        result = run_extraction(
            {
                "url": LIST_URL,
                "mode": "single",
                "fields": [
                    {"name": "heading", "selector": "h1"},
                    {"name": "first_price", "selector": ".price"},
                    {"name": "missing", "selector": ".rating"},
                ],
            },
            page_factory=_factory(page),
        )
        self.assertEqual(result.to_response(), {
            "ok": True,
            "mode": "single",
            "data": {"heading": "Chairs", "first_price": "$10.00", "missing": None},
        })


if __name__ == '__main__':
    unittest.main()
