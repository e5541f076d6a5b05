"""
Tests for pagination detection, strategy resolution and page advancing.
"""

import unittest
from pathlib import Path

from models import PaginationDescriptor
from pagination import (
    ListSnapshot,
    PageAdvancer,
    ResolvedStrategy,
    detect_pagination,
    find_load_more,
    find_page_number_selectors,
    resolve_strategy
)
from scrape_errors import PaginationStallError
from static_page import StaticHtmlPage

FIXTURES = Path(__file__).parent / "fixtures"
LIST_URL = "https://shop.example.com/products"
PAGE_2_URL = "https://shop.example.com/products?page=2"


def _cards(start, count):
    return "".join(f'<div class="row"><span class="name">Row {i}</span></div>' for i in range(start, start + count))


class LoadMorePage(StaticHtmlPage):
    """Clicking the load-more button appends four rows."""

    def __init__(self, rows=4, max_rows=12):
        super().__init__()
        self.rows = rows
        self.max_rows = max_rows
        self._render()

    def _render(self):
        self.load_html("https://example.com/feed", (
            f"<html><body><div id='feed'>{_cards(0, self.rows)}</div>"
            "<button class='load-more'>Load more</button></body></html>"
        ))

    def click(self, element):
        self.clicked.append(element)
        if "load-more" in (element.get("class") or []) and self.rows < self.max_rows:
            self.rows += 4
            self._render()
        return True


class ViewMorePage(StaticHtmlPage):
    """A bare "View more" button with no id or class appends four rows."""

    def __init__(self):
        super().__init__()
        self.rows = 4
        self._render()

    def _render(self):
        self.load_html("https://example.com/feed", (
            f"<html><body><div id='feed'>{_cards(0, self.rows)}</div>"
            "<button>View more</button></body></html>"
        ))

    def click(self, element):
        self.clicked.append(element)
        if element.name == "button":
            self.rows += 4
            self._render()
        return True


def _snapshot(page, selector):
    def snap():
        items = page.query_all(selector)
        first = page.text(items[0])[:80] if items else ""
        return ListSnapshot(href=page.current_url(), count=len(items), first_text=first)
    return snap


class TestDetection(unittest.TestCase):

    def setUp(self):
        self.page = StaticHtmlPage({
            LIST_URL: (FIXTURES / "list_page_1.html").read_text(encoding="utf-8"),
        })
        self.page.navigate(LIST_URL)

    def test_numbered_pages_need_two_integers(self):
        self.assertIn(".pagination a", find_page_number_selectors(self.page))
        page = StaticHtmlPage({"https://example.com/": (
            '<html><body><div class="pagination"><a href="?p=2">2</a><a href="?p=0">Next</a></div></body></html>'
        )})
        page.navigate("https://example.com/")
        self.assertEqual(find_page_number_selectors(page), [])

    def test_load_more_has_priority(self):
        page = LoadMorePage()
        descriptor = detect_pagination(page)
        self.assertEqual(descriptor.type, "load_more_button")
        self.assertEqual(descriptor.load_more_selector, ".load-more")

    def test_load_more_by_text_without_class(self):
        page = StaticHtmlPage({"https://example.com/": (
            '<html><body><button id="more-btn">Show more results</button></body></html>'
        )})
        page.navigate("https://example.com/")
        self.assertEqual(find_load_more(page), (True, "button#more-btn"))

    def test_hidden_load_more_ignored(self):
        page = StaticHtmlPage({"https://example.com/": (
            '<html><body><button class="load-more" style="display:none">Load</button></body></html>'
        )})
        page.navigate("https://example.com/")
        self.assertEqual(find_load_more(page), (False, None))

    def test_prev_only_is_traditional(self):
        page = StaticHtmlPage({"https://example.com/": (
            '<html><body><a rel="prev" href="/list?page=4">Previous</a></body></html>'
        )})
        page.navigate("https://example.com/")
        descriptor = detect_pagination(page)
        self.assertEqual(descriptor.type, "traditional_pagination")
        self.assertEqual(descriptor.prev_button_selector, 'a[rel="prev"]')

    def test_disabled_next_is_ignored(self):
        page = StaticHtmlPage({"https://example.com/": (
            '<html><body><button class="next" disabled>Next</button></body></html>'
        )})
        page.navigate("https://example.com/")
        self.assertEqual(detect_pagination(page).type, "none")


class TestResolveStrategy(unittest.TestCase):

    def test_auto_prefers_load_more(self):
        descriptor = PaginationDescriptor(
            type="load_more_button", has_load_more=True, load_more_selector=".more",
            next_button_selector="a.next",
        )
        self.assertEqual(resolve_strategy("auto", descriptor).strategy, "load_more_button")

    def test_auto_traditional_from_next(self):
        descriptor = PaginationDescriptor(next_button_selector="a.next")
        self.assertEqual(resolve_strategy(None, descriptor).strategy, "traditional_pagination")

    def test_auto_defaults_to_infinite_scroll(self):
        self.assertEqual(resolve_strategy("auto", PaginationDescriptor()).strategy, "infinite_scroll")

    def test_overrides_win(self):
        descriptor = PaginationDescriptor(next_button_selector="a.next", page_number_selectors=[".pager a"])
        resolved = resolve_strategy(
            "auto", descriptor,
            next_button_selector="button.go-next",
            load_more_selector="#more",
            page_number_selectors=[".pages a"],
        )
        self.assertEqual(resolved.strategy, "load_more_button")
        self.assertEqual(resolved.load_more_selector, "#more")
        self.assertEqual(resolved.next_button_selector, "button.go-next")
        self.assertEqual(resolved.page_number_selectors, [".pages a"])

    def test_explicit_strategy_kept(self):
        descriptor = PaginationDescriptor(has_load_more=True)
        self.assertEqual(resolve_strategy("infinite_scroll", descriptor).strategy, "infinite_scroll")


class TestPageAdvancer(unittest.TestCase):

    def setUp(self):
        self.page = StaticHtmlPage({
            LIST_URL: (FIXTURES / "list_page_1.html").read_text(encoding="utf-8"),
            PAGE_2_URL: (FIXTURES / "list_page_2.html").read_text(encoding="utf-8"),
        })
        self.page.navigate(LIST_URL)
        self.snapshot = _snapshot(self.page, ".product-card")

    def test_pipeline_order(self):
        advancer = PageAdvancer(self.page, ResolvedStrategy("traditional_pagination"), self.snapshot)
        self.assertEqual(advancer.pipeline(), ["traditional_pagination", "infinite_scroll"])
        advancer = PageAdvancer(self.page, ResolvedStrategy("none"), self.snapshot)
        self.assertEqual(advancer.pipeline(), [])

    def test_numbered_click_goes_to_next_page(self):
        resolved = resolve_strategy("auto", detect_pagination(self.page))
        advancer = PageAdvancer(self.page, resolved, self.snapshot)
        self.assertEqual(advancer.advance(), "traditional_pagination")
        self.assertEqual(self.page.current_url(), PAGE_2_URL)
        self.assertIn("Chair 11", self.page.text(self.page.query_one(".product-card")))

    def test_next_button_fallback(self):
        resolved = ResolvedStrategy("traditional_pagination")
        advancer = PageAdvancer(self.page, resolved, self.snapshot)
        self.assertEqual(advancer.advance(), "traditional_pagination")
        self.assertEqual(self.page.current_url(), PAGE_2_URL)

    def test_load_more_falls_through_to_traditional(self):
        resolved = ResolvedStrategy("load_more_button", page_number_selectors=[".pagination a"])
        advancer = PageAdvancer(self.page, resolved, self.snapshot)
        self.assertEqual(advancer.advance(), "traditional_pagination")

    def test_load_more_click(self):
        page = LoadMorePage()
        resolved = resolve_strategy("auto", detect_pagination(page))
        advancer = PageAdvancer(page, resolved, _snapshot(page, ".row"))
        self.assertEqual(advancer.advance(), "load_more_button")
        self.assertEqual(len(page.query_all(".row")), 8)

    def test_unaddressable_view_more_is_clicked_by_text(self):
        page = ViewMorePage()
        descriptor = detect_pagination(page)
        self.assertEqual(descriptor.type, "load_more_button")
        self.assertIsNone(descriptor.load_more_selector)

        advancer = PageAdvancer(page, resolve_strategy("auto", descriptor), _snapshot(page, ".row"))
        self.assertEqual(advancer.advance(), "load_more_button")
        self.assertEqual(len(page.clicked), 1)
        self.assertEqual(len(page.query_all(".row")), 8)

    def test_stall_raises(self):
        page = StaticHtmlPage({"https://example.com/": f"<html><body>{_cards(0, 3)}</body></html>"})
        page.navigate("https://example.com/")
        resolved = resolve_strategy("auto", detect_pagination(page))
        self.assertEqual(resolved.strategy, "infinite_scroll")
        advancer = PageAdvancer(page, resolved, _snapshot(page, ".row"))
        with self.assertRaises(PaginationStallError):
            advancer.advance()
        self.assertGreater(page.scroll_count, 0)

    def test_none_strategy_raises_immediately(self):
        advancer = PageAdvancer(self.page, ResolvedStrategy("none"), self.snapshot)
        with self.assertRaises(PaginationStallError):
            advancer.advance()
        self.assertEqual(self.page.history, [LIST_URL])

    def test_broken_next_link_stalls(self):
        page = StaticHtmlPage({"https://example.com/list": (
            f'<html><body>{_cards(0, 3)}<a rel="next" href="/list?page=2">Next</a></body></html>'
        )})
        page.navigate("https://example.com/list")
        advancer = PageAdvancer(page, ResolvedStrategy("traditional_pagination"), _snapshot(page, ".row"))
        with self.assertRaises(PaginationStallError):
            advancer.advance()


if __name__ == '__main__':
    unittest.main()
