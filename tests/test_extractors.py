"""
Unit tests for extractor functions.

Tests the pure record functions and field extraction without requiring
network access.
"""

import unittest
from pathlib import Path

from extractors.fields import extract_field, extract_record, extract_single, read_value
from extractors.list_page import (
    ContentDeduper,
    apply_exclusion_filter,
    content_hash,
    empty_hash,
    is_excluded,
    normalize_url,
    resolve_http_url
)
from models import ExclusionFilter, FieldSpec
from static_page import StaticHtmlPage

FIXTURES = Path(__file__).parent / "fixtures"
LIST_URL = "https://shop.example.com/products"


class TestNormalizeUrl(unittest.TestCase):
    """Test URL normalization."""

    def test_absolute_url(self):
        """Absolute URLs should be returned as-is."""
        result = normalize_url("https://example.com/", "https://other.com/page")
        self.assertEqual(result, "https://other.com/page")

    def test_relative_url(self):
        """Relative URLs should be converted to absolute."""
        result = normalize_url("https://example.com/base/", "page.html")
        self.assertEqual(result, "https://example.com/base/page.html")

    def test_root_relative_url(self):
        """Root-relative URLs should work correctly."""
        result = normalize_url("https://example.com/base/", "/page.html")
        self.assertEqual(result, "https://example.com/page.html")

    def test_protocol_relative_url(self):
        """Protocol-relative URLs should inherit protocol."""
        result = normalize_url("https://example.com/", "//other.com/page")
        self.assertEqual(result, "https://other.com/page")


class TestResolveHttpUrl(unittest.TestCase):
    """Test detail URL resolution."""

    def test_relative_value(self):
        self.assertEqual(
            resolve_http_url("https://example.com/list?q=1", "/item/7"),
            "https://example.com/item/7"
        )

    def test_value_is_trimmed(self):
        self.assertEqual(
            resolve_http_url("https://example.com/", "  item/7 "),
            "https://example.com/item/7"
        )

    def test_non_http_schemes_rejected(self):
        self.assertIsNone(resolve_http_url("https://example.com/", "mailto:a@b.c"))
        self.assertIsNone(resolve_http_url("https://example.com/", "javascript:void(0)"))

    def test_empty_or_missing_value(self):
        self.assertIsNone(resolve_http_url("https://example.com/", None))
        self.assertIsNone(resolve_http_url("https://example.com/", "   "))


class TestContentHash(unittest.TestCase):
    """Test the deduplication key."""

    def test_normalized_join(self):
        item = {"title": "  Oak Chair ", "price": "$10"}
        self.assertEqual(content_hash(item, ["title", "price"]), "oak chair|$10")

    def test_only_requested_fields_count(self):
        a = {"_index": 0, "title": "Chair", "price": "$10"}
        b = {"_index": 5, "title": "chair", "price": "$10"}
        self.assertEqual(content_hash(a, ["title", "price"]), content_hash(b, ["title", "price"]))

    def test_missing_values_become_empty(self):
        self.assertEqual(content_hash({"title": None}, ["title", "price"]), "|")
        self.assertEqual(empty_hash(["title", "price"]), "|")


class TestContentDeduper(unittest.TestCase):
    """Test order-independent deduplication."""

    def setUp(self):
        self.fields = ["title", "price"]

    def test_drops_repeats(self):
        items = [
            {"title": "A", "price": "1"},
            {"title": "B", "price": "2"},
            {"title": " a ", "price": "1"},
        ]
        result = ContentDeduper(self.fields).filter(items)
        self.assertEqual([i["title"] for i in result], ["A", "B"])

    def test_drops_all_empty_records(self):
        items = [{"title": None, "price": ""}, {"title": "A", "price": None}]
        result = ContentDeduper(self.fields).filter(items)
        self.assertEqual(result, [{"title": "A", "price": None}])

    def test_shared_deduper_is_idempotent(self):
        items = [{"title": "A", "price": "1"}, {"title": "B", "price": "2"}]
        deduper = ContentDeduper(self.fields)
        self.assertEqual(len(deduper.filter(items)), 2)
        self.assertEqual(deduper.filter(items), [])
        self.assertEqual(len(deduper.seen), 2)


class TestExclusionFilter(unittest.TestCase):
    """Test exclusion of previously seen records."""

    def setUp(self):
        self.existing = [{"title": "Oak Chair"}, {"title": "  Pine Table "}]

    def test_exact_is_case_insensitive_and_trimmed(self):
        self.assertTrue(is_excluded({"title": " oak chair"}, "title", self.existing, "exact"))
        self.assertFalse(is_excluded({"title": "Oak Chair XL"}, "title", self.existing, "exact"))

    def test_contains_matches_both_directions(self):
        self.assertTrue(is_excluded({"title": "Big Oak Chair"}, "title", self.existing, "contains"))
        self.assertTrue(is_excluded({"title": "pine"}, "title", self.existing, "contains"))
        self.assertFalse(is_excluded({"title": "Sofa"}, "title", self.existing, "contains"))

    def test_starts_and_ends_with(self):
        self.assertTrue(is_excluded({"title": "Oak Chair (2 pack)"}, "title", self.existing, "startsWith"))
        self.assertTrue(is_excluded({"title": "Rustic Pine Table"}, "title", self.existing, "endsWith"))
        self.assertFalse(is_excluded({"title": "Rustic Pine Table"}, "title", self.existing, "startsWith"))

    def test_blank_values_never_match(self):
        self.assertFalse(is_excluded({"title": "   "}, "title", self.existing, "contains"))
        self.assertFalse(is_excluded({"title": None}, "title", self.existing, "exact"))

    def test_apply_filter_keeps_order(self):
        ef = ExclusionFilter(field_name="title", existing_items=self.existing, match_type="exact")
        items = [{"title": "Sofa"}, {"title": "OAK CHAIR"}, {"title": "Lamp"}]
        self.assertEqual(apply_exclusion_filter(items, ef), [{"title": "Sofa"}, {"title": "Lamp"}])

    def test_inactive_filter_is_noop(self):
        items = [{"title": "Oak Chair"}]
        self.assertEqual(apply_exclusion_filter(items, None), items)
        ef = ExclusionFilter(field_name="title", existing_items=[])
        self.assertEqual(apply_exclusion_filter(items, ef), items)


class TestFieldExtraction(unittest.TestCase):
    """Test field extraction against the sample list page."""

    def setUp(self):
        """Load sample HTML fixture."""
        html = (FIXTURES / "list_page_1.html").read_text(encoding="utf-8")
        self.page = StaticHtmlPage({LIST_URL: html})
        self.page.navigate(LIST_URL)
        self.card = self.page.query_one(".product-card")

    def test_text_is_trimmed(self):
        field = FieldSpec(name="title", selector=".title")
        self.assertEqual(extract_field(self.page, field, root=self.card), "Chair 1")

    def test_href_resolved_against_page(self):
        field = FieldSpec(name="link", selector="a", type="attr", attr="href")
        self.assertEqual(
            extract_field(self.page, field, root=self.card),
            "https://shop.example.com/products/chair-1"
        )

    def test_fallback_chain_first_match_wins(self):
        field = FieldSpec(name="title", selector=[".missing", "h3", ".price"])
        self.assertEqual(extract_field(self.page, field, root=self.card), "Chair 1")

    def test_no_match_is_none(self):
        field = FieldSpec(name="rating", selector=".rating")
        self.assertIsNone(extract_field(self.page, field, root=self.card))

    def test_invalid_selector_is_none(self):
        field = FieldSpec(name="broken", selector="div[[")
        self.assertIsNone(extract_field(self.page, field, root=self.card))

    def test_empty_selector_reads_item_itself(self):
        link = self.page.query_one("a.product-link", root=self.card)
        field = FieldSpec(name="label", selector="")
        self.assertEqual(extract_field(self.page, field, root=link), "Chair 1")

    def test_empty_text_is_none(self):
        html = '<div class="c"><span class="t">   </span></div>'
        page = StaticHtmlPage({"https://example.com/": html})
        page.navigate("https://example.com/")
        field = FieldSpec(name="t", selector=".t")
        self.assertIsNone(read_value(page, page.query_one(".t"), field))

    def test_extract_record_has_index(self):
        fields = [FieldSpec(name="title", selector=".title"), FieldSpec(name="price", selector=".price")]
        record = extract_record(self.page, self.card, fields, 0)
        self.assertEqual(record, {"_index": 0, "title": "Chair 1", "price": "$10.00"})

    def test_extract_single_document_level(self):
        fields = [FieldSpec(name="heading", selector="h1"), FieldSpec(name="nothing", selector=".nope")]
        self.assertEqual(extract_single(self.page, fields), {"heading": "Chairs", "nothing": None})


if __name__ == '__main__':
    unittest.main()
