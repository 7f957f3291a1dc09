"""Tests for ordered-fallback field extraction on HTML fixtures."""

from dealgalaxy.scrapers.extractor import (
    extract_listing,
    extract_product,
    first_match,
    parse_document,
)

BASE = "https://www.amazon.in"

PRODUCT_PAGE = """
<html><body>
  <span id="productTitle">  Wireless Earbuds Pro  </span>
  <div class="a-price a-price-current"><span class="a-offscreen">₹2,999.00</span></div>
  <span class="a-price-was"><span class="a-offscreen">₹4,499.00</span></span>
  <img id="landingImage" src="https://m.media-amazon.com/images/I/earbuds.jpg">
  <span id="acrPopover"><span class="a-icon-alt">4.3 out of 5 stars</span></span>
  <span id="acrCustomerReviewText">1,024 ratings</span>
  <div id="availability"><span>In stock</span></div>
  <i class="a-icon-prime" aria-label="Amazon Prime"></i>
</body></html>
"""

LEGACY_PRODUCT_PAGE = """
<html><body>
  <h1 class="a-size-large">Legacy Template Kettle</h1>
  <span id="priceblock_ourprice">₹1,299.00</span>
  <span id="priceblock_listprice">₹1,999.00</span>
  <img id="imgBlkFront" src="https://m.media-amazon.com/images/I/kettle.jpg">
</body></html>
"""

SEARCH_PAGE = """
<html><body><div class="s-main-slot">
  <div data-component-type="s-search-result" data-asin="B0AAAAAAA1">
    <h2><a href="/Widget-One/dp/B0AAAAAAA1/ref=sr_1_1"><span>Widget One</span></a></h2>
    <span class="a-price"><span class="a-offscreen">₹1,499.00</span></span>
    <span class="a-price a-text-price"><span class="a-offscreen">₹2,999.00</span></span>
    <img class="s-image" src="https://m.media-amazon.com/images/I/one.jpg">
  </div>
  <div data-component-type="s-search-result" data-asin=""></div>
  <div data-component-type="s-search-result" data-asin="B0AAAAAAA1">
    <h2><a href="/Widget-One/dp/B0AAAAAAA1/ref=sr_1_9"><span>Widget One (sponsored)</span></a></h2>
  </div>
  <div data-component-type="s-search-result" data-asin="B0AAAAAAA2">
    <h2><a href="/Widget-Two/dp/B0AAAAAAA2/ref=sr_1_2"><span>Widget Two</span></a></h2>
    <span class="a-price"><span class="a-offscreen">₹799.00</span></span>
  </div>
</div></body></html>
"""

DEALS_PAGE = """
<html><body>
  <div data-testid="deal-card">
    <a href="https://www.amazon.in/dp/B0DEAL0001"><img src="https://m.media-amazon.com/d1.jpg" alt="Deal One"></a>
    <div data-testid="deal-title">Deal One</div>
    <span data-testid="deal-price">₹499.00</span>
    <span data-testid="list-price">₹999.00</span>
    <span data-testid="percentage-off">50% off</span>
  </div>
  <div data-testid="deal-card">
    <a href="/deal/no-product-link"><span>Browse the sale</span></a>
    <div data-testid="deal-title">Lightning sale</div>
  </div>
</body></html>
"""


class TestProductExtraction:

    def test_extract_all_fields(self):
        raw = extract_product(parse_document(PRODUCT_PAGE))

        assert raw.title == "Wireless Earbuds Pro"
        assert raw.current_price == "₹2,999.00"
        assert raw.original_price == "₹4,499.00"
        assert raw.image_url == "https://m.media-amazon.com/images/I/earbuds.jpg"
        assert raw.rating == "4.3 out of 5 stars"
        assert raw.review_count == "1,024 ratings"
        assert raw.availability == "In stock"
        assert raw.prime_eligible is True

    def test_falls_back_to_later_selectors(self):
        raw = extract_product(parse_document(LEGACY_PRODUCT_PAGE))

        assert raw.title == "Legacy Template Kettle"
        assert raw.current_price == "₹1,299.00"
        assert raw.original_price == "₹1,999.00"
        assert raw.image_url == "https://m.media-amazon.com/images/I/kettle.jpg"
        assert raw.prime_eligible is False

    def test_missing_fields_are_none(self):
        raw = extract_product(parse_document("<html><body><p>Robot check</p></body></html>"))

        assert raw.title is None
        assert raw.current_price is None
        assert raw.rating is None
        assert raw.prime_eligible is False

    def test_first_match_skips_empty_values(self):
        document = parse_document('<div><h1 id="a">   </h1><h1 id="b">Second</h1></div>')
        assert first_match(document, [("#a", None), ("#b", None)]) == "Second"

    def test_listing_fallback_fills_gaps(self):
        detail = extract_product(parse_document(LEGACY_PRODUCT_PAGE))
        listing = extract_product(parse_document(PRODUCT_PAGE))

        merged = detail.with_fallback(listing)

        assert merged.title == "Legacy Template Kettle"
        assert merged.rating == "4.3 out of 5 stars"
        assert merged.prime_eligible is True


class TestListingExtraction:

    def test_search_results_are_deduplicated(self):
        entries = extract_listing(parse_document(SEARCH_PAGE), BASE, max_results=10)

        assert [e.product_url for e in entries] == [
            f"{BASE}/Widget-One/dp/B0AAAAAAA1/ref=sr_1_1",
            f"{BASE}/Widget-Two/dp/B0AAAAAAA2/ref=sr_1_2",
        ]
        assert entries[0].raw.title == "Widget One"
        assert entries[0].raw.current_price == "₹1,499.00"
        assert entries[0].raw.original_price == "₹2,999.00"
        assert entries[0].raw.image_url == "https://m.media-amazon.com/images/I/one.jpg"
        assert all(e.deal_type == "search_result" for e in entries)

    def test_max_results_caps_entries(self):
        entries = extract_listing(parse_document(SEARCH_PAGE), BASE, max_results=1)
        assert len(entries) == 1

    def test_zero_max_results(self):
        assert extract_listing(parse_document(SEARCH_PAGE), BASE, max_results=0) == []

    def test_deal_cards(self):
        entries = extract_listing(parse_document(DEALS_PAGE), BASE, max_results=10, kind="deals")

        assert len(entries) == 2
        first = entries[0]
        assert first.product_url == "https://www.amazon.in/dp/B0DEAL0001"
        assert first.raw.title == "Deal One"
        assert first.raw.current_price == "₹499.00"
        assert first.raw.original_price == "₹999.00"
        assert first.discount_text == "50% off"
        assert first.deal_type == "deal_of_day"
        # Entries without an identifier are kept; the caller decides what to skip
        assert entries[1].product_url == f"{BASE}/deal/no-product-link"
