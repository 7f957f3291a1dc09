"""Ordered-fallback field extraction from retailer markup.

Markup differs between page templates and changes over time, so every
field is read through a list of (css selector, attribute) strategies and
the first non-empty match wins. A field whose strategies all miss is None.
"""

from typing import Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup, Tag

from dealgalaxy.scrapers.base import ListingEntry, RawExtraction
from dealgalaxy.scrapers.utils.normalizer import extract_identifier

logger = structlog.get_logger(__name__)

# (css selector, attribute); attribute None means the element's text
Strategy = Tuple[str, Optional[str]]
Document = Union[BeautifulSoup, Tag]


PRODUCT_FIELD_STRATEGIES: Dict[str, List[Strategy]] = {
    "title": [
        ("#productTitle", None),
        (".product-title", None),
        ("h1.a-size-large", None),
        ("#title", None),
    ],
    "current_price": [
        (".a-price-current .a-offscreen", None),
        ("#corePriceDisplay_desktop_feature_div .priceToPay .a-offscreen", None),
        (".a-price:not(.a-text-price) .a-offscreen", None),
        ("#priceblock_dealprice", None),
        ("#priceblock_ourprice", None),
        ("#price_inside_buybox", None),
    ],
    "original_price": [
        (".a-price-was .a-offscreen", None),
        ("#priceblock_listprice", None),
        (".a-text-strike .a-offscreen", None),
        (".basisPrice .a-offscreen", None),
        (".a-price.a-text-price .a-offscreen", None),
    ],
    "image_url": [
        ("#landingImage", "src"),
        ("#landingImage", "data-old-hires"),
        ("#imgBlkFront", "src"),
        (".a-dynamic-image", "src"),
    ],
    "rating": [
        ("#acrPopover .a-icon-alt", None),
        ('[data-hook="average-star-rating"] .a-icon-alt', None),
        (".a-icon-alt", None),
    ],
    "review_count": [
        ("#acrCustomerReviewText", None),
        ('[data-hook="total-review-count"]', None),
    ],
    "availability": [
        ("#availability span", None),
        ("#availability", None),
        (".a-color-success", None),
        (".a-color-state", None),
    ],
}

PRIME_SELECTORS = ['[aria-label*="Prime"]', ".a-icon-prime", "#prime-badge"]

DEAL_NODE_SELECTORS = [
    '[data-testid="deal-card"]',
    '[data-testid*="deal-card"]',
    '[class*="DealCard"]',
    '[data-component-type="s-search-result"]',
]

SEARCH_NODE_SELECTORS = [
    '[data-component-type="s-search-result"]',
    ".s-result-item[data-asin]",
    ".s-main-slot [data-asin]",
]

LISTING_LINK_STRATEGIES: List[Strategy] = [
    ('a[href*="/dp/"]', "href"),
    ('a[href*="/gp/product/"]', "href"),
    ("h2 a", "href"),
    ("a", "href"),
]

LISTING_FIELD_STRATEGIES: Dict[str, List[Strategy]] = {
    "title": [
        ('[data-testid="deal-title"]', None),
        ("h2 a span", None),
        (".s-title-instructions-style span", None),
        ("h2", None),
        ('[class*="title"]', None),
        ("img", "alt"),
    ],
    "current_price": [
        ('[data-testid="deal-price"]', None),
        (".a-price-current .a-offscreen", None),
        (".a-price:not(.a-text-price) .a-offscreen", None),
    ],
    "original_price": [
        ('[data-testid="list-price"]', None),
        (".a-price.a-text-price .a-offscreen", None),
        (".a-text-strike", None),
    ],
    "image_url": [
        (".s-image", "src"),
        ("img", "src"),
        ("img", "data-src"),
    ],
    "rating": [
        (".a-icon-alt", None),
        ('[aria-label*="out of 5 stars"]', "aria-label"),
    ],
    "review_count": [
        ('a[href*="customerReviews"] span', None),
        ('[aria-label$="ratings"]', "aria-label"),
    ],
    "availability": [
        (".a-color-success", None),
        (".a-color-state", None),
    ],
}

DISCOUNT_STRATEGIES: List[Strategy] = [
    ('[data-testid="percentage-off"]', None),
    ('[class*="savingsPercentage"]', None),
]


def parse_document(html: str) -> BeautifulSoup:
    """Parse page HTML into the document handle the extractor works on."""
    return BeautifulSoup(html, "lxml")


def first_match(node: Document, strategies: Sequence[Strategy]) -> Optional[str]:
    """Return the first non-empty value produced by the strategies."""
    for css, attr in strategies:
        element = node.select_one(css)
        if element is None:
            continue
        if attr:
            value = element.get(attr)
            if isinstance(value, list):
                value = " ".join(value)
        else:
            value = element.get_text(" ", strip=True)
        if value and value.strip():
            return value.strip()
    return None


def has_any(node: Document, selectors: Sequence[str]) -> bool:
    return any(node.select_one(css) is not None for css in selectors)


def _extract_fields(node: Document, strategies: Dict[str, List[Strategy]]) -> RawExtraction:
    values = {name: first_match(node, rules) for name, rules in strategies.items()}
    return RawExtraction(prime_eligible=has_any(node, PRIME_SELECTORS), **values)


def extract_product(document: Document) -> RawExtraction:
    """Extract raw fields from a single-product detail page."""
    return _extract_fields(document, PRODUCT_FIELD_STRATEGIES)


def _result_nodes(document: Document, node_selectors: Sequence[str]) -> List[Tag]:
    for css in node_selectors:
        nodes = [
            node
            for node in document.select(css)
            # search grids contain empty data-asin spacer nodes
            if node.get("data-asin", "x") != ""
        ]
        if nodes:
            return nodes
    return []


def extract_listing(
    document: Document,
    base_url: str,
    max_results: int,
    kind: str = "search",
) -> List[ListingEntry]:
    """Extract per-item raw fields from a search or deals listing page.

    Args:
        document: Parsed listing page
        base_url: Retailer base URL used to absolutize relative links
        max_results: Maximum number of entries to return
        kind: "search" or "deals"; selects node selectors and deal type

    Returns:
        Up to max_results entries, one per distinct product
    """
    if max_results <= 0:
        return []

    node_selectors = DEAL_NODE_SELECTORS if kind == "deals" else SEARCH_NODE_SELECTORS
    deal_type = "deal_of_day" if kind == "deals" else "search_result"

    entries: List[ListingEntry] = []
    seen = set()

    for node in _result_nodes(document, node_selectors):
        href = first_match(node, LISTING_LINK_STRATEGIES)
        raw = _extract_fields(node, LISTING_FIELD_STRATEGIES)
        if not href or not raw.title:
            continue

        product_url = urljoin(base_url + "/", href)
        key = extract_identifier(product_url) or product_url
        if key in seen:
            continue
        seen.add(key)

        entries.append(
            ListingEntry(
                product_url=product_url,
                raw=raw,
                discount_text=first_match(node, DISCOUNT_STRATEGIES),
                deal_type=deal_type,
            )
        )
        if len(entries) >= max_results:
            break

    logger.debug("listing_extracted", kind=kind, count=len(entries))
    return entries
