"""Parsing of raw extracted strings into typed deal values.

Everything in this module is pure: no network access, no clock reads
other than the explicit ``fetched_at`` argument default.
"""

import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from dealgalaxy.core.exceptions import IdentifierMissing
from dealgalaxy.scrapers.base import NormalizedDeal, RawExtraction


# "₹2,999.00" -> "2,999.00"; the first numeric run wins
_PRICE_PATTERN = re.compile(r"\d+(?:,\d+)*(?:\.\d+)?")
_RATING_PATTERN = re.compile(r"\d+(?:\.\d+)?")
_COUNT_PATTERN = re.compile(r"\d+(?:,\d+)*")

# Identifier lives in a fixed path segment: /dp/XXXXXXXXXX, /gp/product/...,
# or failing that the first bare 10-char segment.
_IDENTIFIER_PATTERNS = [
    re.compile(r"/(?:dp|gp/product|gp/aw/d|exec/obidos/ASIN)/([A-Z0-9]{10})(?=[/?#]|$)"),
    re.compile(r"/([A-Z0-9]{10})(?=[/?#]|$)"),
]

AFFILIATE_PARAM = "tag"

# Query parameters stripped from the canonical product URL
TRACKING_PARAMS = {
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_content",
    "utm_term",
    "ref",
    "ref_",
    "pf_rd_r",
    "pf_rd_p",
    "pd_rd_r",
    "pd_rd_w",
    "pd_rd_wg",
    "content-id",
    "psc",
    "qid",
    "sr",
    "fbclid",
    "gclid",
}

UNKNOWN_TITLE = "Unknown Product"
UNKNOWN_AVAILABILITY = "Unknown"


class PriceNormalizer:
    """Numeric parsing for the raw strings produced by the field extractor.

    Absent or unparsable input always yields None, never an error.
    """

    @staticmethod
    def parse_price(raw: Optional[str]) -> Optional[Decimal]:
        """Parse the first numeric run of a currency string.

        Handles:
        - "₹2,999.00" -> 2999.00
        - "$1,299" -> 1299
        - "M.R.P.: ₹4,499.00" -> 4499.00

        Args:
            raw: Raw price string

        Returns:
            Decimal price value, or None if parsing fails
        """
        if not raw:
            return None
        match = _PRICE_PATTERN.search(raw)
        if not match:
            return None
        try:
            return Decimal(match.group(0).replace(",", ""))
        except InvalidOperation:
            return None

    @staticmethod
    def parse_rating(raw: Optional[str]) -> Optional[float]:
        """First decimal number in a rating string ("4.3 out of 5 stars" -> 4.3)."""
        if not raw:
            return None
        match = _RATING_PATTERN.search(raw)
        return float(match.group(0)) if match else None

    @staticmethod
    def parse_review_count(raw: Optional[str]) -> Optional[int]:
        """First integer run, ignoring thousands separators ("12,345 ratings" -> 12345)."""
        if not raw:
            return None
        match = _COUNT_PATTERN.search(raw)
        return int(match.group(0).replace(",", "")) if match else None

    @staticmethod
    def discount_percentage(
        price: Optional[Decimal], original_price: Optional[Decimal]
    ) -> int:
        """Whole-number discount, or 0 when it is undefined or negative."""
        if price is None or original_price is None:
            return 0
        if original_price <= 0 or price < 0 or original_price <= price:
            return 0
        ratio = (original_price - price) / original_price * 100
        return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def extract_identifier(url: Optional[str]) -> Optional[str]:
    """Extract the 10-character product identifier from a URL path.

    Args:
        url: Absolute or site-relative product URL

    Returns:
        Identifier string, or None if the path carries none
    """
    if not url:
        return None
    try:
        path = urlsplit(url).path
    except ValueError:
        path = url
    for pattern in _IDENTIFIER_PATTERNS:
        match = pattern.search(path)
        if match:
            return match.group(1)
    return None


def require_identifier(url: str) -> str:
    """Like extract_identifier but raises IdentifierMissing instead of guessing."""
    asin = extract_identifier(url)
    if not asin:
        raise IdentifierMissing(url)
    return asin


def normalize_url(url: str) -> str:
    """Normalize a URL by removing tracking parameters and the fragment.

    Args:
        url: URL to normalize

    Returns:
        Normalized URL
    """
    if not url:
        return url

    parts = urlsplit(url)
    query = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in TRACKING_PARAMS
    ]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), ""))


def build_affiliate_url(
    source_url: str, asin: str, affiliate_tag: str, base_url: str
) -> str:
    """Rewrite a product URL so it carries the affiliate tag.

    Any existing tag parameter is overwritten. URLs that cannot be parsed
    as absolute http(s) URLs fall back to ``{base}/dp/{asin}?tag={tag}``.
    """
    fallback = f"{base_url.rstrip('/')}/dp/{asin}?{urlencode({AFFILIATE_PARAM: affiliate_tag})}"
    try:
        parts = urlsplit(normalize_url(source_url))
    except ValueError:
        return fallback
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return fallback

    query = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k != AFFILIATE_PARAM
    ]
    query.append((AFFILIATE_PARAM, affiliate_tag))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), ""))


def normalize(
    raw: RawExtraction,
    source_url: str,
    affiliate_tag: str,
    base_url: str,
    deal_type: str = "deal",
    category: Optional[str] = None,
    fetched_at: Optional[datetime] = None,
) -> NormalizedDeal:
    """Turn one RawExtraction into a NormalizedDeal.

    Args:
        raw: Raw strings from the field extractor
        source_url: URL the extraction came from
        affiliate_tag: Commission-tracking tag
        base_url: Retailer base URL used for the affiliate fallback
        deal_type: Ingestion tag for the deal
        category: Optional category label
        fetched_at: Observation time (defaults to now, UTC)

    Returns:
        NormalizedDeal

    Raises:
        IdentifierMissing: If the URL carries no product identifier
    """
    asin = require_identifier(source_url)

    price = PriceNormalizer.parse_price(raw.current_price)
    original_price = PriceNormalizer.parse_price(raw.original_price)

    return NormalizedDeal(
        asin=asin,
        title=(raw.title or "").strip() or UNKNOWN_TITLE,
        price=price,
        original_price=original_price,
        discount_percentage=PriceNormalizer.discount_percentage(price, original_price),
        image_url=raw.image_url,
        product_url=source_url,
        affiliate_url=build_affiliate_url(source_url, asin, affiliate_tag, base_url),
        category=category,
        rating=PriceNormalizer.parse_rating(raw.rating),
        review_count=PriceNormalizer.parse_review_count(raw.review_count),
        availability=(raw.availability or "").strip() or UNKNOWN_AVAILABILITY,
        prime_eligible=bool(raw.prime_eligible),
        deal_type=deal_type,
        fetched_at=fetched_at or datetime.now(timezone.utc),
    )
