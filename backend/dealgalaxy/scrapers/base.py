"""Base scraper interface and the value types passed through the pipeline.

RawExtraction -> (normalizer) -> NormalizedDeal -> (services) -> rows.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional


RAW_FIELDS = (
    "title",
    "current_price",
    "original_price",
    "image_url",
    "rating",
    "review_count",
    "availability",
    "prime_eligible",
)


@dataclass(frozen=True)
class RawExtraction:
    """Unparsed field values read from one page or one listing node."""

    title: Optional[str] = None
    current_price: Optional[str] = None
    original_price: Optional[str] = None
    image_url: Optional[str] = None
    rating: Optional[str] = None
    review_count: Optional[str] = None
    availability: Optional[str] = None
    prime_eligible: bool = False

    def with_fallback(self, other: "RawExtraction") -> "RawExtraction":
        """Fill fields that are missing here from another extraction."""
        updates = {}
        for f in fields(self):
            if f.name == "prime_eligible":
                updates[f.name] = self.prime_eligible or other.prime_eligible
            elif getattr(self, f.name) is None:
                updates[f.name] = getattr(other, f.name)
        return replace(self, **updates)

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ListingEntry:
    """One result node of a search or deals listing page."""

    product_url: str
    raw: RawExtraction
    discount_text: Optional[str] = None
    deal_type: str = "deal"


@dataclass
class NormalizedDeal:
    """Normalized deal snapshot produced for every successful scrape."""

    asin: str
    title: str
    product_url: str
    affiliate_url: str
    price: Optional[Decimal] = None
    original_price: Optional[Decimal] = None
    discount_percentage: int = 0
    image_url: Optional[str] = None
    category: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    availability: str = "Unknown"
    prime_eligible: bool = False
    deal_type: str = "deal"
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.asin:
            raise ValueError("asin is required")
        if not self.title:
            raise ValueError("title is required")
        if self.price is not None and self.price < 0:
            raise ValueError("price must be a non-negative Decimal")

    @property
    def has_price(self) -> bool:
        return self.price is not None and self.price > 0


class BaseProductSource(ABC):
    """Abstract source of product pages and listings.

    The pipeline services depend on this interface only, so a run can be
    driven by the browser-backed scraper or by a test double.
    """

    @abstractmethod
    async def scrape_product(
        self, product_url: str, listing: Optional[ListingEntry] = None
    ) -> NormalizedDeal:
        """Fetch and normalize one product detail page.

        Args:
            product_url: Absolute product URL
            listing: Listing entry the URL came from, used to fill gaps

        Raises:
            NavigationTimeout: If the page does not settle in time
            SessionError: On browser/transport failure
            IdentifierMissing: If the URL has no product identifier
        """

    @abstractmethod
    async def scrape_deal_listings(self, max_deals: int) -> List[ListingEntry]:
        """Fetch the deals index and return up to max_deals entries."""

    @abstractmethod
    async def search_products(self, keyword: str, max_results: int) -> List[ListingEntry]:
        """Run a keyword search and return up to max_results entries."""
