"""Test doubles for the product source and sample data builders."""

from decimal import Decimal
from typing import Callable, Dict, List, Optional, Union

from dealgalaxy.scrapers.base import BaseProductSource, ListingEntry, NormalizedDeal, RawExtraction

BASE_URL = "https://www.amazon.in"

Scripted = Union[NormalizedDeal, Exception, List[Union[NormalizedDeal, Exception]]]


def product_url(asin: str) -> str:
    return f"{BASE_URL}/dp/{asin}"


def make_deal(
    asin: str,
    price: Optional[str] = "999.00",
    title: str = "Test Product",
    original_price: Optional[str] = None,
    category: Optional[str] = None,
    discount_percentage: int = 0,
    rating: Optional[float] = None,
    prime_eligible: bool = False,
) -> NormalizedDeal:
    return NormalizedDeal(
        asin=asin,
        title=title,
        product_url=product_url(asin),
        affiliate_url=f"{product_url(asin)}?tag=dealgalaxy-21",
        price=Decimal(price) if price is not None else None,
        original_price=Decimal(original_price) if original_price is not None else None,
        discount_percentage=discount_percentage,
        category=category,
        rating=rating,
        prime_eligible=prime_eligible,
    )


def make_listing(url: str, title: str = "Listed Product", price: Optional[str] = "₹999.00") -> ListingEntry:
    return ListingEntry(
        product_url=url,
        raw=RawExtraction(title=title, current_price=price),
        deal_type="deal_of_day",
    )


class FakeSource(BaseProductSource):
    """Scripted product source.

    ``products`` maps a URL to a deal, an exception to raise, or a list of
    either consumed one call at a time.
    """

    def __init__(self):
        self.products: Dict[str, Scripted] = {}
        self.listings: Union[List[ListingEntry], Exception] = []
        self.search_results: List[ListingEntry] = []
        self.scraped_urls: List[str] = []
        self.search_calls: List[tuple] = []
        self.on_scrape: Optional[Callable[[str], None]] = None

    def add_product(self, deal: NormalizedDeal) -> NormalizedDeal:
        self.products[deal.product_url] = deal
        return deal

    async def scrape_product(self, product_url: str, listing: Optional[ListingEntry] = None) -> NormalizedDeal:
        self.scraped_urls.append(product_url)
        if self.on_scrape is not None:
            self.on_scrape(product_url)

        scripted = self.products[product_url]
        if isinstance(scripted, list):
            scripted = scripted.pop(0)
        if isinstance(scripted, Exception):
            raise scripted
        return scripted

    async def scrape_deal_listings(self, max_deals: int) -> List[ListingEntry]:
        if isinstance(self.listings, Exception):
            raise self.listings
        return self.listings[:max_deals]

    async def search_products(self, keyword: str, max_results: int) -> List[ListingEntry]:
        self.search_calls.append((keyword, max_results))
        return self.search_results[:max_results]
