"""Browser-backed Amazon scraper.

Ties the identity rotator, fetch sessions, field extractor and normalizer
together. One instance serves one pipeline run: proxies are loaded and the
browser launched when the run starts, and both are released when it ends.
"""

from typing import List, Optional
from urllib.parse import urlencode

import httpx
import structlog

from dealgalaxy.config import PipelineConfig
from dealgalaxy.scrapers.base import BaseProductSource, ListingEntry, NormalizedDeal
from dealgalaxy.scrapers.extractor import extract_listing, extract_product
from dealgalaxy.scrapers.utils.browser_manager import BrowserManager
from dealgalaxy.scrapers.utils.identity import IdentityRotator, load_proxies
from dealgalaxy.scrapers.utils.normalizer import normalize, require_identifier

logger = structlog.get_logger(__name__)

MAX_SUGGESTIONS = 10


class AmazonScraper(BaseProductSource):
    """Amazon product, deals and search scraper via Playwright."""

    def __init__(
        self,
        config: PipelineConfig,
        rotator: Optional[IdentityRotator] = None,
        browser_manager: Optional[BrowserManager] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.rotator = rotator
        self.browser = browser_manager or BrowserManager(config)
        self._http_client = http_client
        self.logger = logger.bind(scraper="amazon")

    async def start(self) -> None:
        """Load the proxy pool and launch the browser."""
        if self.rotator is None:
            proxies = await load_proxies(self.config, self._http_client)
            self.rotator = IdentityRotator(
                proxies,
                user_agents=self.config.user_agents,
                pool_size=self.config.proxy_pool_size,
            )
        await self.browser.start()
        self.logger.info("scraper_started", proxies=len(self.rotator))

    async def close(self) -> None:
        await self.browser.stop()

    async def __aenter__(self) -> "AmazonScraper":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _next_identity(self):
        if self.rotator is None:
            self.rotator = IdentityRotator(
                user_agents=self.config.user_agents,
                pool_size=self.config.proxy_pool_size,
            )
        return self.rotator.next()

    def search_url(self, keyword: str) -> str:
        return f"{self.config.base_url}/s?{urlencode({'k': keyword})}"

    def deals_url(self) -> str:
        return f"{self.config.base_url}/deals"

    async def scrape_product(
        self, product_url: str, listing: Optional[ListingEntry] = None
    ) -> NormalizedDeal:
        """Fetch a product detail page and normalize it."""
        # Fail before spending a fetch on a URL that can never yield a key
        require_identifier(product_url)

        raw = await self.browser.with_session(
            self._next_identity(), product_url, extract_product
        )
        if listing is not None:
            raw = raw.with_fallback(listing.raw)

        deal = normalize(
            raw,
            product_url,
            affiliate_tag=self.config.affiliate_tag,
            base_url=self.config.base_url,
            deal_type=listing.deal_type if listing else "deal",
        )
        self.logger.info(
            "product_scraped",
            asin=deal.asin,
            price=str(deal.price) if deal.price is not None else None,
        )
        return deal

    async def scrape_deal_listings(self, max_deals: int) -> List[ListingEntry]:
        """Fetch the deals index page."""
        url = self.deals_url()
        entries = await self.browser.with_session(
            self._next_identity(),
            url,
            lambda document: extract_listing(document, self.config.base_url, max_deals, kind="deals"),
        )
        self.logger.info("deal_listings_scraped", url=url, count=len(entries))
        return entries

    async def search_products(self, keyword: str, max_results: int) -> List[ListingEntry]:
        """Run a keyword search."""
        url = self.search_url(keyword)
        entries = await self.browser.with_session(
            self._next_identity(),
            url,
            lambda document: extract_listing(document, self.config.base_url, max_results, kind="search"),
        )
        self.logger.info("search_scraped", keyword=keyword, count=len(entries))
        return entries

    async def get_autocomplete_suggestions(self, query: str) -> List[str]:
        """Fetch keyword suggestions; returns an empty list on any failure."""
        owns_client = self._http_client is None
        client = self._http_client or httpx.AsyncClient()
        try:
            response = await client.get(
                f"{self.config.base_url}/api/s",
                params={"k": query, "ref": "nb_sb_noss"},
                headers={
                    "User-Agent": self._next_identity().user_agent,
                    "Accept": "application/json",
                },
                timeout=5.0,
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            self.logger.warning("autocomplete_failed", query=query, error=str(e))
            return []
        finally:
            if owns_client:
                await client.aclose()

        if not isinstance(payload, dict):
            return []
        suggestions = [
            item["value"]
            for item in payload.get("suggestions") or []
            if isinstance(item, dict) and item.get("value")
        ]
        return suggestions[:MAX_SUGGESTIONS]
