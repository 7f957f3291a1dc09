"""Scraper orchestration service.

This service connects a product source with the database services. It runs
the bulk deal refresh, the bulk tracked-price refresh, single-product
tracking and keyword search.

Bulk runs process one item at a time and fold each item's outcome into a
summary. A failing item is logged and skipped; only an unreachable store
aborts the run.
"""

import asyncio
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, List, Optional
from uuid import UUID

import structlog
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from dealgalaxy.config import PipelineConfig
from dealgalaxy.core.exceptions import (
    DealGalaxyException,
    DuplicateTracking,
    ExtractionFailed,
    IdentifierMissing,
    InvalidRequestError,
    NotFoundError,
)
from dealgalaxy.models.tracked_product import TrackedProduct
from dealgalaxy.scrapers.base import BaseProductSource, ListingEntry, NormalizedDeal
from dealgalaxy.scrapers.utils.normalizer import (
    UNKNOWN_TITLE,
    PriceNormalizer,
    normalize,
    require_identifier,
)
from dealgalaxy.services.deal_cache_service import DealCacheService
from dealgalaxy.services.price_history_service import PriceHistoryService
from dealgalaxy.services.tracking_service import TrackingService, validate_target_price

logger = structlog.get_logger(__name__)

# Errors meaning the store itself is gone; these end a bulk run
STORE_UNAVAILABLE = (OperationalError, InterfaceError)

SOURCE_DEAL_REFRESH = "deal_refresh"
SOURCE_TRACKING = "tracking"
SOURCE_REFRESH = "refresh"


@dataclass(frozen=True)
class ItemOutcome:
    """Tagged result of processing one item in a bulk run."""

    ok: bool
    target: str
    status: Optional[str] = None
    alert_triggered: bool = False
    error: Optional[str] = None

    @classmethod
    def success(cls, target: str, status: str, alert_triggered: bool = False) -> "ItemOutcome":
        return cls(ok=True, target=target, status=status, alert_triggered=alert_triggered)

    @classmethod
    def failure(cls, target: str, error: str) -> "ItemOutcome":
        return cls(ok=False, target=target, error=error)


@dataclass
class DealsRefreshSummary:
    scraped: int = 0
    inserted: int = 0
    updated: int = 0
    failed: int = 0
    cancelled: bool = False
    completed_at: Optional[datetime] = None

    def record(self, outcome: ItemOutcome) -> "DealsRefreshSummary":
        if not outcome.ok:
            self.failed += 1
        elif outcome.status == "inserted":
            self.inserted += 1
        else:
            self.updated += 1
        return self

    def as_dict(self) -> dict:
        data = asdict(self)
        data["completed_at"] = self.completed_at.isoformat() if self.completed_at else None
        return data


@dataclass
class TrackingRefreshSummary:
    processed: int = 0
    updated_products: int = 0
    alerts_triggered: int = 0
    failed: int = 0
    cancelled: bool = False
    completed_at: Optional[datetime] = None

    def record(self, outcome: ItemOutcome) -> "TrackingRefreshSummary":
        if not outcome.ok:
            self.failed += 1
            return self
        self.updated_products += 1
        if outcome.alert_triggered:
            self.alerts_triggered += 1
        return self

    def as_dict(self) -> dict:
        data = asdict(self)
        data["completed_at"] = self.completed_at.isoformat() if self.completed_at else None
        return data


@dataclass
class SearchResult:
    """One keyword search hit, enriched with identifier and affiliate link."""

    title: str
    product_url: str
    affiliate_url: str
    asin: Optional[str] = None
    price: Optional[Decimal] = None
    original_price: Optional[Decimal] = None
    discount_percentage: int = 0
    image_url: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    prime_eligible: bool = False


class ScraperService:
    """Service for orchestrating a product source and processing results.

    This service acts as the bridge between the scraper and the database
    services. One instance is bound to one session and one source.
    """

    def __init__(self, db: AsyncSession, source: BaseProductSource, config: PipelineConfig):
        """Initialize scraper service.

        Args:
            db: Async database session
            source: Product source (browser scraper or a test double)
            config: Pipeline configuration for this run
        """
        self.db = db
        self.source = source
        self.config = config
        self.deal_cache = DealCacheService(db)
        self.tracking = TrackingService(db)
        self.price_history = PriceHistoryService(db)
        self.logger = logger.bind(service="scraper_service")

    async def _run_item(
        self, target: str, step: Callable[[], Awaitable[ItemOutcome]], **context: Any
    ) -> ItemOutcome:
        """Run one bulk item, turning any non-store failure into a failed outcome."""
        try:
            return await step()
        except STORE_UNAVAILABLE:
            raise
        except Exception as e:
            await self.db.rollback()
            self.logger.warning(
                "bulk_item_failed",
                target=target,
                error=str(e),
                error_type=type(e).__name__,
                **context,
            )
            return ItemOutcome.failure(target, str(e))

    async def refresh_deals(
        self,
        max_deals: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DealsRefreshSummary:
        """Scrape the deals listing and upsert every deal into the cache.

        Args:
            max_deals: Cap on listing entries (defaults to config.max_deals)
            cancel_event: When set, the run stops before the next item

        Returns:
            DealsRefreshSummary with scraped/inserted/updated/failed counts
        """
        limit = max_deals or self.config.max_deals
        summary = DealsRefreshSummary()
        self.logger.info("deals_refresh_started", max_deals=limit)

        try:
            entries = await self.source.scrape_deal_listings(limit)
        except DealGalaxyException as e:
            self.logger.error("deal_listing_failed", error=str(e), error_type=type(e).__name__)
            entries = []

        summary.scraped = len(entries)
        for entry in entries:
            if cancel_event is not None and cancel_event.is_set():
                summary.cancelled = True
                self.logger.info(
                    "deals_refresh_cancelled",
                    processed=summary.inserted + summary.updated + summary.failed,
                )
                break
            outcome = await self._run_item(
                entry.product_url,
                lambda entry=entry: self._refresh_one_deal(entry),
                url=entry.product_url,
            )
            summary.record(outcome)

        summary.completed_at = datetime.now(timezone.utc)
        self.logger.info("deals_refresh_complete", **summary.as_dict())
        return summary

    async def _refresh_one_deal(self, entry: ListingEntry) -> ItemOutcome:
        deal = await self.source.scrape_product(entry.product_url, listing=entry)
        if not deal.has_price:
            raise ExtractionFailed(entry.product_url)

        result = await self.deal_cache.upsert(deal)
        await self.price_history.append(deal.asin, deal.price, SOURCE_DEAL_REFRESH)
        return ItemOutcome.success(deal.asin, result.outcome)

    async def refresh_tracked_prices(
        self,
        owner_id: str,
        product_id: Optional[UUID] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TrackingRefreshSummary:
        """Re-fetch prices for an owner's tracked products.

        Args:
            owner_id: Owner whose products are refreshed
            product_id: Restrict the run to this one product
            cancel_event: When set, the run stops before the next item

        Returns:
            TrackingRefreshSummary

        Raises:
            NotFoundError: If product_id is unknown
            UnauthorizedError: If product_id belongs to another owner
        """
        products = await self.tracking.list_refresh_targets(owner_id, product_id)
        # Plain values up front; a rollback after a failed item expires ORM state
        targets = [(p.id, p.asin, p.product_url) for p in products]
        summary = TrackingRefreshSummary(processed=len(targets))

        self.logger.info(
            "tracking_refresh_started",
            owner_id=owner_id,
            product_id=str(product_id) if product_id else None,
            count=len(targets),
        )

        for tracked_id, asin, product_url in targets:
            if cancel_event is not None and cancel_event.is_set():
                summary.cancelled = True
                self.logger.info("tracking_refresh_cancelled", owner_id=owner_id)
                break
            outcome = await self._run_item(
                asin,
                lambda tracked_id=tracked_id, product_url=product_url: self._refresh_one_tracked(
                    tracked_id, product_url
                ),
                tracked_product_id=str(tracked_id),
                url=product_url,
            )
            summary.record(outcome)

        summary.completed_at = datetime.now(timezone.utc)
        self.logger.info("tracking_refresh_complete", owner_id=owner_id, **summary.as_dict())
        return summary

    async def _refresh_one_tracked(self, tracked_id: UUID, product_url: str) -> ItemOutcome:
        deal = await self.source.scrape_product(product_url)
        if not deal.has_price:
            raise ExtractionFailed(product_url)

        product = await self.db.get(TrackedProduct, tracked_id)
        if product is None:
            raise NotFoundError("TrackedProduct", str(tracked_id))

        triggered = await self.tracking.record_observation(product, deal.price)
        await self.price_history.append(product.asin, deal.price, SOURCE_REFRESH)
        return ItemOutcome.success(product.asin, "updated", alert_triggered=triggered)

    async def track_product(
        self,
        owner_id: str,
        product_url: Optional[str] = None,
        keyword: Optional[str] = None,
        target_price: Optional[Decimal] = None,
    ) -> TrackedProduct:
        """Start tracking a product from a URL or the first hit of a keyword search.

        Session errors are not caught here; the caller sees them directly.

        Raises:
            InvalidRequestError: If neither URL nor keyword is given
            IdentifierMissing: If the URL carries no product identifier
            DuplicateTracking: If the owner already tracks the product
            NotFoundError: If the keyword search returns nothing
            ExtractionFailed: If no price could be obtained
            NavigationTimeout, SessionError: On fetch failure
        """
        validate_target_price(target_price)
        keyword = (keyword or "").strip()
        if not product_url and not keyword:
            raise InvalidRequestError("Either product_url or keyword is required")

        if product_url:
            asin = require_identifier(product_url)
            # Skip the fetch when the answer is already known
            if await self.tracking.find_active(owner_id, asin) is not None:
                raise DuplicateTracking(owner_id, asin)
            deal = await self.source.scrape_product(product_url)
        else:
            entries = await self.source.search_products(keyword, 1)
            if not entries:
                raise NotFoundError("Product", keyword)
            entry = entries[0]
            deal = await self.source.scrape_product(entry.product_url, listing=entry)

        if not deal.has_price:
            raise ExtractionFailed(deal.product_url)

        product = await self.tracking.create(owner_id, deal, target_price)
        await self.price_history.append(deal.asin, deal.price, SOURCE_TRACKING)
        return product

    async def search_products(self, keyword: str, limit: int = 20) -> List[SearchResult]:
        """Keyword search, capped at the configured maximum."""
        keyword = (keyword or "").strip()
        if not keyword:
            raise InvalidRequestError("Search keyword is required")

        max_results = max(1, min(limit, self.config.max_search_results))
        entries = await self.source.search_products(keyword, max_results)
        results = [self._to_search_result(entry) for entry in entries[:max_results]]

        self.logger.info("search_complete", keyword=keyword, count=len(results))
        return results

    def _to_search_result(self, entry: ListingEntry) -> SearchResult:
        try:
            deal: NormalizedDeal = normalize(
                entry.raw,
                entry.product_url,
                affiliate_tag=self.config.affiliate_tag,
                base_url=self.config.base_url,
                deal_type=entry.deal_type,
            )
        except IdentifierMissing:
            price = PriceNormalizer.parse_price(entry.raw.current_price)
            original_price = PriceNormalizer.parse_price(entry.raw.original_price)
            return SearchResult(
                title=(entry.raw.title or "").strip() or UNKNOWN_TITLE,
                product_url=entry.product_url,
                affiliate_url=entry.product_url,
                price=price,
                original_price=original_price,
                discount_percentage=PriceNormalizer.discount_percentage(price, original_price),
                image_url=entry.raw.image_url,
                rating=PriceNormalizer.parse_rating(entry.raw.rating),
                review_count=PriceNormalizer.parse_review_count(entry.raw.review_count),
                prime_eligible=entry.raw.prime_eligible,
            )

        return SearchResult(
            title=deal.title,
            product_url=deal.product_url,
            affiliate_url=deal.affiliate_url,
            asin=deal.asin,
            price=deal.price,
            original_price=deal.original_price,
            discount_percentage=deal.discount_percentage,
            image_url=deal.image_url,
            rating=deal.rating,
            review_count=deal.review_count,
            prime_eligible=deal.prime_eligible,
        )
