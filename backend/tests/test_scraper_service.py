"""Tests for the scraper orchestration service against a scripted source."""

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from dealgalaxy.core.exceptions import (
    DuplicateTracking,
    ExtractionFailed,
    IdentifierMissing,
    InvalidRequestError,
    NavigationTimeout,
    NotFoundError,
    SessionError,
    UnauthorizedError,
)
from dealgalaxy.models import DealCache, TrackedProduct
from dealgalaxy.scrapers.base import ListingEntry, RawExtraction
from dealgalaxy.scrapers.scraper_service import ScraperService
from dealgalaxy.services.price_history_service import PriceHistoryService
from dealgalaxy.services.tracking_service import TrackingService

from fakes import BASE_URL, make_deal, make_listing, product_url


@pytest.fixture
def service(test_db, fake_source, pipeline_config) -> ScraperService:
    return ScraperService(test_db, fake_source, pipeline_config)


async def _all_deals(db: AsyncSession):
    result = await db.execute(select(DealCache).order_by(DealCache.asin))
    return list(result.scalars().all())


class TestRefreshDeals:

    async def test_inserts_every_listed_deal(self, service, fake_source, test_db):
        for asin in ("B0DEAL0001", "B0DEAL0002", "B0DEAL0003"):
            fake_source.add_product(make_deal(asin, price="499.00"))
            fake_source.listings.append(make_listing(product_url(asin)))

        summary = await service.refresh_deals()

        assert summary.scraped == 3
        assert summary.inserted == 3
        assert summary.updated == 0
        assert summary.failed == 0
        assert summary.cancelled is False
        assert summary.completed_at is not None
        assert [d.asin for d in await _all_deals(test_db)] == ["B0DEAL0001", "B0DEAL0002", "B0DEAL0003"]

        history = await PriceHistoryService(test_db).get_history("B0DEAL0001")
        assert [(h.price, h.source) for h in history] == [(Decimal("499.00"), "deal_refresh")]

    async def test_second_run_updates(self, service, fake_source):
        fake_source.add_product(make_deal("B0DEAL0001"))
        fake_source.listings.append(make_listing(product_url("B0DEAL0001")))

        await service.refresh_deals()
        summary = await service.refresh_deals()

        assert summary.inserted == 0
        assert summary.updated == 1

    async def test_failing_items_are_skipped(self, service, fake_source, test_db):
        fake_source.add_product(make_deal("B0DEAL0001"))
        fake_source.products[product_url("B0DEAL0002")] = SessionError(product_url("B0DEAL0002"), "page crashed")
        fake_source.products[product_url("B0DEAL0003")] = NavigationTimeout(product_url("B0DEAL0003"))
        fake_source.add_product(make_deal("B0DEAL0004", price=None))
        fake_source.add_product(make_deal("B0DEAL0005"))
        fake_source.listings = [
            make_listing(product_url(asin))
            for asin in ("B0DEAL0001", "B0DEAL0002", "B0DEAL0003", "B0DEAL0004", "B0DEAL0005")
        ]

        summary = await service.refresh_deals()

        assert summary.scraped == 5
        assert summary.inserted == 2
        assert summary.failed == 3
        assert [d.asin for d in await _all_deals(test_db)] == ["B0DEAL0001", "B0DEAL0005"]

    async def test_listing_failure_gives_empty_summary(self, service, fake_source):
        fake_source.listings = SessionError(f"{BASE_URL}/deals", "browser closed")

        summary = await service.refresh_deals()

        assert summary.scraped == 0
        assert summary.inserted == summary.updated == summary.failed == 0
        assert fake_source.scraped_urls == []

    async def test_max_deals_caps_listing(self, service, fake_source):
        for i in range(4):
            asin = f"B0DEAL000{i}"
            fake_source.add_product(make_deal(asin))
            fake_source.listings.append(make_listing(product_url(asin)))

        summary = await service.refresh_deals(max_deals=2)

        assert summary.scraped == 2
        assert len(fake_source.scraped_urls) == 2

    async def test_cancel_stops_before_next_item(self, service, fake_source):
        cancel = asyncio.Event()
        for asin in ("B0DEAL0001", "B0DEAL0002", "B0DEAL0003"):
            fake_source.add_product(make_deal(asin))
            fake_source.listings.append(make_listing(product_url(asin)))
        fake_source.on_scrape = lambda url: cancel.set()

        summary = await service.refresh_deals(cancel_event=cancel)

        assert summary.cancelled is True
        assert summary.inserted == 1
        assert fake_source.scraped_urls == [product_url("B0DEAL0001")]


class TestRefreshTrackedPrices:

    async def _track(self, test_db, owner, asin, price="1000.00", target=None):
        return await TrackingService(test_db).create(owner, make_deal(asin, price=price), target)

    async def test_one_failure_does_not_stop_the_run(self, service, fake_source, test_db):
        products = [await self._track(test_db, "user-1", f"B0TRACK00{i}") for i in range(1, 4)]
        fake_source.add_product(make_deal("B0TRACK001", price="900.00"))
        fake_source.products[product_url("B0TRACK002")] = SessionError(product_url("B0TRACK002"), "reset")
        fake_source.add_product(make_deal("B0TRACK003", price="850.00"))

        summary = await service.refresh_tracked_prices("user-1")

        assert summary.processed == 3
        assert summary.updated_products == 2
        assert summary.failed == 1
        for product in products:
            await test_db.refresh(product)
        assert [p.current_price for p in products] == [
            Decimal("900.00"),
            Decimal("1000.00"),
            Decimal("850.00"),
        ]

        history = await PriceHistoryService(test_db).get_history("B0TRACK003")
        assert [h.source for h in history] == ["refresh"]

    async def test_alerts_are_counted_once(self, service, fake_source, test_db):
        product = await self._track(test_db, "user-1", "B0TRACK001", target=Decimal("800"))
        fake_source.products[product_url("B0TRACK001")] = [
            make_deal("B0TRACK001", price="750.00"),
            make_deal("B0TRACK001", price="700.00"),
        ]

        first = await service.refresh_tracked_prices("user-1")
        second = await service.refresh_tracked_prices("user-1")

        assert first.alerts_triggered == 1
        assert second.alerts_triggered == 0
        assert second.updated_products == 1
        await test_db.refresh(product)
        assert product.alert_sent is True

    async def test_only_owner_products_are_refreshed(self, service, fake_source, test_db):
        await self._track(test_db, "user-1", "B0TRACK001")
        await self._track(test_db, "user-2", "B0TRACK002")
        fake_source.add_product(make_deal("B0TRACK001"))

        summary = await service.refresh_tracked_prices("user-1")

        assert summary.processed == 1
        assert fake_source.scraped_urls == [product_url("B0TRACK001")]

    async def test_single_product_scope(self, service, fake_source, test_db):
        await self._track(test_db, "user-1", "B0TRACK001")
        target = await self._track(test_db, "user-1", "B0TRACK002")
        fake_source.add_product(make_deal("B0TRACK002"))

        summary = await service.refresh_tracked_prices("user-1", product_id=target.id)

        assert summary.processed == 1
        assert fake_source.scraped_urls == [product_url("B0TRACK002")]

        with pytest.raises(UnauthorizedError):
            await service.refresh_tracked_prices("user-2", product_id=target.id)
        with pytest.raises(NotFoundError):
            await service.refresh_tracked_prices("user-1", product_id=uuid4())

    async def test_single_inactive_product_is_not_refreshed(self, service, fake_source, test_db):
        product = await self._track(test_db, "user-1", "B0TRACK001", target=Decimal("800"))
        await TrackingService(test_db).update(product.id, "user-1", is_active=False)
        fake_source.add_product(make_deal("B0TRACK001", price="700.00"))

        summary = await service.refresh_tracked_prices("user-1", product_id=product.id)

        assert summary.processed == 0
        assert summary.updated_products == 0
        assert summary.alerts_triggered == 0
        assert fake_source.scraped_urls == []
        await test_db.refresh(product)
        assert product.current_price == Decimal("1000.00")
        assert product.alert_sent is False
        assert await PriceHistoryService(test_db).get_history("B0TRACK001") == []

    async def test_store_failure_aborts_the_run(self, service, fake_source, test_db):
        await self._track(test_db, "user-1", "B0TRACK001")
        fake_source.products[product_url("B0TRACK001")] = OperationalError(
            "UPDATE tracked_products", {}, Exception("database is gone")
        )

        with pytest.raises(OperationalError):
            await service.refresh_tracked_prices("user-1")

    async def test_no_products(self, service):
        summary = await service.refresh_tracked_prices("nobody")

        assert summary.processed == 0
        assert summary.completed_at is not None


class TestTrackProduct:

    async def test_track_by_url(self, service, fake_source, test_db):
        fake_source.add_product(make_deal("B0TRACK001", price="1499.00"))

        product = await service.track_product(
            "user-1", product_url=product_url("B0TRACK001"), target_price=Decimal("1200")
        )

        assert product.asin == "B0TRACK001"
        assert product.current_price == Decimal("1499.00")
        assert product.target_price == Decimal("1200")
        history = await PriceHistoryService(test_db).get_history("B0TRACK001")
        assert [h.source for h in history] == ["tracking"]

    async def test_duplicate_is_rejected_without_fetch(self, service, fake_source):
        fake_source.add_product(make_deal("B0TRACK001"))
        await service.track_product("user-1", product_url=product_url("B0TRACK001"))
        fake_source.scraped_urls.clear()

        with pytest.raises(DuplicateTracking):
            await service.track_product("user-1", product_url=product_url("B0TRACK001"))

        assert fake_source.scraped_urls == []

    async def test_track_by_keyword(self, service, fake_source):
        fake_source.add_product(make_deal("B0TRACK009", price="299.00"))
        fake_source.search_results = [make_listing(product_url("B0TRACK009"))]

        product = await service.track_product("user-1", keyword="  usb cable ")

        assert product.asin == "B0TRACK009"
        assert fake_source.search_calls == [("usb cable", 1)]

    async def test_keyword_without_results(self, service):
        with pytest.raises(NotFoundError):
            await service.track_product("user-1", keyword="nothing matches")

    async def test_url_without_identifier(self, service, fake_source):
        with pytest.raises(IdentifierMissing):
            await service.track_product("user-1", product_url=f"{BASE_URL}/deals")
        assert fake_source.scraped_urls == []

    async def test_fetch_errors_propagate(self, service, fake_source, test_db):
        url = product_url("B0TRACK001")
        fake_source.products[url] = SessionError(url, "browser closed")

        with pytest.raises(SessionError):
            await service.track_product("user-1", product_url=url)

        assert (await test_db.execute(select(TrackedProduct))).scalars().all() == []

    async def test_missing_price(self, service, fake_source):
        fake_source.add_product(make_deal("B0TRACK001", price=None))

        with pytest.raises(ExtractionFailed):
            await service.track_product("user-1", product_url=product_url("B0TRACK001"))

    async def test_requires_url_or_keyword(self, service):
        with pytest.raises(InvalidRequestError):
            await service.track_product("user-1", keyword="   ")


class TestSearch:

    async def test_results_are_capped_by_config(self, service, fake_source):
        fake_source.search_results = [
            make_listing(product_url(f"B0SRCH000{i}"), title=f"Result {i}") for i in range(8)
        ]

        results = await service.search_products("earbuds", limit=20)

        assert len(results) == 5
        assert fake_source.search_calls == [("earbuds", 5)]

    async def test_results_are_enriched(self, service, fake_source):
        fake_source.search_results = [
            ListingEntry(
                product_url=f"{BASE_URL}/Widget/dp/B0SRCH0001/ref=sr_1_1",
                raw=RawExtraction(
                    title="Widget",
                    current_price="₹1,500.00",
                    original_price="₹3,000.00",
                    rating="4.1 out of 5 stars",
                ),
                deal_type="search_result",
            ),
            make_listing(f"{BASE_URL}/sspa/click?adId=1", title="Sponsored", price="₹99.00"),
        ]

        results = await service.search_products("widget")

        first, second = results
        assert first.asin == "B0SRCH0001"
        assert first.price == Decimal("1500.00")
        assert first.discount_percentage == 50
        assert first.rating == 4.1
        assert "tag=dealgalaxy-21" in first.affiliate_url
        assert second.asin is None
        assert second.price == Decimal("99.00")
        assert second.affiliate_url == second.product_url

    async def test_empty_keyword(self, service):
        with pytest.raises(InvalidRequestError):
            await service.search_products("  ")
