"""Tests for the deal cache upsert and query service."""

from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dealgalaxy.core.exceptions import InvalidRequestError, NotFoundError
from dealgalaxy.models import DealCache, PriceHistory
from dealgalaxy.services.deal_cache_service import DealCacheService
from dealgalaxy.services.price_history_service import PriceHistoryService

from fakes import make_deal


async def _count_deals(db: AsyncSession) -> int:
    return await db.scalar(select(func.count(DealCache.id)))


class TestUpsert:

    async def test_insert_new_deal(self, test_db: AsyncSession):
        service = DealCacheService(test_db)

        deal = make_deal(
            "B0TEST0001", price="2999.00", original_price="4499.00", discount_percentage=33
        )
        result = await service.upsert(deal)

        assert result.outcome == "inserted"
        row = await service.find_by_identifier("B0TEST0001")
        assert row is not None
        assert row.price == Decimal("2999.00")
        assert row.discount_percentage == 33
        assert row.is_active is True
        assert row.fetched_at is not None

    async def test_update_overwrites_mutable_fields(self, test_db: AsyncSession):
        service = DealCacheService(test_db)

        first = await service.upsert(make_deal("B0TEST0001", title="Old title", price="100.00"))
        first_fetched = first.deal.fetched_at
        first_created = first.deal.created_at
        first_id = first.deal.id

        second = await service.upsert(make_deal("B0TEST0001", title="New title", price="80.00"))

        assert second.outcome == "updated"
        assert await _count_deals(test_db) == 1
        row = await service.find_by_identifier("B0TEST0001")
        assert row.id == first_id
        assert row.title == "New title"
        assert row.price == Decimal("80.00")
        assert row.fetched_at > first_fetched
        assert row.created_at == first_created

    async def test_update_keeps_category_when_not_scraped(self, test_db: AsyncSession):
        service = DealCacheService(test_db)

        await service.upsert(make_deal("B0TEST0001", category="Electronics"))
        await service.upsert(make_deal("B0TEST0001", category=None))

        row = await service.find_by_identifier("B0TEST0001")
        assert row.category == "Electronics"

    async def test_find_unknown_identifier(self, test_db: AsyncSession):
        assert await DealCacheService(test_db).find_by_identifier("B0MISSING0") is None


class TestQueries:

    @pytest_asyncio.fixture
    async def seeded(self, test_db: AsyncSession) -> DealCacheService:
        service = DealCacheService(test_db)
        await service.upsert(make_deal("B0TEST0001", price="500.00", category="Home & Kitchen", discount_percentage=60, rating=4.5, prime_eligible=True))
        await service.upsert(make_deal("B0TEST0002", price="1500.00", category="Electronics", discount_percentage=20, rating=3.9))
        await service.upsert(make_deal("B0TEST0003", price="50.00", category="Electronics", discount_percentage=50, rating=4.1, prime_eligible=True))
        await service.upsert(make_deal("B0TEST0004", price="700.00", category=None, discount_percentage=10))
        return service

    async def test_list_pagination_and_total(self, seeded: DealCacheService):
        deals, total = await seeded.list_deals(limit=2, offset=0)

        assert total == 4
        assert len(deals) == 2

    async def test_filters(self, seeded: DealCacheService):
        deals, total = await seeded.list_deals(category="electro", min_discount=30)
        assert total == 1
        assert deals[0].asin == "B0TEST0003"

        deals, total = await seeded.list_deals(max_price=Decimal("600"))
        assert {d.asin for d in deals} == {"B0TEST0001", "B0TEST0003"}

    async def test_sort_by_price_ascending(self, seeded: DealCacheService):
        deals, _ = await seeded.list_deals(sort_by="price", sort_order="asc")
        assert [d.asin for d in deals] == ["B0TEST0003", "B0TEST0001", "B0TEST0004", "B0TEST0002"]

    async def test_inactive_deals_hidden(self, seeded: DealCacheService, test_db: AsyncSession):
        row = await seeded.find_by_identifier("B0TEST0002")
        row.is_active = False
        await test_db.commit()

        _, total = await seeded.list_deals()
        assert total == 3
        with pytest.raises(NotFoundError):
            await seeded.get_deal(row.id)

    async def test_get_deal(self, seeded: DealCacheService):
        row = await seeded.find_by_identifier("B0TEST0001")
        assert (await seeded.get_deal(row.id)).asin == "B0TEST0001"

        with pytest.raises(NotFoundError):
            await seeded.get_deal(uuid4())

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"sort_by": "title"},
            {"sort_order": "sideways"},
            {"limit": 101},
            {"limit": 0},
        ],
    )
    async def test_invalid_query_rejected(self, seeded: DealCacheService, kwargs):
        with pytest.raises(InvalidRequestError):
            await seeded.list_deals(**kwargs)

    async def test_categories(self, seeded: DealCacheService):
        categories = await seeded.get_categories()
        assert categories == [("Electronics", 2), ("Home & Kitchen", 1)]

    async def test_stats(self, seeded: DealCacheService):
        stats = await seeded.get_stats()

        assert stats["total_deals"] == 4
        assert stats["high_discount_deals"] == 2
        assert stats["prime_deals"] == 2
        assert stats["average_discount"] == 35.0
        assert stats["last_updated"] is not None

    async def test_stats_empty_cache(self, test_db: AsyncSession):
        stats = await DealCacheService(test_db).get_stats()
        assert stats["total_deals"] == 0
        assert stats["average_discount"] == 0
        assert stats["last_updated"] is None


class TestPriceHistory:

    async def test_history_is_ascending_and_scoped(self, test_db: AsyncSession):
        service = PriceHistoryService(test_db)
        await service.append("B0TEST0001", Decimal("100.00"), "tracking")
        await service.append("B0TEST0001", Decimal("90.00"), "refresh")
        await service.append("B0TEST0002", Decimal("10.00"), "refresh")

        history = await service.get_history("B0TEST0001")

        assert [h.price for h in history] == [Decimal("100.00"), Decimal("90.00")]
        assert [h.source for h in history] == ["tracking", "refresh"]
        assert await test_db.scalar(select(func.count(PriceHistory.id))) == 3
