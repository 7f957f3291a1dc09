"""Deal cache synchronization and queries.

Handles idempotent upserts of scraped deals keyed on ASIN, and the
read-side listing, statistics and category queries over the cache.
"""

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dealgalaxy.core.exceptions import InvalidRequestError, NotFoundError
from dealgalaxy.models.base import ensure_utc, utcnow
from dealgalaxy.models.deal import DealCache
from dealgalaxy.scrapers.base import NormalizedDeal

logger = structlog.get_logger(__name__)

INSERTED = "inserted"
UPDATED = "updated"

DEAL_SORT_COLUMNS = {
    "fetched_at": DealCache.fetched_at,
    "discount_percentage": DealCache.discount_percentage,
    "price": DealCache.price,
    "rating": DealCache.rating,
}
SORT_ORDERS = ("ASC", "DESC")
MAX_PAGE_SIZE = 100
HIGH_DISCOUNT_THRESHOLD = 50


@dataclass
class UpsertResult:
    """Outcome of a single upsert."""

    outcome: str  # 'inserted' or 'updated'
    deal: DealCache


class DealCacheService:
    """Service for the shared deal cache."""

    def __init__(self, db: AsyncSession):
        """Initialize deal cache service.

        Args:
            db: Async database session
        """
        self.db = db
        self.logger = logger.bind(service="deal_cache_service")

    async def find_by_identifier(self, asin: str) -> Optional[DealCache]:
        result = await self.db.execute(select(DealCache).where(DealCache.asin == asin))
        return result.scalar_one_or_none()

    async def upsert(self, deal: NormalizedDeal) -> UpsertResult:
        """Insert or update the cache row for deal.asin.

        Mutable fields are overwritten on update; asin and created_at never
        change. fetched_at always moves strictly forward.

        Args:
            deal: Normalized deal from the scraper

        Returns:
            UpsertResult telling whether a row was inserted or updated
        """
        existing = await self.find_by_identifier(deal.asin)
        now = utcnow()

        if existing is None:
            row = DealCache(
                asin=deal.asin,
                title=deal.title,
                price=deal.price,
                original_price=deal.original_price,
                discount_percentage=deal.discount_percentage,
                image_url=deal.image_url,
                product_url=deal.product_url,
                affiliate_url=deal.affiliate_url,
                category=deal.category,
                rating=deal.rating,
                review_count=deal.review_count,
                availability=deal.availability,
                prime_eligible=deal.prime_eligible,
                deal_type=deal.deal_type,
                fetched_at=now,
                is_active=True,
            )
            self.db.add(row)
            await self.db.commit()
            self.logger.info("deal_inserted", asin=deal.asin)
            return UpsertResult(outcome=INSERTED, deal=row)

        previous = ensure_utc(existing.fetched_at)
        if previous is not None and now <= previous:
            now = previous + timedelta(microseconds=1)

        existing.title = deal.title
        existing.price = deal.price
        existing.original_price = deal.original_price
        existing.discount_percentage = deal.discount_percentage
        existing.image_url = deal.image_url
        existing.product_url = deal.product_url
        existing.affiliate_url = deal.affiliate_url
        existing.rating = deal.rating
        existing.review_count = deal.review_count
        existing.availability = deal.availability
        existing.prime_eligible = deal.prime_eligible
        existing.deal_type = deal.deal_type
        if deal.category:
            existing.category = deal.category
        existing.fetched_at = now

        await self.db.commit()
        self.logger.info("deal_updated", asin=deal.asin)
        return UpsertResult(outcome=UPDATED, deal=existing)

    async def list_deals(
        self,
        category: Optional[str] = None,
        min_discount: int = 0,
        max_price: Optional[Decimal] = None,
        sort_by: str = "fetched_at",
        sort_order: str = "DESC",
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[DealCache], int]:
        """List active deals with filters, sorting and pagination.

        Returns:
            Tuple of (deals, total matching count)

        Raises:
            InvalidRequestError: On bad sort parameters or page size
        """
        if limit > MAX_PAGE_SIZE or limit < 1:
            raise InvalidRequestError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
        sort_column = DEAL_SORT_COLUMNS.get(sort_by)
        order = sort_order.upper()
        if sort_column is None or order not in SORT_ORDERS:
            raise InvalidRequestError("Invalid sort parameters")

        conditions = [DealCache.is_active == True]  # noqa: E712
        if category:
            conditions.append(DealCache.category.ilike(f"%{category}%"))
        if min_discount > 0:
            conditions.append(DealCache.discount_percentage >= min_discount)
        if max_price is not None:
            conditions.append(DealCache.price <= max_price)

        where = and_(*conditions)
        ordering = sort_column.asc() if order == "ASC" else sort_column.desc()

        result = await self.db.execute(
            select(DealCache).where(where).order_by(ordering).limit(limit).offset(offset)
        )
        deals = list(result.scalars().all())

        total = await self.db.scalar(select(func.count(DealCache.id)).where(where))
        return deals, total or 0

    async def get_deal(self, deal_id: UUID) -> DealCache:
        """Get an active deal by id.

        Raises:
            NotFoundError: If no active deal has this id
        """
        result = await self.db.execute(
            select(DealCache).where(DealCache.id == deal_id, DealCache.is_active == True)  # noqa: E712
        )
        deal = result.scalar_one_or_none()
        if deal is None:
            raise NotFoundError("Deal", str(deal_id))
        return deal

    async def get_categories(self, limit: int = 20) -> List[Tuple[str, int]]:
        """Category labels of active deals with their deal counts."""
        deal_count = func.count(DealCache.id).label("deal_count")
        result = await self.db.execute(
            select(DealCache.category, deal_count)
            .where(DealCache.is_active == True, DealCache.category.is_not(None))  # noqa: E712
            .group_by(DealCache.category)
            .order_by(deal_count.desc())
            .limit(limit)
        )
        return [(row.category, row.deal_count) for row in result.all()]

    async def get_stats(self) -> dict:
        """Aggregate statistics over active deals."""
        result = await self.db.execute(
            select(
                func.count(DealCache.id),
                func.sum(case((DealCache.discount_percentage >= HIGH_DISCOUNT_THRESHOLD, 1), else_=0)),
                func.sum(case((DealCache.prime_eligible == True, 1), else_=0)),  # noqa: E712
                func.avg(DealCache.discount_percentage),
                func.max(DealCache.fetched_at),
            ).where(DealCache.is_active == True)  # noqa: E712
        )
        total, high_discount, prime, avg_discount, last_updated = result.one()
        return {
            "total_deals": int(total or 0),
            "high_discount_deals": int(high_discount or 0),
            "prime_deals": int(prime or 0),
            "average_discount": round(float(avg_discount or 0), 2),
            "last_updated": ensure_utc(last_updated),
        }
