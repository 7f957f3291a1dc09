"""Append-only price history."""

from datetime import timedelta
from decimal import Decimal
from typing import List

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dealgalaxy.models.base import utcnow
from dealgalaxy.models.price_history import PriceHistory

logger = structlog.get_logger(__name__)


class PriceHistoryService:
    """Records and queries price observations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="price_history_service")

    async def append(self, asin: str, price: Decimal, source: str) -> PriceHistory:
        """Append one observation and commit it."""
        entry = PriceHistory(asin=asin, price=price, source=source, recorded_at=utcnow())
        self.db.add(entry)
        await self.db.commit()
        self.logger.debug("price_history_recorded", asin=asin, price=str(price), source=source)
        return entry

    async def get_history(self, asin: str, days: int = 30) -> List[PriceHistory]:
        """Observations for an ASIN within the last ``days`` days, oldest first."""
        since = utcnow() - timedelta(days=days)
        result = await self.db.execute(
            select(PriceHistory)
            .where(PriceHistory.asin == asin, PriceHistory.recorded_at >= since)
            .order_by(PriceHistory.recorded_at.asc())
        )
        return list(result.scalars().all())
