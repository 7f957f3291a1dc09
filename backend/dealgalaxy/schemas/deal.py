"""Deal cache Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class DealResponse(BaseModel):
    """Cached deal as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    asin: str
    title: str
    price: Optional[Decimal] = None
    original_price: Optional[Decimal] = None
    discount_percentage: int = 0
    image_url: Optional[str] = None
    product_url: str
    affiliate_url: str
    category: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    availability: str
    prime_eligible: bool
    deal_type: str
    fetched_at: datetime
    created_at: datetime


class CategoryCount(BaseModel):
    category: str
    deal_count: int


class DealStatsResponse(BaseModel):
    total_deals: int
    high_discount_deals: int
    prime_deals: int
    average_discount: float
    last_updated: Optional[datetime] = None


class DealsRefreshResponse(BaseModel):
    """Summary of one deal refresh run."""

    scraped: int
    inserted: int
    updated: int
    failed: int
    cancelled: bool = False
    completed_at: Optional[datetime] = None


class PriceHistoryPoint(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    price: Decimal
    source: str
    recorded_at: datetime


class PriceHistoryResponse(BaseModel):
    asin: str
    days: int
    points: List[PriceHistoryPoint]
