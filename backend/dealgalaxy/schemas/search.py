"""Product search Pydantic schemas."""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class SearchResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    asin: Optional[str] = None
    title: str
    price: Optional[Decimal] = None
    original_price: Optional[Decimal] = None
    discount_percentage: int = 0
    image_url: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    prime_eligible: bool = False
    product_url: str
    affiliate_url: str


class SuggestionsResponse(BaseModel):
    query: str
    suggestions: List[str]
