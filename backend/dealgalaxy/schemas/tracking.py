"""Tracked product Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TrackProductRequest(BaseModel):
    """Start tracking a product by URL or by the first hit of a keyword search."""

    product_url: Optional[str] = Field(None, max_length=2000)
    keyword: Optional[str] = Field(None, min_length=1, max_length=200)
    target_price: Optional[Decimal] = Field(None, gt=0)

    @model_validator(mode="after")
    def require_url_or_keyword(self):
        if not self.product_url and not self.keyword:
            raise ValueError("Either product_url or keyword is required")
        return self


class TrackedProductUpdateRequest(BaseModel):
    target_price: Optional[Decimal] = Field(None, gt=0)
    clear_target: bool = False
    is_active: Optional[bool] = None


class TrackedProductResponse(BaseModel):
    """Tracked product with its derived alert state."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    asin: str
    title: str
    current_price: Optional[Decimal] = None
    target_price: Optional[Decimal] = None
    image_url: Optional[str] = None
    product_url: str
    affiliate_url: str
    is_active: bool
    alert_sent: bool
    target_reached: bool
    state: str
    last_checked: Optional[datetime] = None
    created_at: datetime


class TrackingRefreshRequest(BaseModel):
    product_id: Optional[UUID] = None


class TrackingRefreshResponse(BaseModel):
    """Summary of one tracked-price refresh run."""

    processed: int
    updated_products: int
    alerts_triggered: int
    failed: int
    cancelled: bool = False
    completed_at: Optional[datetime] = None
