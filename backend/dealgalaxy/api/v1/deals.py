"""Deal cache API endpoints."""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dealgalaxy.config import PipelineConfig
from dealgalaxy.dependencies import get_db, get_pipeline_config, get_product_source
from dealgalaxy.scrapers.base import BaseProductSource
from dealgalaxy.scrapers.scraper_service import ScraperService
from dealgalaxy.schemas import (
    ApiResponse,
    CategoryCount,
    DealResponse,
    DealsRefreshResponse,
    DealStatsResponse,
    PaginationMeta,
    PriceHistoryPoint,
    PriceHistoryResponse,
)
from dealgalaxy.services.deal_cache_service import DealCacheService
from dealgalaxy.services.price_history_service import PriceHistoryService

router = APIRouter()


@router.get("", response_model=ApiResponse)
async def list_deals(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    category: Optional[str] = Query(None, description="Category substring filter"),
    min_discount: int = Query(0, ge=0, le=100, description="Minimum discount percentage"),
    max_price: Optional[Decimal] = Query(None, gt=0, description="Maximum price"),
    sort_by: str = Query(
        "fetched_at",
        pattern="^(fetched_at|discount_percentage|price|rating)$",
        description="Sort column",
    ),
    sort_order: str = Query("DESC", pattern="^(ASC|DESC|asc|desc)$"),
    db: AsyncSession = Depends(get_db),
):
    """List active cached deals with filtering and pagination."""
    service = DealCacheService(db)
    deals, total = await service.list_deals(
        category=category,
        min_discount=min_discount,
        max_price=max_price,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=(page - 1) * limit,
    )

    return ApiResponse(
        status="success",
        data=[DealResponse.model_validate(d) for d in deals],
        meta=PaginationMeta.build(page=page, limit=limit, total=total),
    )


@router.get("/categories", response_model=ApiResponse)
async def list_categories(db: AsyncSession = Depends(get_db)):
    """Top categories among active deals, by deal count."""
    rows = await DealCacheService(db).get_categories()
    return ApiResponse(
        status="success",
        data=[CategoryCount(category=name, deal_count=count) for name, count in rows],
    )


@router.get("/stats", response_model=ApiResponse)
async def deal_stats(db: AsyncSession = Depends(get_db)):
    """Aggregate statistics over active cached deals."""
    stats = await DealCacheService(db).get_stats()
    return ApiResponse(status="success", data=DealStatsResponse(**stats))


@router.get("/price-history/{asin}", response_model=ApiResponse)
async def price_history(
    asin: str,
    days: int = Query(30, ge=1, le=365, description="Look-back window in days"),
    db: AsyncSession = Depends(get_db),
):
    """Price observations for one product, oldest first."""
    entries = await PriceHistoryService(db).get_history(asin, days=days)
    return ApiResponse(
        status="success",
        data=PriceHistoryResponse(
            asin=asin,
            days=days,
            points=[PriceHistoryPoint.model_validate(e) for e in entries],
        ),
    )


@router.post("/refresh", response_model=ApiResponse)
async def refresh_deals(
    max_deals: Optional[int] = Query(None, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    source: BaseProductSource = Depends(get_product_source),
    config: PipelineConfig = Depends(get_pipeline_config),
):
    """Run one deal refresh now and return its summary."""
    summary = await ScraperService(db, source, config).refresh_deals(max_deals=max_deals)
    return ApiResponse(
        status="success",
        data=DealsRefreshResponse.model_validate(summary, from_attributes=True),
    )


@router.get("/{deal_id}", response_model=ApiResponse)
async def get_deal(
    deal_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get an active deal by ID."""
    deal = await DealCacheService(db).get_deal(deal_id)
    return ApiResponse(status="success", data=DealResponse.model_validate(deal))
