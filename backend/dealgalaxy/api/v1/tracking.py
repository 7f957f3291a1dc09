"""Tracked product API endpoints.

Every route is scoped to the owner named in the X-User-Id header.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dealgalaxy.config import PipelineConfig
from dealgalaxy.dependencies import get_db, get_owner_id, get_pipeline_config, get_product_source
from dealgalaxy.scrapers.base import BaseProductSource
from dealgalaxy.scrapers.scraper_service import ScraperService
from dealgalaxy.schemas import (
    ApiResponse,
    PaginationMeta,
    TrackedProductResponse,
    TrackedProductUpdateRequest,
    TrackingRefreshRequest,
    TrackingRefreshResponse,
    TrackProductRequest,
)
from dealgalaxy.services.tracking_service import TrackingService

router = APIRouter()


@router.get("", response_model=ApiResponse)
async def list_tracked_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query(
        "created_at",
        pattern="^(created_at|last_checked|current_price|target_price|title)$",
    ),
    sort_order: str = Query("DESC", pattern="^(ASC|DESC|asc|desc)$"),
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
):
    """List the owner's active tracked products."""
    products, total = await TrackingService(db).list_for_owner(
        owner_id,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return ApiResponse(
        status="success",
        data=[TrackedProductResponse.model_validate(p) for p in products],
        meta=PaginationMeta.build(page=page, limit=limit, total=total),
    )


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def track_product(
    body: TrackProductRequest,
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    source: BaseProductSource = Depends(get_product_source),
    config: PipelineConfig = Depends(get_pipeline_config),
):
    """Start tracking a product by URL or keyword.

    The product page is fetched immediately; fetch errors are returned to
    the caller rather than retried.
    """
    product = await ScraperService(db, source, config).track_product(
        owner_id,
        product_url=body.product_url,
        keyword=body.keyword,
        target_price=body.target_price,
    )
    return ApiResponse(status="success", data=TrackedProductResponse.model_validate(product))


@router.post("/refresh", response_model=ApiResponse)
async def refresh_tracked_prices(
    body: TrackingRefreshRequest,
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    source: BaseProductSource = Depends(get_product_source),
    config: PipelineConfig = Depends(get_pipeline_config),
):
    """Re-fetch prices for all of the owner's products, or just one."""
    summary = await ScraperService(db, source, config).refresh_tracked_prices(
        owner_id, product_id=body.product_id
    )
    return ApiResponse(
        status="success",
        data=TrackingRefreshResponse.model_validate(summary, from_attributes=True),
    )


@router.patch("/{product_id}", response_model=ApiResponse)
async def update_tracked_product(
    product_id: UUID,
    body: TrackedProductUpdateRequest,
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
):
    """Change the target price or active flag of one of the owner's products."""
    product = await TrackingService(db).update(
        product_id,
        owner_id,
        target_price=body.target_price,
        is_active=body.is_active,
        clear_target=body.clear_target,
    )
    return ApiResponse(status="success", data=TrackedProductResponse.model_validate(product))


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tracked_product(
    product_id: UUID,
    owner_id: str = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
):
    """Delete one of the owner's tracked products."""
    await TrackingService(db).delete(product_id, owner_id)
