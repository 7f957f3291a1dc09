"""Live product search endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dealgalaxy.config import PipelineConfig
from dealgalaxy.dependencies import (
    get_db,
    get_pipeline_config,
    get_product_source,
    get_suggestion_source,
)
from dealgalaxy.scrapers.amazon import AmazonScraper
from dealgalaxy.scrapers.base import BaseProductSource
from dealgalaxy.scrapers.scraper_service import ScraperService
from dealgalaxy.schemas import ApiResponse, SearchResultResponse, SuggestionsResponse

router = APIRouter()


@router.get("", response_model=ApiResponse)
async def search_products(
    q: str = Query(..., min_length=1, max_length=200, description="Search keyword"),
    limit: int = Query(20, ge=1, le=50, description="Maximum results"),
    db: AsyncSession = Depends(get_db),
    source: BaseProductSource = Depends(get_product_source),
    config: PipelineConfig = Depends(get_pipeline_config),
):
    """Search the retailer and return listing results with affiliate links."""
    results = await ScraperService(db, source, config).search_products(q, limit=limit)
    return ApiResponse(
        status="success",
        data=[SearchResultResponse.model_validate(r) for r in results],
    )


@router.get("/suggestions", response_model=ApiResponse)
async def search_suggestions(
    q: str = Query(..., min_length=2, max_length=100, description="Partial keyword"),
    scraper: AmazonScraper = Depends(get_suggestion_source),
):
    """Keyword suggestions; empty when the upstream lookup fails."""
    suggestions = await scraper.get_autocomplete_suggestions(q)
    return ApiResponse(status="success", data=SuggestionsResponse(query=q, suggestions=suggestions))
