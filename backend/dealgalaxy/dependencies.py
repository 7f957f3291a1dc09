"""FastAPI dependency injection providers."""

from typing import AsyncGenerator, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from dealgalaxy.config import PipelineConfig, settings
from dealgalaxy.db.session import async_session_factory
from dealgalaxy.scrapers.amazon import AmazonScraper
from dealgalaxy.scrapers.base import BaseProductSource

OWNER_HEADER = "X-User-Id"
MAX_OWNER_ID_LENGTH = 64


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for request-scoped usage.

    Services commit their own writes; anything left uncommitted when the
    request fails is rolled back. Always closed after the request completes.
    """
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_pipeline_config() -> PipelineConfig:
    return settings.pipeline_config()


async def get_owner_id(
    x_user_id: Optional[str] = Header(None, alias=OWNER_HEADER),
) -> str:
    """Owner identity set by the upstream auth layer.

    Raises 401 if the header is missing or blank.
    """
    owner_id = (x_user_id or "").strip()
    if not owner_id or len(owner_id) > MAX_OWNER_ID_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing or invalid {OWNER_HEADER} header",
        )
    return owner_id


async def get_product_source(
    config: PipelineConfig = Depends(get_pipeline_config),
) -> AsyncGenerator[BaseProductSource, None]:
    """Yield a started browser scraper; the browser is closed after the request."""
    async with AmazonScraper(config) as scraper:
        yield scraper


def get_suggestion_source(
    config: PipelineConfig = Depends(get_pipeline_config),
) -> AmazonScraper:
    """Scraper used only for HTTP suggestion lookups; no browser is launched."""
    return AmazonScraper(config)
