"""Application configuration via Pydantic Settings."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dealgalaxy.scrapers.utils.user_agents import USER_AGENTS


@dataclass(frozen=True)
class PipelineConfig:
    """Explicit per-run scraper configuration.

    Built once from Settings and handed to every pipeline run, so nothing
    in the scraping path reads module-level state.
    """

    base_url: str = "https://www.amazon.in"
    affiliate_tag: str = "dealgalaxy-21"
    use_proxy: bool = False
    proxy_list_url: Optional[str] = None
    static_proxies: Tuple[str, ...] = ()
    proxy_pool_size: int = 50
    user_agents: Tuple[str, ...] = field(default_factory=lambda: tuple(USER_AGENTS))
    delay_min_ms: int = 1000
    delay_max_ms: int = 3000
    navigation_timeout_ms: int = 30000
    headless: bool = True
    max_deals: int = 50
    max_search_results: int = 50

    def __post_init__(self):
        if self.delay_min_ms < 0 or self.delay_max_ms < self.delay_min_ms:
            raise ValueError(
                f"Invalid delay bounds: min={self.delay_min_ms}ms max={self.delay_max_ms}ms"
            )
        if self.proxy_pool_size < 0:
            raise ValueError("proxy_pool_size must be non-negative")
        if not self.user_agents:
            raise ValueError("At least one user agent is required")


class Settings(BaseSettings):
    """Global application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./dealgalaxy.db"

    @model_validator(mode="after")
    def fix_database_url(self) -> "Settings":
        """Hosted Postgres URLs use postgresql:// but asyncpg needs postgresql+asyncpg://"""
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            self.DATABASE_URL = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgres://"):
            self.DATABASE_URL = url.replace("postgres://", "postgresql+asyncpg://", 1)
        return self

    # App
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    CORS_ORIGINS: str = "http://localhost:3000"  # Comma-separated

    # Retailer
    BASE_URL: str = "https://www.amazon.in"
    AMAZON_AFFILIATE_TAG: str = "dealgalaxy-21"

    # Proxy
    USE_PROXY: bool = False
    PROXY_LIST_URL: str = ""
    PROXY_LIST: str = ""  # Comma-separated list of host:port or proxy URLs
    PROXY_POOL_SIZE: int = 50

    # Pacing and timeouts (milliseconds)
    SCRAPING_DELAY_MIN: int = 1000
    SCRAPING_DELAY_MAX: int = 3000
    NAVIGATION_TIMEOUT_MS: int = 30000
    HEADLESS: bool = True

    # Run sizes
    MAX_DEALS: int = 50
    MAX_SEARCH_RESULTS: int = 50

    # Scheduler
    SCHEDULER_ENABLED: bool = False
    DEALS_REFRESH_INTERVAL_MINUTES: int = 60
    TRACKING_REFRESH_INTERVAL_MINUTES: int = 180

    def get_proxy_list(self) -> List[str]:
        """Parse PROXY_LIST into a list of proxy entries.

        Returns:
            List of proxy strings, empty if PROXY_LIST is not set
        """
        if not self.PROXY_LIST:
            return []
        return [p.strip() for p in self.PROXY_LIST.split(",") if p.strip()]

    def pipeline_config(self) -> PipelineConfig:
        """Build the immutable PipelineConfig for a single run."""
        return PipelineConfig(
            base_url=self.BASE_URL.rstrip("/"),
            affiliate_tag=self.AMAZON_AFFILIATE_TAG,
            use_proxy=self.USE_PROXY,
            proxy_list_url=self.PROXY_LIST_URL or None,
            static_proxies=tuple(self.get_proxy_list()),
            proxy_pool_size=self.PROXY_POOL_SIZE,
            delay_min_ms=self.SCRAPING_DELAY_MIN,
            delay_max_ms=self.SCRAPING_DELAY_MAX,
            navigation_timeout_ms=self.NAVIGATION_TIMEOUT_MS,
            headless=self.HEADLESS,
            max_deals=self.MAX_DEALS,
            max_search_results=self.MAX_SEARCH_RESULTS,
        )


settings = Settings()
