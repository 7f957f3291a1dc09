"""Pydantic schemas for the DealGalaxy API.

All request/response models are defined here for easy import.
"""

from dealgalaxy.schemas.common import (
    ApiResponse,
    ErrorDetail,
    ErrorResponse,
    HealthCheckResponse,
    PaginationMeta,
)
from dealgalaxy.schemas.deal import (
    CategoryCount,
    DealResponse,
    DealsRefreshResponse,
    DealStatsResponse,
    PriceHistoryPoint,
    PriceHistoryResponse,
)
from dealgalaxy.schemas.search import SearchResultResponse, SuggestionsResponse
from dealgalaxy.schemas.tracking import (
    TrackedProductResponse,
    TrackedProductUpdateRequest,
    TrackingRefreshRequest,
    TrackingRefreshResponse,
    TrackProductRequest,
)

__all__ = [
    # Common
    "ApiResponse",
    "ErrorDetail",
    "ErrorResponse",
    "HealthCheckResponse",
    "PaginationMeta",
    # Deal
    "CategoryCount",
    "DealResponse",
    "DealsRefreshResponse",
    "DealStatsResponse",
    "PriceHistoryPoint",
    "PriceHistoryResponse",
    # Search
    "SearchResultResponse",
    "SuggestionsResponse",
    # Tracking
    "TrackedProductResponse",
    "TrackedProductUpdateRequest",
    "TrackingRefreshRequest",
    "TrackingRefreshResponse",
    "TrackProductRequest",
]
