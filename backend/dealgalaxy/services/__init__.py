"""Services module for data operations on the deal cache and tracked products.

Each service wraps one AsyncSession and commits its own writes.
"""

from dealgalaxy.services.deal_cache_service import DealCacheService, UpsertResult
from dealgalaxy.services.price_history_service import PriceHistoryService
from dealgalaxy.services.tracking_service import TrackingService

__all__ = [
    "DealCacheService",
    "UpsertResult",
    "PriceHistoryService",
    "TrackingService",
]
