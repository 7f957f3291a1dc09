"""SQLAlchemy models for DealGalaxy.

All models are imported here so metadata.create_all() sees every table.
"""

from dealgalaxy.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from dealgalaxy.models.deal import DealCache
from dealgalaxy.models.price_history import PriceHistory
from dealgalaxy.models.tracked_product import TrackedProduct

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "DealCache",
    "PriceHistory",
    "TrackedProduct",
]
