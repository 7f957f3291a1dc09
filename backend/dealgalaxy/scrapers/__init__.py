"""Scraper system for acquiring Amazon deals and product prices.

This package provides:
- The product source interface and the value types passed between stages
- Utility modules for identity rotation, fetch sessions and normalization
- The scraper orchestration service and the periodic scheduler
"""

from .base import (
    BaseProductSource,
    ListingEntry,
    NormalizedDeal,
    RawExtraction,
)

__all__ = [
    "BaseProductSource",
    "ListingEntry",
    "NormalizedDeal",
    "RawExtraction",
]
