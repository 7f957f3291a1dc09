"""Scraper utilities for identity rotation, retries and data normalization."""

from .identity import Identity, IdentityRotator, ProxyEndpoint, load_proxies
from .normalizer import (
    PriceNormalizer,
    build_affiliate_url,
    extract_identifier,
    normalize,
    normalize_url,
    require_identifier,
)
from .retry import http_retry
from .user_agents import USER_AGENTS, get_random_user_agent


__all__ = [
    # Identity rotation
    "Identity",
    "IdentityRotator",
    "ProxyEndpoint",
    "load_proxies",
    # User agents
    "USER_AGENTS",
    "get_random_user_agent",
    # Normalization
    "PriceNormalizer",
    "build_affiliate_url",
    "extract_identifier",
    "normalize",
    "normalize_url",
    "require_identifier",
    # Retry decorators
    "http_retry",
]
