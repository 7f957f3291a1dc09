"""Proxy pool loading and round-robin identity rotation."""

import random
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence
from urllib.parse import urlsplit

import httpx
import structlog

from dealgalaxy.scrapers.utils.retry import http_retry
from dealgalaxy.scrapers.utils.user_agents import USER_AGENTS, get_random_user_agent

if TYPE_CHECKING:
    from dealgalaxy.config import PipelineConfig

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProxyEndpoint:
    """A single proxy address from the proxy source."""

    address: str
    port: int
    protocol: str = "http"

    @property
    def server(self) -> str:
        return f"{self.protocol}://{self.address}:{self.port}"

    @classmethod
    def parse(cls, raw: str) -> Optional["ProxyEndpoint"]:
        """Parse "host:port" or "scheme://host:port" into an endpoint.

        Returns:
            ProxyEndpoint, or None if the line is not a usable proxy
        """
        raw = raw.strip()
        if not raw:
            return None
        if "://" not in raw:
            raw = f"http://{raw}"
        try:
            parts = urlsplit(raw)
            port = parts.port
        except ValueError:
            return None
        if not parts.hostname or not port:
            return None
        return cls(address=parts.hostname, port=port, protocol=parts.scheme or "http")


@dataclass(frozen=True)
class Identity:
    """The (proxy, user agent) pair used by one fetch session."""

    user_agent: str
    proxy: Optional[ProxyEndpoint] = None

    def playwright_proxy(self) -> Optional[dict]:
        """Proxy settings in the shape Playwright's new_context() expects."""
        if self.proxy is None:
            return None
        return {"server": self.proxy.server}


class IdentityRotator:
    """Round-robin proxy rotation paired with random user agents.

    The pool is fixed at construction and capped at pool_size. An empty
    pool is not an error: every identity then uses a direct connection.
    The rotation index is guarded by a lock so concurrent sessions see a
    single global order.
    """

    def __init__(
        self,
        proxies: Iterable[ProxyEndpoint] = (),
        user_agents: Optional[Sequence[str]] = None,
        pool_size: int = 50,
        rng: Optional[random.Random] = None,
    ):
        self._proxies: List[ProxyEndpoint] = list(proxies)[:pool_size]
        self._user_agents = list(user_agents or USER_AGENTS)
        self._rng = rng
        self._index = 0
        self._lock = threading.Lock()

    @property
    def proxies(self) -> List[ProxyEndpoint]:
        return list(self._proxies)

    def __len__(self) -> int:
        return len(self._proxies)

    def next(self) -> Identity:
        """Return the next identity in rotation."""
        user_agent = get_random_user_agent(self._user_agents, self._rng)
        if not self._proxies:
            return Identity(user_agent=user_agent)

        with self._lock:
            proxy = self._proxies[self._index]
            self._index = (self._index + 1) % len(self._proxies)
        return Identity(user_agent=user_agent, proxy=proxy)


@http_retry
async def _download_proxy_list(client: httpx.AsyncClient, url: str) -> str:
    response = await client.get(url, timeout=10.0)
    response.raise_for_status()
    return response.text


async def load_proxies(
    config: "PipelineConfig",
    client: Optional[httpx.AsyncClient] = None,
) -> List[ProxyEndpoint]:
    """Load the proxy pool for one run.

    Static proxies from configuration come first, followed by the lines of
    the remote proxy list. Duplicates and malformed lines are dropped and
    the result is capped at the configured pool size. Any download failure
    degrades to whatever was already collected.

    Args:
        config: Pipeline configuration for this run
        client: Optional shared httpx client

    Returns:
        Ordered list of proxy endpoints, possibly empty
    """
    if not config.use_proxy:
        return []

    raw_entries: List[str] = list(config.static_proxies)

    if config.proxy_list_url:
        owns_client = client is None
        http = client or httpx.AsyncClient()
        try:
            body = await _download_proxy_list(http, config.proxy_list_url)
            raw_entries.extend(body.splitlines())
        except httpx.HTTPError as e:
            logger.warning(
                "proxy_list_download_failed",
                url=config.proxy_list_url,
                error=str(e),
            )
        finally:
            if owns_client:
                await http.aclose()

    proxies: List[ProxyEndpoint] = []
    seen = set()
    for raw in raw_entries:
        endpoint = ProxyEndpoint.parse(raw)
        if endpoint is None or endpoint in seen:
            continue
        seen.add(endpoint)
        proxies.append(endpoint)
        if len(proxies) >= config.proxy_pool_size:
            break

    logger.info("proxies_loaded", count=len(proxies))
    return proxies
