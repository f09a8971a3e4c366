"""Rate-limited HTTP fetching for scraper strategies."""

from typing import Any, Dict, Optional

import httpx
import structlog

from grocerywatch.config import settings
from grocerywatch.scrapers.utils.rate_limiter import RateLimiter
from grocerywatch.scrapers.utils.retry import http_retry

logger = structlog.get_logger(__name__)


class PageFetcher:
    """Thin wrapper around ``httpx.AsyncClient`` that gates every request.

    Each HTTP attempt, retries included, first takes one permit from the
    shared RateLimiter. Strategies receive a fetcher by composition.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.rate_limiter = rate_limiter
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            headers={
                "User-Agent": user_agent or settings.SCRAPER_USER_AGENT,
                "Accept-Language": "en-CA,en;q=0.9",
            },
            timeout=timeout or settings.SCRAPER_TIMEOUT_SECONDS,
            follow_redirects=True,
        )

    @http_retry
    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        await self.rate_limiter.acquire()
        logger.debug("fetching_url", method=method, url=url)
        response = await self.client.request(method, url, **kwargs)
        response.raise_for_status()
        return response

    async def get_text(self, url: str, params: Optional[Dict[str, Any]] = None) -> str:
        """GET ``url`` and return the body as text (HTML pages)."""
        response = await self._request("GET", url, params=params)
        return response.text

    async def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._request(
            "GET", url, params=params, headers={"Accept": "application/json"}
        )
        return response.json()

    async def post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """POST a JSON body and decode the JSON response (GraphQL endpoints)."""
        response = await self._request(
            "POST",
            url,
            json=payload,
            headers={"Accept": "application/json", **(headers or {})},
        )
        return response.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
