"""External service clients used by the assistant."""

from __future__ import annotations

import time
from typing import Callable, List, Optional

import httpx
import pydantic
import structlog

from .config import Settings
from .errors import SearchError
from .models import Article

logger = structlog.get_logger(__name__)


def create_articles_client(settings: Settings) -> httpx.AsyncClient:
    """Instantiate an asynchronous HTTP client for the article backend."""
    return httpx.AsyncClient(
        base_url=settings.articles_api_url, timeout=settings.articles_timeout
    )


def create_provider_client(settings: Settings) -> httpx.AsyncClient:
    """Instantiate an asynchronous HTTP client for the generation provider."""
    return httpx.AsyncClient(timeout=settings.provider_timeout)


class HttpArticleStore:
    """Read-only view of the article backend with a TTL cache.

    ``fetch_all`` makes at most one request per call. A failed request falls
    back to the last good (possibly stale) collection, or ``[]``.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self.client = client or create_articles_client(settings)
        self.cache_ttl = settings.article_cache_ttl
        self._clock = clock
        self._cache: List[Article] = []
        self._fetched_at: Optional[float] = None

    async def aclose(self) -> None:
        await self.client.aclose()

    def _cache_valid(self) -> bool:
        if not self._cache or self._fetched_at is None:
            return False
        return self._clock() - self._fetched_at < self.cache_ttl

    async def _request_all(self) -> List[Article]:
        try:
            response = await self.client.get("/all")
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise SearchError(
                code="ARTICLES_HTTP_ERROR",
                message=f"Failed to fetch articles: {exc.response.status_code}",
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise SearchError(
                code="ARTICLES_UNAVAILABLE", message=f"Failed to fetch articles: {exc}"
            ) from exc

        if not isinstance(payload, list):
            raise SearchError(
                code="ARTICLES_INVALID", message="Article payload is not a list"
            )
        try:
            return [Article.model_validate(item) for item in payload]
        except pydantic.ValidationError as exc:
            raise SearchError(
                code="ARTICLES_INVALID", message=f"Malformed article record: {exc}"
            ) from exc

    async def fetch_all(self) -> List[Article]:
        """Return the article collection, never raising."""
        if self._cache_valid():
            logger.debug("Using cached articles", article_count=len(self._cache))
            return list(self._cache)

        try:
            articles = await self._request_all()
        except SearchError as exc:
            logger.error("Failed to fetch articles", error=exc.message, code=exc.code)
            if self._cache:
                logger.info("Serving stale article cache", article_count=len(self._cache))
                return list(self._cache)
            return []

        self._cache = articles
        self._fetched_at = self._clock()
        logger.info("Fetched articles", article_count=len(articles))
        return list(articles)

    async def get(self, article_id: str) -> Optional[Article]:
        """Fetch a single article, ``None`` when missing or unreachable."""
        try:
            response = await self.client.get(f"/{article_id}")
            if response.status_code >= 400:
                return None
            return Article.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Failed to fetch article", article_id=article_id, error=str(exc))
            return None

    def clear_cache(self) -> None:
        self._cache = []
        self._fetched_at = None


__all__ = ["HttpArticleStore", "create_articles_client", "create_provider_client"]
