"""
Request interceptor: cache-first asset serving with a network fallback ladder.
"""

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Set

from shared.errors import NetworkError
from shared.logging import get_logger

from .models import AssetRequest, Destination, ResponseType, StoredResponse, resolve_url

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from .adapters.network import NetworkFetcher
    from .caching.tier_manager import CacheTierManager


FALLBACK_IMAGE_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="200" height="200" viewBox="0 0 200 200">'
    '<rect width="200" height="200" fill="#f0f0f0"/>'
    '<text x="50%" y="50%" text-anchor="middle" dy=".3em" fill="#999">Image not available</text>'
    "</svg>"
)

ROOT_DOCUMENTS = ("/index.html", "/")

WaitUntil = Callable[[Awaitable[Any]], None]


def fallback_image(url: str = "") -> StoredResponse:
    """Placeholder served when an image cannot be fetched."""
    return StoredResponse(
        url=url,
        status=200,
        headers={"Content-Type": "image/svg+xml"},
        body=FALLBACK_IMAGE_SVG.encode("utf-8"),
        type=ResponseType.BASIC,
    )


class RequestInterceptor:
    """Answers intercepted GET requests from the cache tiers or the network."""

    def __init__(
        self,
        tiers: "CacheTierManager",
        fetcher: "NetworkFetcher",
        site_origin: str,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.tiers = tiers
        self.fetcher = fetcher
        self.site_origin = site_origin
        self.metrics = metrics
        self.logger = get_logger("offline_agent.interceptor")
        self._background: Set["asyncio.Task[bool]"] = set()

    @staticmethod
    def should_intercept(request: AssetRequest) -> bool:
        return request.method.upper() == "GET" and request.scheme in ("http", "https")

    async def handle(
        self,
        request: AssetRequest,
        wait_until: Optional[WaitUntil] = None,
    ) -> Optional[StoredResponse]:
        """Resolve one request.

        Returns ``None`` for requests that are not intercepted; the host
        should perform those itself. Raises ``NetworkError`` when the
        network fails and no fallback applies.
        """
        if not self.should_intercept(request):
            return None

        cached = await self.tiers.lookup(request)
        if cached is not None:
            self.logger.debug("Serving from cache", url=request.url)
            return cached

        try:
            response = await self.fetcher.fetch(request)
        except NetworkError as exc:
            return await self._fallback(request, exc)

        if response.status != 200 or response.type != ResponseType.BASIC:
            return response

        self._schedule_put(request, response.clone(), wait_until)
        return response

    def _schedule_put(
        self,
        request: AssetRequest,
        response: StoredResponse,
        wait_until: Optional[WaitUntil],
    ) -> None:
        task = asyncio.ensure_future(self.tiers.put(request, response))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        if wait_until is not None:
            wait_until(task)

    async def _fallback(self, request: AssetRequest, error: NetworkError) -> StoredResponse:
        destination = request.destination

        if destination == Destination.DOCUMENT:
            for path in ROOT_DOCUMENTS:
                root = AssetRequest(url=resolve_url(self.site_origin, path), destination=Destination.DOCUMENT)
                cached = await self.tiers.peek(root)
                if cached is not None:
                    self._count_fallback(destination, "root_document")
                    self.logger.info("Serving cached root document offline", url=request.url)
                    return cached
            self._count_fallback(destination, "error")
            raise error

        if destination == Destination.IMAGE:
            self._count_fallback(destination, "placeholder")
            return fallback_image(request.url)

        self._count_fallback(destination, "error")
        raise error

    async def settle(self) -> None:
        """Wait for background cache writes started without an event."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def _count_fallback(self, destination: Destination, outcome: str) -> None:
        if self.metrics:
            self.metrics.increment_counter(
                "network_fallbacks_total",
                destination=destination.value or "empty",
                outcome=outcome,
            )
