"""
Cache tier manager for the offline agent.
"""

import asyncio
import posixpath
from collections import OrderedDict
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple
from urllib.parse import urlparse

from shared.errors import CacheWriteError, NetworkError, SeedFailure, StaleTierWriteError
from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, call_with_retry

from ..models import AssetRequest, ResponseType, StoredResponse

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from .tier_store import TierStore


CACHEABLE_EXTENSIONS = frozenset({"css", "js", "png", "jpg", "jpeg", "gif", "svg", "webp", "html"})

Fetch = Callable[[AssetRequest], Awaitable[StoredResponse]]


def is_cacheable(request: AssetRequest, response: StoredResponse) -> bool:
    """Dynamic-tier eligibility: 200, same-origin, allow-listed extension."""
    if request.method.upper() != "GET":
        return False
    if response.status != 200 or response.type != ResponseType.BASIC:
        return False
    extension = posixpath.splitext(urlparse(request.url).path)[1].lstrip(".").lower()
    return extension in CACHEABLE_EXTENSIONS


class CacheTierManager:
    """Owner of the static and dynamic tiers of one agent version.

    The static tier is written once by ``seed``; the dynamic tier only by
    ``put``, and only while this version is the active one or before any
    activation. Lookups consult static before dynamic. When
    ``dynamic_max_bytes`` is positive the dynamic tier is trimmed least
    recently used first.
    """

    def __init__(
        self,
        store: "TierStore",
        static_name: str,
        dynamic_name: str,
        *,
        fetch: Optional[Fetch] = None,
        dynamic_max_bytes: int = 0,
        seed_attempts: int = 1,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.static_name = static_name
        self.dynamic_name = dynamic_name
        self.fetch = fetch
        self.dynamic_max_bytes = dynamic_max_bytes
        self.metrics = metrics
        self.logger = get_logger("offline_agent.cache_tiers")
        self._seed_retry = RetryConfig(max_attempts=seed_attempts, base_delay=0.5, max_delay=5.0)
        self._dynamic_index: Optional["OrderedDict[str, int]"] = None
        self._dynamic_bytes = 0
        self._index_lock = asyncio.Lock()

    @property
    def tier_names(self) -> Set[str]:
        return {self.static_name, self.dynamic_name}

    async def seed(self, urls: Iterable[str]) -> None:
        """Fetch every URL and commit them to the static tier together."""
        if self.fetch is None:
            raise SeedFailure("No fetcher configured for seeding")

        requests = [AssetRequest(url=url) for url in dict.fromkeys(urls)]
        self.logger.info("Caching static files", tier=self.static_name, count=len(requests))

        results = await asyncio.gather(
            *(self._fetch_for_seed(request) for request in requests),
            return_exceptions=True,
        )

        entries: Dict[str, StoredResponse] = {}
        failures: List[Dict[str, str]] = []
        for request, outcome in zip(requests, results):
            if isinstance(outcome, BaseException):
                failures.append({"url": request.url, "error": str(outcome)})
            elif not outcome.ok:
                failures.append({"url": request.url, "error": f"HTTP {outcome.status}"})
            else:
                entries[request.key] = outcome

        if failures:
            self.logger.error("Error caching static files", tier=self.static_name, failures=failures)
            raise SeedFailure(
                f"{len(failures)} of {len(requests)} static assets could not be fetched",
                details={"tier": self.static_name, "failures": failures},
            )

        try:
            await self.store.put_many(self.static_name, entries)
        except Exception as exc:
            raise SeedFailure(
                "Static tier could not be written",
                details={"tier": self.static_name, "error": str(exc)},
            ) from exc

        self.logger.info("Static files cached successfully", tier=self.static_name, count=len(entries))

    async def _fetch_for_seed(self, request: AssetRequest) -> StoredResponse:
        try:
            return await call_with_retry(
                self.fetch, request, exceptions=(NetworkError,), config=self._seed_retry
            )
        except RetryError as exc:
            raise exc.last_exception from exc

    async def lookup(self, request: AssetRequest) -> Optional[StoredResponse]:
        """Find a stored response, static tier first."""
        tier, cached = await self._find(request)
        if cached is None:
            self._count("cache_misses_total")
            return None

        if tier == self.dynamic_name:
            await self._touch(request.key)
        self._count("cache_hits_total", tier="static" if tier == self.static_name else "dynamic")
        return cached

    async def peek(self, request: AssetRequest) -> Optional[StoredResponse]:
        """Like ``lookup`` but leaves hit/miss counters and LRU order alone."""
        return (await self._find(request))[1]

    async def _find(self, request: AssetRequest) -> Tuple[Optional[str], Optional[StoredResponse]]:
        for tier in (self.static_name, self.dynamic_name):
            try:
                cached = await self.store.match(tier, request.key)
            except Exception as exc:
                self.logger.error("Cache fetch error", tier=tier, url=request.url, error=str(exc))
                continue
            if cached is not None:
                return tier, cached
        return None, None

    async def put(self, request: AssetRequest, response: StoredResponse) -> bool:
        """Best-effort dynamic-tier write; never raises."""
        if not is_cacheable(request, response):
            return False

        try:
            active = await self.store.active_tiers()
            if active is not None and self.dynamic_name not in active:
                raise StaleTierWriteError(self.dynamic_name)

            size = response.size
            if self.dynamic_max_bytes and size > self.dynamic_max_bytes:
                self.logger.info(
                    "Response larger than dynamic cache budget, not caching",
                    url=request.url,
                    size=size,
                    budget=self.dynamic_max_bytes,
                )
                return False

            await self.store.put(self.dynamic_name, request.key, response)
            # an activation may have landed while the write was in flight
            active = await self.store.active_tiers()
            if active is not None and self.dynamic_name not in active:
                await self.store.delete_tier(self.dynamic_name)
                raise StaleTierWriteError(self.dynamic_name)
            await self._record_write(request.key, size)
        except StaleTierWriteError as exc:
            self.logger.warning("Dropped write to inactive tier", url=request.url, tier=self.dynamic_name)
            self._count_error(exc.code)
            return False
        except Exception as exc:
            error = exc if isinstance(exc, CacheWriteError) else CacheWriteError(details={"error": str(exc)})
            self.logger.error(
                "Cache write error",
                url=request.url,
                tier=self.dynamic_name,
                code=error.code,
                error=str(exc),
            )
            self._count_error(error.code)
            return False

        self.logger.info("Caching dynamic content", url=request.url)
        return True

    async def purge_tiers_except(self, keep_names: Iterable[str]) -> List[str]:
        """Make ``keep_names`` the active tiers and delete every other tier."""
        keep = set(keep_names)
        # recorded first so writes racing the deletes below are already refused
        await self.store.set_active(keep)
        deleted: List[str] = []
        for name in await self.store.tier_names():
            if name in keep:
                continue
            self.logger.info("Deleting old cache", tier=name)
            await self.store.delete_tier(name)
            deleted.append(name)
        return deleted

    async def entries(self, tier: str) -> List[str]:
        """Request keys held by one tier."""
        return await self.store.keys(tier)

    async def _ensure_index(self) -> "OrderedDict[str, int]":
        if self._dynamic_index is None:
            index: "OrderedDict[str, int]" = OrderedDict()
            for key in await self.store.keys(self.dynamic_name):
                cached = await self.store.match(self.dynamic_name, key)
                if cached is not None:
                    index[key] = cached.size
            self._dynamic_index = index
            self._dynamic_bytes = sum(index.values())
        return self._dynamic_index

    async def _touch(self, key: str) -> None:
        if not self.dynamic_max_bytes:
            return
        async with self._index_lock:
            index = await self._ensure_index()
            if key in index:
                index.move_to_end(key)

    async def _record_write(self, key: str, size: int) -> None:
        if not self.dynamic_max_bytes:
            return
        async with self._index_lock:
            index = await self._ensure_index()
            self._dynamic_bytes -= index.pop(key, 0)
            index[key] = size
            self._dynamic_bytes += size

            while self._dynamic_bytes > self.dynamic_max_bytes and len(index) > 1:
                victim, victim_size = index.popitem(last=False)
                self._dynamic_bytes -= victim_size
                await self.store.delete(self.dynamic_name, victim)
                self.logger.debug("Evicted dynamic cache entry", key=victim, size=victim_size)

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)

    def _count_error(self, error_type: str) -> None:
        if self.metrics:
            self.metrics.record_error(error_type)
