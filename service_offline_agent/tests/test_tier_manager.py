"""
Unit tests for the cache tier manager.
"""

from unittest.mock import AsyncMock, patch

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_offline_agent.app.adapters.network import NetworkFetcher
from service_offline_agent.app.caching.tier_manager import CacheTierManager, is_cacheable
from service_offline_agent.app.caching.tier_store import InMemoryTierStore
from service_offline_agent.app.models import AssetRequest, ResponseType, StoredResponse
from shared.errors import NetworkError, SeedFailure
from shared.metrics import MetricsCollector

from conftest import ORIGIN, FONTS_URL


STATIC = "static-v1.0.0"
DYNAMIC = "dynamic-v1.0.0"


def png(url: str, body: bytes = b"png", status: int = 200, kind: ResponseType = ResponseType.BASIC) -> StoredResponse:
    return StoredResponse(url=url, status=status, headers={"Content-Type": "image/png"}, body=body, type=kind)


class TestCacheTierManager:
    """Test cases for CacheTierManager."""

    @pytest.fixture
    def store(self):
        return InMemoryTierStore()

    @pytest.fixture
    def fetcher(self, site):
        return NetworkFetcher(ORIGIN, transport=site.transport)

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("offline_agent")

    @pytest.fixture
    def manager(self, store, fetcher, metrics):
        return CacheTierManager(store, STATIC, DYNAMIC, fetch=fetcher.fetch, metrics=metrics)

    @pytest.fixture
    def seed_urls(self):
        return [f"{ORIGIN}/", f"{ORIGIN}/styles-minified.css", f"{ORIGIN}/images/logo.jpg.png", FONTS_URL]

    @pytest.mark.asyncio
    async def test_seed_stores_exactly_the_asset_set(self, manager, store, seed_urls):
        """Static tier holds every seeded URL and the dynamic tier is untouched."""
        await manager.seed(seed_urls)

        assert sorted(await store.keys(STATIC)) == sorted(f"GET {url}" for url in seed_urls)
        assert await store.keys(DYNAMIC) == []
        assert DYNAMIC not in await store.tier_names()

    @pytest.mark.asyncio
    async def test_seed_partial_failure_commits_nothing(self, manager, store, site, seed_urls):
        """One missing asset aborts the whole seed."""
        with pytest.raises(SeedFailure) as exc_info:
            await manager.seed(seed_urls + [f"{ORIGIN}/missing.css"])

        failures = exc_info.value.details["failures"]
        assert failures == [{"url": f"{ORIGIN}/missing.css", "error": "HTTP 404"}]
        assert await store.tier_names() == []

    @pytest.mark.asyncio
    async def test_seed_network_failure(self, manager, store, site, seed_urls):
        site.offline = True

        with pytest.raises(SeedFailure):
            await manager.seed(seed_urls)

        assert await store.keys(STATIC) == []

    @pytest.mark.asyncio
    async def test_seed_retries_transient_network_errors(self, store, seed_urls, fetcher):
        """With more than one attempt configured a flaky asset is fetched again."""
        flaky_calls = {"count": 0}

        async def flaky_fetch(request):
            if request.url.endswith(".css") and flaky_calls["count"] == 0:
                flaky_calls["count"] += 1
                raise NetworkError(request.url)
            return await fetcher.fetch(request)

        manager = CacheTierManager(store, STATIC, DYNAMIC, fetch=flaky_fetch, seed_attempts=2)

        with patch("shared.retry.asyncio.sleep", new_callable=AsyncMock):
            await manager.seed(seed_urls)

        assert len(await store.keys(STATIC)) == len(seed_urls)

    @pytest.mark.asyncio
    async def test_lookup_prefers_static_tier(self, manager, store):
        """On key collision the static entry wins."""
        request = AssetRequest(url=f"{ORIGIN}/images/logo.jpg.png")
        await store.put(STATIC, request.key, png(request.url, b"static"))
        await store.put(DYNAMIC, request.key, png(request.url, b"dynamic"))

        cached = await manager.lookup(request)

        assert cached.body == b"static"
        assert manager.metrics.registry.get_sample_value("cache_hits_total", {"tier": "static"}) == 1

    @pytest.mark.asyncio
    async def test_put_then_lookup_round_trip(self, manager):
        request = AssetRequest(url=f"{ORIGIN}/images/ward.webp")
        response = png(request.url, b"ward")

        assert await manager.put(request, response) is True

        assert await manager.lookup(request) == response

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "url,response",
        [
            (f"{ORIGIN}/images/missing.png", png(f"{ORIGIN}/images/missing.png", status=404)),
            ("https://cdn.example.org/banner.png", png("https://cdn.example.org/banner.png", kind=ResponseType.OPAQUE)),
            (f"{ORIGIN}/api/doctors.json", png(f"{ORIGIN}/api/doctors.json")),
        ],
    )
    async def test_put_ignores_uncacheable_responses(self, manager, url, response):
        """404s, non-basic responses and non allow-listed extensions are never stored."""
        request = AssetRequest(url=url)

        assert await manager.put(request, response) is False
        assert await manager.lookup(request) is None

    def test_is_cacheable_ignores_query_string(self):
        request = AssetRequest(url=f"{ORIGIN}/styles.css?v=3")
        assert is_cacheable(request, png(request.url))

    @pytest.mark.asyncio
    async def test_put_swallows_backend_errors(self, manager, store):
        """A failing store never propagates to the caller."""
        request = AssetRequest(url=f"{ORIGIN}/app.js")

        with patch.object(store, "put", new_callable=AsyncMock) as mock_put:
            mock_put.side_effect = OSError("quota exceeded")
            assert await manager.put(request, png(request.url)) is False

    @pytest.mark.asyncio
    async def test_purge_is_exact_complement(self, manager, store):
        """Tiers outside the current pair are removed; the pair is untouched."""
        for tier in (STATIC, DYNAMIC, "static-v0.9.0", "dynamic-v0.9.0", "mallikarjuna-hospital-v1.0.0"):
            await store.put(tier, f"GET {ORIGIN}/", png(f"{ORIGIN}/"))

        deleted = await manager.purge_tiers_except(manager.tier_names)

        assert sorted(deleted) == ["dynamic-v0.9.0", "mallikarjuna-hospital-v1.0.0", "static-v0.9.0"]
        assert sorted(await store.tier_names()) == sorted([STATIC, DYNAMIC])
        assert await store.keys(STATIC) == [f"GET {ORIGIN}/"]

    @pytest.mark.asyncio
    async def test_late_write_to_purged_tier_is_rejected(self, store):
        """A put from a superseded version cannot resurrect its dynamic tier."""
        old = CacheTierManager(store, "static-v0.9.0", "dynamic-v0.9.0")
        new = CacheTierManager(store, STATIC, DYNAMIC)
        request = AssetRequest(url=f"{ORIGIN}/images/late.png")
        await old.put(AssetRequest(url=f"{ORIGIN}/images/early.png"), png(f"{ORIGIN}/images/early.png"))

        await new.purge_tiers_except(new.tier_names)
        accepted = await old.put(request, png(request.url))

        assert accepted is False
        assert "dynamic-v0.9.0" not in await store.tier_names()

    @pytest.mark.asyncio
    async def test_late_write_rejected_when_old_dynamic_tier_never_existed(self, store):
        """An old version that never cached dynamically still cannot create its tier after activation."""
        old = CacheTierManager(store, "static-v0.9.0", "dynamic-v0.9.0")
        new = CacheTierManager(store, STATIC, DYNAMIC)
        await store.put("static-v0.9.0", f"GET {ORIGIN}/", png(f"{ORIGIN}/"))
        request = AssetRequest(url=f"{ORIGIN}/images/late.png")

        await new.purge_tiers_except(new.tier_names)
        accepted = await old.put(request, png(request.url))

        assert accepted is False
        assert await store.tier_names() == []

    @pytest.mark.asyncio
    async def test_rolled_back_version_accepts_writes_again(self, store):
        """Reactivating an earlier version makes its dynamic tier writable again."""
        v1 = CacheTierManager(store, STATIC, DYNAMIC)
        v2 = CacheTierManager(store, "static-v2.0.0", "dynamic-v2.0.0")
        request = AssetRequest(url=f"{ORIGIN}/images/ward.png")

        await v1.purge_tiers_except(v1.tier_names)
        await v2.purge_tiers_except(v2.tier_names)
        assert await v1.put(request, png(request.url)) is False

        rolled_back = CacheTierManager(store, STATIC, DYNAMIC)
        await rolled_back.purge_tiers_except(rolled_back.tier_names)

        assert await rolled_back.put(request, png(request.url)) is True
        assert await store.keys(DYNAMIC) == [request.key]
        assert await v2.put(request, png(request.url)) is False

    @pytest.mark.asyncio
    async def test_write_in_flight_during_activation_is_removed(self, store, metrics):
        """A write that completes after another version activated is undone."""
        old = CacheTierManager(store, "static-v0.9.0", "dynamic-v0.9.0", metrics=metrics)
        new = CacheTierManager(store, STATIC, DYNAMIC)
        request = AssetRequest(url=f"{ORIGIN}/images/slow.png")
        original_put = store.put

        async def put_then_activate(tier, key, response):
            await original_put(tier, key, response)
            await new.purge_tiers_except(new.tier_names)

        with patch.object(store, "put", side_effect=put_then_activate):
            accepted = await old.put(request, png(request.url))

        assert accepted is False
        assert "dynamic-v0.9.0" not in await store.tier_names()
        assert metrics.registry.get_sample_value(
            "errors_total", {"error_type": "STALE_TIER_WRITE", "service": "offline_agent"}
        ) == 1

    @pytest.mark.asyncio
    async def test_peek_leaves_counters_alone(self, manager, store, metrics):
        request = AssetRequest(url=f"{ORIGIN}/")
        await store.put(STATIC, request.key, png(request.url))

        assert await manager.peek(request) is not None
        assert await manager.peek(AssetRequest(url=f"{ORIGIN}/nowhere.png")) is None

        assert metrics.registry.get_sample_value("cache_hits_total", {"tier": "static"}) is None
        assert metrics.registry.get_sample_value("cache_misses_total") == 0

    @pytest.mark.asyncio
    async def test_dynamic_tier_evicts_least_recently_used(self, store):
        """Entries beyond the byte budget are evicted oldest-access first."""
        manager = CacheTierManager(store, STATIC, DYNAMIC, dynamic_max_bytes=10)
        first, second, third = (AssetRequest(url=f"{ORIGIN}/img/{n}.png") for n in range(3))

        await manager.put(first, png(first.url, b"aaaa"))
        await manager.put(second, png(second.url, b"bbbb"))
        assert await manager.lookup(first) is not None  # first is now most recent
        await manager.put(third, png(third.url, b"cccc"))

        assert await manager.lookup(second) is None
        assert await manager.lookup(first) is not None
        assert await manager.lookup(third) is not None

    @pytest.mark.asyncio
    async def test_oversized_response_not_cached(self, store):
        manager = CacheTierManager(store, STATIC, DYNAMIC, dynamic_max_bytes=3)
        request = AssetRequest(url=f"{ORIGIN}/img/big.png")

        assert await manager.put(request, png(request.url, b"too large")) is False
        assert await store.keys(DYNAMIC) == []
