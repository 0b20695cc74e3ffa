"""
Offline agent assembly.

``OfflineAgent`` builds every component for one cache version from
configuration and exposes each host event as a coroutine routed through the
event dispatcher.
"""

from typing import Any, Optional

import httpx

from shared.config import BaseConfig
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from .adapters.appointments_client import AppointmentsClient
from .adapters.network import NetworkFetcher
from .caching.tier_manager import CacheTierManager
from .caching.tier_store import InMemoryTierStore, RedisTierStore, TierStore
from .events import EventDispatcher, EventKind, ExtendableEvent
from .host import ClientRegistry, NotificationCenter, SyncRegistry
from .interceptor import RequestInterceptor
from .lifecycle import LifecycleManager
from .models import AssetRequest, Notification, StoredResponse, resolve_url
from .notifications import PushNotifier
from .queue.store import SubmissionQueueStore
from .submissions import AppointmentSubmitter
from .sync.coordinator import SyncCoordinator, SyncReport


def build_tier_store(config: BaseConfig) -> TierStore:
    if config.cache_backend == "redis":
        return RedisTierStore(config.redis_url)
    if config.cache_backend == "memory":
        return InMemoryTierStore()
    raise ValueError(f"Unknown cache backend: {config.cache_backend}")


class OfflineAgent:
    """All components of one agent version, wired to a dispatch table."""

    def __init__(
        self,
        config: BaseConfig,
        *,
        tier_store: Optional[TierStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[MetricsCollector] = None,
        clients: Optional[ClientRegistry] = None,
        notification_center: Optional[NotificationCenter] = None,
        sync_registry: Optional[SyncRegistry] = None,
    ):
        self.config = config
        self.metrics = metrics if config.enable_metrics else None
        self.logger = get_logger("offline_agent.agent")

        self.clients = clients or ClientRegistry()
        self.notification_center = notification_center or NotificationCenter()
        self.sync_registry = sync_registry or SyncRegistry()

        self.fetcher = NetworkFetcher(
            config.site_origin,
            timeout=config.http_timeout_seconds,
            transport=transport,
        )
        self.appointments_client = AppointmentsClient(
            resolve_url(config.site_origin, config.appointments_endpoint),
            timeout=config.http_timeout_seconds,
            transport=transport,
        )

        self.tier_store = tier_store or build_tier_store(config)
        self.tiers = CacheTierManager(
            self.tier_store,
            config.static_tier_name,
            config.dynamic_tier_name,
            fetch=self.fetcher.fetch,
            dynamic_max_bytes=config.dynamic_cache_max_bytes,
            seed_attempts=config.seed_fetch_attempts,
            metrics=self.metrics,
        )
        self.queue = SubmissionQueueStore(config.queue_db_path)

        self.lifecycle = LifecycleManager(
            self.tiers,
            self.clients,
            config.static_assets,
            config.site_origin,
            config.cache_version,
        )
        self.interceptor = RequestInterceptor(
            self.tiers, self.fetcher, config.site_origin, metrics=self.metrics
        )
        self.sync = SyncCoordinator(self.queue, self.appointments_client, metrics=self.metrics)
        self.notifier = PushNotifier(self.notification_center, self.clients)
        self.submitter = AppointmentSubmitter(
            self.appointments_client, self.queue, self.sync_registry, metrics=self.metrics
        )

        self.dispatcher = EventDispatcher()
        self.dispatcher.register(EventKind.INSTALL, self._on_install)
        self.dispatcher.register(EventKind.ACTIVATE, self._on_activate)
        self.dispatcher.register(EventKind.FETCH, self._on_fetch)
        self.dispatcher.register(EventKind.SYNC, self._on_sync)
        self.dispatcher.register(EventKind.PUSH, self._on_push)
        self.dispatcher.register(EventKind.NOTIFICATION_CLICK, self._on_notification_click)

    async def _on_install(self, event: ExtendableEvent) -> None:
        await self.lifecycle.install()

    async def _on_activate(self, event: ExtendableEvent):
        return await self.lifecycle.activate()

    async def _on_fetch(self, event: ExtendableEvent) -> Optional[StoredResponse]:
        return await self.interceptor.handle(event.data, wait_until=event.wait_until)

    async def _on_sync(self, event: ExtendableEvent) -> Optional[SyncReport]:
        tag = event.data
        self.sync_registry.take(tag)
        return await self.sync.handle_sync(tag)

    async def _on_push(self, event: ExtendableEvent) -> Optional[Notification]:
        return await self.notifier.handle_push(event.data)

    async def _on_notification_click(self, event: ExtendableEvent) -> Optional[str]:
        notification, action = event.data
        return await self.notifier.handle_click(notification, action)

    async def emit(self, kind: EventKind, data: Any = None, request_id: Optional[str] = None) -> Any:
        return await self.dispatcher.dispatch(ExtendableEvent(kind, data), request_id=request_id)

    async def install(self) -> None:
        await self.emit(EventKind.INSTALL)

    async def activate(self):
        return await self.emit(EventKind.ACTIVATE)

    async def fetch(self, request: AssetRequest) -> Optional[StoredResponse]:
        return await self.emit(EventKind.FETCH, request)

    async def background_sync(self, tag: str) -> Optional[SyncReport]:
        return await self.emit(EventKind.SYNC, tag)

    async def push(self, data: Any) -> Optional[Notification]:
        return await self.emit(EventKind.PUSH, data)

    async def notification_click(self, notification: Notification, action: str = "") -> Optional[str]:
        return await self.emit(EventKind.NOTIFICATION_CLICK, (notification, action))

    async def close(self) -> None:
        await self.interceptor.settle()
        await self.fetcher.aclose()
        await self.tier_store.close()
