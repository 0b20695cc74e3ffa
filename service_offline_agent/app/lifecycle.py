"""
Install/activate lifecycle of one agent version.
"""

from enum import Enum
from typing import TYPE_CHECKING, List, Sequence

from shared.errors import SeedFailure, ValidationError
from shared.logging import get_logger

from .models import resolve_url

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .caching.tier_manager import CacheTierManager
    from .host import ClientRegistry


class LifecycleState(str, Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVE = "active"
    REDUNDANT = "redundant"


class LifecycleManager:
    """Seeds the static tier on install and purges stale tiers on activate.

    A failed install marks this version redundant and leaves whatever
    version was active before untouched.
    """

    def __init__(
        self,
        tiers: "CacheTierManager",
        clients: "ClientRegistry",
        static_assets: Sequence[str],
        site_origin: str,
        version: str,
    ):
        self.tiers = tiers
        self.clients = clients
        self.static_assets = list(static_assets)
        self.site_origin = site_origin
        self.version = version
        self.state = LifecycleState.PARSED
        self.logger = get_logger("offline_agent.lifecycle")

    @property
    def asset_urls(self) -> List[str]:
        return [resolve_url(self.site_origin, url) for url in self.static_assets]

    async def install(self) -> None:
        self.logger.info("Agent installing", version=self.version)
        self.state = LifecycleState.INSTALLING
        try:
            await self.tiers.seed(self.asset_urls)
        except SeedFailure:
            self.state = LifecycleState.REDUNDANT
            self.logger.error("Install failed, previous version stays active", version=self.version)
            raise
        # installed versions skip waiting and may activate immediately
        self.state = LifecycleState.INSTALLED

    async def activate(self) -> List[str]:
        """Purge tiers of other versions, then claim clients."""
        if self.state == LifecycleState.ACTIVE:
            return []
        if self.state != LifecycleState.INSTALLED:
            raise ValidationError(
                "Only an installed version can be activated",
                details={"version": self.version, "state": self.state.value},
            )

        self.logger.info("Agent activating", version=self.version)
        self.state = LifecycleState.ACTIVATING
        try:
            deleted = await self.tiers.purge_tiers_except(self.tiers.tier_names)
            await self.clients.claim(self.version)
        except Exception:
            self.state = LifecycleState.INSTALLED
            raise
        self.state = LifecycleState.ACTIVE
        self.logger.info("Agent activated", version=self.version, purged=deleted)
        return deleted
