"""
Host facilities the agent talks to: controlled clients, the notification
tray and the background-sync registry.

These are in-process implementations; an embedding host can subclass them to
forward calls to real windows, notification daemons or schedulers.
"""

from typing import List, Optional, Set

from shared.logging import get_logger

from .models import Notification


class ClientRegistry:
    """Pages in scope of the agent."""

    def __init__(self):
        self.controller: Optional[str] = None
        self.opened_windows: List[str] = []
        self.logger = get_logger("offline_agent.clients")

    async def claim(self, version: str) -> None:
        """Take control of in-scope clients for ``version``."""
        self.controller = version
        self.logger.info("Clients claimed", version=version)

    async def open_window(self, url: str) -> None:
        self.opened_windows.append(url)
        self.logger.info("Opened window", url=url)


class NotificationCenter:
    """Currently displayed notifications."""

    def __init__(self):
        self.displayed: List[Notification] = []

    async def show(self, notification: Notification) -> None:
        self.displayed.append(notification)

    async def close(self, notification: Notification) -> None:
        if notification in self.displayed:
            self.displayed.remove(notification)


class SyncRegistry:
    """Background-sync tags waiting for connectivity."""

    def __init__(self):
        self.pending: Set[str] = set()
        self.logger = get_logger("offline_agent.sync_registry")

    async def register(self, tag: str) -> None:
        self.pending.add(tag)
        self.logger.info("Background sync registered", tag=tag)

    def take(self, tag: str) -> bool:
        """Consume a registration when the host fires its signal."""
        if tag in self.pending:
            self.pending.discard(tag)
            return True
        return False
