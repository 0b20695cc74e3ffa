"""
Push message handling and notification clicks.
"""

import json
import time
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from shared.errors import ValidationError
from shared.logging import get_logger

from .models import Notification, NotificationAction, PushMessage

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .host import ClientRegistry, NotificationCenter


LOGO_ICON = "/images/logo.jpg.png"
EXPLORE_ACTION = "explore"
CLOSE_ACTION = "close"
EXPLORE_URL = "/"


def build_notification(message: PushMessage, now_ms: int) -> Notification:
    return Notification(
        title=message.title,
        body=message.body,
        icon=LOGO_ICON,
        badge=LOGO_ICON,
        vibrate=[100, 50, 100],
        data={"dateOfArrival": now_ms, "primaryKey": message.primary_key},
        actions=[
            NotificationAction(action=EXPLORE_ACTION, title="View Details", icon=LOGO_ICON),
            NotificationAction(action=CLOSE_ACTION, title="Close", icon=LOGO_ICON),
        ],
    )


def parse_push_data(data: Union[bytes, str, dict]) -> PushMessage:
    try:
        if isinstance(data, (bytes, str)):
            data = json.loads(data)
        return PushMessage.model_validate(data)
    except (ValueError, PydanticValidationError) as exc:
        raise ValidationError("Push message is not a valid notification payload", {"error": str(exc)}) from exc


class PushNotifier:
    """Turns push messages into notifications and reacts to clicks on them."""

    def __init__(
        self,
        center: "NotificationCenter",
        clients: "ClientRegistry",
        *,
        clock: Callable[[], float] = time.time,
    ):
        self.center = center
        self.clients = clients
        self.clock = clock
        self.logger = get_logger("offline_agent.notifications")

    async def handle_push(self, data: Optional[Any]) -> Optional[Notification]:
        """Show a notification for a push; pushes without data show nothing."""
        if not data:
            return None

        message = parse_push_data(data)
        notification = build_notification(message, int(self.clock() * 1000))
        await self.center.show(notification)
        self.logger.info("Notification shown", title=notification.title, primary_key=message.primary_key)
        return notification

    async def handle_click(self, notification: Notification, action: str = "") -> Optional[str]:
        """Close the notification; ``explore`` opens the site root."""
        await self.center.close(notification)

        if action == EXPLORE_ACTION:
            await self.clients.open_window(EXPLORE_URL)
            return EXPLORE_URL
        return None
