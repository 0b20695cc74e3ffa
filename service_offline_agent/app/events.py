"""
Event dispatch for the offline agent.

Every host event (install, activate, fetch, sync, push, notification click)
becomes an ``ExtendableEvent`` routed through one dispatch table. Handlers
may extend the event's lifetime with ``wait_until``; the dispatcher does not
consider an event resolved until every extension has settled.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from shared.logging import get_logger, request_id_var, set_event_context, set_request_id


class EventKind(str, Enum):
    INSTALL = "install"
    ACTIVATE = "activate"
    FETCH = "fetch"
    SYNC = "sync"
    PUSH = "push"
    NOTIFICATION_CLICK = "notificationclick"


@dataclass
class ExtendableEvent:
    """One host event plus the work it has been asked to wait for."""

    kind: EventKind
    data: Any = None
    errors: List[BaseException] = field(default_factory=list)
    _extensions: List["asyncio.Future[Any]"] = field(default_factory=list, repr=False)

    def wait_until(self, awaitable: Awaitable[Any]) -> None:
        """Keep the event open until ``awaitable`` settles."""
        self._extensions.append(asyncio.ensure_future(awaitable))

    @property
    def pending(self) -> int:
        return sum(1 for extension in self._extensions if not extension.done())

    async def settle(self) -> List[BaseException]:
        # extensions may register further extensions while we wait
        while self._extensions:
            batch, self._extensions = self._extensions, []
            outcomes = await asyncio.gather(*batch, return_exceptions=True)
            self.errors.extend(o for o in outcomes if isinstance(o, BaseException))
        return self.errors


Handler = Callable[[ExtendableEvent], Awaitable[Any]]


class EventDispatcher:
    """Dispatch table mapping each event kind to one async handler."""

    def __init__(self):
        self._handlers: Dict[EventKind, Handler] = {}
        self.logger = get_logger("offline_agent.events")

    def register(self, kind: EventKind, handler: Handler) -> None:
        self._handlers[kind] = handler

    def handles(self, kind: EventKind) -> bool:
        return kind in self._handlers

    async def dispatch(self, event: ExtendableEvent, request_id: Optional[str] = None) -> Any:
        """Run the handler for ``event`` and hold until its extensions settle.

        The handler's return value is the event result; a handler exception
        propagates after the extensions have settled.
        """
        set_event_context(event.kind.value)
        # keep the id of the HTTP request that raised this event, if any
        if request_id is not None or request_id_var.get() is None:
            set_request_id(request_id)

        handler = self._handlers.get(event.kind)
        if handler is None:
            self.logger.debug("No handler registered", kind=event.kind.value)
            return None

        try:
            return await handler(event)
        finally:
            errors = await event.settle()
            for error in errors:
                self.logger.warning(
                    "Event extension failed",
                    kind=event.kind.value,
                    error=str(error),
                )
