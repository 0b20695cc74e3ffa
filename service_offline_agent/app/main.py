"""
Offline agent service for the Mallikarjuna Hospital website.

Exposes the agent's host events over HTTP so a page shell (or an operator)
can drive install/activate, route asset requests through the interceptor,
submit appointments and deliver sync and push signals.
"""

from typing import Any, Dict, Optional

import httpx
from fastapi import Body, HTTPException, Query, Response
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config

from .agent import OfflineAgent
from .caching.tier_store import TierStore
from .models import AssetRequest, Destination
from .submissions import SubmissionOutcome

SERVICE_NAME = "offline_agent"
SERVICE_PORT = 8020

# recomputed by the ASGI server; forwarding them would corrupt the body
_HOP_BY_HOP_HEADERS = {"content-length", "content-encoding", "transfer-encoding", "connection"}


class OfflineAgentService(BaseService):
    """HTTP surface over one ``OfflineAgent``."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        tier_store: Optional[TierStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config=config or get_config(SERVICE_NAME, SERVICE_PORT))

        self.agent = OfflineAgent(
            self.config,
            tier_store=tier_store,
            transport=transport,
            metrics=self.metrics,
        )

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.agent.close()

        self._setup_agent_routes()
        self.app.state.offline_agent_service = self

    async def _check_dependencies(self) -> Dict[str, str]:
        dependencies = {"lifecycle": self.agent.lifecycle.state.value}
        try:
            await self.agent.queue.count()
            dependencies["queue_store"] = "ok"
        except Exception as exc:
            self.logger.warning("Queue store health check failed", error=str(exc))
            dependencies["queue_store"] = "error"
        return dependencies

    def _setup_agent_routes(self):
        """Set up agent routes."""

        @self.app.get("/")
        async def root():
            return {
                "service": SERVICE_NAME,
                "message": "Mallikarjuna Hospital - Offline Agent",
                "version": self.config.cache_version,
                "state": self.agent.lifecycle.state.value,
            }

        @self.app.post("/lifecycle/install")
        async def install():
            await self.agent.install()
            return {"version": self.config.cache_version, "state": self.agent.lifecycle.state.value}

        @self.app.post("/lifecycle/activate")
        async def activate():
            purged = await self.agent.activate()
            return {
                "version": self.config.cache_version,
                "state": self.agent.lifecycle.state.value,
                "purged": purged,
            }

        @self.app.get("/fetch")
        async def fetch(
            url: str = Query(..., description="Absolute URL requested by the page"),
            destination: Destination = Query(Destination.EMPTY),
            method: str = Query("GET"),
        ):
            result = await self.agent.fetch(AssetRequest(method=method, url=url, destination=destination))
            if result is None:
                # not intercepted: the page performs the request itself
                return Response(status_code=204, headers={"X-Offline-Agent": "passthrough"})

            headers = {
                name: value
                for name, value in result.headers.items()
                if name.lower() not in _HOP_BY_HOP_HEADERS
            }
            headers["X-Response-Type"] = result.type.value
            return Response(content=result.body, status_code=result.status, headers=headers)

        @self.app.post("/appointments")
        async def submit_appointment(payload: Dict[str, Any] = Body(...)):
            result = await self.agent.submitter.submit(payload)
            if result.outcome == SubmissionOutcome.QUEUED:
                return JSONResponse(
                    status_code=202,
                    content={"outcome": result.outcome.value, "id": result.queued_id},
                )
            return JSONResponse(
                status_code=result.status_code or 200,
                content={"outcome": result.outcome.value, "status_code": result.status_code},
            )

        @self.app.get("/appointments/queue")
        async def list_queue():
            pending = await self.agent.queue.list_all()
            return {"count": len(pending), "items": [item.model_dump() for item in pending]}

        @self.app.post("/sync/{tag}")
        async def background_sync(tag: str):
            report = await self.agent.background_sync(tag)
            if report is None:
                return {"tag": tag, "handled": False}
            return {"tag": tag, "handled": True, **report.to_dict()}

        @self.app.post("/push")
        async def push(payload: Optional[Dict[str, Any]] = Body(None)):
            notification = await self.agent.push(payload)
            if notification is None:
                return Response(status_code=204)
            return notification.model_dump()

        @self.app.get("/notifications")
        async def notifications():
            return [item.model_dump() for item in self.agent.notification_center.displayed]

        @self.app.post("/notifications/{index}/click")
        async def click_notification(index: int, action: str = Query("")):
            displayed = self.agent.notification_center.displayed
            if not 0 <= index < len(displayed):
                raise HTTPException(status_code=404, detail="Notification not found")
            opened = await self.agent.notification_click(displayed[index], action)
            return {"action": action, "opened": opened}


def create_app():
    """Create FastAPI application."""
    service = OfflineAgentService()
    return service.app


if __name__ == "__main__":
    service = OfflineAgentService()
    service.run()
