"""
Appointments API client.
"""

from typing import Any, Dict, Optional

import httpx

from shared.errors import NetworkError
from shared.logging import get_logger


class AppointmentsClient:
    """Client for the remote appointment submission endpoint."""

    def __init__(
        self,
        endpoint_url: str,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self.transport = transport
        self.logger = get_logger("offline_agent.appointments_client")

    async def submit(self, payload: Dict[str, Any]) -> httpx.Response:
        """POST one submission; any request failure raises ``NetworkError``."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(
                    self.endpoint_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
            except httpx.RequestError as exc:
                self.logger.info("Appointments endpoint unreachable", error=str(exc))
                raise NetworkError(self.endpoint_url, details={"error": str(exc)}) from exc

        if not response.is_success:
            self.logger.warning(
                "Appointments endpoint rejected submission",
                status_code=response.status_code,
            )
        return response
