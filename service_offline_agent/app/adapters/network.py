"""
Network fetcher for asset requests.
"""

from typing import Optional

import httpx

from shared.errors import NetworkError
from shared.logging import get_logger

from ..models import AssetRequest, ResponseType, StoredResponse, same_origin


class NetworkFetcher:
    """Fetches assets over HTTP and classifies responses by origin.

    Request failures (DNS, refused connections, timeouts, redirect loops,
    undecodable bodies) surface as ``NetworkError``. Any HTTP status,
    including 4xx/5xx, is a response.
    """

    def __init__(
        self,
        site_origin: str,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.site_origin = site_origin
        self.timeout = timeout
        self.transport = transport
        self.logger = get_logger("offline_agent.network")
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            )
        return self._client

    def response_type(self, url: str) -> ResponseType:
        return ResponseType.BASIC if same_origin(self.site_origin, url) else ResponseType.CORS

    async def fetch(self, request: AssetRequest) -> StoredResponse:
        client = await self._get_client()
        try:
            response = await client.request(request.method, request.url, headers=request.headers)
        except httpx.RequestError as exc:
            self.logger.info("Network request failed", url=request.url, error=str(exc))
            raise NetworkError(request.url, details={"error": str(exc)}) from exc

        final_url = str(response.url)
        return StoredResponse(
            url=final_url,
            status=response.status_code,
            headers=dict(response.headers),
            body=response.content,
            type=self.response_type(final_url),
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
