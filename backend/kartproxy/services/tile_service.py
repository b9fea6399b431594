import httpx
import logging
from typing import Mapping
from urllib.parse import urlencode
from kartproxy.core.config import Settings
from kartproxy.core.errors import UpstreamError
from kartproxy.core.logger import logs
from kartproxy.models.tile_model import TileResponse
from kartproxy.services.token_service import TokenCache


class TileProxy:
    """
    Forwards WMTS tile requests to Lantmäteriet with the cached bearer token.
    A 401 invalidates the token and is retried exactly once.
    """
    def __init__(self, settings: Settings, tokens: TokenCache, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = settings.LM_WMTS_URL
        self.tokens = tokens
        self.transport = transport

    def build_url(self, query_params) -> str:
        if isinstance(query_params, str):
            qs = query_params
        elif isinstance(query_params, Mapping):
            qs = urlencode(list(query_params.items()))
        else:
            qs = urlencode(list(query_params))
        return f"{self.base_url}?{qs}" if qs else self.base_url

    async def proxy_tile(self, query_params) -> TileResponse:
        url = self.build_url(query_params)
        logs.log(logging.DEBUG, f"WMTS proxy: {url}")

        async with httpx.AsyncClient(transport=self.transport) as client:
            token = await self.tokens.get_token()
            response = await self._fetch(client, url, token)

            if response.status_code == 401:
                logs.log(logging.WARNING, "WMTS answered 401, refreshing token and retrying once")
                await self.tokens.invalidate(token)
                response = await self._fetch(client, url, await self.tokens.get_token())

        if not response.is_success:
            logs.log(logging.WARNING, f"WMTS error: {response.status_code}")
            raise UpstreamError(
                "WMTS request failed",
                status_code=response.status_code,
                upstream_status=response.status_code
            )

        return TileResponse(
            content_type=response.headers.get("content-type") or "application/octet-stream",
            content=response.content
        )

    async def _fetch(self, client: httpx.AsyncClient, url: str, token: str) -> httpx.Response:
        try:
            return await client.get(url, headers={"Authorization": f"Bearer {token}"}, timeout=15.0)
        except httpx.HTTPError as e:
            logs.log(logging.ERROR, f"WMTS unreachable: {str(e)}")
            raise UpstreamError("WMTS request failed") from e
