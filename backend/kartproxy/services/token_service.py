import asyncio
import base64
import time
import httpx
import logging
from kartproxy.core.config import Settings
from kartproxy.core.errors import AuthError, ConfigError
from kartproxy.core.logger import logs
from kartproxy.repos.memory_cache import Clock


class TokenCache:
    """
    Holds the Lantmäteriet bearer token and refreshes it through an OAuth2
    client-credentials exchange once it is due. The token is treated as
    expired `TOKEN_EXPIRY_MARGIN` seconds before the upstream lifetime ends.
    """
    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Clock = time.monotonic
    ):
        self.client_id = settings.LM_CLIENT_KEY
        self.client_secret = settings.LM_CLIENT_SECRET
        self.token_url = settings.LM_TOKEN_URL
        self.margin = settings.TOKEN_EXPIRY_MARGIN
        self.transport = transport
        self.clock = clock

        self._token: str | None = None
        self._expires_at: float = 0.0
        self._lock = asyncio.Lock()
        self.refresh_count = 0

    def _valid_token(self) -> str | None:
        if self._token and self.clock() < self._expires_at:
            return self._token
        return None

    async def get_token(self) -> str:
        token = self._valid_token()
        if token:
            return token

        # One exchange in flight; callers queued behind it reuse its result
        async with self._lock:
            token = self._valid_token()
            if token:
                return token
            return await self._refresh()

    async def invalidate(self, failed_token: str):
        """
        Drops the cached token only if it is the one upstream rejected.
        A late 401 for an older token must not discard a fresher one.
        """
        async with self._lock:
            if self._token != failed_token:
                return
            logs.log(logging.INFO, "Invalidating cached WMTS token")
            self._token = None
            self._expires_at = 0.0

    async def _refresh(self) -> str:
        if not self.client_id or not self.client_secret:
            raise ConfigError("LM_CLIENT_KEY / LM_CLIENT_SECRET are not configured")

        creds = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode("utf-8")).decode("ascii")
        headers = {
            "Authorization": f"Basic {creds}",
            "Content-Type": "application/x-www-form-urlencoded"
        }

        async with httpx.AsyncClient(transport=self.transport) as client:
            try:
                response = await client.post(
                    self.token_url,
                    content="grant_type=client_credentials",
                    headers=headers,
                    timeout=10.0
                )
            except httpx.HTTPError as e:
                logs.log(logging.ERROR, f"Token endpoint unreachable: {str(e)}")
                raise AuthError("Token endpoint unreachable") from e

        if not response.is_success:
            logs.log(logging.ERROR, f"Token exchange rejected: {response.status_code}")
            raise AuthError(f"Token exchange failed with status {response.status_code}")

        try:
            data = response.json()
            token = data["access_token"]
            lifetime = float(data["expires_in"])
        except (ValueError, KeyError, TypeError) as e:
            raise AuthError("Token endpoint returned an unexpected body") from e

        self._token = token
        self._expires_at = self.clock() + (lifetime - self.margin)
        self.refresh_count += 1
        logs.log(logging.INFO, f"Fetched new WMTS token, valid for {lifetime - self.margin:.0f}s")
        return token
