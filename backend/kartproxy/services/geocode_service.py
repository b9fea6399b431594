import httpx
from kartproxy.core.config import Settings


class GeocodingService:
    """Nominatim name lookup restricted to one country."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.url = settings.NOMINATIM_URL
        self.country = settings.GEOCODE_COUNTRY
        self.user_agent = settings.GEOCODE_USER_AGENT
        self.timeout = settings.GEOCODE_TIMEOUT
        self.transport = transport

    async def geocode(self, query: str) -> tuple[float, float] | None:
        """
        Returns (lat, lon) of the best match, or None when nothing matched.
        Transport and status errors propagate to the caller.
        """
        async with httpx.AsyncClient(transport=self.transport) as client:
            resp = await client.get(
                self.url,
                params={"q": query, "format": "json", "countrycodes": self.country, "limit": 1},
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout
            )
            resp.raise_for_status()
            data = resp.json()

        if data and len(data) > 0:
            item = data[0]
            return float(item["lat"]), float(item["lon"])
        return None
