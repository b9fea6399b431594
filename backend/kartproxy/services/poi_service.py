import httpx
import logging
from typing import List
from kartproxy.core.config import Settings
from kartproxy.core.errors import InternalError, InvalidArgument, MapServiceError, UpstreamError
from kartproxy.core.logger import logs
from kartproxy.models.poi_model import POI_CATEGORIES, Poi, TagFilter
from kartproxy.repos.poi_repo import PoiRepository


def parse_bbox(bbox: str) -> tuple[float, float, float, float]:
    """Validates a 'south,west,north,east' string."""
    parts = [p.strip() for p in bbox.split(",")]
    if len(parts) != 4:
        raise InvalidArgument("bbox must be south,west,north,east")
    try:
        south, west, north, east = (float(p) for p in parts)
    except ValueError:
        raise InvalidArgument("bbox must be south,west,north,east") from None
    return south, west, north, east


class PoiService:
    def __init__(self, settings: Settings, repo: PoiRepository, transport: httpx.AsyncBaseTransport | None = None):
        self.repo = repo
        self.overpass_url = settings.OVERPASS_URL
        self.query_timeout = settings.OVERPASS_TIMEOUT
        self.transport = transport

    async def get_pois(self, category: str | None, bbox: str | None) -> List[Poi]:
        tag_filter = POI_CATEGORIES.get(category or "")
        if tag_filter is None:
            raise InvalidArgument(f"Invalid category. Valid: {', '.join(POI_CATEGORIES)}")
        if not bbox:
            raise InvalidArgument("bbox is required (south,west,north,east)")
        parse_bbox(bbox)

        # 1. Check Cache
        cached = self.repo.get_cached_pois(category, bbox)
        if cached is not None:
            logs.log(logging.INFO, f"✓ POI cache HIT for {category} {bbox}")
            return cached

        async with self.repo.lock_for(category, bbox):
            cached = self.repo.get_cached_pois(category, bbox)
            if cached is not None:
                return cached

            # 2. Query Overpass
            logs.log(logging.INFO, f"✗ POI cache MISS for {category} {bbox}. Fetching from Overpass API...")
            try:
                pois = await self._fetch_from_overpass(tag_filter, bbox)
            except MapServiceError:
                raise
            except Exception as e:
                logs.log(logging.ERROR, f"POI lookup failed for {category} {bbox}: {str(e)}")
                raise InternalError("Failed to fetch POIs") from e

            # 3. Cache results
            self.repo.cache_pois(category, bbox, pois)
            logs.log(logging.INFO, f"Cached {len(pois)} POIs for {category} ({len(self.repo)} cache entries)")
            return pois

    def build_query(self, tag_filter: TagFilter, bbox: str) -> str:
        selector = f'["{tag_filter.key}"="{tag_filter.value}"]'
        return (
            f"[out:json][timeout:{self.query_timeout}];\n"
            "(\n"
            f"  node{selector}({bbox});\n"
            f"  way{selector}({bbox});\n"
            ");\n"
            "out center 200;"
        )

    async def _fetch_from_overpass(self, tag_filter: TagFilter, bbox: str) -> List[Poi]:
        query = self.build_query(tag_filter, bbox)

        async with httpx.AsyncClient(transport=self.transport) as client:
            response = await client.post(
                self.overpass_url,
                data={"data": query},
                timeout=self.query_timeout + 5.0
            )

        if not response.is_success:
            logs.log(logging.ERROR, f"Overpass API error: {response.status_code}")
            raise UpstreamError("Overpass API error", upstream_status=response.status_code)

        data = response.json()
        return [poi for poi in (self._to_poi(el) for el in data.get("elements", [])) if poi is not None]

    def _to_poi(self, element: dict) -> Poi | None:
        # Ways carry their coordinates in "center"
        center = element.get("center") or {}
        lat = element.get("lat", center.get("lat"))
        lon = element.get("lon", center.get("lon"))
        if lat is None or lon is None:
            return None

        tags = element.get("tags") or {}
        return Poi(
            id=element["id"],
            name=tags.get("name", ""),
            lat=lat,
            lon=lon,
            tags=tags
        )
