"""
Municipality statistics merged onto municipality boundaries.

Two independently cached sources:
  - SCB PxWeb: region metadata (name -> 4 digit code) and one measurement
    slice (code -> value), refreshed daily.
  - A GeoJSON FeatureCollection of administrative boundaries, refreshed weekly.

Region names differ in capitalisation between the two sources, so names are
resolved by exact match first and case-insensitively second.
"""
import copy
import re
import time
import httpx
import logging
from typing import Any, Dict, List, Optional
from kartproxy.core.config import Settings
from kartproxy.core.errors import InternalError, MapServiceError, UpstreamError
from kartproxy.core.logger import logs
from kartproxy.models.stats_model import FeatureCollection, RegionStatistics
from kartproxy.repos.memory_cache import Clock, TimedSlot

MUNICIPALITY_CODE = re.compile(r"^\d{4}$")

VALUE_FIELD = "sysselsattning"


class StatisticsService:
    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Clock = time.monotonic
    ):
        self.settings = settings
        self.transport = transport
        self.statistics = TimedSlot[RegionStatistics]("statistics", settings.STATS_CACHE_TTL, clock)
        self.boundaries = TimedSlot[List[Dict[str, Any]]]("boundaries", settings.BOUNDARY_CACHE_TTL, clock)
        self.last_unmatched: List[str] = []

    async def get_enriched_boundaries(self) -> FeatureCollection:
        try:
            stats, stats_cached = await self.statistics.get_or_refresh(self._load_statistics)
            features, bounds_cached = await self.boundaries.get_or_refresh(self._load_boundaries)
            logs.log(
                logging.INFO,
                f"Merging statistics ({'cache' if stats_cached else 'api'}) "
                f"with boundaries ({'cache' if bounds_cached else 'api'})"
            )
            return self.merge(stats, features)
        except MapServiceError:
            raise
        except Exception as e:
            logs.log(logging.ERROR, f"Statistics merge failed: {str(e)}")
            raise InternalError("Failed to load municipality statistics") from e

    def merge(self, stats: RegionStatistics, features: List[Dict[str, Any]]) -> FeatureCollection:
        level_prop = self.settings.BOUNDARY_LEVEL_PROPERTY
        name_prop = self.settings.BOUNDARY_NAME_PROPERTY
        level = str(self.settings.BOUNDARY_ADMIN_LEVEL)

        folded = {name.casefold(): code for name, code in stats.name_to_code.items()}

        merged = []
        unmatched = []
        for feature in features:
            props = feature.get("properties") or {}
            if str(props.get(level_prop)) != level:
                continue

            name = props.get(name_prop)
            code = self.resolve_code(name, stats.name_to_code, folded)
            if code is None:
                unmatched.append(str(name))

            enriched = copy.deepcopy(feature)
            enriched["properties"] = {
                **copy.deepcopy(props),
                "code": code,
                VALUE_FIELD: stats.code_to_value.get(code) if code else None,
            }
            merged.append(enriched)

        self.last_unmatched = unmatched
        if unmatched:
            logs.log(logging.WARNING, f"{len(unmatched)} municipalities without statistics: {', '.join(unmatched)}")

        return FeatureCollection(features=merged)

    @staticmethod
    def resolve_code(name: Optional[str], name_to_code: Dict[str, str], folded: Dict[str, str]) -> Optional[str]:
        if not isinstance(name, str):
            return None
        code = name_to_code.get(name)
        if code is None:
            code = folded.get(name.casefold())
        return code

    # ===== Statistics (SCB PxWeb) =====

    async def _load_statistics(self) -> RegionStatistics:
        logs.log(logging.INFO, "Refreshing SCB statistics")
        async with httpx.AsyncClient(transport=self.transport) as client:
            metadata = await self._get_json(client, "GET", self.settings.SCB_TABLE_URL, "SCB metadata")
            region_var = self._find_region_variable(metadata)
            name_to_code = self._region_names(region_var)

            query = self._build_query(region_var["code"], list(name_to_code.values()))
            table = await self._get_json(client, "POST", self.settings.SCB_TABLE_URL, "SCB data", json=query)

        code_to_value = self._region_values(table, region_var["code"])
        logs.log(logging.INFO, f"SCB statistics: {len(name_to_code)} regions, {len(code_to_value)} values")
        return RegionStatistics(name_to_code=name_to_code, code_to_value=code_to_value)

    def _find_region_variable(self, metadata: dict) -> dict:
        variables = metadata.get("variables", [])
        wanted = self.settings.SCB_REGION_VARIABLE
        for var in variables:
            if var.get("code") == wanted:
                return var
        for var in variables:
            if "region" in str(var.get("text", "")).lower():
                return var
        raise InternalError("SCB metadata has no region variable")

    @staticmethod
    def _region_names(region_var: dict) -> Dict[str, str]:
        name_to_code = {}
        for code, text in zip(region_var.get("values", []), region_var.get("valueTexts", [])):
            if not MUNICIPALITY_CODE.match(code):
                continue
            # Some tables label regions "0114 Upplands Väsby"
            name = text[len(code):].strip() if text.startswith(code) else text.strip()
            name_to_code[name] = code
        return name_to_code

    def _build_query(self, region_code: str, codes: List[str]) -> dict:
        selections = [
            {"code": region_code, "selection": {"filter": "item", "values": codes}},
            {"code": "ContentsCode", "selection": {"filter": "item", "values": [self.settings.SCB_CONTENTS_CODE]}},
            {"code": "Tid", "selection": {"filter": "item", "values": [self.settings.SCB_YEAR]}},
        ]
        for var_code, values in self.settings.SCB_FILTERS.items():
            selections.append({"code": var_code, "selection": {"filter": "item", "values": list(values)}})
        return {"query": selections, "response": {"format": "json"}}

    @staticmethod
    def _region_values(table: dict, region_code: str) -> Dict[str, float]:
        key_columns = [c.get("code") for c in table.get("columns", []) if c.get("type") != "c"]
        region_index = key_columns.index(region_code) if region_code in key_columns else 0

        code_to_value = {}
        for row in table.get("data", []):
            try:
                code = row["key"][region_index]
                value = float(row["values"][0])
            except (KeyError, IndexError, TypeError, ValueError):
                # ".." and "-" mark missing values in SCB tables
                continue
            code_to_value[code] = value
        return code_to_value

    # ===== Boundaries (GeoJSON) =====

    async def _load_boundaries(self) -> List[Dict[str, Any]]:
        logs.log(logging.INFO, "Refreshing municipality boundaries")
        async with httpx.AsyncClient(transport=self.transport, follow_redirects=True) as client:
            data = await self._get_json(client, "GET", self.settings.BOUNDARIES_URL, "Boundaries")

        features = data.get("features") if isinstance(data, dict) else None
        if not isinstance(features, list):
            raise InternalError("Boundary source did not return a FeatureCollection")
        logs.log(logging.INFO, f"Loaded {len(features)} boundary features")
        return features

    async def _get_json(self, client: httpx.AsyncClient, method: str, url: str, label: str, **kwargs) -> Any:
        try:
            response = await client.request(method, url, timeout=30.0, **kwargs)
        except httpx.HTTPError as e:
            logs.log(logging.ERROR, f"{label} unreachable: {str(e)}")
            raise UpstreamError(f"{label} request failed", status_code=500) from e

        if not response.is_success:
            logs.log(logging.ERROR, f"{label} error: {response.status_code}")
            raise UpstreamError(f"{label} request failed", status_code=500, upstream_status=response.status_code)
        return response.json()
