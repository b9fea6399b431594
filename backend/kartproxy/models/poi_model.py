from pydantic import BaseModel
from typing import Dict, NamedTuple

class TagFilter(NamedTuple):
    """Overpass tag filter, rendered as ["key"="value"]"""
    key: str
    value: str

class Poi(BaseModel):
    id: int
    name: str = ""
    lat: float
    lon: float
    tags: Dict[str, str] = {}

# Category id -> Overpass tag filter, in display order
POI_CATEGORIES: Dict[str, TagFilter] = {
    "restauranger": TagFilter("amenity", "restaurant"),
    "kafeer": TagFilter("amenity", "cafe"),
    "parker": TagFilter("leisure", "park"),
    "laddstationer": TagFilter("amenity", "charging_station"),
    "busshallplatser": TagFilter("highway", "bus_stop"),
}
