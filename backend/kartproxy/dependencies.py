"""
Process-lifetime service singletons.
Caches live inside these objects, so every request must share them.
Tests swap them through `app.dependency_overrides`.
"""
from functools import lru_cache
from kartproxy.core.config import settings
from kartproxy.core.llm_connection import LLMService
from kartproxy.repos.poi_repo import PoiRepository
from kartproxy.services.chat_service import ChatService
from kartproxy.services.geocode_service import GeocodingService
from kartproxy.services.poi_service import PoiService
from kartproxy.services.stats_service import StatisticsService
from kartproxy.services.tile_service import TileProxy
from kartproxy.services.token_service import TokenCache


@lru_cache
def get_token_cache() -> TokenCache:
    return TokenCache(settings)

@lru_cache
def get_tile_proxy() -> TileProxy:
    return TileProxy(settings, get_token_cache())

@lru_cache
def get_poi_service() -> PoiService:
    repo = PoiRepository(ttl=settings.POI_CACHE_TTL, max_entries=settings.POI_CACHE_MAX_ENTRIES)
    return PoiService(settings, repo)

@lru_cache
def get_chat_service() -> ChatService:
    return ChatService(settings, LLMService(settings), GeocodingService(settings))

@lru_cache
def get_statistics_service() -> StatisticsService:
    return StatisticsService(settings)
