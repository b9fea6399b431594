from fastapi import APIRouter, Depends

from kartproxy.dependencies import get_statistics_service
from kartproxy.models.stats_model import FeatureCollection, UnmatchedRegions
from kartproxy.services.stats_service import StatisticsService

router = APIRouter()

@router.get("/api/kommuner-sysselsattning", response_model=FeatureCollection)
async def municipalities_endpoint(service: StatisticsService = Depends(get_statistics_service)):
    return await service.get_enriched_boundaries()

@router.get("/api/kommuner-sysselsattning/unmatched", response_model=UnmatchedRegions)
async def unmatched_endpoint(service: StatisticsService = Depends(get_statistics_service)):
    """Municipality names from the last merge that had no statistics match."""
    return UnmatchedRegions(unmatched=service.last_unmatched)
