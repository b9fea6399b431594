from typing import List, Optional
from fastapi import APIRouter, Depends

from kartproxy.dependencies import get_poi_service
from kartproxy.models.poi_model import Poi
from kartproxy.services.poi_service import PoiService

router = APIRouter()

@router.get("/api/pois", response_model=List[Poi])
async def get_pois_endpoint(
    category: Optional[str] = None,
    bbox: Optional[str] = None,
    service: PoiService = Depends(get_poi_service)
):
    return await service.get_pois(category, bbox)
