from pydantic import BaseModel
from typing import Any, Dict, List

class RegionStatistics(BaseModel):
    """Municipality name -> SCB code, and SCB code -> measured value"""
    name_to_code: Dict[str, str] = {}
    code_to_value: Dict[str, float] = {}

class FeatureCollection(BaseModel):
    type: str = "FeatureCollection"
    features: List[Dict[str, Any]] = []

class UnmatchedRegions(BaseModel):
    unmatched: List[str] = []
