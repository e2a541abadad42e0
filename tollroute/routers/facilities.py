from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from tollroute.config import settings
from tollroute.dependencies import get_facility_repository
from tollroute.errors import SpatialQueryFailure
from tollroute.facility_repository import FacilityRepository
from tollroute.schemas import FacilityOut, FacilitySummary

router = APIRouter(prefix="/facilities", tags=["facilities"])


@router.get("/summary", response_model=FacilitySummary)
def facility_summary(repository: FacilityRepository = Depends(get_facility_repository)):
    try:
        return repository.summary()
    except Exception as exc:
        raise HTTPException(
            status_code=500,
            detail={"code": "summary_fetch_failed", "message": "Failed to fetch facility summary."},
        ) from exc


@router.get("/nearby", response_model=List[FacilityOut])
def nearby_facilities(
    latitude: float = Query(ge=-90, le=90),
    longitude: float = Query(ge=-180, le=180),
    radius_meters: float = Query(default=settings.search_radius_meters, gt=0, le=50_000),
    repository: FacilityRepository = Depends(get_facility_repository),
):
    try:
        candidates = repository.find_nearby(longitude, latitude, radius_meters)
    except SpatialQueryFailure as exc:
        raise HTTPException(status_code=exc.status_code, detail={"code": exc.code, "message": exc.message}) from exc
    return [FacilityOut.from_candidate(candidate) for candidate in candidates]
