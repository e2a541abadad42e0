from fastapi import APIRouter, Depends, HTTPException

from tollroute.dependencies import get_facility_repository
from tollroute.facility_repository import FacilityRepository
from tollroute.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health(repository: FacilityRepository = Depends(get_facility_repository)):
    try:
        db_checks = repository.health()
    except Exception as exc:
        raise HTTPException(
            status_code=500,
            detail={"code": "health_check_failed", "message": "Health check failed."},
        ) from exc
    return {"status": "ok", **db_checks}
