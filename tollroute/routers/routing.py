from fastapi import APIRouter, Depends, HTTPException

from tollroute.cache import result_cache
from tollroute.dependencies import get_toll_service
from tollroute.errors import AppError
from tollroute.schemas import CacheClearResponse, CacheStatsResponse, TollRouteRequest, TollRouteResponse
from tollroute.services.toll_service import TollRouteService

router = APIRouter(prefix="/routing", tags=["routing"])


@router.post("/tolls", response_model=TollRouteResponse)
def route_tolls(payload: TollRouteRequest, service: TollRouteService = Depends(get_toll_service)):
    result_cache.cleanup_expired()
    try:
        result = service.calculate(
            origin_lat=payload.origin.latitude,
            origin_lon=payload.origin.longitude,
            dest_lat=payload.destination.latitude,
            dest_lon=payload.destination.longitude,
            vehicle_class=payload.vehicle_class,
            direction=payload.direction,
        )
    except AppError as exc:
        raise HTTPException(status_code=exc.status_code, detail={"code": exc.code, "message": exc.message}) from exc
    return TollRouteResponse.from_result(result)


@router.get("/cache/stats", response_model=CacheStatsResponse)
def cache_stats():
    return result_cache.stats()


@router.delete("/cache", response_model=CacheClearResponse)
def clear_cache():
    return {"evicted_entries": result_cache.clear()}
