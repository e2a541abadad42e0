from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from tollroute.models import FacilityCandidate, MatchedFacility, MatchResult


Direction = Literal["N-S", "S-N", "E-W", "W-E", "E-O", "O-E"]


class HealthResponse(BaseModel):
    status: str
    db_ok: bool
    postgis_ok: bool
    facilities_table_ok: bool


class CoordinateInput(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class TollRouteRequest(BaseModel):
    origin: CoordinateInput
    destination: CoordinateInput
    vehicle_class: Optional[str] = Field(default=None, min_length=1, max_length=32)
    direction: Optional[Direction] = None


class FacilityOut(BaseModel):
    id: str
    name: str
    latitude: float
    longitude: float
    road_name: str
    road_segment: str
    direction: Optional[str] = None
    costs: Dict[str, float]

    @classmethod
    def from_candidate(cls, facility: FacilityCandidate) -> "FacilityOut":
        return cls(
            id=facility.id,
            name=facility.name,
            latitude=facility.location.latitude,
            longitude=facility.location.longitude,
            road_name=facility.road_name,
            road_segment=facility.road_segment_label,
            direction=facility.direction,
            costs=dict(facility.cost_by_vehicle_class),
        )


class MatchedFacilityOut(FacilityOut):
    perpendicular_distance_meters: float
    distance_along_route_meters: float

    @classmethod
    def from_matched(cls, matched: MatchedFacility) -> "MatchedFacilityOut":
        base = FacilityOut.from_candidate(matched.facility)
        return cls(
            **base.model_dump(),
            perpendicular_distance_meters=round(matched.perpendicular_distance_meters, 2),
            distance_along_route_meters=round(matched.distance_along_route_meters, 2),
        )


class TollRouteResponse(BaseModel):
    total_distance_km: float
    total_duration_min: float
    vehicle_class: str
    total_cost: float
    facility_count: int
    facilities: List[MatchedFacilityOut]

    @classmethod
    def from_result(cls, result: MatchResult) -> "TollRouteResponse":
        return cls(
            total_distance_km=result.total_distance_km,
            total_duration_min=result.total_duration_min,
            vehicle_class=result.vehicle_class,
            total_cost=result.total_cost,
            facility_count=len(result.facilities),
            facilities=[MatchedFacilityOut.from_matched(item) for item in result.facilities],
        )


class CacheStatsResponse(BaseModel):
    entries: int
    hits: int
    misses: int
    ttl_seconds: int


class CacheClearResponse(BaseModel):
    evicted_entries: int


class FacilitySummary(BaseModel):
    facility_count: int
    road_count: int
    directional_count: int
