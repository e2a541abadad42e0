import threading
from typing import Dict, List, Optional

import pytest

from tollroute.geo import haversine_distance, route_length_meters
from tollroute.models import FacilityCandidate, GeoPoint, MatchConfig, Route


def straight_route(
    start_lat: float = 19.0,
    start_lon: float = -99.0,
    end_lat: float = 19.0,
    end_lon: float = -98.9,
    num_points: int = 10,
    total_distance_km: Optional[float] = None,
) -> Route:
    points = [
        GeoPoint(
            longitude=start_lon + (end_lon - start_lon) * i / (num_points - 1),
            latitude=start_lat + (end_lat - start_lat) * i / (num_points - 1),
        )
        for i in range(num_points)
    ]
    if total_distance_km is None:
        total_distance_km = route_length_meters(points) / 1000.0
    return Route(points=points, total_distance_km=total_distance_km, total_duration_min=12)


def facility(
    facility_id: str,
    latitude: float,
    longitude: float,
    costs: Optional[Dict[str, float]] = None,
    direction: Optional[str] = None,
) -> FacilityCandidate:
    return FacilityCandidate(
        id=facility_id,
        name=f"Caseta {facility_id}",
        location=GeoPoint(longitude=longitude, latitude=latitude),
        cost_by_vehicle_class=costs if costs is not None else {"auto": 100.0, "camion": 250.0},
        road_name="Mexico-Puebla",
        road_segment_label="Tramo 1",
        direction=direction,
    )


class FakeFacilityStore:
    """In-memory stand-in for the PostGIS proximity query."""

    def __init__(self, facilities: List[FacilityCandidate], fail: bool = False):
        self.facilities = facilities
        self.fail = fail
        self.calls = 0
        self._lock = threading.Lock()

    def find_nearby(self, longitude: float, latitude: float, radius_meters: float) -> List[FacilityCandidate]:
        with self._lock:
            self.calls += 1
        if self.fail:
            raise RuntimeError("facility store unavailable")
        origin = GeoPoint(longitude=longitude, latitude=latitude)
        hits = [(haversine_distance(origin, f.location), f) for f in self.facilities]
        return [f for distance, f in sorted(hits, key=lambda item: item[0]) if distance <= radius_meters]


@pytest.fixture
def route() -> Route:
    return straight_route()


@pytest.fixture
def config() -> MatchConfig:
    return MatchConfig(
        search_radius_meters=5000.0,
        proximity_threshold_meters=50.0,
        min_facility_separation_meters=100.0,
        fetch_batch_pause_seconds=0.0,
        fetch_timeout_seconds=5.0,
    )
