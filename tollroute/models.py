import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from tollroute.errors import InvalidCoordinate


@dataclass(frozen=True)
class GeoPoint:
    longitude: float
    latitude: float

    def __post_init__(self):
        for name in ("longitude", "latitude"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise InvalidCoordinate(f"{name} must be a finite number, got {value!r}.")
        if not -180.0 <= self.longitude <= 180.0:
            raise InvalidCoordinate(f"longitude {self.longitude} is outside [-180, 180].")
        if not -90.0 <= self.latitude <= 90.0:
            raise InvalidCoordinate(f"latitude {self.latitude} is outside [-90, 90].")
        object.__setattr__(self, "longitude", float(self.longitude))
        object.__setattr__(self, "latitude", float(self.latitude))

    @classmethod
    def from_lat_lon(cls, latitude: float, longitude: float) -> "GeoPoint":
        return cls(longitude=longitude, latitude=latitude)


@dataclass(frozen=True)
class Route:
    points: Tuple[GeoPoint, ...]
    total_distance_km: float
    total_duration_min: float

    def __post_init__(self):
        object.__setattr__(self, "points", tuple(self.points))
        if len(self.points) < 2:
            raise ValueError("A route needs at least two points.")

    @property
    def origin(self) -> GeoPoint:
        return self.points[0]

    @property
    def destination(self) -> GeoPoint:
        return self.points[-1]


@dataclass(frozen=True)
class SampledPoint:
    index: int
    point: GeoPoint


@dataclass(frozen=True)
class FacilityCandidate:
    id: str
    name: str
    location: GeoPoint
    cost_by_vehicle_class: Mapping[str, float] = field(default_factory=dict)
    road_name: str = ""
    road_segment_label: str = ""
    direction: Optional[str] = None

    def __post_init__(self):
        costs = {}
        for vehicle_class, cost in dict(self.cost_by_vehicle_class).items():
            cost = float(cost)
            if not math.isfinite(cost) or cost < 0:
                raise ValueError(f"Cost for {vehicle_class!r} must be a finite non-negative number.")
            costs[vehicle_class] = cost
        object.__setattr__(self, "cost_by_vehicle_class", MappingProxyType(costs))

    def cost_for(self, vehicle_class: str) -> float:
        return self.cost_by_vehicle_class.get(vehicle_class, 0.0)


@dataclass(frozen=True)
class MatchedFacility:
    facility: FacilityCandidate
    perpendicular_distance_meters: float
    distance_along_route_meters: float
    segment_index: int

    @property
    def id(self) -> str:
        return self.facility.id

    @property
    def location(self) -> GeoPoint:
        return self.facility.location


@dataclass(frozen=True)
class MatchResult:
    total_distance_km: float
    total_duration_min: float
    facilities: Tuple[MatchedFacility, ...]
    total_cost: float
    vehicle_class: str

    def __post_init__(self):
        object.__setattr__(self, "facilities", tuple(self.facilities))


@dataclass(frozen=True)
class MatchConfig:
    """Tuning for one match run. Immutable so a run is reproducible from its inputs."""

    search_radius_meters: float = 1000.0
    proximity_threshold_meters: float = 50.0
    min_facility_separation_meters: float = 500.0
    short_route_threshold_km: float = 30.0
    sample_stride_short: int = 5
    sample_stride_long: int = 50
    fetch_concurrency_limit: int = 3
    fetch_batch_size: int = 10
    direction_filter_enabled: bool = False
    fetch_batch_pause_seconds: float = 0.1
    fetch_timeout_seconds: float = 20.0
    direction_tolerance_degrees: float = 45.0

    def __post_init__(self):
        for name in ("sample_stride_short", "sample_stride_long", "fetch_concurrency_limit", "fetch_batch_size"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1.")
        for name in ("search_radius_meters", "fetch_timeout_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be greater than 0.")
        for name in (
            "proximity_threshold_meters",
            "min_facility_separation_meters",
            "short_route_threshold_km",
            "fetch_batch_pause_seconds",
            "direction_tolerance_degrees",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative.")

    @classmethod
    def from_settings(cls, settings) -> "MatchConfig":
        return cls(
            search_radius_meters=settings.search_radius_meters,
            proximity_threshold_meters=settings.proximity_threshold_meters,
            min_facility_separation_meters=settings.min_facility_separation_meters,
            short_route_threshold_km=settings.short_route_threshold_km,
            sample_stride_short=settings.sample_stride_short,
            sample_stride_long=settings.sample_stride_long,
            fetch_concurrency_limit=settings.fetch_concurrency_limit,
            fetch_batch_size=settings.fetch_batch_size,
            direction_filter_enabled=settings.direction_filter_enabled,
            fetch_batch_pause_seconds=settings.fetch_batch_pause_seconds,
            fetch_timeout_seconds=settings.fetch_timeout_seconds,
            direction_tolerance_degrees=settings.direction_tolerance_degrees,
        )
