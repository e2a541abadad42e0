import logging
from typing import Optional, Protocol

from tollroute.cache import ResultCache, build_cache_key
from tollroute.config import settings
from tollroute.errors import AppError
from tollroute.geo import DIRECTION_HEADINGS
from tollroute.logging_setup import LOGGER_NAME
from tollroute.models import GeoPoint, MatchConfig, MatchResult
from tollroute.services.proximity import FindNearby
from tollroute.services.route_matching import match_route

logger = logging.getLogger(LOGGER_NAME)


class RoutingProvider(Protocol):
    def get_route(self, origin_lat: float, origin_lon: float, dest_lat: float, dest_lon: float): ...


class TollRouteService:
    """Prices the toll facilities between two coordinates, caching whole results."""

    def __init__(
        self,
        routing: RoutingProvider,
        find_nearby: FindNearby,
        cache: ResultCache,
        config: Optional[MatchConfig] = None,
    ):
        self.routing = routing
        self.find_nearby = find_nearby
        self.cache = cache
        self.config = config or MatchConfig.from_settings(settings)

    def calculate(
        self,
        origin_lat: float,
        origin_lon: float,
        dest_lat: float,
        dest_lon: float,
        vehicle_class: Optional[str] = None,
        direction: Optional[str] = None,
    ) -> MatchResult:
        origin = GeoPoint.from_lat_lon(origin_lat, origin_lon)
        destination = GeoPoint.from_lat_lon(dest_lat, dest_lon)
        vehicle_class = vehicle_class or settings.default_vehicle_class
        if direction is not None:
            direction = direction.strip().upper()
            if direction not in DIRECTION_HEADINGS:
                raise AppError("invalid_direction", f"Unknown direction of travel: {direction}.", 400)

        effective_direction = direction if self.config.direction_filter_enabled else None
        key = build_cache_key(origin, destination, vehicle_class, effective_direction)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("route_cache_hit", extra={"cache_key": key})
            return cached

        route = self.routing.get_route(
            origin.latitude, origin.longitude, destination.latitude, destination.longitude
        ).to_route()
        result = match_route(route, vehicle_class, self.config, self.find_nearby, direction=effective_direction)

        self.cache.set(key, result)
        logger.info(
            "route_tolls_computed",
            extra={
                "cache_key": key,
                "facility_count": len(result.facilities),
                "total_cost": result.total_cost,
                "vehicle_class": vehicle_class,
            },
        )
        return result
