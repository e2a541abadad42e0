import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import flexpolyline
import requests

from tollroute.config import settings
from tollroute.errors import InvalidCoordinate, InvalidRouteResponse, RouteUnavailable
from tollroute.logging_setup import LOGGER_NAME
from tollroute.models import GeoPoint, Route
from tollroute.retry import retry_with_backoff

logger = logging.getLogger(LOGGER_NAME)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class TransientRoutingError(Exception):
    """Routing provider failure worth retrying."""


@dataclass(frozen=True)
class RouteResponse:
    points: Tuple[GeoPoint, ...]
    total_distance_km: float
    total_duration_min: float

    def to_route(self) -> Route:
        return Route(
            points=self.points,
            total_distance_km=self.total_distance_km,
            total_duration_min=self.total_duration_min,
        )


def decode_sections(sections: List[Dict[str, Any]]) -> Tuple[GeoPoint, ...]:
    """Decode and join the flexible polylines of consecutive route sections."""
    points: List[GeoPoint] = []
    for section in sections:
        encoded = section.get("polyline")
        if not encoded:
            raise InvalidRouteResponse("Route section has no polyline.")
        try:
            decoded = flexpolyline.decode(encoded)
        except (ValueError, IndexError, TypeError) as exc:
            raise InvalidRouteResponse(f"Route polyline could not be decoded: {exc}") from exc
        try:
            section_points = [GeoPoint(longitude=coord[1], latitude=coord[0]) for coord in decoded]
        except InvalidCoordinate as exc:
            raise InvalidRouteResponse(f"Route polyline has an invalid coordinate: {exc.message}") from exc
        # Consecutive sections share their joining vertex.
        if points and section_points and points[-1] == section_points[0]:
            section_points = section_points[1:]
        points.extend(section_points)
    return tuple(points)


def parse_route_payload(payload: Dict[str, Any]) -> RouteResponse:
    routes = payload.get("routes") if isinstance(payload, dict) else None
    if not routes:
        raise InvalidRouteResponse("Routing provider returned no routes.")
    sections = routes[0].get("sections") or []
    if not sections:
        raise InvalidRouteResponse("Routing provider returned a route without sections.")

    points = decode_sections(sections)
    if len(points) < 2:
        raise InvalidRouteResponse("Route polyline has fewer than two points.")

    length_m = 0.0
    duration_s = 0.0
    for section in sections:
        summary = section.get("summary") or {}
        try:
            length_m += float(summary["length"])
            duration_s += float(summary["duration"])
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidRouteResponse("Route section summary lacks length or duration.") from exc

    return RouteResponse(
        points=points,
        total_distance_km=length_m / 1000.0,
        total_duration_min=round(duration_s / 60.0),
    )


class HereRoutingClient:
    """HERE Routing v8 adapter: fetches a car route and returns it decoded."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        backoff_min: Optional[float] = None,
        backoff_max: Optional[float] = None,
        session: Optional[requests.Session] = None,
        sleep=None,
    ):
        self.api_key = api_key if api_key is not None else settings.here_api_key
        self.base_url = base_url or settings.here_routing_url
        self.timeout = timeout or settings.routing_timeout_seconds
        self.session = session or requests.Session()
        if not self.api_key:
            raise ValueError("HERE API key not set. Please set HERE_API_KEY in the .env file.")

        retry_kwargs = {} if sleep is None else {"sleep": sleep}
        self._request_with_retry = retry_with_backoff(
            max_attempts=max_attempts or settings.routing_max_attempts,
            base_delay=backoff_min if backoff_min is not None else settings.routing_backoff_min_seconds,
            max_delay=backoff_max if backoff_max is not None else settings.routing_backoff_max_seconds,
            mode="exponential",
            retry_on=(TransientRoutingError,),
            operation="here_route",
            **retry_kwargs,
        )(self._request)

    def _request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransientRoutingError(str(exc)) from exc

        if response.status_code in RETRYABLE_STATUS_CODES:
            raise TransientRoutingError(f"Routing provider answered HTTP {response.status_code}.")
        if response.status_code >= 400:
            raise RouteUnavailable(f"Routing provider rejected the request with HTTP {response.status_code}.")
        try:
            return response.json()
        except ValueError as exc:
            raise InvalidRouteResponse("Routing provider returned a non-JSON body.") from exc

    def get_route(self, origin_lat: float, origin_lon: float, dest_lat: float, dest_lon: float) -> RouteResponse:
        params = {
            "apiKey": self.api_key,
            "transportMode": "car",
            "origin": f"{origin_lat},{origin_lon}",
            "destination": f"{dest_lat},{dest_lon}",
            "return": "polyline,summary",
            "alternatives": 0,
            "units": "metric",
        }
        try:
            payload = self._request_with_retry(params)
        except TransientRoutingError as exc:
            raise RouteUnavailable(f"Routing provider unavailable after retries: {exc}") from exc

        route = parse_route_payload(payload)
        logger.info(
            "route_fetched",
            extra={
                "route_points": len(route.points),
                "distance_km": round(route.total_distance_km, 3),
                "duration_min": route.total_duration_min,
            },
        )
        return route
