import logging
import time
from typing import Optional

from tollroute.geo import DIRECTION_HEADINGS, cumulative_distances, route_bearing
from tollroute.logging_setup import LOGGER_NAME
from tollroute.models import FacilityCandidate, MatchConfig, MatchResult, Route
from tollroute.services.cost import total_cost
from tollroute.services.proximity import FindNearby, fetch_candidates
from tollroute.services.sampler import sample_route
from tollroute.services.segment_matcher import match_candidate
from tollroute.services.sequencer import FacilityIndex, sequence_facilities

logger = logging.getLogger(LOGGER_NAME)


def _same_direction(candidate: FacilityCandidate, direction: str) -> bool:
    if not candidate.direction:
        return True
    tag = candidate.direction.strip().upper()
    requested = direction.strip().upper()
    return tag == requested or DIRECTION_HEADINGS.get(tag) == DIRECTION_HEADINGS.get(requested, -1.0)


def match_route(
    route: Route,
    vehicle_class: str,
    config: MatchConfig,
    find_nearby: FindNearby,
    direction: Optional[str] = None,
) -> MatchResult:
    """Find the toll facilities along ``route`` and price them for ``vehicle_class``.

    ``direction`` only applies when the config enables direction filtering;
    facilities tagged for another direction of travel are then skipped.
    """
    started = time.perf_counter()
    samples = sample_route(route, config)
    pairs = fetch_candidates(samples, find_nearby, config)

    cumulative = cumulative_distances(route.points)
    index = FacilityIndex()
    for _, candidate in pairs:
        if config.direction_filter_enabled and direction and not _same_direction(candidate, direction):
            continue
        index.observe(
            candidate,
            lambda item: match_candidate(item, route, cumulative, samples, config),
        )

    facilities = sequence_facilities(index.matched(), config.min_facility_separation_meters)
    cost = total_cost(facilities, vehicle_class)

    heading = route_bearing(route.points)
    logger.info(
        "match_completed",
        extra={
            "route_points": len(route.points),
            "sampled_points": len(samples),
            "candidate_observations": len(pairs),
            "accepted_facilities": len(index),
            "sequenced_facilities": len(facilities),
            "route_bearing": round(heading, 1) if heading is not None else None,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        },
    )

    return MatchResult(
        total_distance_km=route.total_distance_km,
        total_duration_min=route.total_duration_min,
        facilities=tuple(facilities),
        total_cost=cost,
        vehicle_class=vehicle_class,
    )
