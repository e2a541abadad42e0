import logging
from typing import Optional, Sequence, Tuple

from tollroute.geo import bearing, matches_direction, perpendicular_distance
from tollroute.logging_setup import LOGGER_NAME
from tollroute.models import FacilityCandidate, GeoPoint, MatchConfig, MatchedFacility, Route, SampledPoint

logger = logging.getLogger(LOGGER_NAME)


def nearest_segment(location: GeoPoint, route: Route) -> Tuple[int, float]:
    """Index of the route segment closest to ``location`` and the distance to it.

    Segment ``i`` runs from ``route.points[i]`` to ``route.points[i + 1]``; on
    ties the earliest segment wins.
    """
    best_index = 0
    best_distance = float("inf")
    points = route.points
    for i in range(len(points) - 1):
        distance = perpendicular_distance(location, points[i], points[i + 1])
        if distance < best_distance:
            best_distance = distance
            best_index = i
    return best_index, best_distance


def preceding_sample(segment_index: int, samples: Sequence[SampledPoint]) -> SampledPoint:
    """Closest sample point at or before the start of segment ``segment_index``."""
    before = [sample for sample in samples if sample.index <= segment_index]
    return max(before, key=lambda sample: sample.index) if before else samples[0]


def _segment_heading(route: Route, segment_index: int) -> Optional[float]:
    start = route.points[segment_index]
    for end in route.points[segment_index + 1 :]:
        if end != start:
            return bearing(start, end)
    return None


def direction_consistent(
    candidate: FacilityCandidate,
    segment_index: int,
    route: Route,
    samples: Sequence[SampledPoint],
    config: MatchConfig,
) -> bool:
    """Whether the heading towards the facility agrees with its direction-of-travel tag.

    Untagged facilities always pass.
    """
    if not candidate.direction:
        return True

    reference = preceding_sample(segment_index, samples)
    if reference.point != candidate.location:
        heading = bearing(reference.point, candidate.location)
    else:
        heading = _segment_heading(route, segment_index)
        if heading is None:
            return True
    return matches_direction(heading, candidate.direction, config.direction_tolerance_degrees)


def match_candidate(
    candidate: FacilityCandidate,
    route: Route,
    cumulative: Sequence[float],
    samples: Sequence[SampledPoint],
    config: MatchConfig,
) -> Optional[MatchedFacility]:
    """Match a facility against the full route, or ``None`` if it is rejected.

    ``cumulative`` holds the prefix lengths of ``route.points`` in meters.
    """
    segment_index, distance = nearest_segment(candidate.location, route)
    if distance > config.proximity_threshold_meters:
        return None

    if config.direction_filter_enabled and not direction_consistent(candidate, segment_index, route, samples, config):
        logger.debug(
            "facility_direction_mismatch",
            extra={"facility_id": candidate.id, "direction": candidate.direction},
        )
        return None

    return MatchedFacility(
        facility=candidate,
        perpendicular_distance_meters=distance,
        distance_along_route_meters=cumulative[segment_index],
        segment_index=segment_index,
    )
