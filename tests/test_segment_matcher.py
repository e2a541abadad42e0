from dataclasses import replace

import pytest

from tests.conftest import facility, straight_route
from tollroute.geo import METERS_PER_DEGREE, cumulative_distances
from tollroute.models import GeoPoint, MatchConfig, Route
from tollroute.services.sampler import sample_route
from tollroute.services.segment_matcher import match_candidate, nearest_segment


def _match(candidate, route, config):
    samples = sample_route(route, config)
    return match_candidate(candidate, route, cumulative_distances(route.points), samples, config)


def test_nearest_segment_finds_containing_segment(route):
    midpoint = GeoPoint(longitude=-98.95, latitude=19.0)
    index, distance = nearest_segment(midpoint, route)
    assert index == 4
    assert distance == pytest.approx(0.0, abs=1e-6)


def test_nearest_segment_prefers_earliest_on_ties():
    # The shared vertex is equally close to both segments.
    route = straight_route(num_points=3)
    index, distance = nearest_segment(route.points[1], route)
    assert index == 0
    assert distance == pytest.approx(0.0, abs=1e-6)


def test_distance_along_route_is_prefix_length_to_segment_start(route, config):
    candidate = facility("f1", 19.0, -98.95)
    matched = _match(candidate, route, config)
    assert matched is not None
    assert matched.segment_index == 4
    assert matched.distance_along_route_meters == pytest.approx(cumulative_distances(route.points)[4])


def test_threshold_boundary_is_inclusive():
    route = Route(
        points=[GeoPoint(longitude=0.0, latitude=0.0), GeoPoint(longitude=0.01, latitude=0.0)],
        total_distance_km=1.1,
        total_duration_min=1,
    )
    offset_deg = 0.0005
    candidate = facility("edge", offset_deg, 0.005)
    exact = offset_deg * METERS_PER_DEGREE

    accepted = _match(candidate, route, MatchConfig(proximity_threshold_meters=exact))
    assert accepted is not None
    assert accepted.perpendicular_distance_meters == exact

    rejected = _match(candidate, route, MatchConfig(proximity_threshold_meters=exact - 1e-6))
    assert rejected is None


def test_far_facility_is_rejected(route, config):
    candidate = facility("far", 19.01, -98.95)  # about 1.1 km north of the road
    assert _match(candidate, route, config) is None


def test_direction_filter_accepts_matching_tag(route, config):
    directional = replace(config, direction_filter_enabled=True)
    eastbound = facility("east", 19.0, -98.95, direction="W-E")
    assert _match(eastbound, route, directional) is not None


def test_direction_filter_rejects_opposite_tag(route, config):
    directional = replace(config, direction_filter_enabled=True)
    westbound = facility("west", 19.0, -98.95, direction="E-W")
    assert _match(westbound, route, directional) is None
    # Distance-only matching ignores the tag.
    assert _match(westbound, route, config) is not None


def test_direction_filter_uses_segment_heading_on_sample_point(route, config):
    directional = replace(config, direction_filter_enabled=True)
    at_sample = route.points[0]
    candidate = facility("on-sample", at_sample.latitude, at_sample.longitude, direction="O-E")
    assert _match(candidate, route, directional) is not None


def test_untagged_facility_passes_direction_filter(route, config):
    directional = replace(config, direction_filter_enabled=True)
    assert _match(facility("plain", 19.0, -98.95), route, directional) is not None


def test_direction_filter_keeps_tagged_facility_on_diagonal_road(config):
    # Heads roughly north-east, about 40 degrees off north.
    diagonal = straight_route(19.0, -99.0, 19.08, -98.93)
    directional = replace(config, direction_filter_enabled=True)
    assert directional.direction_tolerance_degrees == 45.0

    northbound = facility("northbound", 19.04, -98.965, direction="S-N")
    matched = _match(northbound, diagonal, directional)
    assert matched is not None
    assert matched.segment_index == 4

    eastbound = facility("eastbound", 19.04, -98.965, direction="O-E")
    assert _match(eastbound, diagonal, directional) is None
    southbound = facility("southbound", 19.04, -98.965, direction="N-S")
    assert _match(southbound, diagonal, directional) is None
