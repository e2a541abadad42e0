from typing import List

from tollroute.models import MatchConfig, Route, SampledPoint


def sampling_stride(total_distance_km: float, config: MatchConfig) -> int:
    if total_distance_km < config.short_route_threshold_km:
        return config.sample_stride_short
    return config.sample_stride_long


def sample_route(route: Route, config: MatchConfig) -> List[SampledPoint]:
    """Every stride-th polyline point from index 0, plus the last point."""
    stride = sampling_stride(route.total_distance_km, config)
    last_index = len(route.points) - 1
    samples = [SampledPoint(index=i, point=route.points[i]) for i in range(0, last_index + 1, stride)]
    if samples[-1].index != last_index:
        samples.append(SampledPoint(index=last_index, point=route.points[last_index]))
    return samples
