from typing import Callable, Dict, Iterable, List, Optional

from tollroute.geo import haversine_distance
from tollroute.models import FacilityCandidate, MatchedFacility


class FacilityIndex:
    """Facilities seen during one match run, keyed by id.

    The first observation of an id is final: later sightings of the same
    facility from other sample points are not matched again.
    """

    def __init__(self):
        self._seen: set[str] = set()
        self._matched: Dict[str, MatchedFacility] = {}

    def __contains__(self, facility_id: str) -> bool:
        return facility_id in self._seen

    def __len__(self) -> int:
        return len(self._matched)

    def observe(
        self,
        candidate: FacilityCandidate,
        matcher: Callable[[FacilityCandidate], Optional[MatchedFacility]],
    ) -> Optional[MatchedFacility]:
        if candidate.id in self._seen:
            return None
        self._seen.add(candidate.id)
        matched = matcher(candidate)
        if matched is not None:
            self._matched[candidate.id] = matched
        return matched

    def matched(self) -> List[MatchedFacility]:
        return list(self._matched.values())


def sequence_facilities(matched: Iterable[MatchedFacility], min_separation_meters: float) -> List[MatchedFacility]:
    """Order facilities along the route and drop near-duplicates.

    A facility closer than ``min_separation_meters`` to the last kept one is
    treated as a second detection of the same booth.
    """
    ordered = sorted(matched, key=lambda item: (item.distance_along_route_meters, item.id))
    kept: List[MatchedFacility] = []
    for item in ordered:
        if kept and haversine_distance(kept[-1].location, item.location) < min_separation_meters:
            continue
        kept.append(item)
    return kept
