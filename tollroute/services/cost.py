from typing import Iterable

from tollroute.models import MatchedFacility


def total_cost(facilities: Iterable[MatchedFacility], vehicle_class: str) -> float:
    # Unknown tariffs count as zero.
    return sum((item.facility.cost_for(vehicle_class) for item in facilities), 0.0)
