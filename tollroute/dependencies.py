from functools import lru_cache

from tollroute.cache import result_cache
from tollroute.facility_repository import FacilityRepository, facility_repository
from tollroute.routing_client import HereRoutingClient
from tollroute.services.toll_service import TollRouteService


@lru_cache(maxsize=1)
def get_toll_service() -> TollRouteService:
    # Built on first use so the app can start without HERE credentials.
    return TollRouteService(
        routing=HereRoutingClient(),
        find_nearby=facility_repository.find_nearby,
        cache=result_cache,
    )


def get_facility_repository() -> FacilityRepository:
    return facility_repository
