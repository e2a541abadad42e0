import flexpolyline
import pytest
import requests

from tollroute.errors import InvalidRouteResponse, RouteUnavailable
from tollroute.models import GeoPoint
from tollroute.routing_client import HereRoutingClient, parse_route_payload


class FakeResponse:
    def __init__(self, status_code=200, payload=None, body_is_json=True):
        self.status_code = status_code
        self._payload = payload
        self._body_is_json = body_is_json

    def json(self):
        if not self._body_is_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append({"url": url, "params": params, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _section(coords, length=5000, duration=300):
    return {
        "polyline": flexpolyline.encode(coords),
        "summary": {"length": length, "duration": duration},
    }


def _payload(*sections):
    return {"routes": [{"sections": list(sections)}]}


def _client(responses, sleeps=None):
    session = FakeSession(responses)
    client = HereRoutingClient(
        api_key="test-key",
        base_url="https://router.example/v8/routes",
        timeout=3,
        max_attempts=3,
        backoff_min=1,
        backoff_max=5,
        session=session,
        sleep=(sleeps.append if sleeps is not None else lambda _: None),
    )
    return client, session


def test_parse_single_section():
    payload = _payload(_section([(19.0, -99.0), (19.0, -98.95), (19.0, -98.9)], length=10512, duration=750))

    route = parse_route_payload(payload)

    assert route.points[0] == GeoPoint(longitude=-99.0, latitude=19.0)
    assert route.points[-1] == GeoPoint(longitude=-98.9, latitude=19.0)
    assert len(route.points) == 3
    assert route.total_distance_km == pytest.approx(10.512)
    assert route.total_duration_min == 12


def test_sections_are_joined_without_repeating_the_shared_vertex():
    payload = _payload(
        _section([(19.0, -99.0), (19.0, -98.95)], length=5000, duration=300),
        _section([(19.0, -98.95), (19.0, -98.9)], length=5000, duration=330),
    )

    route = parse_route_payload(payload)

    assert [p.longitude for p in route.points] == [-99.0, -98.95, -98.9]
    assert route.total_distance_km == pytest.approx(10.0)
    assert route.total_duration_min == 10


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"routes": []},
        {"routes": [{"sections": []}]},
        {"routes": [{"sections": [{"summary": {"length": 1, "duration": 1}}]}]},
        {"routes": [{"sections": [{"polyline": "XXXX", "summary": {"length": 1, "duration": 1}}]}]},
        _payload({"polyline": flexpolyline.encode([(19.0, -99.0), (19.0, -98.9)]), "summary": {}}),
        _payload(_section([(19.0, -99.0)])),
    ],
)
def test_malformed_payloads_are_rejected(payload):
    with pytest.raises(InvalidRouteResponse):
        parse_route_payload(payload)


def test_get_route_sends_here_parameters():
    client, session = _client([FakeResponse(payload=_payload(_section([(19.0, -99.0), (19.0, -98.9)])))])

    route = client.get_route(19.0, -99.0, 19.0, -98.9)

    params = session.requests[0]["params"]
    assert params["apiKey"] == "test-key"
    assert params["origin"] == "19.0,-99.0"
    assert params["destination"] == "19.0,-98.9"
    assert params["transportMode"] == "car"
    assert "polyline" in params["return"]
    assert session.requests[0]["timeout"] == 3
    assert len(route.to_route().points) == 2


def test_transient_failures_are_retried_with_backoff():
    sleeps = []
    ok = FakeResponse(payload=_payload(_section([(19.0, -99.0), (19.0, -98.9)])))
    client, session = _client([FakeResponse(status_code=503), requests.ConnectionError("reset"), ok], sleeps)

    route = client.get_route(19.0, -99.0, 19.0, -98.9)

    assert len(session.requests) == 3
    assert sleeps == [1, 2]
    assert route.total_distance_km == pytest.approx(5.0)


def test_exhausted_retries_raise_route_unavailable():
    client, session = _client([FakeResponse(status_code=429)] * 3)

    with pytest.raises(RouteUnavailable):
        client.get_route(19.0, -99.0, 19.0, -98.9)
    assert len(session.requests) == 3


def test_client_errors_are_not_retried():
    client, session = _client([FakeResponse(status_code=400), FakeResponse(status_code=200)])

    with pytest.raises(RouteUnavailable):
        client.get_route(19.0, -99.0, 19.0, -98.9)
    assert len(session.requests) == 1


def test_non_json_body_is_invalid():
    client, _ = _client([FakeResponse(body_is_json=False)])
    with pytest.raises(InvalidRouteResponse):
        client.get_route(19.0, -99.0, 19.0, -98.9)


def test_missing_api_key_is_refused():
    with pytest.raises(ValueError):
        HereRoutingClient(api_key="", session=FakeSession([]))


def test_out_of_range_polyline_coordinate_is_a_bad_payload():
    payload = _payload(_section([(19.0, -99.0), (95.0, -98.9)]))
    with pytest.raises(InvalidRouteResponse):
        parse_route_payload(payload)
