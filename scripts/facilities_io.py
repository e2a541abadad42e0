import argparse
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List

from shapely.geometry import Point, mapping, shape

from tollroute.facility_repository import FacilityRepository
from tollroute.models import FacilityCandidate, GeoPoint

COST_PREFIX = "cost_"


def load_geojson(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def iter_features(geojson: Dict[str, Any]) -> Iterable[Dict[str, Any]]:
    for feature in geojson.get("features", []):
        if feature and feature.get("geometry"):
            yield feature


def parse_costs(props: Dict[str, Any]) -> Dict[str, float]:
    costs = dict(props.get("costs") or {})
    # Flat exports carry one column per vehicle class, e.g. cost_auto.
    for key, value in props.items():
        if key.startswith(COST_PREFIX) and value not in (None, ""):
            costs[key[len(COST_PREFIX) :]] = value
    return {vehicle_class: float(value) for vehicle_class, value in costs.items()}


def feature_to_facility(feature: Dict[str, Any], position: int) -> FacilityCandidate:
    geom = shape(feature["geometry"])
    if not isinstance(geom, Point) or geom.is_empty:
        raise ValueError(f"Feature {position} is not a Point geometry.")
    props = feature.get("properties") or {}
    facility_id = props.get("facility_id") or props.get("id") or feature.get("id")
    name = (props.get("name") or "").strip()
    if not facility_id or not name:
        raise ValueError(f"Feature {position} needs facility_id and name.")
    direction = (props.get("direction") or "").strip().upper() or None
    return FacilityCandidate(
        id=str(facility_id),
        name=name,
        location=GeoPoint(longitude=geom.x, latitude=geom.y),
        cost_by_vehicle_class=parse_costs(props),
        road_name=(props.get("road_name") or "").strip(),
        road_segment_label=(props.get("road_segment") or "").strip(),
        direction=direction,
    )


def facility_to_feature(facility: FacilityCandidate) -> Dict[str, Any]:
    point = Point(facility.location.longitude, facility.location.latitude)
    return {
        "type": "Feature",
        "properties": {
            "facility_id": facility.id,
            "name": facility.name,
            "road_name": facility.road_name,
            "road_segment": facility.road_segment_label,
            "direction": facility.direction,
            "costs": dict(facility.cost_by_vehicle_class),
        },
        "geometry": mapping(point),
    }


def import_facilities(repository: FacilityRepository, path: Path, truncate: bool) -> int:
    payload = load_geojson(path)
    facilities: List[FacilityCandidate] = [
        feature_to_facility(feature, position) for position, feature in enumerate(iter_features(payload))
    ]
    repository.ensure_schema()
    return repository.upsert_many(facilities, truncate=truncate)


def export_facilities(repository: FacilityRepository, path: Path) -> int:
    facilities = repository.list_all()
    payload = {
        "type": "FeatureCollection",
        "features": [facility_to_feature(facility) for facility in facilities],
    }
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return len(facilities)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import or export toll facilities as GeoJSON.")
    sub = parser.add_subparsers(dest="command", required=True)

    import_parser = sub.add_parser("import", help="Load a facility FeatureCollection into PostGIS")
    import_parser.add_argument("path", help="Path to facilities GeoJSON")
    import_parser.add_argument("--truncate", action="store_true", help="Remove existing facilities first")

    export_parser = sub.add_parser("export", help="Write all stored facilities to a GeoJSON file")
    export_parser.add_argument("path", help="Output GeoJSON path")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    repository = FacilityRepository()
    path = Path(args.path)

    if args.command == "import":
        count = import_facilities(repository, path, truncate=args.truncate)
        print(f"Imported {count} facilities from {path}")
    else:
        count = export_facilities(repository, path)
        print(f"Wrote {path} ({count} facilities)")


if __name__ == "__main__":
    main()
