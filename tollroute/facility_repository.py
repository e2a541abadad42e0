from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

import psycopg
from psycopg.types.json import Jsonb

from tollroute.config import settings
from tollroute.db import get_db
from tollroute.errors import SpatialQueryFailure
from tollroute.logging_setup import LOGGER_NAME
from tollroute.models import FacilityCandidate, GeoPoint
from tollroute.retry import retry_with_backoff

logger = logging.getLogger(LOGGER_NAME)


CREATE_FACILITIES_SQL = """
CREATE TABLE IF NOT EXISTS toll_facilities (
    facility_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    road_name TEXT NOT NULL DEFAULT '',
    road_segment TEXT NOT NULL DEFAULT '',
    direction TEXT,
    costs JSONB NOT NULL DEFAULT '{}'::jsonb,
    geom geometry(Point, 4326) NOT NULL,
    updated_at TIMESTAMP DEFAULT NOW()
);
"""

CREATE_INDEXES_SQL = """
CREATE INDEX IF NOT EXISTS idx_toll_facilities_geom ON toll_facilities USING GIST (geom);
CREATE INDEX IF NOT EXISTS idx_toll_facilities_road_name ON toll_facilities(road_name);
"""

FACILITY_COLUMNS = """
    f.facility_id,
    f.name,
    f.road_name,
    f.road_segment,
    f.direction,
    f.costs,
    ST_X(f.geom) AS longitude,
    ST_Y(f.geom) AS latitude
"""


def row_to_candidate(row: Dict[str, Any]) -> FacilityCandidate:
    return FacilityCandidate(
        id=str(row["facility_id"]),
        name=row["name"],
        location=GeoPoint(longitude=float(row["longitude"]), latitude=float(row["latitude"])),
        cost_by_vehicle_class=row.get("costs") or {},
        road_name=row.get("road_name") or "",
        road_segment_label=row.get("road_segment") or "",
        direction=row.get("direction"),
    )


class FacilityRepository:
    """Toll facility store on PostGIS; answers the proximity queries of the matcher."""

    def __init__(
        self,
        statement_timeout_ms: Optional[int] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.statement_timeout_ms = statement_timeout_ms or settings.spatial_query_timeout_ms
        backoff = backoff_seconds if backoff_seconds is not None else settings.spatial_query_backoff_seconds
        attempts = max_attempts or settings.spatial_query_max_attempts
        self._query_nearby_with_retry = retry_with_backoff(
            max_attempts=attempts,
            base_delay=backoff,
            max_delay=backoff * attempts,
            mode="linear",
            retry_on=(psycopg.Error,),
            sleep=sleep,
            operation="find_nearby",
        )(self._query_nearby)

    def ensure_schema(self) -> None:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("CREATE EXTENSION IF NOT EXISTS postgis")
                cur.execute(CREATE_FACILITIES_SQL)
                cur.execute(CREATE_INDEXES_SQL)
            conn.commit()

    def health(self) -> Dict[str, bool]:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1 AS ok")
                db_ok = cur.fetchone()["ok"] == 1

                cur.execute("SELECT EXISTS(SELECT 1 FROM pg_extension WHERE extname = 'postgis') AS ok")
                postgis_ok = bool(cur.fetchone()["ok"])

                cur.execute("SELECT to_regclass('public.toll_facilities') IS NOT NULL AS ok")
                facilities_ok = bool(cur.fetchone()["ok"])

        return {
            "db_ok": db_ok,
            "postgis_ok": postgis_ok,
            "facilities_table_ok": facilities_ok,
        }

    def _query_nearby(self, longitude: float, latitude: float, radius_meters: float) -> List[Dict[str, Any]]:
        with get_db(statement_timeout_ms=self.statement_timeout_ms) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    WITH p AS (
                        SELECT ST_SetSRID(ST_Point(%s, %s), 4326) AS geom
                    )
                    SELECT {FACILITY_COLUMNS}
                    FROM toll_facilities f
                    CROSS JOIN p
                    WHERE ST_DWithin(f.geom::geography, p.geom::geography, %s)
                    ORDER BY f.geom <-> p.geom
                    """,
                    (longitude, latitude, radius_meters),
                )
                return cur.fetchall()

    def find_nearby(self, longitude: float, latitude: float, radius_meters: float) -> List[FacilityCandidate]:
        try:
            rows = self._query_nearby_with_retry(longitude, latitude, radius_meters)
        except psycopg.Error as exc:
            raise SpatialQueryFailure(
                f"Nearby facility query failed at ({latitude}, {longitude}): {exc}"
            ) from exc
        return [row_to_candidate(row) for row in rows]

    def list_all(self) -> List[FacilityCandidate]:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {FACILITY_COLUMNS} FROM toll_facilities f ORDER BY f.road_name, f.name")
                return [row_to_candidate(row) for row in cur.fetchall()]

    def summary(self) -> Dict[str, int]:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT
                        COUNT(*)::int AS facility_count,
                        COUNT(DISTINCT road_name)::int AS road_count,
                        COUNT(*) FILTER (WHERE direction IS NOT NULL)::int AS directional_count
                    FROM toll_facilities
                    """
                )
                return cur.fetchone()

    def upsert_many(self, facilities: Iterable[FacilityCandidate], truncate: bool = False) -> int:
        count = 0
        with get_db() as conn:
            with conn.cursor() as cur:
                if truncate:
                    cur.execute("TRUNCATE toll_facilities")
                for facility in facilities:
                    cur.execute(
                        """
                        INSERT INTO toll_facilities (
                            facility_id, name, road_name, road_segment, direction, costs, geom
                        )
                        VALUES (%s, %s, %s, %s, %s, %s, ST_SetSRID(ST_Point(%s, %s), 4326))
                        ON CONFLICT (facility_id) DO UPDATE SET
                            name = EXCLUDED.name,
                            road_name = EXCLUDED.road_name,
                            road_segment = EXCLUDED.road_segment,
                            direction = EXCLUDED.direction,
                            costs = EXCLUDED.costs,
                            geom = EXCLUDED.geom,
                            updated_at = NOW()
                        """,
                        (
                            facility.id,
                            facility.name,
                            facility.road_name,
                            facility.road_segment_label,
                            facility.direction,
                            Jsonb(dict(facility.cost_by_vehicle_class)),
                            facility.location.longitude,
                            facility.location.latitude,
                        ),
                    )
                    count += 1
            conn.commit()
        return count


facility_repository = FacilityRepository()
