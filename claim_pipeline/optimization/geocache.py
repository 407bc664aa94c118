"""Memoized geo-hit lookups for trip GPS logs."""

import hashlib
import logging

from claim_pipeline.records.models import (
    GeoCacheEntry,
    GeoCacheKey,
    GpsLogPoint,
    Route,
    TripTransaction,
)
from claim_pipeline.transform.geometry import Checkpoint, decode_polyline, is_within_radius

logger = logging.getLogger(__name__)

ORIGIN_RADIUS_M = 100
CHECKPOINT_RADIUS_M = 200
STOP_RADIUS_M = 200
# Checkpoint indices probed for the start of a trip
START_CHECKPOINTS = (0, 5)


def polyline_digest(polyline: str) -> str:
    return hashlib.sha256(polyline.encode("utf-8")).hexdigest()


def _any_point_near(
    points: list[GpsLogPoint], lat: float, lon: float, radius: float
) -> bool:
    return any(is_within_radius(p.lat, p.lon, lat, lon, radius) for p in points)


class GeoHitCache:
    """
    Per-run cache of how a trip's GPS log relates to its route.

    Entries are computed on first request and never change afterwards, so
    repeated lookups for the same trip, route, direction and geometry return
    the identical entry.
    """

    def __init__(
        self, trip_logs: dict[str, list[GpsLogPoint]], routes: dict[str, Route]
    ) -> None:
        self.trip_logs = trip_logs
        self.routes = routes
        self._entries: dict[GeoCacheKey, GeoCacheEntry] = {}
        self.misses = 0

    def key_for(self, trx: TripTransaction) -> GeoCacheKey:
        return GeoCacheKey(
            trip_id=trx.trip_id,
            route_id=trx.route_id,
            direction=trx.direction,
            polyline_digest=polyline_digest(trx.polyline),
        )

    def get(self, trx: TripTransaction) -> GeoCacheEntry:
        """Geo hits for the trip a transaction belongs to."""
        key = self.key_for(trx)
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            entry = self._compute(trx)
            self._entries[key] = entry
        return entry

    def _compute(self, trx: TripTransaction) -> GeoCacheEntry:
        points = self.trip_logs.get(trx.trip_id, [])
        if not points:
            return GeoCacheEntry()

        checkpoints = self._decode(trx)
        start_hits = 0
        between_hits = 0
        if checkpoints:
            for idx in START_CHECKPOINTS:
                if idx >= len(checkpoints):
                    continue
                radius = ORIGIN_RADIUS_M if idx == 0 else CHECKPOINT_RADIUS_M
                lat, lon = checkpoints[idx]
                if _any_point_near(points, lat, lon, radius):
                    start_hits += 1

            for lat, lon in checkpoints[1:-1]:
                if _any_point_near(points, lat, lon, CHECKPOINT_RADIUS_M):
                    between_hits += 1

        stop_hits = set()
        route = self.routes.get(trx.route_id)
        if route is not None:
            for stop in route.stops_for(trx.direction):
                if _any_point_near(points, stop.lat, stop.lon, STOP_RADIUS_M):
                    stop_hits.add(stop.sequence)

        return GeoCacheEntry(
            start_hits=start_hits,
            between_hits=between_hits,
            stop_sequence_hits=frozenset(stop_hits),
        )

    def _decode(self, trx: TripTransaction) -> list[Checkpoint]:
        if not trx.polyline:
            return []
        try:
            return decode_polyline(trx.polyline)
        except ValueError as e:
            logger.warning(f"Undecodable polyline for trip {trx.trip_id}: {e}")
            return []

    def __len__(self) -> int:
        return len(self._entries)
