"""Infer when a trip actually departed from its GPS log."""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

from claim_pipeline.records.clock import from_epoch_millis, local_date, to_epoch_millis
from claim_pipeline.records.models import (
    DIRECTION_INBOUND,
    LOG_LOOKBACK_MINUTES,
    GpsLogPoint,
    RouteStop,
    TripTransaction,
)
from claim_pipeline.transform.geometry import Checkpoint, decode_polyline, is_within_radius

logger = logging.getLogger(__name__)

ORIGIN_RADIUS_M = 200
RESTRICTED_ORIGIN_RADIUS_M = 100
CHECKPOINT_RADIUS_M = 200

SPEED_RUN_WINDOW = 250
SPEED_RUN_MIN_SPEED = 20
SPEED_RUN_LENGTH = 5


class InferenceTier(Enum):
    """Which rule produced the actual start."""

    CHECKPOINT_EXIT = "checkpoint_exit"
    SPEED_RUN = "speed_run"
    FIRST_LOG = "first_log"
    NONE = "none"


@dataclass(frozen=True)
class StartInference:
    tier: InferenceTier
    timestamp: int | None = None  # epoch millis

    def moment(self, tz: ZoneInfo) -> datetime | None:
        if self.timestamp is None:
            return None
        return from_epoch_millis(self.timestamp, tz)


def filter_trip_log(
    points: list[GpsLogPoint],
    scheduled_at: datetime | None,
    lookback_minutes: int = LOG_LOOKBACK_MINUTES,
) -> list[GpsLogPoint]:
    """
    Points at or after the scheduled start minus the lookback.

    When the first kept point has no stop name, its stop name, sequence and
    stop id are taken from the first point of the whole log.
    """
    if scheduled_at is None:
        filtered = list(points)
    else:
        threshold = to_epoch_millis(scheduled_at - timedelta(minutes=lookback_minutes))
        filtered = [p for p in points if p.timestamp >= threshold]

    if filtered and points and filtered[0].stop_name is None:
        filtered[0] = replace(
            filtered[0],
            stop_name=points[0].stop_name,
            sequence=points[0].sequence,
            stop_id=points[0].stop_id,
        )
    return filtered


def first_stop(stops: list[RouteStop]) -> RouteStop | None:
    """Stop with the lowest sequence; the first one wins a tie."""
    best = None
    for stop in stops:
        if best is None or stop.sequence < best.sequence:
            best = stop
    return best


def checkpoint_exit(
    points: list[GpsLogPoint], checkpoints: list[Checkpoint], origin_radius: float
) -> int | None:
    """Timestamp of the first point leaving the origin checkpoint."""
    if not checkpoints:
        return None

    origin_lat, origin_lon = checkpoints[0]
    others = checkpoints[1:]
    exits: list[GpsLogPoint] = []
    inside_origin = False

    for point in points:
        if is_within_radius(point.lat, point.lon, origin_lat, origin_lon, origin_radius):
            exits = []
            inside_origin = True
        elif inside_origin:
            exits.append(point)
            if any(
                is_within_radius(point.lat, point.lon, lat, lon, CHECKPOINT_RADIUS_M)
                for lat, lon in others
            ):
                break

    return exits[0].timestamp if exits else None


def speed_run(points: list[GpsLogPoint], start: RouteStop | None) -> int | None:
    """
    Timestamp of a sustained departure from the first stop.

    Once a point names the first stop, five consecutive fast points mark the
    departure. How far the bus had progressed along the stop sequence by then
    decides which point is reported.
    """
    if start is None or not start.name.strip():
        return None

    start_name = start.name.strip().lower()
    highest_sequence = 0
    fast_points = 0
    at_start = False

    window = points[:SPEED_RUN_WINDOW]
    for i, point in enumerate(window):
        if point.sequence is not None and point.sequence > highest_sequence:
            highest_sequence = point.sequence

        if not at_start and point.stop_name and point.stop_name.strip().lower() == start_name:
            at_start = True

        if not at_start:
            continue

        if point.speed >= SPEED_RUN_MIN_SPEED:
            fast_points += 1
            if fast_points == SPEED_RUN_LENGTH:
                if highest_sequence == start.sequence:
                    return point.timestamp
                if highest_sequence == start.sequence + 1:
                    return window[i - (SPEED_RUN_LENGTH - 1)].timestamp
                return window[0].timestamp
        else:
            fast_points = 0

    return None


def first_log(points: list[GpsLogPoint], started_at: datetime | None, tz: ZoneInfo) -> int:
    """First point, moved onto the observed start date when it falls on another day."""
    first = points[0]
    observed_date = local_date(started_at, tz)
    if observed_date is None or from_epoch_millis(first.timestamp, tz).date() == observed_date:
        return first.timestamp

    for point in points:
        if from_epoch_millis(point.timestamp, tz).date() == observed_date:
            return point.timestamp

    logger.warning(f"No GPS point on {observed_date:%d/%m/%Y}, keeping first point")
    return first.timestamp


def infer_actual_start(
    trip_log: list[GpsLogPoint],
    trx: TripTransaction,
    stops: list[RouteStop],
    tz: ZoneInfo,
    lookback_minutes: int = LOG_LOOKBACK_MINUTES,
) -> StartInference:
    """Apply the checkpoint, speed and first-point rules in order."""
    points = filter_trip_log(trip_log, trx.scheduled_at, lookback_minutes)
    if not points:
        return StartInference(InferenceTier.NONE)

    checkpoints = _route_checkpoints(trx)
    radius = RESTRICTED_ORIGIN_RADIUS_M if trx.is_restricted_stop else ORIGIN_RADIUS_M
    timestamp = checkpoint_exit(points, checkpoints, radius)
    if timestamp is not None:
        return StartInference(InferenceTier.CHECKPOINT_EXIT, timestamp)

    timestamp = speed_run(points, first_stop(stops))
    if timestamp is not None:
        return StartInference(InferenceTier.SPEED_RUN, timestamp)

    return StartInference(InferenceTier.FIRST_LOG, first_log(points, trx.started_at, tz))


def _route_checkpoints(trx: TripTransaction) -> list[Checkpoint]:
    if not trx.polyline:
        return []
    try:
        checkpoints = decode_polyline(trx.polyline)
    except ValueError as e:
        logger.warning(f"Undecodable polyline for trip {trx.trip_id}: {e}")
        return []
    if trx.direction == DIRECTION_INBOUND:
        checkpoints.reverse()
    return checkpoints
