"""Trip punctuality and completion classification."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from claim_pipeline.records.models import (
    PUNCTUALITY_EARLY_MINUTES,
    PUNCTUALITY_LATE_MINUTES,
    STOP_COVERAGE_PERCENT,
    GeoCacheEntry,
    ReportConfig,
    TripTransaction,
)

logger = logging.getLogger(__name__)

ON_TIME = "ON TIME"
NOT_PUNCTUAL = "NOT PUNCTUAL"
COMPLETE = "Complete"
NOT_COMPLETE = "No Complete"
NO_GPS_TRACKING = "No GPS Tracking"
OUTSIDE_SCHEDULE = "Trip outside schedule"

MIN_START_HITS = 2
MIN_BETWEEN_HITS = 1


@dataclass(frozen=True)
class TripClassification:
    punctuality: str
    status: str
    status_j: str
    status_detail: str


def punctuality(
    scheduled_at: datetime | None,
    started_at: datetime | None,
    actual_start: datetime | None,
    early_minutes: int = PUNCTUALITY_EARLY_MINUTES,
    late_minutes: int = PUNCTUALITY_LATE_MINUTES,
) -> str:
    """ON TIME when the inferred start falls inside the scheduled window."""
    if scheduled_at is None or started_at is None or actual_start is None:
        return NOT_PUNCTUAL

    earliest = scheduled_at - timedelta(minutes=early_minutes)
    latest = scheduled_at + timedelta(minutes=late_minutes)
    if earliest <= actual_start <= latest:
        return ON_TIME

    same_minute = actual_start.replace(second=0, microsecond=0) == scheduled_at.replace(
        second=0, microsecond=0
    )
    return ON_TIME if same_minute else NOT_PUNCTUAL


def stop_coverage_status(
    ended_at: datetime | None,
    stop_count: int,
    stop_hits: int,
    coverage_percent: int = STOP_COVERAGE_PERCENT,
) -> str:
    """Complete when an ended trip touched enough of the direction's stops."""
    if ended_at is None or stop_count == 0:
        return NOT_COMPLETE
    # Integer form of stop_count * percent / 100 <= hits
    if stop_count * coverage_percent <= stop_hits * 100:
        return COMPLETE
    return NOT_COMPLETE


def checkpoint_status(polyline: str, hits: GeoCacheEntry) -> str:
    """Complete when the trip passed the route start and at least one interior checkpoint."""
    if polyline and hits.start_hits >= MIN_START_HITS and hits.between_hits >= MIN_BETWEEN_HITS:
        return COMPLETE
    return NOT_COMPLETE


def status_detail(has_log: bool, scheduled_at: datetime | None) -> str:
    if not has_log:
        return NO_GPS_TRACKING
    if scheduled_at is None:
        return OUTSIDE_SCHEDULE
    return ""


def classify_trip(
    trx: TripTransaction,
    has_log: bool,
    hits: GeoCacheEntry,
    stop_count: int,
    actual_start: datetime | None,
    config: ReportConfig,
) -> TripClassification:
    """Classify one trip from its representative transaction."""
    return TripClassification(
        punctuality=punctuality(
            trx.scheduled_at,
            trx.started_at,
            actual_start if has_log else None,
            config.punctuality_early_minutes,
            config.punctuality_late_minutes,
        ),
        status=checkpoint_status(trx.polyline, hits),
        status_j=stop_coverage_status(
            trx.ended_at,
            stop_count,
            len(hits.stop_sequence_hits),
            config.stop_coverage_percent,
        ),
        status_detail=status_detail(has_log, trx.scheduled_at),
    )
