"""Schedule reconciliation for trips that started without a scheduled time."""

import logging
from dataclasses import replace
from functools import reduce
from zoneinfo import ZoneInfo

from claim_pipeline.records.clock import (
    at_time_of_day,
    parse_time_of_day,
    seconds_of_day,
    weekday_name,
)
from claim_pipeline.records.models import TimetableEntry, TripTransaction
from claim_pipeline.records.timetable import Timetable

logger = logging.getLogger(__name__)


def closest_time_of_day(candidates: list[int], goal: int) -> int:
    """
    Candidate numerically closest to `goal`, all values in seconds since midnight.

    The fold starts from midnight (0), so a candidate only wins when it is
    strictly closer than both midnight and every earlier candidate.
    """
    return reduce(
        lambda best, current: current if abs(current - goal) < abs(best - goal) else best,
        candidates,
        0,
    )


def _times_of_day(entries: list[TimetableEntry], field_name: str) -> list[int]:
    """Parsed times of day for one timetable column; malformed entries are skipped."""
    times = []
    for entry in entries:
        value = getattr(entry, field_name)
        try:
            times.append(parse_time_of_day(value))
        except ValueError:
            logger.warning(
                f"Skipping timetable entry for route {entry.route_id} "
                f"direction {entry.direction} with invalid {field_name} {value!r}"
            )
    return times


def reconcile_transaction(
    trx: TripTransaction, timetable: Timetable, tz: ZoneInfo
) -> TripTransaction:
    """Assign a timetable slot to an ad-hoc transaction; others pass through."""
    if trx.started_at is None or trx.scheduled_at is not None:
        return trx

    service_day = trx.started_at.astimezone(tz).date()
    entries = timetable.entries_for(trx.route_id, trx.direction, weekday_name(service_day))
    if not entries:
        logger.warning(
            f"No timetable for route {trx.route_id} direction {trx.direction} on "
            f"{weekday_name(service_day)}, trip {trx.trip_id} reconciled to midnight"
        )

    closest_start = closest_time_of_day(
        _times_of_day(entries, "start_time"),
        seconds_of_day(trx.started_at, tz),
    )
    scheduled_end_time = None
    if trx.ended_at is not None:
        closest_end = closest_time_of_day(
            _times_of_day(entries, "end_time"),
            seconds_of_day(trx.ended_at, tz),
        )
        scheduled_end_time = at_time_of_day(service_day, closest_end, tz)

    return replace(
        trx,
        adhoc=True,
        scheduled_at=at_time_of_day(service_day, closest_start, tz),
        scheduled_end_time=scheduled_end_time,
    )


def reconcile_schedules(
    transactions: list[TripTransaction], timetable: Timetable, tz: ZoneInfo
) -> list[TripTransaction]:
    """Reconcile every ad-hoc transaction against the timetable."""
    reconciled = [reconcile_transaction(trx, timetable, tz) for trx in transactions]
    adhoc_count = sum(1 for before, after in zip(transactions, reconciled) if before is not after)
    logger.info(f"Reconciled {adhoc_count} ad-hoc transactions against the timetable")
    return reconciled
