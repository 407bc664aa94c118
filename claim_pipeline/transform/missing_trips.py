"""Placeholder trips for timetabled services that never ran."""

import logging
from zoneinfo import ZoneInfo

from claim_pipeline.records.clock import (
    at_time_of_day,
    parse_time_of_day,
    seconds_of_day,
    weekday_name,
)
from claim_pipeline.records.models import GroupKey, Route, TimetableEntry, TripTransaction
from claim_pipeline.records.timetable import Timetable
from claim_pipeline.transform.aggregate import group_transactions

logger = logging.getLogger(__name__)

MISSING_TRIP_PREFIX = "M1000"


def _placeholder(
    key: GroupKey,
    entry: TimetableEntry,
    template: TripTransaction,
    route: Route | None,
    trip_id: str,
    tz: ZoneInfo,
) -> TripTransaction:
    geometry = route if route is not None else template
    return TripTransaction(
        trip_id=trip_id,
        route_id=key.route_id,
        direction=key.direction,
        route_short_name=template.route_short_name,
        route_name=template.route_name,
        scheduled_at=at_time_of_day(key.service_date, parse_time_of_day(entry.start_time), tz),
        scheduled_end_time=at_time_of_day(
            key.service_date, parse_time_of_day(entry.end_time), tz
        ),
        km_outbound=geometry.km_outbound,
        km_inbound=geometry.km_inbound,
        km_loop=geometry.km_loop,
        km_rate=geometry.km_rate,
        polyline=geometry.polyline or template.polyline,
        is_restricted_stop=geometry.is_restricted_stop,
    )


def synthesize_missing_trips(
    transactions: list[TripTransaction],
    timetable: Timetable,
    routes: dict[str, Route],
    tz: ZoneInfo,
) -> list[TripTransaction]:
    """
    Placeholders for timetable slots with no matching scheduled trip.

    Groups are compared by service date, route and direction; ad-hoc trips do
    not count as serving a slot. Trip ids are M1000<n>, numbered from 1 across
    the whole run. Only the placeholders are returned.
    """
    scheduled = [trx for trx in transactions if not trx.adhoc]
    placeholders: list[TripTransaction] = []
    counter = 1

    for key, group in group_transactions(scheduled, tz).items():
        try:
            if key.service_date is None:
                continue
            if not timetable.has_route(key.route_id):
                logger.warning(f"No timetable found for route {key.route_id}")
                continue

            day = weekday_name(key.service_date)
            entries = timetable.entries_for(key.route_id, key.direction, day)
            if not entries:
                logger.warning(
                    f"No timetable for direction {key.direction} of route {key.route_id} on {day}"
                )
                continue

            served = {
                seconds_of_day(trx.scheduled_at, tz)
                for trx in group
                if trx.scheduled_at is not None
            }
            for entry in entries:
                if parse_time_of_day(entry.start_time) in served:
                    continue
                placeholders.append(
                    _placeholder(
                        key,
                        entry,
                        group[0],
                        routes.get(key.route_id),
                        f"{MISSING_TRIP_PREFIX}{counter}",
                        tz,
                    )
                )
                counter += 1
        except Exception:
            logger.exception(
                f"Failed to synthesize missing trips for route {key.route_id} "
                f"direction {key.direction} on {key.service_date}"
            )

    logger.info(f"Synthesized {len(placeholders)} missing trips")
    return placeholders
