"""Timetable index grouped by route, direction and weekday."""

import logging
from collections import defaultdict

from claim_pipeline.records.models import TimetableEntry

logger = logging.getLogger(__name__)


class Timetable:
    """Planned departures grouped route -> direction -> day, in source order."""

    def __init__(self, entries: list[TimetableEntry]) -> None:
        self._index: dict[str, dict[int, dict[str, list[TimetableEntry]]]] = defaultdict(
            lambda: defaultdict(lambda: defaultdict(list))
        )
        for entry in entries:
            self._index[entry.route_id][entry.direction][entry.day.lower()].append(entry)

        logger.info(
            f"Indexed {len(entries)} timetable entries across {len(self._index)} routes"
        )

    def has_route(self, route_id: str) -> bool:
        return route_id in self._index

    def entries_for(self, route_id: str, direction: int, day: str) -> list[TimetableEntry]:
        """Departures for a route, direction and lower-case weekday name."""
        route = self._index.get(route_id)
        if route is None:
            return []
        by_day = route.get(direction)
        if by_day is None:
            return []
        return list(by_day.get(day.lower(), []))

    def __len__(self) -> int:
        return sum(
            len(entries)
            for directions in self._index.values()
            for days in directions.values()
            for entries in days.values()
        )
