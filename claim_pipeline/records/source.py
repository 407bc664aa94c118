"""Upstream collaborators the report engine reads from."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from claim_pipeline.records.models import (
    Agency,
    GpsLogPoint,
    Route,
    TimetableEntry,
    TripTransaction,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive query window for transactions."""

    start: datetime
    end: datetime


class ReportSource(Protocol):
    """Storage interface consumed by one report run."""

    def fetch_agency(self, agency_id: str) -> Agency | None: ...

    def fetch_transactions(
        self, agency_id: str, route_id: str | None, window: TimeWindow
    ) -> list[TripTransaction]: ...

    def fetch_timetable(self, agency_id: str) -> list[TimetableEntry]: ...

    def fetch_route(self, route_id: str, agency_id: str) -> Route | None: ...

    def fetch_trip_log(self, trip_id: str) -> list[GpsLogPoint]: ...


def transaction_in_window(trx: TripTransaction, window: TimeWindow) -> bool:
    """Whether a transaction's started or scheduled time falls in the window."""
    moment = trx.started_at or trx.scheduled_at
    if moment is None:
        return False
    return window.start <= moment <= window.end


@dataclass
class MemorySource:
    """In-memory ReportSource over plain lists."""

    agencies: list[Agency] = field(default_factory=list)
    transactions: dict[str, list[TripTransaction]] = field(default_factory=dict)
    timetables: dict[str, list[TimetableEntry]] = field(default_factory=dict)
    routes: list[Route] = field(default_factory=list)
    trip_logs: dict[str, list[GpsLogPoint]] = field(default_factory=dict)

    def fetch_agency(self, agency_id: str) -> Agency | None:
        for agency in self.agencies:
            if agency.agency_id == agency_id:
                return agency
        return None

    def fetch_transactions(
        self, agency_id: str, route_id: str | None, window: TimeWindow
    ) -> list[TripTransaction]:
        return [
            trx
            for trx in self.transactions.get(agency_id, [])
            if (route_id is None or trx.route_id == route_id)
            and transaction_in_window(trx, window)
        ]

    def fetch_timetable(self, agency_id: str) -> list[TimetableEntry]:
        return list(self.timetables.get(agency_id, []))

    def fetch_route(self, route_id: str, agency_id: str) -> Route | None:
        for route in self.routes:
            if route.route_id == route_id and route.agency_id == agency_id:
                return route
        return None

    def fetch_trip_log(self, trip_id: str) -> list[GpsLogPoint]:
        return list(self.trip_logs.get(trip_id, []))
