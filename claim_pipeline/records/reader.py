"""Directory-backed report source reading CSV exports."""

import csv
import logging
from decimal import Decimal
from pathlib import Path
from zoneinfo import ZoneInfo

from claim_pipeline.records.clock import parse_timestamp
from claim_pipeline.records.models import (
    DEFAULT_TIMEZONE,
    Agency,
    GpsLogPoint,
    Route,
    RouteStop,
    TimetableEntry,
    TripTransaction,
)
from claim_pipeline.records.source import TimeWindow, transaction_in_window

logger = logging.getLogger(__name__)


class DirectorySource:
    """
    Read agencies, routes, stops, timetables and transactions from a directory.

    Expected layout::

        agencies.csv      agency_id, name, using_offline_trip
        routes.csv        route_id, agency_id, short_name, name, polyline, km_*, ...
        stops.csv         stop_id, route_id, direction_id, sequence, name, lat, lon
        timetable.csv     agency_id, route_id, direction_id, day, start_time, end_time
        transactions.csv  one row per fare event
        trip_logs/<trip_id>.csv  timestamp, latitude, longitude, speed, stopName, sequence, stopId
    """

    def __init__(self, data_path: str, timezone: str = DEFAULT_TIMEZONE) -> None:
        """Initialize source with the data directory path."""
        self.data_path = Path(data_path)
        if not self.data_path.is_dir():
            raise ValueError(f"Data path not found or not a directory: {data_path}")

        self.tz = ZoneInfo(timezone)
        self.agencies: list[Agency] = []
        self.routes: list[Route] = []
        self.timetable: dict[str, list[TimetableEntry]] = {}
        self.transactions: dict[str, list[TripTransaction]] = {}
        self._loaded = False

    def read_all(self) -> None:
        """Read all reference and transaction files."""
        logger.info(f"Reading report data from {self.data_path}")
        self.read_agencies()
        self.read_routes()
        self.read_timetable()
        self.read_transactions()
        self._loaded = True
        logger.info(
            f"Loaded {len(self.agencies)} agencies, {len(self.routes)} routes, "
            f"{sum(len(v) for v in self.timetable.values())} timetable entries, "
            f"{sum(len(v) for v in self.transactions.values())} transactions"
        )

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.read_all()

    def read_agencies(self) -> None:
        """Read agencies.csv."""
        file_path = self._required("agencies.csv")
        with open(file_path, encoding="utf-8-sig") as f:
            for row in csv.DictReader(f):
                self.agencies.append(
                    Agency(
                        agency_id=row["agency_id"],
                        name=row.get("name", ""),
                        using_offline_trip=_parse_bool(row.get("using_offline_trip")),
                    )
                )

    def read_routes(self) -> None:
        """Read routes.csv and attach stops from stops.csv."""
        stops_by_route: dict[str, list[RouteStop]] = {}
        stops_path = self.data_path / "stops.csv"
        if stops_path.exists():
            with open(stops_path, encoding="utf-8-sig") as f:
                for row in csv.DictReader(f):
                    stop = RouteStop(
                        stop_id=row["stop_id"],
                        route_id=row["route_id"],
                        direction=int(row["direction_id"]),
                        sequence=int(row["sequence"]),
                        name=row.get("name", ""),
                        lat=float(row["lat"]),
                        lon=float(row["lon"]),
                    )
                    stops_by_route.setdefault(stop.route_id, []).append(stop)
        else:
            logger.warning("stops.csv not found, routes will have no stops")

        file_path = self._required("routes.csv")
        with open(file_path, encoding="utf-8-sig") as f:
            for row in csv.DictReader(f):
                route_id = row["route_id"]
                stops = sorted(
                    stops_by_route.get(route_id, []), key=lambda s: (s.direction, s.sequence)
                )
                self.routes.append(
                    Route(
                        route_id=route_id,
                        agency_id=row["agency_id"],
                        short_name=row.get("short_name", ""),
                        name=row.get("name", ""),
                        polyline=row.get("polyline", ""),
                        km_outbound=_optional_float(row.get("km_outbound")),
                        km_inbound=_optional_float(row.get("km_inbound")),
                        km_loop=_optional_float(row.get("km_loop")),
                        km_rate=_optional_float(row.get("km_rate")),
                        is_restricted_stop=_parse_bool(row.get("is_restricted_stop")),
                        stops=tuple(stops),
                    )
                )

    def read_timetable(self) -> None:
        """Read timetable.csv."""
        file_path = self.data_path / "timetable.csv"
        if not file_path.exists():
            logger.warning("timetable.csv not found, no ad-hoc reconciliation possible")
            return

        with open(file_path, encoding="utf-8-sig") as f:
            for row in csv.DictReader(f):
                entry = TimetableEntry(
                    route_id=row["route_id"],
                    direction=int(row["direction_id"]),
                    day=row["day"].strip().lower(),
                    start_time=row["start_time"].strip(),
                    end_time=row["end_time"].strip(),
                )
                self.timetable.setdefault(row["agency_id"], []).append(entry)

    def read_transactions(self) -> None:
        """Read transactions.csv."""
        file_path = self._required("transactions.csv")
        with open(file_path, encoding="utf-8-sig") as f:
            for row in csv.DictReader(f):
                trx = TripTransaction(
                    trip_id=row["trip_id"],
                    route_id=row["route_id"],
                    direction=int(row["direction"]),
                    journey_id=_optional_str(row.get("journey_id")),
                    route_short_name=row.get("route_short_name", ""),
                    route_name=row.get("route_name", ""),
                    started_at=parse_timestamp(row.get("started_at"), self.tz),
                    ended_at=parse_timestamp(row.get("ended_at"), self.tz),
                    scheduled_at=parse_timestamp(row.get("scheduled_at"), self.tz),
                    scheduled_end_time=parse_timestamp(row.get("scheduled_end_time"), self.tz),
                    vehicle_registration_number=_optional_str(
                        row.get("vehicle_registration_number")
                    ),
                    vehicle_age=_optional_int(row.get("vehicle_age")),
                    driver_name=_optional_str(row.get("driver_name")),
                    staff_id=_optional_str(row.get("staff_id")),
                    device_serial_number=_optional_str(row.get("device_serial_number")),
                    user_id=_optional_str(row.get("user_id")),
                    no_of_adult=_optional_int(row.get("no_of_adult")) or 0,
                    no_of_child=_optional_int(row.get("no_of_child")) or 0,
                    no_of_senior=_optional_int(row.get("no_of_senior")) or 0,
                    no_of_oku=_optional_int(row.get("no_of_oku")) or 0,
                    no_of_foreign_adult=_optional_int(row.get("no_of_foreign_adult")) or 0,
                    no_of_foreign_child=_optional_int(row.get("no_of_foreign_child")) or 0,
                    amount=Decimal(row.get("amount") or "0"),
                    journey_created=parse_timestamp(row.get("journey_created"), self.tz),
                    journey_ended=parse_timestamp(row.get("journey_ended"), self.tz),
                    km_outbound=_optional_float(row.get("km_outbound")),
                    km_inbound=_optional_float(row.get("km_inbound")),
                    km_loop=_optional_float(row.get("km_loop")),
                    km_rate=_optional_float(row.get("km_rate")),
                    trip_mileage=_optional_float(row.get("trip_mileage")),
                    polyline=row.get("polyline") or "",
                    is_restricted_stop=_parse_bool(row.get("is_restricted_stop")),
                )
                self.transactions.setdefault(row["agency_id"], []).append(trx)

    def _required(self, filename: str) -> Path:
        file_path = self.data_path / filename
        if not file_path.exists():
            raise FileNotFoundError(f"Required file not found: {file_path}")
        return file_path

    def fetch_agency(self, agency_id: str) -> Agency | None:
        self._ensure_loaded()
        return next((a for a in self.agencies if a.agency_id == agency_id), None)

    def fetch_transactions(
        self, agency_id: str, route_id: str | None, window: TimeWindow
    ) -> list[TripTransaction]:
        self._ensure_loaded()
        return [
            trx
            for trx in self.transactions.get(agency_id, [])
            if (route_id is None or trx.route_id == route_id)
            and transaction_in_window(trx, window)
        ]

    def fetch_timetable(self, agency_id: str) -> list[TimetableEntry]:
        self._ensure_loaded()
        return list(self.timetable.get(agency_id, []))

    def fetch_route(self, route_id: str, agency_id: str) -> Route | None:
        self._ensure_loaded()
        return next(
            (r for r in self.routes if r.route_id == route_id and r.agency_id == agency_id),
            None,
        )

    def fetch_trip_log(self, trip_id: str) -> list[GpsLogPoint]:
        """Read trip_logs/<trip_id>.csv; a missing file means no GPS log."""
        file_path = self.data_path / "trip_logs" / f"{trip_id}.csv"
        if not file_path.exists():
            return []

        points: list[GpsLogPoint] = []
        with open(file_path, encoding="utf-8-sig") as f:
            for row in csv.DictReader(f):
                points.append(
                    GpsLogPoint(
                        timestamp=int(row["timestamp"]),
                        lat=float(row["latitude"]),
                        lon=float(row["longitude"]),
                        speed=_optional_float(row.get("speed")) or 0.0,
                        stop_name=_optional_str(row.get("stopName")),
                        sequence=_optional_int(row.get("sequence")),
                        stop_id=_optional_str(row.get("stopId")),
                    )
                )
        points.sort(key=lambda p: p.timestamp)
        return points


def _optional_str(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value or value.lower() == "null":
        return None
    return value


def _optional_float(value: str | None) -> float | None:
    value = _optional_str(value)
    return float(value) if value is not None else None


def _optional_int(value: str | None) -> int | None:
    value = _optional_str(value)
    return int(float(value)) if value is not None else None


def _parse_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "t", "yes")
