"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from claim_pipeline.records.models import (
    Agency,
    GpsLogPoint,
    Route,
    RouteStop,
    TimetableEntry,
    TripTransaction,
)
from claim_pipeline.records.source import MemorySource
from claim_pipeline.transform.geometry import encode_polyline

SGT = timezone(timedelta(hours=8))

# Seven checkpoints heading north, about 556 m apart
CHECKPOINTS = [(3.100 + 0.005 * i, 101.6) for i in range(7)]
STOP_NAMES = ["Terminal A", "Jalan Dua", "Jalan Tiga", "Terminal B"]


def at(hour: int, minute: int, second: int = 0, day: int = 20) -> datetime:
    """Aware datetime on August 2024 in UTC+8."""
    return datetime(2024, 8, day, hour, minute, second, tzinfo=SGT)


def millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def make_trx(**overrides: object) -> TripTransaction:
    """Transaction on route R1 outbound with sensible defaults."""
    values: dict[str, object] = {
        "trip_id": "T1",
        "route_id": "R1",
        "direction": 1,
        "journey_id": "J1",
        "route_short_name": "100",
        "route_name": "Terminal A - Terminal B",
        "started_at": at(8, 3),
        "ended_at": at(8, 40),
        "scheduled_at": at(8, 0),
        "scheduled_end_time": at(8, 35),
        "vehicle_registration_number": "VAA1234",
        "vehicle_age": 2018,
        "driver_name": "Ali Bin Abu",
        "staff_id": "D001",
        "device_serial_number": "ETM01",
        "no_of_adult": 1,
        "amount": Decimal("1.50"),
        "journey_ended": at(8, 20),
        "km_outbound": 12.5,
        "km_inbound": 12.5,
        "km_rate": 1.95,
        "polyline": encode_polyline(CHECKPOINTS),
    }
    values.update(overrides)
    return TripTransaction(**values)


def point(moment: datetime, lat: float, lon: float = 101.6, **kwargs: object) -> GpsLogPoint:
    return GpsLogPoint(timestamp=millis(moment), lat=lat, lon=lon, **kwargs)


def make_stops(route_id: str = "R1") -> tuple[RouteStop, ...]:
    """Four stops per direction on every other checkpoint."""
    stops = []
    for direction, names in ((1, STOP_NAMES), (2, list(reversed(STOP_NAMES)))):
        lats = [3.100, 3.110, 3.120, 3.130]
        if direction == 2:
            lats.reverse()
        for sequence, (name, lat) in enumerate(zip(names, lats), start=1):
            stops.append(
                RouteStop(
                    stop_id=f"S-{name}",
                    route_id=route_id,
                    direction=direction,
                    sequence=sequence,
                    name=name,
                    lat=lat,
                    lon=101.6,
                )
            )
    return tuple(stops)


@pytest.fixture
def tz() -> ZoneInfo:
    return ZoneInfo("Asia/Singapore")


@pytest.fixture
def route() -> Route:
    return Route(
        route_id="R1",
        agency_id="1",
        short_name="100",
        name="Terminal A - Terminal B",
        polyline=encode_polyline(CHECKPOINTS),
        km_outbound=12.5,
        km_inbound=12.5,
        km_rate=1.95,
        stops=make_stops(),
    )


@pytest.fixture
def full_run_log() -> list[GpsLogPoint]:
    """Bus waits at the origin, leaves at 08:02 and drives the whole route."""
    return [
        point(at(7, 58), 3.100, speed=0, stop_name="Terminal A", sequence=1),
        point(at(8, 2), 3.103, speed=25),
        point(at(8, 4), 3.105, speed=32),
        point(at(8, 10), 3.110, speed=18, stop_name="Jalan Dua", sequence=2),
        point(at(8, 15), 3.115, speed=35),
        point(at(8, 20), 3.120, speed=20, stop_name="Jalan Tiga", sequence=3),
        point(at(8, 25), 3.125, speed=30),
        point(at(8, 35), 3.130, speed=0, stop_name="Terminal B", sequence=4),
    ]


@pytest.fixture
def timetable_entries() -> list[TimetableEntry]:
    return [
        TimetableEntry("R1", 1, "tuesday", "07:15:00", "07:50:00"),
        TimetableEntry("R1", 1, "tuesday", "08:00:00", "08:35:00"),
        TimetableEntry("R1", 2, "tuesday", "10:00:00", "10:35:00"),
    ]


@pytest.fixture
def memory_source(route: Route, full_run_log: list[GpsLogPoint], timetable_entries) -> MemorySource:
    """Online agency 1 and offline agency 2 sharing route R1."""
    offline_route = Route(
        route_id="R1",
        agency_id="2",
        short_name=route.short_name,
        name=route.name,
        polyline=route.polyline,
        km_outbound=route.km_outbound,
        km_inbound=route.km_inbound,
        km_rate=route.km_rate,
        stops=route.stops,
    )
    online = [
        make_trx(trip_id="T1", journey_id="J1"),
        make_trx(
            trip_id="T1",
            journey_id="J2",
            user_id="U1",
            no_of_adult=0,
            no_of_child=1,
            amount=Decimal("0.85"),
            journey_created=at(8, 5),
        ),
        make_trx(
            trip_id="T2",
            journey_id="J3",
            direction=2,
            started_at=at(10, 1),
            ended_at=at(10, 40),
            scheduled_at=at(10, 0),
            scheduled_end_time=at(10, 35),
            vehicle_registration_number="VBB5678",
            driver_name="Siti Aminah",
            amount=Decimal("3.00"),
        ),
    ]
    return MemorySource(
        agencies=[
            Agency("1", "Metro Bus", using_offline_trip=False),
            Agency("2", "Rural Bus", using_offline_trip=True),
        ],
        transactions={"1": online, "2": [make_trx(trip_id="T9", journey_id="J9")]},
        timetables={"1": timetable_entries, "2": timetable_entries},
        routes=[route, offline_route],
        trip_logs={"T1": full_run_log, "T9": full_run_log},
    )


@pytest.fixture
def report_event() -> dict[str, object]:
    return {
        "agencyId": "1",
        "timestamp": "2024-08-21T00:00:00+08:00",
        "from": "2024-08-20T00:00:00+08:00",
        "to": "2024-08-20T23:59:59+08:00",
    }


@pytest.fixture
def claim_dataset() -> Path:
    """Path to the CSV fixture dataset."""
    return Path(__file__).parent / "fixtures" / "dataset"
