"""Tests for missing-trip synthesis."""

import logging
from decimal import Decimal
from zoneinfo import ZoneInfo

from conftest import at, make_trx

from claim_pipeline.records.models import Route, TimetableEntry
from claim_pipeline.records.timetable import Timetable
from claim_pipeline.transform.missing_trips import synthesize_missing_trips


def test_unserved_slot_gets_placeholder(route: Route, timetable_entries, tz: ZoneInfo) -> None:
    """Test a timetabled 07:15 departure with no trip becomes a placeholder."""
    placeholders = synthesize_missing_trips(
        [make_trx(trip_id="T9")], Timetable(timetable_entries), {"R1": route}, tz
    )

    assert len(placeholders) == 1
    missing = placeholders[0]
    assert missing.trip_id == "M10001"
    assert missing.route_id == "R1"
    assert missing.direction == 1
    assert missing.scheduled_at == at(7, 15)
    assert missing.scheduled_end_time == at(7, 50)
    assert missing.started_at is None
    assert missing.ended_at is None
    assert missing.amount == Decimal("0")
    assert missing.total_pax == 0
    assert missing.polyline == route.polyline
    assert missing.km_outbound == route.km_outbound
    assert missing.route_short_name == "100"


def test_matched_slots_not_duplicated(route: Route, timetable_entries, tz: ZoneInfo) -> None:
    trxs = [
        make_trx(trip_id="T1", scheduled_at=at(7, 15), scheduled_end_time=at(7, 50)),
        make_trx(trip_id="T2"),
    ]

    assert synthesize_missing_trips(trxs, Timetable(timetable_entries), {"R1": route}, tz) == []


def test_adhoc_trips_do_not_serve_slots(route: Route, timetable_entries, tz: ZoneInfo) -> None:
    """Test an ad-hoc trip reconciled onto a slot leaves that slot missing."""
    trxs = [
        make_trx(trip_id="T1"),
        make_trx(trip_id="T2", scheduled_at=at(7, 15), scheduled_end_time=at(7, 50), adhoc=True),
    ]

    placeholders = synthesize_missing_trips(trxs, Timetable(timetable_entries), {"R1": route}, tz)

    assert [p.scheduled_at for p in placeholders] == [at(7, 15)]


def test_counter_runs_across_groups(route: Route, tz: ZoneInfo) -> None:
    """Test placeholder ids keep counting across dates."""
    timetable = Timetable(
        [
            TimetableEntry("R1", 1, "tuesday", "07:15:00", "07:50:00"),
            TimetableEntry("R1", 1, "wednesday", "07:15:00", "07:50:00"),
        ]
    )
    trxs = [
        make_trx(trip_id="T1"),
        make_trx(
            trip_id="T2",
            started_at=at(8, 3, day=21),
            ended_at=at(8, 40, day=21),
            scheduled_at=at(8, 0, day=21),
            scheduled_end_time=at(8, 35, day=21),
        ),
    ]

    placeholders = synthesize_missing_trips(trxs, timetable, {"R1": route}, tz)

    assert [p.trip_id for p in placeholders] == ["M10001", "M10002"]
    assert placeholders[1].scheduled_at == at(7, 15, day=21)


def test_route_without_timetable_skipped(route: Route, tz: ZoneInfo, caplog) -> None:
    with caplog.at_level(logging.WARNING):
        placeholders = synthesize_missing_trips(
            [make_trx()], Timetable([]), {"R1": route}, tz
        )

    assert placeholders == []
    assert "No timetable found for route R1" in caplog.text


def test_direction_without_timetable_skipped(route: Route, tz: ZoneInfo, caplog) -> None:
    timetable = Timetable([TimetableEntry("R1", 2, "tuesday", "10:00:00", "10:35:00")])

    with caplog.at_level(logging.WARNING):
        placeholders = synthesize_missing_trips([make_trx()], timetable, {"R1": route}, tz)

    assert placeholders == []
    assert "No timetable for direction 1" in caplog.text


def test_geometry_falls_back_to_transaction(timetable_entries, tz: ZoneInfo) -> None:
    trx = make_trx(trip_id="T9", km_outbound=9.5)

    placeholders = synthesize_missing_trips([trx], Timetable(timetable_entries), {}, tz)

    assert placeholders[0].polyline == trx.polyline
    assert placeholders[0].km_outbound == 9.5


def test_failing_group_is_skipped(route: Route, tz: ZoneInfo, caplog) -> None:
    """Test a malformed timetable row only drops its own group."""
    timetable = Timetable(
        [
            TimetableEntry("R1", 1, "tuesday", "bad", "07:50:00"),
            TimetableEntry("R1", 2, "tuesday", "10:00:00", "10:35:00"),
        ]
    )
    trxs = [
        make_trx(trip_id="T1"),
        make_trx(trip_id="T2", direction=2, scheduled_at=at(10, 30), scheduled_end_time=at(11, 5)),
    ]

    placeholders = synthesize_missing_trips(trxs, timetable, {"R1": route}, tz)

    assert [p.direction for p in placeholders] == [2]
    assert "Failed to synthesize missing trips" in caplog.text


def test_unpadded_timetable_times_match(route: Route, tz: ZoneInfo) -> None:
    """Test slots are matched on time of day, not on the text of the timetable."""
    timetable = Timetable(
        [
            TimetableEntry("R1", 1, "tuesday", "7:15:00", "7:50:00"),
            TimetableEntry("R1", 1, "tuesday", "08:00", "08:35"),
        ]
    )
    trxs = [
        make_trx(trip_id="T1", scheduled_at=at(7, 15), scheduled_end_time=at(7, 50)),
        make_trx(trip_id="T2"),
    ]

    assert synthesize_missing_trips(trxs, timetable, {"R1": route}, tz) == []
