"""Tests for the directory-backed report source."""

from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest
from conftest import SGT, millis

from claim_pipeline.records.reader import DirectorySource
from claim_pipeline.records.source import TimeWindow


@pytest.fixture
def source(claim_dataset: Path) -> DirectorySource:
    return DirectorySource(str(claim_dataset))


@pytest.fixture
def day_window() -> TimeWindow:
    return TimeWindow(
        start=datetime(2024, 8, 20, 0, 0, tzinfo=SGT),
        end=datetime(2024, 8, 20, 23, 59, 59, tzinfo=SGT),
    )


def test_reader_basic(source: DirectorySource) -> None:
    """Test every reference file is loaded."""
    source.read_all()

    assert len(source.agencies) == 2
    assert len(source.routes) == 1
    assert len(source.routes[0].stops) == 8
    assert len(source.timetable["1"]) == 4
    assert len(source.transactions["1"]) == 5


def test_fetch_agency(source: DirectorySource) -> None:
    assert source.fetch_agency("1").name == "Metro Bus"
    assert source.fetch_agency("2").using_offline_trip
    assert source.fetch_agency("99") is None


def test_route_stops_sorted(source: DirectorySource) -> None:
    route = source.fetch_route("R1", "1")

    assert route is not None
    assert route.km_loop is None
    assert route.km_rate == 1.95
    assert [s.sequence for s in route.stops_for(1)] == [1, 2, 3, 4]
    assert [s.name for s in route.stops_for(2)][0] == "Terminal B"
    assert source.fetch_route("R1", "2") is None


def test_transactions_parsed(source: DirectorySource, day_window: TimeWindow) -> None:
    trxs = source.fetch_transactions("1", None, day_window)
    by_journey = {trx.journey_id: trx for trx in trxs}

    assert len(trxs) == 5
    assert by_journey["J1"].amount == Decimal("2.50")
    assert by_journey["J1"].user_id is None
    assert by_journey["J2"].is_cashless
    assert by_journey["J3"].scheduled_at is None
    assert by_journey["J4"].no_of_foreign_adult == 1
    assert by_journey["J1"].started_at == datetime(2024, 8, 20, 8, 3, tzinfo=SGT)


def test_transactions_window_and_route(source: DirectorySource) -> None:
    morning = TimeWindow(
        start=datetime(2024, 8, 20, 8, 0, tzinfo=SGT),
        end=datetime(2024, 8, 20, 9, 30, tzinfo=SGT),
    )

    assert len(source.fetch_transactions("1", None, morning)) == 3
    assert source.fetch_transactions("1", "R9", morning) == []
    assert source.fetch_transactions("2", None, morning) == []


def test_trip_log_null_sentinels(source: DirectorySource) -> None:
    """Test "null" cells in a GPS log become missing values."""
    log = source.fetch_trip_log("T100")

    assert len(log) == 8
    assert log[0].timestamp == millis(datetime(2024, 8, 20, 7, 58, tzinfo=SGT))
    assert log[0].stop_name == "Terminal A"
    assert log[0].sequence == 1
    assert log[1].stop_name is None
    assert log[1].sequence is None
    assert log[1].stop_id is None
    assert log[1].speed == 25


def test_missing_trip_log_is_empty(source: DirectorySource) -> None:
    assert source.fetch_trip_log("T999") == []


def test_reader_missing_directory() -> None:
    with pytest.raises(ValueError):
        DirectorySource("/nonexistent/path")


def test_reader_missing_required_file(tmp_path: Path) -> None:
    (tmp_path / "agencies.csv").write_text("agency_id,name,using_offline_trip\n1,A,false\n")

    source = DirectorySource(str(tmp_path))

    with pytest.raises(FileNotFoundError):
        source.read_all()
