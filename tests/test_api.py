"""Tests for the report entry points."""

import gzip
import json
from decimal import Decimal
from pathlib import Path

import pytest

from claim_pipeline import build_report, handle_request, write_report
from claim_pipeline.exceptions import ReferenceNotFound, RequestRejected
from claim_pipeline.records.models import ReportConfig, ReportRequest
from claim_pipeline.records.reader import DirectorySource
from claim_pipeline.records.source import MemorySource


class BrokenTimetableSource(MemorySource):
    def fetch_timetable(self, agency_id: str) -> list:
        raise RuntimeError("timetable store unavailable")


def _dataset_request() -> ReportRequest:
    return ReportRequest(
        agency_id="1",
        timestamp="2024-08-21T00:00:00+08:00",
        window_from="2024-08-20T00:00:00+08:00",
        window_to="2024-08-20T23:59:59+08:00",
    )


def test_handle_request_ok(memory_source: MemorySource, report_event: dict) -> None:
    outcome = handle_request(report_event, memory_source, ReportConfig())

    assert outcome.ok
    rows = outcome.body["returnData"]
    assert [row["trip_id"] for row in rows] == ["T1", "T2"]
    assert rows[0]["actual_start"] == "08:02"
    assert rows[0]["punctuality"] == "ON TIME"
    assert rows[0]["total_amount"] == "2.35"
    assert rows[1]["status_detail"] == "No GPS Tracking"


def test_handle_request_missing_timestamp(memory_source: MemorySource, report_event: dict) -> None:
    del report_event["timestamp"]

    outcome = handle_request(report_event, memory_source, ReportConfig())

    assert outcome.status_code == 400
    assert outcome.body == {"message": "please provide timestamp value"}


def test_handle_request_unknown_agency(memory_source: MemorySource, report_event: dict) -> None:
    report_event["agencyId"] = "99"

    outcome = handle_request(report_event, memory_source, ReportConfig())

    assert outcome.status_code == 404
    assert outcome.body["message"] == "Agency 99 not found"


def test_handle_request_unknown_route(memory_source: MemorySource, report_event: dict) -> None:
    report_event["route"] = "R404"

    outcome = handle_request(report_event, memory_source, ReportConfig())

    assert outcome.status_code == 404
    assert outcome.body["message"] == "Route R404 not found"


def test_handle_request_internal_error(memory_source: MemorySource, report_event: dict) -> None:
    """Test unexpected failures surface as a 500 with the cause attached."""
    source = BrokenTimetableSource(
        agencies=memory_source.agencies,
        transactions=memory_source.transactions,
        routes=memory_source.routes,
    )

    outcome = handle_request(report_event, source, ReportConfig())

    assert outcome.status_code == 500
    assert outcome.body == {
        "message": "Internal Server Error",
        "error": "timetable store unavailable",
    }


def test_build_report_rejects_invalid(memory_source: MemorySource) -> None:
    request = ReportRequest(agency_id="1", timestamp="now", window_from=None, window_to=None)

    with pytest.raises(RequestRejected):
        build_report(request, memory_source, ReportConfig())


def test_build_report_unknown_agency(memory_source: MemorySource) -> None:
    request = _dataset_request()
    request.agency_id = "99"

    with pytest.raises(ReferenceNotFound) as excinfo:
        build_report(request, memory_source, ReportConfig())

    assert excinfo.value.kind == "Agency"


def test_offline_agency_gets_missing_trips(memory_source: MemorySource, report_event: dict) -> None:
    """Test unserved timetable slots are reported for offline agencies."""
    request = ReportRequest.from_event({**report_event, "agencyId": "2"})

    report = build_report(request, memory_source, ReportConfig())

    assert report.stats["missing_trips"] == 1
    assert [s.trip_id for s in report.summaries] == ["M10001", "T9"]
    assert [s.trip_number for s in report.summaries] == ["T1", "T2"]
    missing = report.summaries[0]
    assert missing.service_start == "07:15"
    assert missing.actual_start == "-"
    assert missing.status_detail == "No GPS Tracking"
    assert missing.total_amount == Decimal("0")


def test_online_agency_has_no_missing_trips(memory_source: MemorySource, report_event: dict) -> None:
    report = build_report(ReportRequest.from_event(report_event), memory_source, ReportConfig())

    assert report.stats["missing_trips"] == 0
    assert report.stats["transactions"] == 3
    assert report.stats["trips"] == 2
    assert report.stats["trip_logs"] == 1
    assert len(report.rows) == 11


def test_build_report_from_dataset(claim_dataset: Path) -> None:
    """Test the full pipeline over the CSV dataset."""
    source = DirectorySource(str(claim_dataset))

    report = build_report(_dataset_request(), source, ReportConfig())

    assert report.stats["transactions"] == 5
    assert report.stats["eligible_transactions"] == 4
    assert [s.trip_id for s in report.summaries] == ["T100", "T101", "T102"]

    scheduled, adhoc, inbound = report.summaries
    assert scheduled.actual_start == "08:02"
    assert scheduled.status == "Complete"
    assert scheduled.bus_stops == 4
    assert scheduled.km_gps == 13.1
    assert adhoc.remark == "Ad-hoc"
    assert adhoc.service_start == "09:00"
    assert adhoc.service_end == "09:35"
    assert adhoc.trip_number == "T2"
    assert inbound.adult == 2

    grand = report.rows[-1]
    assert grand.kind == "grand_total"
    assert grand.cells[30] == "8.10"


def test_build_report_route_filter(claim_dataset: Path) -> None:
    source = DirectorySource(str(claim_dataset))
    request = _dataset_request()
    request.paid_by = "cashless"

    report = build_report(request, source, ReportConfig())

    assert [s.trip_id for s in report.summaries] == ["T100"]
    assert report.summaries[0].total_amount == Decimal("0.85")


def test_write_report(memory_source: MemorySource, report_event: dict, tmp_path: Path) -> None:
    report = build_report(ReportRequest.from_event(report_event), memory_source, ReportConfig())

    files = write_report(report, str(tmp_path / "out"))

    assert set(files) == {"claim_report.csv", "summaries.json", "report.json.gz"}

    with open(files["summaries.json"]) as f:
        summaries = json.load(f)
    assert summaries["schema_version"] == 1
    assert len(summaries["summaries"]) == 2

    with gzip.open(files["report.json.gz"], "rt", encoding="utf-8") as f:
        payload = json.load(f)
    assert set(payload) == {"returnData", "exportData"}
    assert payload["exportData"].count("\r\n") == 11

    with open(files["claim_report.csv"], newline="") as f:
        assert f.read() == payload["exportData"]


def test_write_report_uncompressed(
    memory_source: MemorySource, report_event: dict, tmp_path: Path
) -> None:
    report = build_report(ReportRequest.from_event(report_event), memory_source, ReportConfig())

    files = write_report(report, str(tmp_path), compress=False)

    assert "report.json.gz" not in files
    assert not (tmp_path / "report.json.gz").exists()
