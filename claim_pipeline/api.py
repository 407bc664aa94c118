"""Public API for claim-pipeline."""

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

from claim_pipeline.exceptions import ReferenceNotFound, ReportError, RequestRejected
from claim_pipeline.optimization.geocache import GeoHitCache
from claim_pipeline.output.csv_report import build_rows
from claim_pipeline.output.json import write_report as write_report_files
from claim_pipeline.records.models import (
    ClaimReport,
    ReportConfig,
    ReportOutcome,
    ReportRequest,
    Route,
)
from claim_pipeline.records.source import ReportSource
from claim_pipeline.records.timetable import Timetable
from claim_pipeline.records.triplogs import load_trip_logs
from claim_pipeline.records.validator import RequestValidator
from claim_pipeline.transform.aggregate import TripSummarizer, aggregate
from claim_pipeline.transform.filters import apply_request_filters, filter_eligible
from claim_pipeline.transform.missing_trips import synthesize_missing_trips
from claim_pipeline.transform.schedule import reconcile_schedules

logger = logging.getLogger(__name__)


def _load_routes(source: ReportSource, route_ids: list[str], agency_id: str) -> dict[str, Route]:
    """Fetch routes; a failed fetch leaves that route without stops."""
    routes: dict[str, Route] = {}
    for route_id in route_ids:
        try:
            route = source.fetch_route(route_id, agency_id)
        except Exception as e:
            logger.warning(f"Error fetching route {route_id}, continuing without its stops: {e}")
            continue
        if route is not None:
            routes[route_id] = route
    return routes


def build_report(
    request: ReportRequest,
    source: ReportSource,
    config: ReportConfig | None = None,
) -> ClaimReport:
    """
    Build a claim report for one request.

    Args:
        request: Report request (agency, time window and optional filters)
        source: Storage the transactions, timetable, routes and logs come from
        config: Optional report configuration

    Returns:
        ClaimReport with per-trip summaries and ordered report rows

    Raises:
        RequestRejected: required input is missing or malformed
        ReferenceNotFound: the agency or requested route does not exist
    """
    if config is None:
        config = ReportConfig.from_env()

    tz = ZoneInfo(config.timezone)
    start_time = datetime.now(UTC)

    # Validate
    validator = RequestValidator(request, tz)
    validation = validator.validate()
    if not validation.valid:
        raise RequestRejected("; ".join(validation.errors))
    window = validator.window()

    agency = source.fetch_agency(request.agency_id)
    if agency is None:
        raise ReferenceNotFound("Agency", request.agency_id)
    if request.route and source.fetch_route(request.route, agency.agency_id) is None:
        raise ReferenceNotFound("Route", request.route)

    logger.info(
        f"Building report for agency {agency.agency_id} "
        f"from {window.start.isoformat()} to {window.end.isoformat()}"
    )

    # Read
    transactions = source.fetch_transactions(agency.agency_id, request.route, window)
    timetable = Timetable(source.fetch_timetable(agency.agency_id))
    logger.info(f"Loaded {len(transactions)} transactions")

    # Transform
    eligible = filter_eligible(transactions, tz, offline=agency.using_offline_trip)
    reconciled = reconcile_schedules(eligible, timetable, tz)
    selected = apply_request_filters(reconciled, request, tz)

    route_ids = sorted({trx.route_id for trx in selected})
    routes = _load_routes(source, route_ids, agency.agency_id)

    trip_logs = load_trip_logs(
        source,
        [trx.trip_id for trx in selected],
        concurrency=config.trip_log_concurrency,
        batch_size=config.trip_log_batch_size,
    )

    placeholders = []
    if agency.using_offline_trip:
        placeholders = synthesize_missing_trips(selected, timetable, routes, tz)

    geocache = GeoHitCache(trip_logs, routes)
    summarizer = TripSummarizer(routes, trip_logs, geocache, config)
    aggregation = aggregate(selected + placeholders, summarizer)

    stats = {
        "transactions": len(transactions),
        "eligible_transactions": len(eligible),
        "selected_transactions": len(selected),
        "missing_trips": len(placeholders),
        "trips": len(aggregation.totals.trips),
        "trip_logs": len(trip_logs),
        "routes": len(routes),
        "geo_cache_entries": len(geocache),
    }
    report = ClaimReport(
        summaries=aggregation.summaries,
        rows=build_rows(aggregation),
        stats=stats,
    )

    elapsed = (datetime.now(UTC) - start_time).total_seconds()
    logger.info(f"Report built in {elapsed:.2f}s: {stats}")

    return report


def handle_request(
    event: dict[str, Any],
    source: ReportSource,
    config: ReportConfig | None = None,
) -> ReportOutcome:
    """Run one report request and map the result to a status code and body."""
    try:
        report = build_report(ReportRequest.from_event(event), source, config)
    except ReportError as e:
        logger.warning(f"Report request failed ({e.status_code}): {e.message}")
        return ReportOutcome(status_code=e.status_code, body=e.to_body())
    except Exception as e:
        logger.exception("Report generation failed")
        return ReportOutcome(
            status_code=500,
            body=ReportError("Internal Server Error", cause=e).to_body(),
        )

    return ReportOutcome(
        status_code=200,
        body={"returnData": [summary.to_dict() for summary in report.summaries]},
    )


def write_report(
    report: ClaimReport, output_path: str, compress: bool = True
) -> dict[str, str]:
    """Write report files to a directory."""
    return write_report_files(report, Path(output_path), compress=compress)
