"""Claim report rows and their CSV text rendering."""

import csv
import io
import logging
from datetime import date

from claim_pipeline.records.models import ClaimReport, ReportRow, TripSummary
from claim_pipeline.transform.aggregate import Aggregation, GroupTotals

logger = logging.getLogger(__name__)

TRIP_COLUMNS = 42
SUBTOTAL_COLUMNS = 41

# Decorative banner above each column header; labels sit over their column groups
BANNER = [""] * 44
BANNER[16] = "Verified Data"
BANNER[30] = "ETM Boarding Passenger Count"

COLUMNS = [
    "Route No.",
    "OD",
    "IB/OB",
    "Trip No.",
    "Service Date",
    "Start Point",
    "RPH No.",
    "Bus Plate Number",
    "Bus Age",
    "Charge/KM",
    "Driver ID",
    "Bus Stop Travel",
    "Travel (KM)",
    "Total Claim",
    "Travel (KM) GPS",
    "Total Claim GPS",
    "Status",
    "status of the trip (duplicate, trip outside schedule,no gps tracking, breakdown, replacement)",
    "KM as per BOP = ",
    "Claim as per BOP (RM)",
    "Missed trip if no gps tracking",
    "Start Point",
    "Service Start Time",
    "Actual Start Time",
    "Sales Start Time",
    "Service End Time",
    "Actual End Time",
    "Sales End Time",
    "Punctuality",
    "Passengers Boarding Count",
    "Total Sales Amount (RM)",
    "Total On",
    "Transfer Count",
    "Monthly Pass",
    "Adult",
    "Child",
    "Senior",
    "Student",
    "OKU",
    "JKM",
    "MAIM",
    "",
]


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value)


def _km(value: float | None) -> str:
    return f"{value or 0:.2f}"


def _date_label(service_date: date | None) -> str:
    return service_date.strftime("%d/%m/%Y") if service_date else ""


def trip_cells(summary: TripSummary) -> list[str]:
    """One trip line; column positions are fixed for downstream consumers."""
    return [
        summary.route_short_name,
        f"{summary.route_short_name} {summary.route_name}",
        summary.direction_label,
        summary.trip_number,
        summary.service_date,
        summary.start_point,
        summary.trip_id,
        _text(summary.bus_plate),
        _text(summary.bus_age),
        _text(summary.km_rate),
        _text(summary.driver_identification),
        str(summary.bus_stops),
        _km(summary.km),
        _text(summary.total_claim),
        _km(summary.km_gps),
        _text(summary.total_claim_gps),
        summary.status,
        summary.status_detail,
        _text(summary.km_bop),
        _text(summary.km_rate_bop),
        "",
        summary.observed_start,
        summary.service_start,
        summary.actual_start_with_seconds,
        summary.sales_start,
        summary.service_end,
        summary.actual_end_with_seconds,
        summary.sales_end,
        summary.punctuality,
        str(summary.passenger),
        f"{summary.total_amount:.2f}",
        str(summary.total_on),
        str(summary.transfer_count),
        str(summary.monthly_pass),
        str(summary.adult),
        str(summary.child),
        str(summary.senior),
        str(summary.no_of_student),
        str(summary.oku),
        str(summary.jkm),
        str(summary.maim),
        "",
    ]


def subtotal_cells(label: str, totals: GroupTotals) -> list[str]:
    """Subtotal line: label in column 5, figures in their trip-column positions."""
    return (
        ["", " ", "", "", label]
        + [""] * 6
        + [
            str(totals.bus_stops),
            f"{totals.km:.2f}",
            _text(totals.total_claim),
            f"{totals.km_gps:.2f}",
            _text(totals.total_claim_gps),
        ]
        + [""] * 13
        + [
            "0",
            f"{totals.total_amount:.2f}",
            str(totals.total_on),
            "0",
            "0",
            str(totals.adult),
            str(totals.child),
            str(totals.senior),
            "0",
            str(totals.oku),
            "0",
            "0",
        ]
    )


def build_rows(aggregation: Aggregation) -> list[ReportRow]:
    """
    Ordered report rows.

    Each direction block opens with the banner and column header, lists its
    trips and closes with a direction subtotal. Date, route and grand totals
    follow their blocks.
    """
    rows: list[ReportRow] = []
    for route in aggregation.routes:
        route_label = f"{route.short_name} {route.name}"
        for day in route.dates:
            day_label = _date_label(day.service_date)
            for block in day.directions:
                rows.append(ReportRow("banner", list(BANNER)))
                rows.append(ReportRow("header", list(COLUMNS)))
                rows.extend(ReportRow("trip", trip_cells(s)) for s in block.summaries)
                rows.append(
                    ReportRow(
                        "direction_total",
                        subtotal_cells(f"Total ({day_label} - {route_label})", block.totals),
                    )
                )
            rows.append(
                ReportRow(
                    "date_total",
                    subtotal_cells(f"Total For Service Date : {day_label} ", day.totals),
                )
            )
        rows.append(
            ReportRow("route_total", subtotal_cells(f"Total For Route {route_label} : ", route.totals))
        )

    rows.append(ReportRow("grand_total", subtotal_cells("Grand Total :", aggregation.totals)))
    return rows


def compose_claim_csv(report: ClaimReport) -> str:
    """Render report rows as CSV text with CRLF line endings."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\r\n")
    for row in report.rows:
        writer.writerow(row.cells)

    logger.debug(f"Composed claim CSV with {len(report.rows)} rows")
    return buffer.getvalue()
