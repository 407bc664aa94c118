"""Report request validator."""

import logging
from zoneinfo import ZoneInfo

from claim_pipeline.records.clock import parse_timestamp
from claim_pipeline.records.models import ReportRequest, ValidationReport
from claim_pipeline.records.source import TimeWindow

logger = logging.getLogger(__name__)

AM_PM_VALUES = ("all", "am", "pm")
WEEKEND_WEEKDAY_VALUES = ("all", "weekend", "weekday")
PAID_BY_VALUES = ("all", "cash", "cashless")


class RequestValidator:
    """Validate a report request before any data is fetched."""

    def __init__(self, request: ReportRequest, tz: ZoneInfo) -> None:
        """Initialize validator with the request and reporting timezone."""
        self.request = request
        self.tz = tz
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def validate(self) -> ValidationReport:
        """Run all validation checks."""
        self._validate_required()
        self._validate_window()
        self._validate_filters()

        valid = len(self.errors) == 0
        if not valid:
            logger.error(f"Request rejected with {len(self.errors)} errors")
        elif self.warnings:
            logger.warning(f"Request accepted with {len(self.warnings)} warnings")

        return ValidationReport(
            valid=valid,
            errors=self.errors.copy(),
            warnings=self.warnings.copy(),
        )

    def window(self) -> TimeWindow:
        """Query window of a validated request."""
        start = parse_timestamp(self.request.window_from, self.tz)
        end = parse_timestamp(self.request.window_to, self.tz)
        if start is None or end is None:
            raise ValueError("Request has no complete time window")
        return TimeWindow(start=start, end=end)

    def _validate_required(self) -> None:
        if not self.request.timestamp:
            self.errors.append("please provide timestamp value")
        if not self.request.agency_id:
            self.errors.append("No Agency Found")

    def _validate_window(self) -> None:
        bounds = {}
        for name, value in (
            ("from", self.request.window_from),
            ("to", self.request.window_to),
            ("selectFromDate", self.request.select_from_date),
            ("selectToDate", self.request.select_to_date),
        ):
            try:
                bounds[name] = parse_timestamp(value, self.tz)
            except ValueError:
                self.errors.append(f"Invalid {name} timestamp: {value}")
                bounds[name] = None

        if self.request.window_from is None or self.request.window_to is None:
            self.errors.append("please provide from and to values")
        elif bounds["from"] and bounds["to"] and bounds["from"] > bounds["to"]:
            self.errors.append(
                f"Window start {self.request.window_from} is after end {self.request.window_to}"
            )

    def _validate_filters(self) -> None:
        for name, value, allowed in (
            ("amPm", self.request.am_pm, AM_PM_VALUES),
            ("weekendWeekday", self.request.weekend_weekday, WEEKEND_WEEKDAY_VALUES),
            ("paidBy", self.request.paid_by, PAID_BY_VALUES),
        ):
            if str(value).lower() not in allowed:
                self.warnings.append(f"Unrecognised {name} filter {value!r}, no rows will match")
