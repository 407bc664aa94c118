"""Data models for fare transactions, reference data and report output."""

import os
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

DIRECTION_LOOP = 0
DIRECTION_OUTBOUND = 1
DIRECTION_INBOUND = 2
DIRECTIONS = (DIRECTION_LOOP, DIRECTION_OUTBOUND, DIRECTION_INBOUND)

DEFAULT_TIMEZONE = "Asia/Singapore"

# Business-tuned thresholds
PUNCTUALITY_EARLY_MINUTES = 10
PUNCTUALITY_LATE_MINUTES = 6
STOP_COVERAGE_PERCENT = 15
LOG_LOOKBACK_MINUTES = 15


def direction_label(direction: int) -> str:
    """Report label for a direction code."""
    if direction == DIRECTION_OUTBOUND:
        return "OB"
    if direction == DIRECTION_INBOUND:
        return "IB"
    return "LOOP"


@dataclass(frozen=True)
class Agency:
    """Operating agency."""

    agency_id: str
    name: str
    using_offline_trip: bool = False


@dataclass(frozen=True)
class RouteStop:
    """Stop on a route in one direction."""

    stop_id: str
    route_id: str
    direction: int
    sequence: int
    name: str
    lat: float
    lon: float


@dataclass(frozen=True)
class Route:
    """Route with reference geometry, mileage and its stops."""

    route_id: str
    agency_id: str
    short_name: str
    name: str
    polyline: str = ""
    km_outbound: float | None = None
    km_inbound: float | None = None
    km_loop: float | None = None
    km_rate: float | None = None
    is_restricted_stop: bool = False
    stops: tuple[RouteStop, ...] = ()

    def stops_for(self, direction: int) -> list[RouteStop]:
        """Stops belonging to one direction."""
        return [stop for stop in self.stops if stop.direction == direction]


@dataclass(frozen=True)
class TimetableEntry:
    """Planned departure for a route, direction and weekday."""

    route_id: str
    direction: int
    day: str  # lower-case weekday name
    start_time: str  # HH:MM:SS
    end_time: str  # HH:MM:SS


@dataclass(frozen=True)
class GpsLogPoint:
    """One telemetry ping recorded during a trip."""

    timestamp: int  # epoch millis
    lat: float
    lon: float
    speed: float = 0.0
    stop_name: str | None = None
    sequence: int | None = None
    stop_id: str | None = None


@dataclass(frozen=True)
class TripTransaction:
    """One fare-collection event on a trip."""

    trip_id: str
    route_id: str
    direction: int
    journey_id: str | None = None
    route_short_name: str = ""
    route_name: str = ""
    started_at: datetime | None = None
    ended_at: datetime | None = None
    scheduled_at: datetime | None = None
    scheduled_end_time: datetime | None = None
    vehicle_registration_number: str | None = None
    vehicle_age: int | None = None  # year of manufacture
    driver_name: str | None = None
    staff_id: str | None = None
    device_serial_number: str | None = None
    user_id: str | None = None
    no_of_adult: int = 0
    no_of_child: int = 0
    no_of_senior: int = 0
    no_of_oku: int = 0
    no_of_foreign_adult: int = 0
    no_of_foreign_child: int = 0
    amount: Decimal = Decimal("0")
    journey_created: datetime | None = None
    journey_ended: datetime | None = None
    km_outbound: float | None = None
    km_inbound: float | None = None
    km_loop: float | None = None
    km_rate: float | None = None
    trip_mileage: float | None = None
    polyline: str = ""
    is_restricted_stop: bool = False
    adhoc: bool = False

    @property
    def is_cashless(self) -> bool:
        """Cashless payments carry a rider account id."""
        return bool(self.user_id)

    @property
    def total_pax(self) -> int:
        return (
            self.no_of_adult
            + self.no_of_child
            + self.no_of_senior
            + self.no_of_oku
            + self.no_of_foreign_adult
            + self.no_of_foreign_child
        )

    @property
    def sales_time(self) -> datetime | None:
        """Moment the fare was sold: journey start for cashless, journey end for cash."""
        return self.journey_created if self.is_cashless else self.journey_ended

    def km_for_direction(self) -> float | None:
        if self.direction == DIRECTION_LOOP:
            return self.km_loop
        if self.direction == DIRECTION_OUTBOUND:
            return self.km_outbound
        return self.km_inbound


@dataclass(frozen=True)
class GeoCacheKey:
    """Memoization key for geo-hit lookups."""

    trip_id: str
    route_id: str
    direction: int
    polyline_digest: str


@dataclass(frozen=True)
class GeoCacheEntry:
    """How often a trip's GPS log touched route checkpoints and stops."""

    start_hits: int = 0
    between_hits: int = 0
    stop_sequence_hits: frozenset[int] = frozenset()


@dataclass(frozen=True)
class GroupKey:
    """Aggregation node: service date, route and direction."""

    service_date: date | None
    route_id: str
    direction: int


@dataclass
class TripSummary:
    """Per physical trip facts combined from all of its fare events."""

    trip_id: str
    route_id: str
    route_short_name: str
    route_name: str
    direction: int
    direction_label: str
    service_date: str  # DD/MM/YYYY
    trip_number: str = ""
    start_point: str = ""
    bus_plate: str | None = None
    bus_age: int | str = ""
    driver_identification: str | None = None
    duty_id: str | None = None
    observed_start: str = "-"
    observed_end: str = "-"
    actual_start: str = "-"
    actual_start_with_seconds: str = "-"
    actual_end_with_seconds: str = "-"
    actual_start_at: datetime | None = None
    inference_tier: str = ""
    service_start: str = "-"
    service_end: str = "-"
    sales_start: str = "-"
    sales_end: str = "-"
    punctuality: str = "NOT PUNCTUAL"
    status: str = "No Complete"
    status_j: str = "No Complete"
    status_detail: str = ""
    bus_stops: int = 0
    remark: str = ""
    adult: int = 0
    child: int = 0
    senior: int = 0
    oku: int = 0
    cash_amount: Decimal = Decimal("0")
    cashless_amount: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    cash_pax: int = 0
    cashless_pax: int = 0
    cash_by_category: dict[str, int] = field(default_factory=dict)
    cashless_by_category: dict[str, int] = field(default_factory=dict)
    km: float | None = None
    km_gps: float | None = None
    km_rate: float | None = None
    km_bop: float | None = None
    km_rate_bop: float | None = None
    # Claim fields have no computation path yet and are always zero.
    total_claim: Decimal = Decimal("0")
    total_claim_gps: Decimal = Decimal("0")
    monthly_pass: int = 0
    jkm: int = 0
    maim: int = 0
    passenger: int = 0
    no_of_student: int = 0
    transfer_count: int = 0

    @property
    def total_on(self) -> int:
        return self.adult + self.child + self.senior + self.oku

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Decimal):
                data[key] = f"{value:.2f}"
            elif isinstance(value, datetime):
                data[key] = value.isoformat()
        data["total_on"] = self.total_on
        return data


@dataclass
class ReportRequest:
    """One claim report request."""

    agency_id: str | None
    timestamp: str | None
    window_from: str | None
    window_to: str | None
    route: str | None = None
    am_pm: str = "All"
    vehicle: str | None = None
    driver: str | None = None
    weekend_weekday: str = "All"
    paid_by: str = "All"
    select_from_date: str | None = None
    select_to_date: str | None = None

    @classmethod
    def from_event(cls, event: dict[str, Any]) -> "ReportRequest":
        """Build a request from a camelCase event payload."""
        agency_id = event.get("agencyId")
        return cls(
            agency_id=str(agency_id) if agency_id is not None else None,
            timestamp=event.get("timestamp"),
            window_from=event.get("from"),
            window_to=event.get("to"),
            route=event.get("route"),
            am_pm=event.get("amPm") or "All",
            vehicle=event.get("vehicle"),
            driver=event.get("driver"),
            weekend_weekday=event.get("weekendWeekday") or "All",
            paid_by=event.get("paidBy") or "All",
            select_from_date=event.get("selectFromDate"),
            select_to_date=event.get("selectToDate"),
        )


def _trip_log_defaults() -> tuple[int, int]:
    """Concurrency and batch size sized by available memory."""
    memory_mb = int(os.environ.get("CLAIM_REPORT_MEMORY_MB", "0") or 0)
    if memory_mb >= 8192:
        return 40, 400
    if memory_mb >= 4096:
        return 30, 300
    if memory_mb >= 2048:
        return 20, 200
    if memory_mb >= 1024:
        return 12, 120
    return 8, 80


@dataclass
class ReportConfig:
    """Configuration for one report run."""

    timezone: str = DEFAULT_TIMEZONE
    trip_log_concurrency: int = 8
    trip_log_batch_size: int = 80
    punctuality_early_minutes: int = PUNCTUALITY_EARLY_MINUTES
    punctuality_late_minutes: int = PUNCTUALITY_LATE_MINUTES
    stop_coverage_percent: int = STOP_COVERAGE_PERCENT
    log_lookback_minutes: int = LOG_LOOKBACK_MINUTES

    @classmethod
    def from_env(cls, **overrides: Any) -> "ReportConfig":
        """Config with trip-log sizing taken from the environment."""
        concurrency, batch_size = _trip_log_defaults()
        values: dict[str, Any] = {
            "trip_log_concurrency": int(os.environ.get("TRIP_LOG_CONCURRENCY", concurrency)),
            "trip_log_batch_size": int(os.environ.get("TRIP_LOG_BATCH_SIZE", batch_size)),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


@dataclass
class ReportRow:
    """One line of the claim report."""

    kind: str  # header, trip, direction_total, date_total, route_total, grand_total
    cells: list[str]


@dataclass
class ClaimReport:
    """Finished report: per-trip summaries plus the ordered report rows."""

    summaries: list[TripSummary]
    rows: list[ReportRow]
    stats: dict[str, int] = field(default_factory=dict)


@dataclass
class ReportOutcome:
    """Structured result handed back to the caller."""

    status_code: int
    body: dict[str, Any]

    @property
    def ok(self) -> bool:
        return self.status_code == 200


@dataclass
class ValidationReport:
    """Report from request validation."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
