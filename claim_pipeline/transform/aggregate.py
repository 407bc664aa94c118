"""Group trips into route, date and direction blocks and roll up totals."""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_CEILING, Decimal
from typing import Any
from zoneinfo import ZoneInfo

from claim_pipeline.optimization.geocache import GeoHitCache
from claim_pipeline.records.clock import format_hm, format_hms, local_date
from claim_pipeline.records.models import (
    DIRECTIONS,
    GpsLogPoint,
    GroupKey,
    ReportConfig,
    Route,
    RouteStop,
    TripSummary,
    TripTransaction,
    direction_label,
)
from claim_pipeline.transform.actual_start import InferenceTier, first_stop, infer_actual_start
from claim_pipeline.transform.classify import classify_trip

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
FARE_CATEGORIES = ("adult", "child", "senior", "oku", "foreign_adult", "foreign_child")


def route_sort_key(route_id: str) -> tuple:
    """Natural ordering so that route 2 sorts before route 10."""
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in re.split(r"(\d+)", route_id)
        if part
    )


def service_date_of(trx: TripTransaction, tz: ZoneInfo) -> date | None:
    """Local calendar date of the scheduled start, else the observed start."""
    return local_date(trx.scheduled_at or trx.started_at, tz)


def group_key(trx: TripTransaction, tz: ZoneInfo) -> GroupKey:
    return GroupKey(
        service_date=service_date_of(trx, tz),
        route_id=trx.route_id,
        direction=trx.direction,
    )


def _group_sort_key(key: GroupKey) -> tuple:
    return (
        route_sort_key(key.route_id),
        key.service_date is None,
        key.service_date or date.min,
        DIRECTIONS.index(key.direction) if key.direction in DIRECTIONS else len(DIRECTIONS),
    )


def group_transactions(
    transactions: list[TripTransaction], tz: ZoneInfo
) -> dict[GroupKey, list[TripTransaction]]:
    """Flat mapping of group key to transactions, ordered route, date, direction."""
    groups: dict[GroupKey, list[TripTransaction]] = {}
    for trx in transactions:
        groups.setdefault(group_key(trx, tz), []).append(trx)
    return {key: groups[key] for key in sorted(groups, key=_group_sort_key)}


def order_trips(transactions: list[TripTransaction]) -> list[list[TripTransaction]]:
    """Split a group into trips ordered by route and scheduled start, unscheduled first."""
    trips: dict[str, list[TripTransaction]] = {}
    for trx in transactions:
        trips.setdefault(trx.trip_id, []).append(trx)

    def sort_key(trip: list[TripTransaction]) -> tuple:
        first = trip[0]
        scheduled = first.scheduled_at
        return (
            route_sort_key(first.route_id),
            scheduled is not None,
            scheduled.timestamp() if scheduled is not None else 0,
        )

    return sorted(trips.values(), key=sort_key)


@dataclass(frozen=True)
class GroupTotals:
    """Immutable rollup of trips; combine with merge()."""

    drivers: frozenset[str] = frozenset()
    vehicles: frozenset[str] = frozenset()
    trips: frozenset[str] = frozenset()
    journeys: frozenset[str] = frozenset()
    transactions: int = 0
    adult: int = 0
    child: int = 0
    senior: int = 0
    oku: int = 0
    cash_pax: int = 0
    cashless_pax: int = 0
    total_amount: Decimal = Decimal("0")
    cash_amount: Decimal = Decimal("0")
    cashless_amount: Decimal = Decimal("0")
    bus_stops: int = 0
    km: float = 0.0
    km_gps: float = 0.0
    total_claim: Decimal = Decimal("0")
    total_claim_gps: Decimal = Decimal("0")

    @classmethod
    def from_trip(
        cls, summary: TripSummary, transactions: list[TripTransaction]
    ) -> "GroupTotals":
        return cls(
            drivers=frozenset(t.driver_name for t in transactions if t.driver_name),
            vehicles=frozenset(
                t.vehicle_registration_number
                for t in transactions
                if t.vehicle_registration_number
            ),
            trips=frozenset({summary.trip_id}),
            journeys=frozenset(t.journey_id for t in transactions if t.journey_id),
            transactions=len(transactions),
            adult=summary.adult,
            child=summary.child,
            senior=summary.senior,
            oku=summary.oku,
            cash_pax=summary.cash_pax,
            cashless_pax=summary.cashless_pax,
            total_amount=summary.total_amount,
            cash_amount=summary.cash_amount,
            cashless_amount=summary.cashless_amount,
            bus_stops=summary.bus_stops,
            km=summary.km or 0.0,
            km_gps=summary.km_gps or 0.0,
            total_claim=summary.total_claim,
            total_claim_gps=summary.total_claim_gps,
        )

    def merge(self, other: "GroupTotals") -> "GroupTotals":
        return GroupTotals(
            drivers=self.drivers | other.drivers,
            vehicles=self.vehicles | other.vehicles,
            trips=self.trips | other.trips,
            journeys=self.journeys | other.journeys,
            transactions=self.transactions + other.transactions,
            adult=self.adult + other.adult,
            child=self.child + other.child,
            senior=self.senior + other.senior,
            oku=self.oku + other.oku,
            cash_pax=self.cash_pax + other.cash_pax,
            cashless_pax=self.cashless_pax + other.cashless_pax,
            total_amount=self.total_amount + other.total_amount,
            cash_amount=self.cash_amount + other.cash_amount,
            cashless_amount=self.cashless_amount + other.cashless_amount,
            bus_stops=self.bus_stops + other.bus_stops,
            km=self.km + other.km,
            km_gps=self.km_gps + other.km_gps,
            total_claim=self.total_claim + other.total_claim,
            total_claim_gps=self.total_claim_gps + other.total_claim_gps,
        )

    @property
    def total_on(self) -> int:
        return self.adult + self.child + self.senior + self.oku

    @property
    def ridership(self) -> int:
        return self.cash_pax + self.cashless_pax

    def to_dict(self) -> dict[str, Any]:
        return {
            "uniqueDriverCount": len(self.drivers),
            "uniqueVehicleCount": len(self.vehicles),
            "tripCount": len(self.trips),
            "journeyCount": len(self.journeys),
            "transactionCount": self.transactions,
            "adult": self.adult,
            "child": self.child,
            "senior": self.senior,
            "oku": self.oku,
            "totalOn": self.total_on,
            "ridership": self.ridership,
            "cashRidership": self.cash_pax,
            "cashlessRidership": self.cashless_pax,
            "totalAmount": f"{self.total_amount:.2f}",
            "cashAmount": f"{self.cash_amount:.2f}",
            "cashlessAmount": f"{self.cashless_amount:.2f}",
            "busStops": self.bus_stops,
            "km": round(self.km, 2),
            "kmGps": round(self.km_gps, 2),
        }


def fold_totals(parts: list[GroupTotals]) -> GroupTotals:
    totals = GroupTotals()
    for part in parts:
        totals = totals.merge(part)
    return totals


@dataclass
class DirectionBlock:
    key: GroupKey
    summaries: list[TripSummary]
    totals: GroupTotals


@dataclass
class DateBlock:
    service_date: date | None
    directions: list[DirectionBlock]
    totals: GroupTotals


@dataclass
class RouteBlock:
    route_id: str
    short_name: str
    name: str
    dates: list[DateBlock]
    totals: GroupTotals


@dataclass
class Aggregation:
    """Route blocks in emission order plus the grand total."""

    routes: list[RouteBlock] = field(default_factory=list)
    totals: GroupTotals = field(default_factory=GroupTotals)

    @property
    def summaries(self) -> list[TripSummary]:
        return [
            summary
            for route in self.routes
            for day in route.dates
            for block in day.directions
            for summary in block.summaries
        ]


class TripSummarizer:
    """Build one TripSummary per physical trip."""

    def __init__(
        self,
        routes: dict[str, Route],
        trip_logs: dict[str, list[GpsLogPoint]],
        geocache: GeoHitCache,
        config: ReportConfig,
    ) -> None:
        self.routes = routes
        self.trip_logs = trip_logs
        self.geocache = geocache
        self.config = config
        self.tz = ZoneInfo(config.timezone)

    def summarize(self, transactions: list[TripTransaction], trip_number: str) -> TripSummary:
        first = transactions[0]
        route = self.routes.get(first.route_id)
        stops = route.stops_for(first.direction) if route is not None else []
        start = first_stop(stops)
        served_on = service_date_of(first, self.tz)

        summary = TripSummary(
            trip_id=first.trip_id,
            route_id=first.route_id,
            route_short_name=first.route_short_name,
            route_name=first.route_name,
            direction=first.direction,
            direction_label=direction_label(first.direction),
            service_date=served_on.strftime("%d/%m/%Y") if served_on else "",
            trip_number=trip_number,
            start_point=start.name if start is not None else "",
            bus_plate=first.vehicle_registration_number,
            bus_age=served_on.year - first.vehicle_age if served_on and first.vehicle_age else "",
            driver_identification=first.staff_id,
            duty_id=first.device_serial_number,
            observed_start=format_hm(first.started_at, self.tz),
            observed_end=format_hm(first.ended_at, self.tz),
            service_start=format_hm(first.scheduled_at, self.tz),
            service_end=format_hm(first.scheduled_end_time, self.tz),
            remark="Ad-hoc" if any(trx.adhoc for trx in transactions) else "",
        )
        self._add_fares(summary, transactions)
        self._add_actuals(summary, first, stops)
        self._add_mileage(summary, first)
        return summary

    def _add_fares(self, summary: TripSummary, transactions: list[TripTransaction]) -> None:
        cash = dict.fromkeys(FARE_CATEGORIES, 0)
        cashless = dict.fromkeys(FARE_CATEGORIES, 0)
        total = Decimal("0")

        for trx in transactions:
            summary.adult += trx.no_of_adult + trx.no_of_foreign_adult
            summary.child += trx.no_of_child + trx.no_of_foreign_child
            summary.senior += trx.no_of_senior
            summary.oku += trx.no_of_oku
            total += trx.amount

            counts = {
                "adult": trx.no_of_adult,
                "child": trx.no_of_child,
                "senior": trx.no_of_senior,
                "oku": trx.no_of_oku,
                "foreign_adult": trx.no_of_foreign_adult,
                "foreign_child": trx.no_of_foreign_child,
            }
            split = cashless if trx.is_cashless else cash
            for category, count in counts.items():
                split[category] += count
            if trx.is_cashless:
                summary.cashless_amount += trx.amount
                summary.cashless_pax += trx.total_pax
            else:
                summary.cash_amount += trx.amount
                summary.cash_pax += trx.total_pax

        summary.cash_by_category = cash
        summary.cashless_by_category = cashless
        summary.total_amount = total.quantize(CENT, rounding=ROUND_CEILING)

        sales_times = [trx.sales_time for trx in transactions if trx.sales_time is not None]
        if sales_times:
            summary.sales_start = format_hm(min(sales_times), self.tz)
            summary.sales_end = format_hm(max(sales_times), self.tz)

    def _add_actuals(
        self, summary: TripSummary, first: TripTransaction, stops: list[RouteStop]
    ) -> None:
        trip_log = self.trip_logs.get(first.trip_id, [])
        actual: datetime | None = None

        if trip_log:
            inference = infer_actual_start(
                trip_log, first, stops, self.tz, self.config.log_lookback_minutes
            )
            summary.inference_tier = inference.tier.value
            actual = inference.moment(self.tz)
            if inference.tier is InferenceTier.NONE:
                logger.debug(f"Trip {first.trip_id} has no GPS points after its schedule")

        shown = actual or first.started_at
        if shown is not None:
            summary.actual_start = format_hm(shown, self.tz)
            summary.actual_start_with_seconds = format_hms(shown, self.tz)
            summary.actual_end_with_seconds = format_hms(first.ended_at, self.tz)
        summary.actual_start_at = actual

        hits = self.geocache.get(first)
        result = classify_trip(first, bool(trip_log), hits, len(stops), actual, self.config)
        summary.punctuality = result.punctuality
        summary.status = result.status
        summary.status_j = result.status_j
        summary.status_detail = result.status_detail
        summary.bus_stops = len(hits.stop_sequence_hits) if stops else 0

    def _add_mileage(self, summary: TripSummary, first: TripTransaction) -> None:
        km = first.km_for_direction()
        summary.km = km
        summary.km_gps = first.trip_mileage if first.trip_mileage and first.trip_mileage > 0 else km
        summary.km_rate = first.km_rate
        summary.km_bop = km
        summary.km_rate_bop = first.km_rate


class TripCounter:
    """
    Running "T<n>" labels across the direction blocks of one route and date.

    The counter moves on whenever the scheduled start differs from the
    previous trip's. Trips without both scheduled times get no label.
    """

    def __init__(self) -> None:
        self.index = 0
        self.previous: datetime | None = None

    def label(self, trip: list[TripTransaction]) -> str:
        first = trip[0]
        if self.previous is None or first.scheduled_at != self.previous:
            self.index += 1
        self.previous = first.scheduled_at
        if first.scheduled_at is not None and first.scheduled_end_time is not None:
            return f"T{self.index}"
        return ""


def trip_numbers(
    trips: list[list[TripTransaction]], counter: TripCounter | None = None
) -> list[str]:
    """Labels for ordered trips, continuing from `counter` when given."""
    if counter is None:
        counter = TripCounter()
    return [counter.label(trip) for trip in trips]


def aggregate(
    transactions: list[TripTransaction], summarizer: TripSummarizer
) -> Aggregation:
    """Build the route, date and direction hierarchy with rolled-up totals."""
    groups = group_transactions(transactions, summarizer.tz)
    result = Aggregation()

    route_blocks: dict[str, RouteBlock] = {}
    date_blocks: dict[tuple[str, date | None], DateBlock] = {}
    counters: dict[tuple[str, date | None], TripCounter] = {}

    for key, group in groups.items():
        route_block = route_blocks.get(key.route_id)
        if route_block is None:
            route_block = RouteBlock(
                route_id=key.route_id,
                short_name=group[0].route_short_name,
                name=group[0].route_name,
                dates=[],
                totals=GroupTotals(),
            )
            route_blocks[key.route_id] = route_block
            result.routes.append(route_block)

        block_id = (key.route_id, key.service_date)
        date_block = date_blocks.get(block_id)
        if date_block is None:
            date_block = DateBlock(service_date=key.service_date, directions=[], totals=GroupTotals())
            date_blocks[block_id] = date_block
            counters[block_id] = TripCounter()
            route_block.dates.append(date_block)

        # Trip numbers run on across the directions of one service date
        trips = order_trips(group)
        labels = trip_numbers(trips, counters[block_id])
        summaries = [summarizer.summarize(trip, label) for trip, label in zip(trips, labels)]
        totals = fold_totals(
            [GroupTotals.from_trip(summary, trip) for summary, trip in zip(summaries, trips)]
        )

        date_block.directions.append(DirectionBlock(key=key, summaries=summaries, totals=totals))
        date_block.totals = date_block.totals.merge(totals)
        route_block.totals = route_block.totals.merge(totals)
        result.totals = result.totals.merge(totals)

    logger.info(
        f"Aggregated {len(result.totals.trips)} trips into {len(groups)} direction blocks "
        f"across {len(result.routes)} routes"
    )
    return result
