"""Transaction eligibility and request filters."""

import logging
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from claim_pipeline.records.clock import parse_timestamp
from claim_pipeline.records.models import ReportRequest, TripTransaction

logger = logging.getLogger(__name__)

# Records before this date predate reliable trip tracking
DATA_CUTOFF = date(2022, 9, 17)
MIN_TRIP_DURATION = timedelta(minutes=10)


def is_eligible(trx: TripTransaction, tz: ZoneInfo) -> bool:
    """
    Whether a transaction enters the report at all.

    A trip qualifies when it ran for at least MIN_TRIP_DURATION and started
    on or after DATA_CUTOFF, or when it was scheduled on or after DATA_CUTOFF.
    """
    cutoff = datetime.combine(DATA_CUTOFF, time(), tzinfo=tz)

    if trx.started_at is not None and trx.ended_at is not None:
        if trx.ended_at - trx.started_at >= MIN_TRIP_DURATION and trx.started_at >= cutoff:
            return True

    return trx.scheduled_at is not None and trx.scheduled_at >= cutoff


def filter_eligible(
    transactions: list[TripTransaction], tz: ZoneInfo, offline: bool = False
) -> list[TripTransaction]:
    """Keep eligible transactions; offline agencies also drop never-started ones."""
    kept = [trx for trx in transactions if is_eligible(trx, tz)]
    if offline:
        kept = [trx for trx in kept if trx.started_at is not None]

    logger.info(f"Kept {len(kept)} of {len(transactions)} transactions after eligibility filter")
    return kept


def _is_enabled(value: str | None) -> bool:
    return bool(value) and str(value).lower() != "all"


def matches_request(trx: TripTransaction, request: ReportRequest, tz: ZoneInfo) -> bool:
    """Apply the optional request filters; every enabled filter must pass."""
    started = trx.started_at.astimezone(tz) if trx.started_at is not None else None

    if _is_enabled(request.am_pm):
        if started is None:
            return False
        meridiem = "am" if started.hour < 12 else "pm"
        if meridiem != request.am_pm.lower():
            return False

    if _is_enabled(request.weekend_weekday):
        if started is None:
            return False
        kind = "weekend" if started.weekday() >= 5 else "weekday"
        if kind != request.weekend_weekday.lower():
            return False

    if request.select_from_date or request.select_to_date:
        moment = trx.started_at or trx.scheduled_at
        if moment is None:
            return False
        select_from = parse_timestamp(request.select_from_date, tz)
        select_to = parse_timestamp(request.select_to_date, tz)
        if select_from is not None and moment < select_from:
            return False
        if select_to is not None and moment > select_to:
            return False

    if request.vehicle and trx.vehicle_registration_number != request.vehicle:
        return False

    if request.driver and trx.driver_name != request.driver:
        return False

    if _is_enabled(request.paid_by):
        channel = "cashless" if trx.is_cashless else "cash"
        if channel != request.paid_by.lower():
            return False

    return True


def apply_request_filters(
    transactions: list[TripTransaction], request: ReportRequest, tz: ZoneInfo
) -> list[TripTransaction]:
    kept = [trx for trx in transactions if matches_request(trx, request, tz)]
    if len(kept) != len(transactions):
        logger.info(f"Request filters kept {len(kept)} of {len(transactions)} transactions")
    return kept
