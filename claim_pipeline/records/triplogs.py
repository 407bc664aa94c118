"""Bounded-concurrency retrieval of per-trip GPS logs."""

import logging
from concurrent.futures import ThreadPoolExecutor

from claim_pipeline.records.models import GpsLogPoint
from claim_pipeline.records.source import ReportSource

logger = logging.getLogger(__name__)


def chunk(items: list[str], size: int) -> list[list[str]]:
    """Split items into consecutive chunks of at most `size`."""
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}")
    return [items[i : i + size] for i in range(0, len(items), size)]


def load_trip_logs(
    source: ReportSource,
    trip_ids: list[str],
    concurrency: int = 8,
    batch_size: int = 80,
) -> dict[str, list[GpsLogPoint]]:
    """
    Fetch GPS logs for all trips before classification starts.

    Trip ids are processed in batches; each batch is fetched by a fixed-size
    worker pool. A failed fetch degrades that trip to "no GPS log". Only
    non-empty logs are returned.
    """
    unique_ids = list(dict.fromkeys(trip_ids))
    logger.info(
        f"Fetching trip logs for {len(unique_ids)} trips "
        f"(concurrency={concurrency}, batch_size={batch_size})"
    )

    def fetch(trip_id: str) -> tuple[str, list[GpsLogPoint]]:
        try:
            return trip_id, source.fetch_trip_log(trip_id)
        except Exception as e:
            logger.warning(f"Error fetching trip log for trip {trip_id}: {e}")
            return trip_id, []

    logs: dict[str, list[GpsLogPoint]] = {}
    for batch in chunk(unique_ids, batch_size):
        with ThreadPoolExecutor(max_workers=max(1, min(concurrency, len(batch)))) as pool:
            for trip_id, points in pool.map(fetch, batch):
                if points:
                    logs[trip_id] = sorted(points, key=lambda p: p.timestamp)

    logger.info(f"Loaded GPS logs for {len(logs)} of {len(unique_ids)} trips")
    return logs
