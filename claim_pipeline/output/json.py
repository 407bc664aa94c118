"""Report files: CSV export, JSON summaries and the compressed payload."""

import gzip
import hashlib
import json
import logging
from pathlib import Path
from typing import Any

from claim_pipeline.output.csv_report import compose_claim_csv
from claim_pipeline.records.models import ClaimReport
from claim_pipeline.version import REPORT_SCHEMA_VERSION, VERSION

logger = logging.getLogger(__name__)


def report_payload(report: ClaimReport) -> dict[str, Any]:
    """Payload handed to callers: per-trip summaries and the CSV export text."""
    return {
        "returnData": [summary.to_dict() for summary in report.summaries],
        "exportData": compose_claim_csv(report),
    }


def write_report(report: ClaimReport, output_path: Path, compress: bool = True) -> dict[str, str]:
    """Write report files and return a mapping of file name to path."""
    logger.info(f"Writing report files to {output_path}")

    output_path.mkdir(parents=True, exist_ok=True)

    files_written = {}
    payload = report_payload(report)

    csv_path = output_path / "claim_report.csv"
    with open(csv_path, "w", encoding="utf-8", newline="") as f:
        f.write(payload["exportData"])
    files_written["claim_report.csv"] = str(csv_path)
    logger.info(f"Wrote {csv_path}")

    summaries_path = output_path / "summaries.json"
    with open(summaries_path, "w", encoding="utf-8") as f:
        json.dump(
            {
                "schema_version": REPORT_SCHEMA_VERSION,
                "tool_version": VERSION,
                "stats": report.stats,
                "summaries": payload["returnData"],
            },
            f,
            indent=2,
            sort_keys=True,
        )
    files_written["summaries.json"] = str(summaries_path)
    logger.info(f"Wrote {summaries_path}")

    if compress:
        gzip_path = output_path / "report.json.gz"
        with gzip.open(gzip_path, "wt", encoding="utf-8") as f:
            json.dump(payload, f)
        files_written["report.json.gz"] = str(gzip_path)
        logger.info(f"Wrote {gzip_path}")

    for filename, filepath in files_written.items():
        with open(filepath, "rb") as f:
            checksum = hashlib.sha256(f.read()).hexdigest()
        logger.info(f"{filename} sha256={checksum}")

    return files_written
