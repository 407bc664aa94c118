"""Claim Pipeline - Build bus trip claim reports from fare transactions and GPS logs."""

from claim_pipeline.api import build_report, handle_request, write_report
from claim_pipeline.version import REPORT_SCHEMA_VERSION, VERSION

__version__ = VERSION
__all__ = ["REPORT_SCHEMA_VERSION", "VERSION", "build_report", "handle_request", "write_report"]
