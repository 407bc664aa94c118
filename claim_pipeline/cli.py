"""Command-line interface for claim-pipeline."""

import argparse
import logging
import sys
from datetime import UTC, datetime

from claim_pipeline.api import build_report, write_report
from claim_pipeline.exceptions import ReportError
from claim_pipeline.records.models import DEFAULT_TIMEZONE, ReportConfig, ReportRequest
from claim_pipeline.records.reader import DirectorySource
from claim_pipeline.version import VERSION


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def cmd_report(args: argparse.Namespace) -> int:
    """Execute report command."""
    setup_logging(args.verbose)

    config = ReportConfig.from_env(
        timezone=args.timezone,
        trip_log_concurrency=args.concurrency,
        trip_log_batch_size=args.batch_size,
    )
    request = ReportRequest(
        agency_id=args.agency,
        timestamp=args.timestamp or datetime.now(UTC).isoformat(),
        window_from=args.window_from,
        window_to=args.window_to,
        route=args.route,
        am_pm=args.am_pm,
        vehicle=args.vehicle,
        driver=args.driver,
        weekend_weekday=args.weekend_weekday,
        paid_by=args.paid_by,
        select_from_date=args.select_from,
        select_to_date=args.select_to,
    )

    try:
        source = DirectorySource(args.data, timezone=config.timezone)
        report = build_report(request, source, config)
        files = write_report(report, args.output, compress=args.compress)
        print("\nReport successful!")
        print(f"Output: {args.output}")
        print(f"Files: {', '.join(sorted(files))}")
        print(f"Stats: {report.stats}")
        return 0
    except ReportError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2 if e.status_code < 500 else 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logging.exception("Report failed")
        return 1


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="claim-report",
        description="Build bus trip claim reports from fare transactions and GPS logs",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    report_parser = subparsers.add_parser("report", help="Build a claim report")
    report_parser.add_argument("--data", required=True, help="Path to data directory")
    report_parser.add_argument("--agency", required=True, help="Agency id")
    report_parser.add_argument(
        "--from", dest="window_from", required=True, help="Window start (ISO timestamp)"
    )
    report_parser.add_argument(
        "--to", dest="window_to", required=True, help="Window end (ISO timestamp)"
    )
    report_parser.add_argument(
        "--timestamp",
        default=None,
        help="Request timestamp (default: current time)",
    )
    report_parser.add_argument("--route", default=None, help="Only this route id")
    report_parser.add_argument(
        "--am-pm", choices=["All", "AM", "PM"], default="All", help="Time of day (default: All)"
    )
    report_parser.add_argument(
        "--weekend-weekday",
        choices=["All", "Weekend", "Weekday"],
        default="All",
        help="Day type (default: All)",
    )
    report_parser.add_argument(
        "--paid-by",
        choices=["All", "cash", "cashless"],
        default="All",
        help="Payment channel (default: All)",
    )
    report_parser.add_argument("--vehicle", default=None, help="Vehicle registration number")
    report_parser.add_argument("--driver", default=None, help="Driver name")
    report_parser.add_argument(
        "--select-from", default=None, help="Earliest trip start (local datetime)"
    )
    report_parser.add_argument("--select-to", default=None, help="Latest trip start (local datetime)")
    report_parser.add_argument(
        "--output", default="./claim_report", help="Output directory (default: ./claim_report)"
    )
    report_parser.add_argument(
        "--timezone",
        default=DEFAULT_TIMEZONE,
        help=f"Reporting timezone (default: {DEFAULT_TIMEZONE})",
    )
    report_parser.add_argument(
        "--compress",
        type=lambda x: x.lower() == "true",
        default=True,
        help="Write gzip-compressed JSON payload (default: true)",
    )
    report_parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Trip log fetch workers (default: sized from memory)",
    )
    report_parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Trip log fetch batch size (default: sized from memory)",
    )
    report_parser.set_defaults(func=cmd_report)

    # Parse and execute
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
