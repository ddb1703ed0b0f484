#!/usr/bin/env python3
"""Command-line interface for reconciliation tools.

Reports on journaled reconciliation outcomes and checks an order's payment
status with the gateway out of band.

Usage:
    storefront-reconcile report --start 2026-01-01 --end 2026-01-31
    storefront-reconcile report --start 2026-01-01 --end 2026-01-31 --format csv --output attempts.csv
    storefront-reconcile status 64f1c0ffee
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timedelta
from typing import Optional

from ..config import settings
from ..connectors import EsewaConnector
from ..database import DatabaseManager, get_database_url
from ..exceptions import StatusCheckError
from .journal import SqlReconciliationJournal
from .models import OutcomeKind
from .report import ReportGenerator, build_report

logger = logging.getLogger(__name__)


def parse_datetime(dt_string: str) -> datetime:
    """Parse datetime string in various formats.

    Args:
        dt_string: Datetime string in ISO format or date format.

    Returns:
        Parsed datetime object.

    Raises:
        ValueError: If the string cannot be parsed.
    """
    formats = [
        "%Y-%m-%dT%H:%M:%S",
        "%Y-%m-%dT%H:%M:%S.%f",
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%d",
    ]

    for fmt in formats:
        try:
            return datetime.strptime(dt_string, fmt)
        except ValueError:
            continue

    raise ValueError(
        f"Unable to parse datetime: {dt_string}. "
        f"Expected formats: YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS"
    )


async def run_report_async(
    start_time: datetime,
    end_time: datetime,
    output_file: Optional[str] = None,
    output_format: str = "json",
    include_details: bool = True,
    outcome: Optional[OutcomeKind] = None,
    database_url: Optional[str] = None,
) -> int:
    """Print or write a report of journaled outcomes.

    Returns:
        0 when every outcome was verified, 1 when some need review.
    """
    db = DatabaseManager(database_url or get_database_url())
    await db.initialize()
    try:
        journal = SqlReconciliationJournal(db)
        logger.info(f"Building reconciliation report from {start_time} to {end_time}")
        report = await build_report(journal, start_time, end_time, outcome)

        output = ReportGenerator(report).render(output_format, include_details=include_details)
        if output_file:
            with open(output_file, "w") as f:
                f.write(output)
            logger.info(f"Report written to {output_file}")
        else:
            print(output)

        if report.discrepancies:
            logger.warning(f"{len(report.discrepancies)} of {report.total} outcomes need review")
            return 1
        return 0
    finally:
        await db.shutdown()


async def run_status_async(order_id: str) -> int:
    """Ask the gateway whether ``order_id`` was paid.

    Returns:
        0 if confirmed, 1 if not, 2 if the check itself failed.
    """
    async with EsewaConnector(settings) as gateway:
        try:
            result = await asyncio.wait_for(
                gateway.check_status(order_id), settings.network_timeout_seconds
            )
        except (StatusCheckError, asyncio.TimeoutError) as e:
            logger.error(f"Status check for order {order_id} failed: {e}")
            return 2

    print(json.dumps({
        "order_id": order_id,
        "confirmed": result.confirmed,
        "status": result.status,
        "ref_id": result.ref_id,
        "total_amount": result.total_amount,
    }, indent=2))
    return 0 if result.confirmed else 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="storefront-reconcile",
        description="Reports on eSewa payment reconciliation outcomes.",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    report_parser = subparsers.add_parser(
        "report",
        help="Report journaled reconciliation outcomes",
    )
    report_parser.add_argument(
        "--start", "-s",
        required=True,
        help="Start date/time (YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS)",
    )
    report_parser.add_argument(
        "--end", "-e",
        required=True,
        help="End date/time (YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS)",
    )
    report_parser.add_argument(
        "--outcome",
        choices=[kind.value for kind in OutcomeKind],
        help="Only include one outcome kind",
    )
    report_parser.add_argument(
        "--output", "-o",
        help="Output file path (default: stdout)",
    )
    report_parser.add_argument(
        "--format", "-f",
        choices=["json", "csv", "text", "detailed_text"],
        default="json",
        help="Output format (default: json)",
    )
    report_parser.add_argument(
        "--summary-only",
        action="store_true",
        help="Only include summary statistics, not individual attempts",
    )
    report_parser.add_argument(
        "--database-url",
        help="Database URL (default: STOREFRONT_DATABASE_URL)",
    )

    status_parser = subparsers.add_parser(
        "status",
        help="Check an order's payment status with the gateway",
    )
    status_parser.add_argument("order_id", help="Order ID used as the eSewa transaction UUID")

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Optional list of command-line arguments (for testing).

    Returns:
        Exit code.
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == "report":
        try:
            start_time = parse_datetime(parsed_args.start)
            end_time = parse_datetime(parsed_args.end)

            # A bare end date covers that whole day
            if "T" not in parsed_args.end and " " not in parsed_args.end:
                end_time = end_time + timedelta(days=1) - timedelta(microseconds=1)

        except ValueError as e:
            logger.error(str(e))
            return 1

        return asyncio.run(run_report_async(
            start_time=start_time,
            end_time=end_time,
            output_file=parsed_args.output,
            output_format=parsed_args.format,
            include_details=not parsed_args.summary_only,
            outcome=OutcomeKind(parsed_args.outcome) if parsed_args.outcome else None,
            database_url=parsed_args.database_url,
        ))

    if parsed_args.command == "status":
        return asyncio.run(run_status_async(parsed_args.order_id))

    return 0


if __name__ == "__main__":
    sys.exit(main())
