"""Report generation for journaled reconciliation outcomes."""

import json
import csv
import io
from datetime import datetime
from typing import Optional

from ..database.models import utcnow
from .journal import ReconciliationJournal
from .models import AttemptReport, OutcomeKind

CSV_COLUMNS = [
    "id", "created_at", "visit_id", "order_id", "transaction_uuid",
    "outcome", "source", "state_path", "reason", "error_message",
]


async def build_report(
    journal: ReconciliationJournal,
    start_time: datetime,
    end_time: datetime,
    outcome: Optional[OutcomeKind] = None,
) -> AttemptReport:
    """Collect journaled attempts in a time range into a report."""
    attempts = await journal.list_between(start_time, end_time, outcome)
    return AttemptReport(
        start_time=start_time,
        end_time=end_time,
        generated_at=utcnow(),
        attempts=attempts,
    )


class ReportGenerator:
    """Generator for reconciliation reports in various formats."""

    def __init__(self, report: AttemptReport):
        """Initialize the report generator.

        Args:
            report: The attempt report to generate output from.
        """
        self.report = report

    def to_json(self, include_details: bool = True, indent: int = 2) -> str:
        """Generate JSON representation of the report.

        Args:
            include_details: If True, include every attempt. If False, only summary.
            indent: JSON indentation level.

        Returns:
            JSON string representation of the report.
        """
        if include_details:
            data = self.report.to_full_dict()
        else:
            data = self.report.to_summary_dict()
        return json.dumps(data, indent=indent, default=str)

    def to_csv(self, discrepancies_only: bool = False) -> str:
        """Generate CSV with one row per attempt.

        Args:
            discrepancies_only: If True, leave out verified outcomes.

        Returns:
            CSV string with a header row.
        """
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(CSV_COLUMNS)

        attempts = self.report.discrepancies if discrepancies_only else self.report.attempts
        for a in attempts:
            writer.writerow([
                a.id,
                a.created_at.isoformat(),
                a.visit_id,
                a.order_id or "",
                a.transaction_uuid or "",
                a.outcome.value,
                a.source.value,
                ">".join(a.state_path),
                a.reason or "",
                a.error_message or "",
            ])
        return output.getvalue()

    def to_summary_text(self) -> str:
        """Generate a human-readable text summary of the report."""
        summary = self.report.to_summary_dict()
        stats = summary["statistics"]

        lines = [
            "=" * 60,
            "PAYMENT RECONCILIATION SUMMARY",
            "=" * 60,
            "Time Range:",
            f"  Start: {summary['start_time']}",
            f"  End: {summary['end_time']}",
            "",
            "Statistics:",
            f"  Total Attempts: {stats['total_attempts']}",
            f"  Verified: {stats['verified']}",
            f"  Uncertain: {stats['uncertain']}",
            f"  Generic Success: {stats['generic_success']}",
            f"  Verification Rate: {stats['verification_rate']}",
            "",
            f"Generated At: {summary['generated_at']}",
            "=" * 60,
        ]
        return "\n".join(lines)

    def to_detailed_text(self) -> str:
        """Summary followed by every outcome that needs a manual look."""
        lines = [self.to_summary_text(), ""]

        discrepancies = self.report.discrepancies
        if discrepancies:
            lines.extend([
                "NEEDS REVIEW",
                "-" * 40,
            ])
            for a in discrepancies:
                lines.extend([
                    f"\nOrder: {a.order_id or 'unknown'} | Transaction: {a.transaction_uuid or 'none'}",
                    f"  Outcome: {a.outcome.value} via {a.source.value}",
                    f"  Path: {' > '.join(a.state_path)}",
                    f"  Reason: {a.reason or 'n/a'}",
                ])
                if a.error_message:
                    lines.append(f"  Error: {a.error_message}")
            lines.append("")

        return "\n".join(lines)

    def render(self, output_format: str = "json", include_details: bool = True) -> str:
        if output_format == "csv":
            return self.to_csv()
        if output_format == "text":
            return self.to_summary_text()
        if output_format == "detailed_text":
            return self.to_detailed_text()
        return self.to_json(include_details=include_details)
