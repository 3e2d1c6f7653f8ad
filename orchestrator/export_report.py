"""
Run report generator for space exports.

Aggregates per-page outcomes into a summary, formats it for the console and
writes it as JSON or CSV next to the exported tree.
"""

import csv
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from models import ExportOutcome, PageRecord, SpaceMetadata

PageOutcome = Tuple[PageRecord, ExportOutcome]


class ExportReport:
    """Builds run reports from discovery counts and page outcomes."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize report generator.

        Args:
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger('confluence_pdf_exporter.report')

    def generate_report(
        self,
        space: Optional[SpaceMetadata],
        discovered: int,
        pending: int,
        outcomes: Sequence[PageOutcome],
        duration: float
    ) -> Dict[str, Any]:
        """
        Generate the run report.

        Args:
            space: Space that was exported (None if discovery never finished)
            discovered: Number of pages found by discovery
            pending: Number of pages not yet recorded as done
            outcomes: (page, outcome) pairs in processing order
            duration: Run duration in seconds

        Returns:
            Report dictionary
        """
        successful = [o for _, o in outcomes if o.success]
        failed = [(p, o) for p, o in outcomes if not o.success]

        summary = {
            'space_key': space.key if space else None,
            'space_name': space.name if space else None,
            'discovered': discovered,
            'already_done': discovered - pending,
            'attempted': len(outcomes),
            'successful': len(successful),
            'skipped_existing': sum(1 for o in successful if o.skipped),
            'failed': len(failed),
            'duration_seconds': duration,
            'duration_formatted': self._format_duration(duration)
        }

        report = {
            'summary': summary,
            'failures': [
                {
                    'title': page.title,
                    'url': page.url,
                    'page_id': page.page_id,
                    'error': outcome.error.value if outcome.error else None,
                    'message': outcome.error_message,
                    'attempts': outcome.attempts
                }
                for page, outcome in failed
            ],
            'pages': [
                dict(page.to_dict(), page_id=page.page_id, **outcome.to_dict())
                for page, outcome in outcomes
            ],
            'timestamp': datetime.now().isoformat()
        }

        self.logger.debug(
            f"Report generated: {summary['successful']} exported, {summary['failed']} failed"
        )
        return report

    def _format_duration(self, seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            minutes = int(seconds // 60)
            secs = int(seconds % 60)
            return f"{minutes}m {secs}s"
        else:
            hours = int(seconds // 3600)
            minutes = int((seconds % 3600) // 60)
            secs = int(seconds % 60)
            return f"{hours}h {minutes}m {secs}s"

    def format_console_report(self, report: Dict[str, Any]) -> str:
        """
        Format report for console display.

        Args:
            report: Report dictionary

        Returns:
            Formatted console string
        """
        sections = []
        summary = report.get('summary', {})

        sections.append("=" * 60)
        sections.append("EXPORT REPORT")
        sections.append("=" * 60)
        sections.append("")

        sections.append("Summary:")
        if summary.get('space_key'):
            sections.append(f"  Space:        {summary.get('space_name')} ({summary['space_key']})")
        sections.append(f"  Discovered:   {summary.get('discovered', 0)}")
        sections.append(f"  Already done: {summary.get('already_done', 0)}")
        sections.append(f"  Attempted:    {summary.get('attempted', 0)}")
        sections.append(f"  Exported:     {summary.get('successful', 0)}")
        if summary.get('skipped_existing'):
            sections.append(f"  Existing:     {summary['skipped_existing']} (file already present)")
        sections.append(f"  Failed:       {summary.get('failed', 0)}")
        sections.append(f"  Duration:     {summary.get('duration_formatted', '0s')}")
        sections.append("")

        failures: List[Dict[str, Any]] = report.get('failures', [])
        if failures:
            sections.append("Failed Pages:")
            sections.append("-" * 60)
            for failure in failures[:20]:
                sections.append(f"  {failure['title']}")
                sections.append(f"    {failure['url']}")
                sections.append(f"    {failure['error']}: {failure['message']}")
            if len(failures) > 20:
                sections.append(f"  ... and {len(failures) - 20} more")
            sections.append("")
            sections.append("Re-run the same command to retry failed pages.")
            sections.append("")

        sections.append("=" * 60)

        return "\n".join(sections)

    def export_json_report(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export report to JSON file.

        Args:
            report: Report dictionary
            filepath: Output file path
        """
        try:
            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(report, f, indent=2, ensure_ascii=False, default=str)

            self.logger.info(f"JSON report exported to {filepath}")

        except OSError as e:
            self.logger.error(f"Failed to export JSON report: {str(e)}")

    def export_csv_summary(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export one row per attempted page to CSV.

        Args:
            report: Report dictionary
            filepath: Output file path
        """
        try:
            with open(filepath, 'w', newline='', encoding='utf-8') as f:
                writer = csv.writer(f)
                writer.writerow(['title', 'url', 'success', 'skipped', 'attempts', 'error', 'output_path'])

                for page in report.get('pages', []):
                    writer.writerow([
                        page['title'],
                        page['url'],
                        page['success'],
                        page['skipped'],
                        page['attempts'],
                        page['error'] or '',
                        page['output_path'] or ''
                    ])

            self.logger.info(f"CSV summary exported to {filepath}")

        except OSError as e:
            self.logger.error(f"Failed to export CSV summary: {str(e)}")


__all__ = ['ExportReport']
