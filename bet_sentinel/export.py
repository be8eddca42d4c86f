"""
Export functionality for Bet Sentinel.

This module writes suspicious-bettor analysis reports to files:
- JSON: Full report with window metadata and score breakdowns
- CSV: One row per flagged actor for spreadsheets
"""

import csv
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from .detection import AnalysisReport

logger = logging.getLogger(__name__)


CSV_FIELDS = [
    "rank",
    "actorId",
    "suspicionScore",
    "totalBets",
    "totalAmount",
    "avgBetAmount",
    "firstBet",
    "lastBet",
    "distinctActivities",
    "flaggedBets",
    "flaggedPercentage",
    "betsPerHour",
    "scoreBreakdown",
]


class ReportExporter:
    """
    Export analysis reports to various formats.

    Supports JSON and CSV exports.
    """

    def export_report_json(
        self,
        report: AnalysisReport,
        filepath: str,
        pretty: bool = True
    ) -> str:
        """
        Export a report to a JSON file.

        Args:
            report: Analysis report.
            filepath: Output file path.
            pretty: Pretty-print JSON output.

        Returns:
            Path to created file.
        """
        export_data = {
            "metadata": {
                "exported_at": datetime.now(timezone.utc).isoformat(),
                "total_entries": len(report.suspicious_actors),
            },
            "report": report.to_dict(),
        }

        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, "w", encoding="utf-8") as f:
            if pretty:
                json.dump(export_data, f, indent=2, default=str)
            else:
                json.dump(export_data, f, default=str)

        logger.info(f"Exported report to {filepath}")
        return str(filepath)

    def export_report_csv(self, report: AnalysisReport, filepath: str) -> str:
        """
        Export the ranked actors of a report to a CSV file.

        Args:
            report: Analysis report.
            filepath: Output file path.

        Returns:
            Path to created file.
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
            writer.writeheader()

            for position, actor in enumerate(report.suspicious_actors, 1):
                row = actor.to_dict()
                row["rank"] = position
                # Flatten breakdown as "rule=points;rule=points"
                row["scoreBreakdown"] = ";".join(
                    f"{rule}={points}" for rule, points in row["scoreBreakdown"].items()
                )
                writer.writerow(row)

        logger.info(f"Exported {len(report.suspicious_actors)} actors to {filepath}")
        return str(filepath)

    def export_combined(self, report: AnalysisReport, output_dir: str) -> dict[str, str]:
        """
        Export a report as both JSON and CSV with a timestamped name.

        Args:
            report: Analysis report.
            output_dir: Output directory.

        Returns:
            Dictionary mapping format to filepath.
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        stamp = report.generated_at.strftime("%Y%m%d_%H%M%S")
        files = {
            "json": self.export_report_json(
                report, str(output_dir / f"suspicious_bettors_{stamp}.json")
            ),
            "csv": self.export_report_csv(
                report, str(output_dir / f"suspicious_bettors_{stamp}.csv")
            ),
        }

        logger.info(f"Exported report files to {output_dir}")
        return files


# Global exporter instance
exporter = ReportExporter()
