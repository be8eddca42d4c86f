"""
Main entry point for Bet Sentinel.

This module provides the CLI interface and scheduled job runner
for the suspicious-bettor analysis.

Usage:
    # Run a single analysis and print the top suspicious actors
    python -m bet_sentinel.main --analyze

    # Run the analysis periodically
    python -m bet_sentinel.main --schedule

    # Load bets from a JSON file (array or one object per line)
    python -m bet_sentinel.main --import bets.json --skip-invalid

    # Show store statistics
    python -m bet_sentinel.main --stats
"""

import argparse
import json
import logging
import signal
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import settings
from .database import Database, db
from .detection import AnalysisReport, DetectionConfig, SuspiciousBettorDetector
from .export import exporter
from .models import InvalidEventError, parse_events
from .sample_data import generate_sample_data
from .utils import format_amount, json_dumps_safe, truncate_id

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler("bet_sentinel.log"),
    ],
)
logger = logging.getLogger(__name__)


class SentinelRunner:
    """
    Main application class for Bet Sentinel.

    Manages the scheduled analysis job and graceful shutdown.
    """

    def __init__(
        self,
        database: Optional[Database] = None,
        detector: Optional[SuspiciousBettorDetector] = None,
        export_dir: Optional[str] = None,
        top_n: Optional[int] = None
    ):
        """Initialize the runner."""
        self.db = database or db
        self.detector = detector or SuspiciousBettorDetector(DetectionConfig.from_settings())
        self.export_dir = export_dir
        self.top_n = top_n
        self.scheduler: BlockingScheduler = None

    def run_analysis(self, top_n: Optional[int] = None) -> AnalysisReport:
        """Run one analysis over the store and optionally export it."""
        if top_n is None:
            top_n = self.top_n
        report = self.detector.analyze_store(self.db, datetime.now(timezone.utc), top_n=top_n)
        if self.export_dir:
            exporter.export_combined(report, self.export_dir)
        return report

    def _run_analysis_job(self) -> None:
        """Execute a scheduled analysis job."""
        try:
            report = self.run_analysis()
            print_report(report)
        except Exception as e:
            logger.error(f"Analysis job failed: {e}")

    def start(self) -> None:
        """Start periodic analysis; blocks until stopped."""
        logger.info("=" * 60)
        logger.info("Bet Sentinel Starting")
        logger.info(f"Database: {self.db.db_path}")
        logger.info(f"Analysis interval: {settings.analysis_interval_minutes} minutes")
        logger.info("=" * 60)

        self.scheduler = BlockingScheduler()
        self.scheduler.add_job(
            self._run_analysis_job,
            trigger=IntervalTrigger(minutes=settings.analysis_interval_minutes),
            id="suspicious_bettor_analysis",
            name="Suspicious Bettor Analysis",
            next_run_time=datetime.now(),  # Run immediately on start
        )
        self.scheduler.start()

    def stop(self) -> None:
        """Stop the scheduler gracefully."""
        logger.info("Shutting down...")
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    def handle_signal(self, signum, frame) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}")
        self.stop()


def load_records(path: str) -> list:
    """
    Read raw bet records from a JSON array file or a JSON-lines file.

    Args:
        path: File to read.

    Returns:
        List of raw records.
    """
    text = Path(path).read_text(encoding="utf-8").strip()
    if not text:
        return []
    if text.startswith("["):
        return json.loads(text)
    return [json.loads(line) for line in text.splitlines() if line.strip()]


def print_report(report: AnalysisReport) -> None:
    """Print an analysis report as a table."""
    print("\n" + "=" * 78)
    print("Suspicious Bettor Analysis")
    print(f"  Window: {report.window_start:%Y-%m-%d %H:%M} - {report.window_end:%Y-%m-%d %H:%M} UTC")
    print(f"  Bets in window: {report.events_in_window:,}  "
          f"Actors: {report.actors_in_window:,}  Candidates: {report.total_analyzed:,}")
    print("=" * 78)

    if not report.suspicious_actors:
        print("  No suspicious actors found.\n")
        return

    print(f"  {'#':>3}  {'Actor':<22} {'Score':>5} {'Bets':>6} {'Bets/h':>8} "
          f"{'Games':>5} {'Flag%':>6} {'Volume':>10}")
    print("-" * 78)
    for i, actor in enumerate(report.suspicious_actors, 1):
        s = actor.summary
        print(f"  {i:>3}  {truncate_id(actor.actor_id):<22} {actor.suspicion_score:>5} "
              f"{s.total_events:>6} {s.events_per_hour:>8.2f} {s.activity_diversity:>5} "
              f"{s.flagged_ratio_percent:>6.1f} {format_amount(s.total_amount):>10}")
    print()


def print_stats(database: Optional[Database] = None) -> None:
    """Print database statistics."""
    stats = (database or db).get_stats()
    print("\n" + "=" * 50)
    print("Bet Sentinel Database Statistics")
    print("=" * 50)
    print(f"  Total Bets:       {stats['total_bets']:,}")
    print(f"  Total Actors:     {stats['total_actors']:,}")
    print(f"  Total Games:      {stats['total_games']:,}")
    print(f"  Flagged Bets:     {stats['flagged_bets']:,}")
    print(f"  Total Wagered:    {format_amount(stats['total_amount'])}")
    print(f"  First Bet:        {stats['first_bet'] or '-'}")
    print(f"  Last Bet:         {stats['last_bet'] or '-'}")
    print("=" * 50 + "\n")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Bet Sentinel - Suspicious betting behavior analysis"
    )
    parser.add_argument(
        "--analyze",
        action="store_true",
        help="Run a single analysis and exit (default action)"
    )
    parser.add_argument(
        "--schedule",
        action="store_true",
        help="Run the analysis periodically until interrupted"
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Show database statistics and exit"
    )
    parser.add_argument(
        "--import",
        dest="import_path",
        metavar="FILE",
        help="Load bets from a JSON array or JSON-lines file, then exit"
    )
    parser.add_argument(
        "--skip-invalid",
        action="store_true",
        help="Skip invalid bet records on import instead of aborting"
    )
    parser.add_argument(
        "--sample",
        action="store_true",
        help="Generate sample bets and exit"
    )
    parser.add_argument(
        "--top-n",
        type=int,
        default=None,
        help=f"Number of actors to report (default: {settings.top_n})"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the analysis report as JSON"
    )
    parser.add_argument("--export-json", metavar="PATH", help="Write the report to a JSON file")
    parser.add_argument("--export-csv", metavar="PATH", help="Write the report to a CSV file")
    parser.add_argument(
        "--export-dir",
        metavar="DIR",
        help="Write timestamped JSON and CSV reports on every analysis run"
    )
    args = parser.parse_args()

    if args.stats:
        print_stats()
        return

    if args.sample:
        generate_sample_data()
        return

    if args.import_path:
        try:
            events = parse_events(load_records(args.import_path), skip_invalid=args.skip_invalid)
        except InvalidEventError as e:
            logger.error(f"Import aborted: {e}")
            sys.exit(1)
        stored = db.insert_bets(events)
        print(f"Imported {stored} bets from {args.import_path}")
        return

    runner = SentinelRunner(export_dir=args.export_dir, top_n=args.top_n)

    if args.schedule:
        for sig in (signal.SIGTERM, signal.SIGINT):
            signal.signal(sig, runner.handle_signal)
        try:
            runner.start()
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
        return

    try:
        report = runner.run_analysis()
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)

    if args.json:
        print(json_dumps_safe(report.to_dict(), indent=2))
    else:
        print_report(report)

    if args.export_json:
        exporter.export_report_json(report, args.export_json)
    if args.export_csv:
        exporter.export_report_csv(report, args.export_csv)


if __name__ == "__main__":
    main()
