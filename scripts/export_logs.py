#!/usr/bin/env python3
"""
Export AI traffic logs to CSV, or print traffic statistics.

Usage:
    # Export all logs to CSV
    python scripts/export_logs.py --output data/reports/ai-traffic.csv

    # Export with filters
    python scripts/export_logs.py \
        --bot GPTBot \
        --start-date 2025-01-01 \
        --end-date 2025-01-31 \
        --output data/reports/gptbot-january.csv

    # Print statistics for the last 7 days
    python scripts/export_logs.py --stats 7
"""

import argparse
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Optional

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ai_traffic_logger.pipeline import setup_logging
from ai_traffic_logger.reporting import LogFilter, TrafficQueries
from ai_traffic_logger.storage import get_backend

logger = logging.getLogger(__name__)


def parse_date(date_str: str) -> date:
    """Parse date string in YYYY-MM-DD format."""
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid date format: {date_str}. Use YYYY-MM-DD"
        )


def export_to_csv(
    backend,
    output_path: Path,
    bot_category: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> int:
    """
    Export logs to a CSV file, newest first.

    Returns:
        Number of records exported
    """
    queries = TrafficQueries(backend=backend)
    df = queries.to_dataframe(
        LogFilter(bot_category=bot_category, date_from=start_date, date_to=end_date)
    )

    if df.empty:
        logger.warning("No logs found matching the criteria")
        return 0

    # Ensure output directory exists
    output_path.parent.mkdir(parents=True, exist_ok=True)

    df.to_csv(output_path, index=False)
    logger.info(f"Exported {len(df)} logs to {output_path}")

    return len(df)


def print_statistics(backend, days: int) -> dict:
    """Print traffic statistics for the last N days."""
    stats = TrafficQueries(backend=backend).get_statistics(days=days)

    print()
    print(f"📊 AI Traffic Statistics (last {stats.days} days)")
    print("=" * 50)
    print(f"  Total AI visits: {stats.total_visits:,}")
    print(f"  Unique bots: {stats.unique_bots}")
    print(f"  Avg daily visits: {stats.avg_daily_visits:.1f}")

    if not stats.top_bots.empty:
        print()
        print("  Top AI bots:")
        for row in stats.top_bots.itertuples(index=False):
            print(f"    {row.bot_category:<30} {row.visits:>8,}  ({row.percentage}%)")

    if not stats.referrer_split.empty:
        print()
        print("  Traffic source:")
        for row in stats.referrer_split.itertuples(index=False):
            print(f"    {row.referrer_type:<30} {row.visits:>8,}")
    print()

    return stats.to_dict()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Export AI traffic logs or print statistics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export all logs to CSV
  python scripts/export_logs.py --output data/reports/ai-traffic.csv

  # Export one bot over a date range
  python scripts/export_logs.py --bot GPTBot \\
      --start-date 2025-01-01 --end-date 2025-01-31 \\
      --output data/reports/gptbot.csv

  # Print statistics for the last 30 days
  python scripts/export_logs.py --stats 30
        """,
    )

    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        help="Output CSV path (required unless --stats is given)",
    )
    parser.add_argument(
        "--stats",
        type=int,
        metavar="DAYS",
        help="Print statistics for the last DAYS days instead of exporting",
    )

    # Database options
    parser.add_argument(
        "--db-path",
        type=Path,
        help="Path to SQLite database (default: data/ai-traffic.db)",
    )

    # Filtering options
    parser.add_argument(
        "--bot",
        type=str,
        help="Filter by bot category (e.g., GPTBot, 'ChatGPT Referral')",
    )
    parser.add_argument(
        "--start-date",
        type=parse_date,
        help="Start date filter (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--end-date",
        type=parse_date,
        help="End date filter (YYYY-MM-DD)",
    )

    # Logging
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.stats is None and args.output is None:
        parser.error("--output is required unless --stats is given")
    if args.stats is not None and args.stats < 1:
        parser.error("--stats must be >= 1")

    # Setup logging
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    # Initialize storage backend
    try:
        backend = get_backend(backend_type="sqlite", db_path=args.db_path)
        backend.initialize()
    except Exception as e:
        logger.error(f"Failed to initialize storage backend: {e}")
        return 1

    try:
        if args.stats is not None:
            print_statistics(backend, args.stats)
            return 0

        count = export_to_csv(
            backend,
            args.output,
            bot_category=args.bot,
            start_date=args.start_date,
            end_date=args.end_date,
        )
        print(f"✅ Exported {count:,} logs to {args.output}")
        return 0

    except Exception as e:
        logger.exception(f"Export failed: {e}")
        return 1

    finally:
        backend.close()


if __name__ == "__main__":
    sys.exit(main())
