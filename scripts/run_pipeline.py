#!/usr/bin/env python3
"""
CLI script to run the AI traffic logger background jobs.

Usage:
    # Move queued hits into the logs table once
    python scripts/run_pipeline.py --flush

    # Delete logs older than the retention horizon once
    python scripts/run_pipeline.py --sweep

    # Run both periodic jobs until interrupted
    python scripts/run_pipeline.py --serve

    # Check pipeline status
    python scripts/run_pipeline.py --status
"""

import argparse
import logging
import sys
import time
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ai_traffic_logger.config import (
    JOB_CLEANUP_OLD_LOGS,
    JOB_PROCESS_LOG_QUEUE,
    Settings,
    get_settings,
)
from ai_traffic_logger.monitoring import CircuitBreaker
from ai_traffic_logger.pipeline import (
    BatchFlushJob,
    JobScheduler,
    RetentionSweep,
    setup_logging,
)
from ai_traffic_logger.storage import StorageBackend, get_backend

logger = logging.getLogger(__name__)


def build_flush_job(backend: StorageBackend, settings: Settings) -> BatchFlushJob:
    """Create the flush job with its circuit breaker from settings."""
    return BatchFlushJob(
        backend,
        batch_size=settings.jobs.flush_batch_size,
        circuit_breaker=CircuitBreaker(
            failure_threshold=settings.jobs.flush_failure_threshold,
            recovery_timeout_seconds=settings.jobs.flush_recovery_seconds,
        ),
    )


def run_flush(backend: StorageBackend, settings: Settings) -> int:
    """Run one flush tick and print the result."""
    result = build_flush_job(backend, settings).run()

    print()
    print("📥 Queue Flush")
    print("=" * 50)
    print(f"  Success: {'✅' if result.success else '❌'}")
    print(f"  Fetched: {result.fetched:,}")
    print(f"  Flushed: {result.flushed:,}")
    print(f"  Remaining in queue: {backend.queue_count():,}")
    for error in result.errors:
        print(f"  ❌ {error}")
    print()

    return 0 if result.success else 1


def run_sweep(backend: StorageBackend, settings: Settings) -> int:
    """Run one retention sweep and print the result."""
    result = RetentionSweep(backend, settings.traffic.retention_days).run()

    print()
    print("🧹 Retention Sweep")
    print("=" * 50)
    if result.skipped:
        print("  ⏭️  Retention disabled (retention_days = 0)")
    else:
        print(f"  Success: {'✅' if result.success else '❌'}")
        print(f"  Cutoff: {result.cutoff.isoformat()}")
        print(f"  Deleted: {result.deleted:,}")
    for error in result.errors:
        print(f"  ❌ {error}")
    print()

    return 0 if result.success else 1


def show_status(backend: StorageBackend, settings: Settings) -> int:
    """Print storage and configuration status."""
    health = backend.health_check()

    print("\n📊 Pipeline Status")
    print("=" * 50)
    print(f"  Backend: {backend.backend_type}")
    print(f"  Healthy: {'✅' if health['healthy'] else '❌'}")
    for key, value in health["details"].items():
        print(f"  {key}: {value}")
    print()
    print("  Settings:")
    for key, value in settings.traffic.to_dict().items():
        print(f"    {key}: {value}")
    print()

    return 0 if health["healthy"] else 1


def serve(backend: StorageBackend, settings: Settings) -> int:
    """Run both periodic jobs until interrupted."""
    flush_job = build_flush_job(backend, settings)
    scheduler = JobScheduler()
    scheduler.schedule(
        JOB_PROCESS_LOG_QUEUE,
        settings.jobs.flush_interval_seconds,
        flush_job.run,
    )
    scheduler.schedule(
        JOB_CLEANUP_OLD_LOGS,
        settings.jobs.retention_interval_seconds,
        RetentionSweep(backend, settings.traffic.retention_days).run,
    )
    scheduler.start()

    logger.info("Background jobs running, press Ctrl+C to stop")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Stopping background jobs")
    finally:
        scheduler.clear()
        # Drain whatever arrived since the last tick
        flush_job.run()

    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Run the AI traffic logger background jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Flush the queue once
  python scripts/run_pipeline.py --flush

  # Run the periodic jobs with a specific database
  python scripts/run_pipeline.py --serve --db-path data/ai-traffic.db
        """,
    )

    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument(
        "--flush",
        action="store_true",
        help="Move queued hits into the logs table once",
    )
    action.add_argument(
        "--sweep",
        action="store_true",
        help="Delete logs older than the retention horizon once",
    )
    action.add_argument(
        "--serve",
        action="store_true",
        help="Run the flush and retention jobs periodically until interrupted",
    )
    action.add_argument(
        "--status",
        action="store_true",
        help="Show pipeline status and exit",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to YAML config file (default: config.yaml)",
    )
    parser.add_argument(
        "--db-path",
        type=Path,
        help="Path to SQLite database (default: data/ai-traffic.db)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    # Setup logging
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    settings = get_settings(str(args.config) if args.config else None)
    db_path = args.db_path or Path(settings.sqlite_db_path)

    try:
        backend = get_backend(settings.storage_backend, db_path=db_path)
        backend.initialize()
    except Exception as e:
        logger.error(f"Failed to initialize storage backend: {e}")
        return 1

    try:
        if args.status:
            return show_status(backend, settings)
        if args.flush:
            return run_flush(backend, settings)
        if args.sweep:
            return run_sweep(backend, settings)
        return serve(backend, settings)
    finally:
        backend.close()


if __name__ == "__main__":
    sys.exit(main())
