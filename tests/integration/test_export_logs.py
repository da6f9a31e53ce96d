"""
Integration tests for the export_logs.py and run_pipeline.py scripts.

Tests CSV export with filters, statistics output and the command lines.
"""

import subprocess
import sys
from datetime import date, datetime, timezone
from pathlib import Path

import pandas as pd
import pytest

# Add src and scripts to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "scripts"))

from ai_traffic_logger.storage import get_backend

PROJECT_ROOT = Path(__file__).parent.parent.parent


@pytest.fixture
def db_with_logs(tmp_path, make_hit):
    """Create a temporary database with a few known log records."""
    db_path = tmp_path / "test_export.db"
    backend = get_backend(backend_type="sqlite", db_path=db_path)
    backend.initialize()

    backend.insert_records(
        [
            make_hit("GPTBot", datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc)),
            make_hit("GPTBot", datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)),
            make_hit("ClaudeBot", datetime(2025, 1, 15, 18, 30, tzinfo=timezone.utc)),
            make_hit(
                "ChatGPT Referral",
                datetime(2025, 1, 20, 12, 0, tzinfo=timezone.utc),
                referrer="https://chatgpt.com/",
            ),
        ]
    )

    yield db_path, backend
    backend.close()


def run_script(*args):
    return subprocess.run(
        [sys.executable, *args],
        capture_output=True,
        text=True,
        cwd=PROJECT_ROOT,
    )


class TestCSVExport:
    """Tests for export_to_csv."""

    def test_export_all_logs(self, db_with_logs, tmp_path):
        """Test exporting every record to CSV, newest first."""
        _, backend = db_with_logs
        output_path = tmp_path / "reports" / "all.csv"

        from export_logs import export_to_csv

        count = export_to_csv(backend, output_path)

        assert count == 4
        df = pd.read_csv(output_path)
        assert list(df.columns) == [
            "id",
            "observed_at",
            "user_agent",
            "referrer",
            "ip_hash",
            "request_path",
            "method",
            "bot_category",
        ]
        assert df["bot_category"].iloc[0] == "ChatGPT Referral"

    def test_export_with_bot_filter(self, db_with_logs, tmp_path):
        _, backend = db_with_logs
        output_path = tmp_path / "gptbot.csv"

        from export_logs import export_to_csv

        assert export_to_csv(backend, output_path, bot_category="GPTBot") == 2

    def test_export_with_date_filter(self, db_with_logs, tmp_path):
        """Both ends of the date range are inclusive."""
        _, backend = db_with_logs
        output_path = tmp_path / "range.csv"

        from export_logs import export_to_csv

        count = export_to_csv(
            backend,
            output_path,
            start_date=date(2025, 1, 10),
            end_date=date(2025, 1, 15),
        )

        assert count == 3

    def test_export_empty_result(self, db_with_logs, tmp_path):
        """No file is written when nothing matches."""
        _, backend = db_with_logs
        output_path = tmp_path / "empty.csv"

        from export_logs import export_to_csv

        assert export_to_csv(backend, output_path, bot_category="NoSuchBot") == 0
        assert not output_path.exists()


class TestStatisticsOutput:
    """Tests for print_statistics."""

    def test_prints_summary(self, sqlite_backend, make_hit, capsys):
        sqlite_backend.insert_records([make_hit("GPTBot"), make_hit("ClaudeBot")])

        from export_logs import print_statistics

        data = print_statistics(sqlite_backend, days=7)

        out = capsys.readouterr().out
        assert "Total AI visits: 2" in out
        assert "GPTBot" in out
        assert data["unique_bots"] == 2


class TestCommandLine:
    """Tests for the script command lines."""

    def test_export_help(self):
        result = run_script("scripts/export_logs.py", "--help")

        assert result.returncode == 0
        assert "--output" in result.stdout
        assert "--stats" in result.stdout
        assert "--bot" in result.stdout

    def test_export_requires_output_or_stats(self):
        result = run_script("scripts/export_logs.py")

        assert result.returncode != 0
        assert "--output" in result.stderr

    def test_export_cli(self, db_with_logs, tmp_path):
        db_path, _ = db_with_logs
        output_path = tmp_path / "cli.csv"

        result = run_script(
            "scripts/export_logs.py",
            "--db-path",
            str(db_path),
            "--output",
            str(output_path),
        )

        assert result.returncode == 0
        assert "Exported 4 logs" in result.stdout
        assert output_path.exists()

    def test_pipeline_help(self):
        result = run_script("scripts/run_pipeline.py", "--help")

        assert result.returncode == 0
        for flag in ("--flush", "--sweep", "--serve", "--status"):
            assert flag in result.stdout

    def test_pipeline_requires_action(self):
        result = run_script("scripts/run_pipeline.py")

        assert result.returncode != 0

    def test_pipeline_flush_cli(self, tmp_path, make_hit):
        """--flush should move queued hits into the logs table."""
        db_path = tmp_path / "cli_flush.db"
        backend = get_backend("sqlite", db_path=db_path)
        backend.initialize()
        backend.enqueue_hit(make_hit())
        backend.close()

        result = run_script("scripts/run_pipeline.py", "--flush", "--db-path", str(db_path))

        assert result.returncode == 0
        assert "Flushed: 1" in result.stdout

        backend = get_backend("sqlite", db_path=db_path)
        backend.initialize()
        try:
            assert backend.queue_count() == 0
            assert backend.record_count() == 1
        finally:
            backend.close()
