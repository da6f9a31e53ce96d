"""
Application settings and configuration management.

Supports loading from:
1. YAML config files (plain, or SOPS-encrypted *.enc.yaml)
2. Environment variables (fallback)

Out-of-range values are clamped when the settings object is built, so the
ingestion gate and the periodic jobs only ever see valid values.
"""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from .constants import (
    DEFAULT_DB_PATH,
    DEFAULT_FLUSH_BATCH_SIZE,
    DEFAULT_FLUSH_FAILURE_THRESHOLD,
    DEFAULT_FLUSH_RECOVERY_SECONDS,
    DEFAULT_INTERNAL_PATH_PREFIXES,
    DEFAULT_RETENTION_DAYS,
    DEFAULT_SAMPLING_RATE,
    FLUSH_INTERVAL_SECONDS,
    MAX_SAMPLING_RATE,
    MIN_SAMPLING_RATE,
    RETENTION_INTERVAL_SECONDS,
)

logger = logging.getLogger(__name__)


def _safe_int(value: Any, default: int) -> int:
    """Parse an int, using default on error."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _safe_bool(value: Any, default: bool) -> bool:
    """Parse a bool from config values such as True, "true", "1" or "off"."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    return default


def clamp_sampling_rate(value: int) -> int:
    """Clamp a sampling rate to 1-100."""
    return max(MIN_SAMPLING_RATE, min(MAX_SAMPLING_RATE, int(value)))


def clamp_retention_days(value: int) -> int:
    """Clamp retention days to a non-negative integer (0 disables retention)."""
    return max(0, int(value))


# =============================================================================
# Traffic Logging Settings
# =============================================================================


@dataclass
class TrafficLoggingSettings:
    """
    Administrator-facing options for AI traffic logging.

    Attributes:
        enabled: Master switch for the ingestion gate
        log_ip_hash: Store a salted SHA-256 of the client IP
        sampling_rate: Percentage (1-100) of qualifying hits to record
        retention_days: Age in days after which records are deleted (0 = keep)
    """

    enabled: bool = True
    log_ip_hash: bool = True
    sampling_rate: int = DEFAULT_SAMPLING_RATE
    retention_days: int = DEFAULT_RETENTION_DAYS

    def __post_init__(self) -> None:
        raw_rate = _safe_int(self.sampling_rate, DEFAULT_SAMPLING_RATE)
        rate = clamp_sampling_rate(raw_rate)
        if rate != raw_rate:
            logger.warning(f"sampling_rate {raw_rate} out of range, using {rate}")
        self.sampling_rate = rate

        raw_days = _safe_int(self.retention_days, DEFAULT_RETENTION_DAYS)
        days = clamp_retention_days(raw_days)
        if days != raw_days:
            logger.warning(f"retention_days {raw_days} out of range, using {days}")
        self.retention_days = days

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "enabled": self.enabled,
            "log_ip_hash": self.log_ip_hash,
            "sampling_rate": self.sampling_rate,
            "retention_days": self.retention_days,
        }

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "TrafficLoggingSettings":
        """Create from configuration dictionary."""
        return cls(
            enabled=_safe_bool(config.get("enabled"), True),
            log_ip_hash=_safe_bool(config.get("log_ip_hash"), True),
            sampling_rate=_safe_int(
                config.get("sampling_rate"), DEFAULT_SAMPLING_RATE
            ),
            retention_days=_safe_int(
                config.get("retention_days"), DEFAULT_RETENTION_DAYS
            ),
        )

    @classmethod
    def from_env(cls) -> "TrafficLoggingSettings":
        """Create from environment variables."""
        return cls(
            enabled=_safe_bool(os.environ.get("AI_TRAFFIC_ENABLED"), True),
            log_ip_hash=_safe_bool(os.environ.get("AI_TRAFFIC_LOG_IP_HASH"), True),
            sampling_rate=_safe_int(
                os.environ.get("AI_TRAFFIC_SAMPLING_RATE"), DEFAULT_SAMPLING_RATE
            ),
            retention_days=_safe_int(
                os.environ.get("AI_TRAFFIC_RETENTION_DAYS"), DEFAULT_RETENTION_DAYS
            ),
        )


# =============================================================================
# Job Settings
# =============================================================================


@dataclass
class JobSettings:
    """Periodic job configuration for the batch flush and retention sweep."""

    flush_interval_seconds: float = FLUSH_INTERVAL_SECONDS
    retention_interval_seconds: float = RETENTION_INTERVAL_SECONDS
    flush_batch_size: int = DEFAULT_FLUSH_BATCH_SIZE

    # Circuit breaker around the durable insert
    flush_failure_threshold: int = DEFAULT_FLUSH_FAILURE_THRESHOLD
    flush_recovery_seconds: float = DEFAULT_FLUSH_RECOVERY_SECONDS

    def validate(self) -> list[str]:
        """Validate settings values. Returns list of errors."""
        errors = []

        if self.flush_interval_seconds <= 0:
            errors.append(
                f"flush_interval_seconds must be > 0, got {self.flush_interval_seconds}"
            )
        if self.retention_interval_seconds <= 0:
            errors.append(
                "retention_interval_seconds must be > 0, "
                f"got {self.retention_interval_seconds}"
            )
        if self.flush_batch_size < 1:
            errors.append(
                f"flush_batch_size must be >= 1, got {self.flush_batch_size}"
            )
        if self.flush_failure_threshold < 1:
            errors.append(
                "flush_failure_threshold must be >= 1, "
                f"got {self.flush_failure_threshold}"
            )

        return errors

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "flush_interval_seconds": self.flush_interval_seconds,
            "retention_interval_seconds": self.retention_interval_seconds,
            "flush_batch_size": self.flush_batch_size,
            "flush_failure_threshold": self.flush_failure_threshold,
            "flush_recovery_seconds": self.flush_recovery_seconds,
        }

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "JobSettings":
        """Create from configuration dictionary."""
        return cls(
            flush_interval_seconds=float(
                config.get("flush_interval_seconds", FLUSH_INTERVAL_SECONDS)
            ),
            retention_interval_seconds=float(
                config.get("retention_interval_seconds", RETENTION_INTERVAL_SECONDS)
            ),
            flush_batch_size=_safe_int(
                config.get("flush_batch_size"), DEFAULT_FLUSH_BATCH_SIZE
            ),
            flush_failure_threshold=_safe_int(
                config.get("flush_failure_threshold"), DEFAULT_FLUSH_FAILURE_THRESHOLD
            ),
            flush_recovery_seconds=float(
                config.get("flush_recovery_seconds", DEFAULT_FLUSH_RECOVERY_SECONDS)
            ),
        )

    @classmethod
    def from_env(cls) -> "JobSettings":
        """Create from environment variables."""
        return cls(
            flush_batch_size=_safe_int(
                os.environ.get("AI_TRAFFIC_FLUSH_BATCH_SIZE"), DEFAULT_FLUSH_BATCH_SIZE
            ),
            flush_failure_threshold=_safe_int(
                os.environ.get("AI_TRAFFIC_FLUSH_FAILURE_THRESHOLD"),
                DEFAULT_FLUSH_FAILURE_THRESHOLD,
            ),
        )


# =============================================================================
# Main Settings
# =============================================================================


@dataclass
class Settings:
    """Application settings for the AI traffic logger."""

    # Storage Backend Settings
    storage_backend: str = "sqlite"
    sqlite_db_path: str = DEFAULT_DB_PATH

    # Deployment-wide salt for IP hashing; rotating it resets visitor correlation
    site_secret: str = ""

    # Requests under these prefixes are never logged
    internal_path_prefixes: list[str] = field(
        default_factory=lambda: list(DEFAULT_INTERNAL_PATH_PREFIXES)
    )

    traffic: TrafficLoggingSettings = field(default_factory=TrafficLoggingSettings)
    jobs: JobSettings = field(default_factory=JobSettings)

    def validate(self) -> list[str]:
        """Validate required settings are present. Returns list of errors."""
        errors = []

        if self.storage_backend != "sqlite":
            errors.append("Only SQLite backend is supported in this version")

        if self.traffic.log_ip_hash and not self.site_secret:
            errors.append("site_secret is required when log_ip_hash is enabled")

        errors.extend(self.jobs.validate())

        return errors

    def to_dict(self) -> dict:
        """Convert to dictionary (the site secret is masked)."""
        return {
            "storage": {
                "backend": self.storage_backend,
                "sqlite_db_path": self.sqlite_db_path,
            },
            "site_secret": "***" if self.site_secret else "",
            "internal_path_prefixes": list(self.internal_path_prefixes),
            "traffic": self.traffic.to_dict(),
            "jobs": self.jobs.to_dict(),
        }

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "Settings":
        """Create Settings from configuration dictionary (e.g., from YAML)."""
        storage = config.get("storage") or {}
        prefixes = config.get("internal_path_prefixes")

        return cls(
            storage_backend=storage.get("backend", "sqlite"),
            sqlite_db_path=storage.get("sqlite_db_path", DEFAULT_DB_PATH),
            site_secret=str(config.get("site_secret") or ""),
            internal_path_prefixes=(
                list(prefixes)
                if prefixes is not None
                else list(DEFAULT_INTERNAL_PATH_PREFIXES)
            ),
            traffic=TrafficLoggingSettings.from_dict(config.get("traffic") or {}),
            jobs=JobSettings.from_dict(config.get("jobs") or {}),
        )

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings from environment variables."""
        prefixes = os.environ.get("AI_TRAFFIC_INTERNAL_PATHS")

        return cls(
            storage_backend="sqlite",
            sqlite_db_path=os.environ.get("AI_TRAFFIC_DB_PATH", DEFAULT_DB_PATH),
            site_secret=os.environ.get("AI_TRAFFIC_SITE_SECRET", ""),
            internal_path_prefixes=(
                [p.strip() for p in prefixes.split(",") if p.strip()]
                if prefixes
                else list(DEFAULT_INTERNAL_PATH_PREFIXES)
            ),
            traffic=TrafficLoggingSettings.from_env(),
            jobs=JobSettings.from_env(),
        )


# Default config file path
DEFAULT_CONFIG_PATH = Path("config.yaml")


@lru_cache
def get_settings(config_path: Optional[str] = None) -> Settings:
    """
    Get cached settings instance.

    Loads from the YAML config file if available, otherwise from env vars.

    Args:
        config_path: Optional path to a YAML (or SOPS-encrypted) config file

    Returns:
        Settings instance
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if path.exists():
        try:
            from .sops_loader import read_config_file

            config = read_config_file(path)
            return Settings.from_dict(config)
        except Exception as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            logger.warning("Falling back to environment variables")

    return Settings.from_env()


def clear_settings_cache() -> None:
    """Clear the cached settings (useful for testing)."""
    get_settings.cache_clear()
