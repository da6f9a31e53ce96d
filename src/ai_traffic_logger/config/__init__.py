"""Configuration module."""

from .constants import (
    DEFAULT_FLUSH_BATCH_SIZE,
    FLUSH_INTERVAL_SECONDS,
    JOB_CLEANUP_OLD_LOGS,
    JOB_PROCESS_LOG_QUEUE,
    REFERRER_PATTERNS,
    RETENTION_INTERVAL_SECONDS,
    USER_AGENT_PATTERNS,
)
from .settings import (
    JobSettings,
    Settings,
    TrafficLoggingSettings,
    clamp_retention_days,
    clamp_sampling_rate,
    clear_settings_cache,
    get_settings,
)
from .sops_loader import (
    ConfigurationError,
    decrypt_sops_file,
    is_sops_encrypted,
    read_config_file,
)

__all__ = [
    # Classification rules
    "USER_AGENT_PATTERNS",
    "REFERRER_PATTERNS",
    # Jobs
    "JOB_PROCESS_LOG_QUEUE",
    "JOB_CLEANUP_OLD_LOGS",
    "FLUSH_INTERVAL_SECONDS",
    "RETENTION_INTERVAL_SECONDS",
    "DEFAULT_FLUSH_BATCH_SIZE",
    # Settings
    "Settings",
    "TrafficLoggingSettings",
    "JobSettings",
    "clamp_sampling_rate",
    "clamp_retention_days",
    "get_settings",
    "clear_settings_cache",
    # Config loading
    "ConfigurationError",
    "read_config_file",
    "decrypt_sops_file",
    "is_sops_encrypted",
]
