"""Utility functions for AI traffic logging."""

from .bot_classifier import (
    BotClassification,
    classify,
    classify_referrer,
    classify_traffic,
    classify_user_agent,
    get_all_categories,
    get_patterns_for_category,
    is_ai_traffic,
)
from .ip_utils import anonymize_ip, is_valid_ip, resolve_client_ip

__all__ = [
    # Traffic classification
    "BotClassification",
    "classify",
    "classify_traffic",
    "classify_user_agent",
    "classify_referrer",
    "is_ai_traffic",
    "get_all_categories",
    "get_patterns_for_category",
    # IP utilities
    "anonymize_ip",
    "is_valid_ip",
    "resolve_client_ip",
]
