"""
Unit tests for TrafficHit construction.
"""

from datetime import datetime, timedelta, timezone

import pytest

from ai_traffic_logger.config.constants import (
    MAX_REFERRER_LENGTH,
    MAX_REQUEST_PATH_LENGTH,
    MAX_USER_AGENT_LENGTH,
)
from ai_traffic_logger.schemas import TrafficHit

GPTBOT_UA = "Mozilla/5.0 (compatible; GPTBot/1.0)"


def create(**overrides) -> TrafficHit:
    fields = {
        "bot_category": "GPTBot",
        "user_agent": GPTBOT_UA,
        "request_path": "/",
    }
    fields.update(overrides)
    return TrafficHit.create(**fields)


class TestFieldLimits:
    """Tests for truncation of free-text fields."""

    @pytest.mark.parametrize("length", [MAX_USER_AGENT_LENGTH, MAX_USER_AGENT_LENGTH + 1])
    def test_user_agent(self, length):
        hit = create(user_agent="u" * length)

        assert len(hit.user_agent) == MAX_USER_AGENT_LENGTH

    @pytest.mark.parametrize("length", [MAX_REFERRER_LENGTH, MAX_REFERRER_LENGTH + 1])
    def test_referrer(self, length):
        hit = create(referrer="r" * length)

        assert len(hit.referrer) == MAX_REFERRER_LENGTH

    @pytest.mark.parametrize(
        "length", [MAX_REQUEST_PATH_LENGTH, MAX_REQUEST_PATH_LENGTH + 1]
    )
    def test_request_path(self, length):
        hit = create(request_path="/" + "p" * (length - 1))

        assert len(hit.request_path) == MAX_REQUEST_PATH_LENGTH

    def test_truncation_keeps_prefix(self):
        user_agent = GPTBOT_UA + "x" * MAX_USER_AGENT_LENGTH

        hit = create(user_agent=user_agent)

        assert hit.user_agent == user_agent[:MAX_USER_AGENT_LENGTH]
        assert hit.user_agent.startswith(GPTBOT_UA)

    def test_short_values_unchanged(self):
        hit = create(referrer="https://chatgpt.com/", request_path="/docs?q=1")

        assert hit.user_agent == GPTBOT_UA
        assert hit.referrer == "https://chatgpt.com/"
        assert hit.request_path == "/docs?q=1"


class TestDefaults:
    """Tests for empty and missing values."""

    @pytest.mark.parametrize("referrer", [None, ""])
    def test_empty_referrer_is_none(self, referrer):
        assert create(referrer=referrer).referrer is None

    @pytest.mark.parametrize("method", [None, ""])
    def test_missing_method_is_get(self, method):
        assert create(method=method).method == "GET"

    def test_method_upper_cased(self):
        assert create(method="post").method == "POST"

    def test_missing_user_agent_is_empty(self):
        """Referral hits can arrive without a User-Agent."""
        hit = create(
            bot_category="ChatGPT Referral",
            user_agent=None,
            referrer="https://chatgpt.com/",
        )

        assert hit.user_agent == ""

    def test_empty_ip_hash_is_none(self):
        assert create(ip_hash="").ip_hash is None

    @pytest.mark.parametrize("category", [None, ""])
    def test_bot_category_required(self, category):
        with pytest.raises(ValueError):
            create(bot_category=category)


class TestObservedAt:
    """Tests for timestamp normalization."""

    def test_defaults_to_now(self):
        before = datetime.now(timezone.utc).replace(microsecond=0)

        hit = create()

        assert before <= hit.observed_at <= datetime.now(timezone.utc)

    def test_truncated_to_seconds(self):
        hit = create(observed_at=datetime(2025, 1, 15, 9, 30, 5, 987654, tzinfo=timezone.utc))

        assert hit.observed_at == datetime(2025, 1, 15, 9, 30, 5, tzinfo=timezone.utc)

    def test_converted_to_utc(self):
        plus_two = timezone(timedelta(hours=2))

        hit = create(observed_at=datetime(2025, 1, 15, 11, 0, tzinfo=plus_two))

        assert hit.observed_at == datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)
        assert hit.observed_at.tzinfo == timezone.utc
