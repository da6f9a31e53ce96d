"""
Unit tests for bot_classifier module.

Tests ordered, first-match-wins classification of user agents and
referrers.
"""

import pytest

from ai_traffic_logger.config.constants import REFERRER_PATTERNS, USER_AGENT_PATTERNS
from ai_traffic_logger.utils.bot_classifier import (
    SOURCE_REFERRER,
    SOURCE_USER_AGENT,
    classify,
    classify_referrer,
    classify_traffic,
    classify_user_agent,
    get_all_categories,
    get_patterns_for_category,
    is_ai_traffic,
)

BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class TestClassifyUserAgent:
    """Tests for classify_user_agent function."""

    def test_gptbot(self):
        """GPTBot token should map to GPTBot."""
        assert classify_user_agent("Mozilla/5.0 (compatible; GPTBot/1.0)") == "GPTBot"

    def test_chatgpt_user_wins_over_chatgpt(self):
        """ChatGPT-User must not be labelled with the generic ChatGPT rule."""
        user_agent = "Mozilla/5.0 (compatible; ChatGPT-User/1.0; +https://openai.com/bot)"
        assert classify_user_agent(user_agent) == "ChatGPT-User"

    def test_earlier_rule_wins_when_several_match(self):
        """A UA containing both gptbot and openai matches gptbot first."""
        user_agent = "Mozilla/5.0 (compatible; GPTBot/1.2; +https://openai.com/gptbot)"
        assert classify_user_agent(user_agent) == "GPTBot"

    def test_oai_searchbot(self):
        """OAI-SearchBot should map to its own category."""
        assert classify_user_agent("OAI-SearchBot/1.0") == "OAI-SearchBot"

    def test_claudebot(self):
        """ClaudeBot should map to ClaudeBot."""
        user_agent = "Mozilla/5.0 (compatible; ClaudeBot/1.0; +claudebot@anthropic.com)"
        assert classify_user_agent(user_agent) == "ClaudeBot"

    def test_google_extended(self):
        """Google-Extended should map to Google Gemini."""
        assert classify_user_agent("Google-Extended") == "Google Gemini"

    def test_applebot_extended(self):
        """Applebot-Extended should map to Apple Intelligence."""
        assert classify_user_agent("Applebot-Extended/0.1") == "Apple Intelligence"

    def test_facebookexternalhit(self):
        """facebookexternalhit should map to Meta AI."""
        user_agent = "facebookexternalhit/1.1 (+http://www.facebook.com/externalhit_uatext.php)"
        assert classify_user_agent(user_agent) == "Meta AI"

    def test_bingbot(self):
        """bingbot should map to Bing Bot."""
        user_agent = "Mozilla/5.0 (compatible; bingbot/2.0; +http://www.bing.com/bingbot.htm)"
        assert classify_user_agent(user_agent) == "Bing Bot"

    @pytest.mark.parametrize(
        "user_agent",
        ["GPTBOT/1.0", "gptbot/1.0", "GpTbOt/1.0"],
    )
    def test_case_insensitive(self, user_agent):
        """Matching should ignore letter case."""
        assert classify_user_agent(user_agent) == "GPTBot"

    def test_no_match(self):
        """Non-AI user agents should return None."""
        assert classify_user_agent("curl/8.0") is None
        assert classify_user_agent(BROWSER_UA) is None

    def test_empty_and_none(self):
        """Empty input should return None."""
        assert classify_user_agent("") is None
        assert classify_user_agent(None) is None


class TestClassifyReferrer:
    """Tests for classify_referrer function."""

    def test_chatgpt_referral(self):
        """chatgpt.com referrer should map to ChatGPT Referral."""
        assert classify_referrer("https://chatgpt.com/?q=x") == "ChatGPT Referral"

    def test_legacy_chatgpt_domain(self):
        """chat.openai.com should also map to ChatGPT Referral."""
        assert classify_referrer("https://chat.openai.com/c/abc") == "ChatGPT Referral"

    def test_perplexity_referral(self):
        """perplexity.ai should map to Perplexity Referral."""
        assert classify_referrer("https://www.perplexity.ai/search?q=x") == "Perplexity Referral"

    def test_bing_chat_path(self):
        """bing.com/chat should map to Bing Chat Referral."""
        assert classify_referrer("https://www.bing.com/chat?q=x") == "Bing Chat Referral"

    def test_regular_search_referrer(self):
        """Ordinary search referrers should return None."""
        assert classify_referrer("https://www.google.com/search?q=x") is None

    def test_empty(self):
        """Empty referrer should return None."""
        assert classify_referrer("") is None
        assert classify_referrer(None) is None


class TestClassifyTraffic:
    """Tests for classify_traffic function."""

    def test_user_agent_checked_first(self):
        """User-agent match should win over a matching referrer."""
        result = classify_traffic("GPTBot/1.0", "https://claude.ai/chat")

        assert result is not None
        assert result.bot_category == "GPTBot"
        assert result.source == SOURCE_USER_AGENT
        assert result.matched_pattern == "gptbot"

    def test_referrer_used_when_user_agent_unmatched(self):
        """Referrer should be consulted when the user agent matches nothing."""
        result = classify_traffic(BROWSER_UA, "https://claude.ai/chat/123")

        assert result is not None
        assert result.bot_category == "Claude Referral"
        assert result.source == SOURCE_REFERRER

    def test_neither_matches(self):
        """No match on either field should return None."""
        assert classify_traffic("curl/8.0", None) is None

    def test_to_dict(self):
        """Classification should serialize to a dictionary."""
        result = classify_traffic("PerplexityBot/1.0")
        assert result.to_dict() == {
            "bot_category": "Perplexity",
            "matched_pattern": "perplexitybot",
            "source": SOURCE_USER_AGENT,
        }


class TestClassifyHelpers:
    """Tests for classify, is_ai_traffic and category helpers."""

    def test_classify_returns_label(self):
        """classify should return only the category label."""
        assert classify(BROWSER_UA, "https://gemini.google.com/app") == "Gemini Referral"

    def test_is_ai_traffic(self):
        """is_ai_traffic should reflect whether any rule matched."""
        assert is_ai_traffic("YouBot/1.0")
        assert not is_ai_traffic("curl/8.0", "https://example.com")

    def test_get_all_categories_unique_and_ordered(self):
        """Categories should be listed once, in first-appearance order."""
        categories = get_all_categories()

        assert len(categories) == len(set(categories))
        assert categories[0] == "ChatGPT-User"
        assert "ChatGPT Referral" in categories

    def test_get_patterns_for_category(self):
        """All patterns bound to a category should be returned in order."""
        assert get_patterns_for_category("Perplexity") == [
            "perplexitybot",
            "perplexity",
            "magpie-crawler",
        ]

    def test_rule_tables_are_lowercase(self):
        """Patterns are matched against lowercased input, so must be lowercase."""
        for pattern, _ in USER_AGENT_PATTERNS + REFERRER_PATTERNS:
            assert pattern == pattern.lower()
