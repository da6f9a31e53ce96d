"""
AI traffic classification from user-agent and referrer strings.

Identifies known AI crawlers by user-agent token and AI-assistant
referrals by referrer domain. Rules are ordered (pattern, category)
pairs; the first rule whose lowercase pattern is a substring of the
lowercased input wins.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from ..config.constants import REFERRER_PATTERNS, USER_AGENT_PATTERNS

SOURCE_USER_AGENT = "user_agent"
SOURCE_REFERRER = "referrer"


@dataclass(frozen=True)
class BotClassification:
    """Result of AI traffic classification."""

    bot_category: str
    matched_pattern: str
    source: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return {
            "bot_category": self.bot_category,
            "matched_pattern": self.matched_pattern,
            "source": self.source,
        }


def _first_match(
    value: Optional[str],
    rules: Sequence[tuple[str, str]],
) -> Optional[tuple[str, str]]:
    """Return the first (pattern, category) rule contained in value."""
    if not value:
        return None

    lowered = value.lower()
    for pattern, category in rules:
        if pattern in lowered:
            return pattern, category

    return None


def classify_user_agent(user_agent: Optional[str]) -> Optional[str]:
    """
    Classify a user-agent string against the AI crawler rule table.

    Args:
        user_agent: The HTTP User-Agent header value

    Returns:
        Category label, or None if no rule matches

    Examples:
        >>> classify_user_agent("Mozilla/5.0 (compatible; GPTBot/1.0)")
        'GPTBot'
        >>> classify_user_agent("curl/8.0") is None
        True
    """
    match = _first_match(user_agent, USER_AGENT_PATTERNS)
    return match[1] if match else None


def classify_referrer(referrer: Optional[str]) -> Optional[str]:
    """
    Classify a referrer URL against the AI assistant rule table.

    Args:
        referrer: The HTTP Referer header value

    Returns:
        Category label, or None if no rule matches

    Examples:
        >>> classify_referrer("https://chatgpt.com/?q=x")
        'ChatGPT Referral'
    """
    match = _first_match(referrer, REFERRER_PATTERNS)
    return match[1] if match else None


def classify_traffic(
    user_agent: Optional[str],
    referrer: Optional[str] = None,
) -> Optional[BotClassification]:
    """
    Classify a request from its user-agent, then its referrer.

    The referrer is only consulted when the user-agent matches nothing.

    Args:
        user_agent: The HTTP User-Agent header value
        referrer: The HTTP Referer header value

    Returns:
        BotClassification, or None if neither string matches a rule
    """
    match = _first_match(user_agent, USER_AGENT_PATTERNS)
    if match:
        return BotClassification(
            bot_category=match[1],
            matched_pattern=match[0],
            source=SOURCE_USER_AGENT,
        )

    match = _first_match(referrer, REFERRER_PATTERNS)
    if match:
        return BotClassification(
            bot_category=match[1],
            matched_pattern=match[0],
            source=SOURCE_REFERRER,
        )

    return None


def classify(user_agent: Optional[str], referrer: Optional[str] = None) -> Optional[str]:
    """Return only the category label for a request, or None."""
    result = classify_traffic(user_agent, referrer)
    return result.bot_category if result else None


def is_ai_traffic(user_agent: Optional[str], referrer: Optional[str] = None) -> bool:
    """Check whether a request would be recorded as AI traffic."""
    return classify_traffic(user_agent, referrer) is not None


def get_all_categories() -> list[str]:
    """
    Get every category label the rule tables can produce.

    Returns:
        Labels in rule order, without duplicates
    """
    seen: dict[str, None] = {}
    for _, category in [*USER_AGENT_PATTERNS, *REFERRER_PATTERNS]:
        seen.setdefault(category, None)
    return list(seen)


def get_patterns_for_category(category: str) -> list[str]:
    """
    Get the patterns that map to a category label.

    Args:
        category: Category label (e.g., 'Perplexity', 'ChatGPT Referral')

    Returns:
        Matching patterns from both tables, in rule order
    """
    return [
        pattern
        for pattern, label in [*USER_AGENT_PATTERNS, *REFERRER_PATTERNS]
        if label == category
    ]
