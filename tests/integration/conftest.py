"""
Shared fixtures for integration tests.

Provides:
- Temporary SQLite database for isolated testing
- Sample traffic hit generator fixtures
- Pipeline component fixtures
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from ai_traffic_logger.config import Settings
from ai_traffic_logger.schemas import TrafficHit
from ai_traffic_logger.storage import get_backend

SITE_SECRET = "integration-test-secret"

# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

SAMPLE_TRAFFIC = [
    ("GPTBot", "Mozilla/5.0 (compatible; GPTBot/1.2; +https://openai.com/gptbot)", None),
    ("ClaudeBot", "Mozilla/5.0 (compatible; ClaudeBot/1.0; +claudebot@anthropic.com)", None),
    ("Perplexity", "Mozilla/5.0 (compatible; PerplexityBot/1.0)", None),
    (
        "ChatGPT Referral",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) Safari/605.1.15",
        "https://chatgpt.com/",
    ),
]

SAMPLE_PATHS = [
    "/docs/getting-started",
    "/blog/2024/01/introduction",
    "/products/enterprise",
    "/help/billing?ref=nav",
]


def generate_sample_hits(
    num_hits: int = 20,
    end: datetime = None,
    days: int = 3,
    seed: int = 42,
) -> list[TrafficHit]:
    """
    Generate sample traffic hits for testing.

    Args:
        num_hits: Number of hits to generate
        end: Latest possible observed_at (default: now)
        days: Hits are spread over this many days before end
        seed: Random seed for reproducibility

    Returns:
        List of TrafficHit objects
    """
    rng = random.Random(seed)
    end = end or datetime.now(timezone.utc)

    hits = []
    for _ in range(num_hits):
        category, user_agent, referrer = rng.choice(SAMPLE_TRAFFIC)
        offset = timedelta(seconds=rng.randint(0, days * 86400 - 1))
        hits.append(
            TrafficHit.create(
                bot_category=category,
                user_agent=user_agent,
                referrer=referrer,
                request_path=rng.choice(SAMPLE_PATHS),
                ip_hash=f"{rng.getrandbits(256):064x}",
                observed_at=end - offset,
            )
        )
    return hits


def build_hit(
    bot_category: str = "GPTBot",
    observed_at: datetime = None,
    referrer: str = None,
    request_path: str = "/",
) -> TrafficHit:
    """Build a single hit with sensible defaults."""
    return TrafficHit.create(
        bot_category=bot_category,
        user_agent=f"Mozilla/5.0 (compatible; {bot_category}/1.0)",
        referrer=referrer,
        request_path=request_path,
        observed_at=observed_at or datetime.now(timezone.utc),
    )


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture
def temp_db_path(tmp_path):
    """Path to a temporary SQLite database file."""
    return tmp_path / "test_ai_traffic.db"


@pytest.fixture
def sqlite_backend(temp_db_path):
    """Initialized SQLite backend on a temporary file."""
    backend = get_backend("sqlite", db_path=temp_db_path)
    backend.initialize()
    yield backend
    backend.close()


@pytest.fixture
def sample_hits():
    """Twenty sample hits spread over the last three days."""
    return generate_sample_hits(num_hits=20)


@pytest.fixture
def sqlite_backend_with_logs(sqlite_backend, sample_hits):
    """SQLite backend with sample hits already in the logs table."""
    sqlite_backend.insert_records(sample_hits)
    return sqlite_backend, sample_hits


@pytest.fixture
def settings(temp_db_path):
    """Settings pointing at the temporary database."""
    return Settings(sqlite_db_path=str(temp_db_path), site_secret=SITE_SECRET)


@pytest.fixture
def make_hit():
    """Factory fixture building single hits."""
    return build_hit
