"""
Constants for AI traffic classification, storage and job scheduling.
"""

# =============================================================================
# AI Traffic Classification
# =============================================================================

# Ordered (pattern, category) rules matched against the lowercased user-agent.
# First match wins, so specific tokens must precede the generic ones they
# contain ("chatgpt-user" before "chatgpt", "applebot-extended" before
# "applebot").
USER_AGENT_PATTERNS: list[tuple[str, str]] = [
    # OpenAI
    ("chatgpt-user", "ChatGPT-User"),
    ("oai-searchbot", "OAI-SearchBot"),
    ("gptbot", "GPTBot"),
    ("chatgpt", "ChatGPT"),
    ("openai", "OpenAI"),
    # Anthropic
    ("claudebot", "ClaudeBot"),
    ("claude-web", "Claude Web"),
    ("anthropic-ai", "Anthropic"),
    # Google
    ("google-extended", "Google Gemini"),
    ("google-other", "Google Other"),
    ("gemini", "Google Gemini"),
    # Perplexity
    ("perplexitybot", "Perplexity"),
    ("perplexity", "Perplexity"),
    ("magpie-crawler", "Perplexity"),
    # You.com
    ("youbot", "You.com"),
    ("youchat", "You.com"),
    # ByteDance
    ("bytespider", "ByteDance (TikTok)"),
    # Apple
    ("applebot-extended", "Apple Intelligence"),
    ("applebot", "Apple Intelligence"),
    # Others
    ("cohere-ai", "Cohere"),
    ("ai2bot", "AI2 (Semantic Scholar)"),
    ("duckassistbot", "DuckAssist"),
    ("grok", "Grok (xAI)"),
    ("xai", "Grok (xAI)"),
    ("phindbot", "Phind"),
    ("metaai", "Meta AI"),
    ("facebookexternalhit", "Meta AI"),
    ("amazonbot", "Amazon Alexa"),
    # Microsoft
    ("bingbot", "Bing Bot"),
    ("bingpreview", "Bing Preview"),
    ("msnbot", "Bing Bot"),
]

# Ordered (pattern, category) rules matched against the lowercased referrer.
REFERRER_PATTERNS: list[tuple[str, str]] = [
    ("chatgpt.com", "ChatGPT Referral"),
    ("chat.openai.com", "ChatGPT Referral"),
    ("claude.ai", "Claude Referral"),
    ("gemini.google.com", "Gemini Referral"),
    ("bard.google.com", "Gemini Referral"),
    ("perplexity.ai", "Perplexity Referral"),
    ("you.com", "You.com Referral"),
    ("poe.com", "Poe Referral"),
    ("phind.com", "Phind Referral"),
    ("bing.com/chat", "Bing Chat Referral"),
    ("copilot.microsoft.com", "Copilot Referral"),
]

# =============================================================================
# Traffic Hit Fields
# =============================================================================

MAX_USER_AGENT_LENGTH = 1000
MAX_REFERRER_LENGTH = 500
MAX_REQUEST_PATH_LENGTH = 500
MAX_METHOD_LENGTH = 10

DEFAULT_REQUEST_METHOD = "GET"

# SHA-256 hex digest
IP_HASH_LENGTH = 64

# Proxy headers checked for the client address, before the socket peer
CLIENT_IP_HEADERS = [
    "CF-Connecting-IP",
    "X-Forwarded-For",
    "X-Real-IP",
]

# =============================================================================
# Configuration Defaults
# =============================================================================

DEFAULT_SAMPLING_RATE = 100
MIN_SAMPLING_RATE = 1
MAX_SAMPLING_RATE = 100

DEFAULT_RETENTION_DAYS = 90

DEFAULT_DB_PATH = "data/ai-traffic.db"

# Request paths that belong to the host's own admin surface
DEFAULT_INTERNAL_PATH_PREFIXES = ["/admin"]

# =============================================================================
# Periodic Jobs
# =============================================================================

JOB_PROCESS_LOG_QUEUE = "process_log_queue"
JOB_CLEANUP_OLD_LOGS = "cleanup_old_logs"

FLUSH_INTERVAL_SECONDS = 5 * 60
RETENTION_INTERVAL_SECONDS = 24 * 60 * 60

DEFAULT_FLUSH_BATCH_SIZE = 500

# Consecutive failed flush ticks before flushing is paused
DEFAULT_FLUSH_FAILURE_THRESHOLD = 5
DEFAULT_FLUSH_RECOVERY_SECONDS = 15 * 60

# =============================================================================
# Storage and Reporting
# =============================================================================

TABLE_TRAFFIC_LOGS = "ai_traffic_logs"
TABLE_TRAFFIC_LOG_QUEUE = "ai_traffic_log_queue"

DEFAULT_PAGE_SIZE = 50
TOP_BOTS_LIMIT = 10
