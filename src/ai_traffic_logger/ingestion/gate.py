"""
Ingestion gate: classify, sample, anonymize and enqueue one request.

Runs inline with request handling. The only storage call is a single
queue append; the gate never reads, never touches the logs table and
never raises a storage failure to the caller.
"""

import logging
import random
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from ..config.constants import MAX_SAMPLING_RATE
from ..config.settings import Settings
from ..schemas import TrafficHit
from ..storage import StorageBackend, StorageError
from ..utils import anonymize_ip, classify_traffic, resolve_client_ip
from .context import RequestContext

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class GateStats:
    """Counters for gate decisions since startup."""

    seen: int = 0
    skipped: int = 0
    unmatched: int = 0
    sampled_out: int = 0
    enqueued: int = 0
    dropped: int = 0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def increment(self, counter: str) -> None:
        with self._lock:
            setattr(self, counter, getattr(self, counter) + 1)

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "seen": self.seen,
                "skipped": self.skipped,
                "unmatched": self.unmatched,
                "sampled_out": self.sampled_out,
                "enqueued": self.enqueued,
                "dropped": self.dropped,
            }


class IngestionGate:
    """
    Per-request decision pipeline in front of the queue table.

    Example:
        gate = IngestionGate(backend, settings)
        gate.handle(RequestContext(user_agent="GPTBot/1.0", request_path="/"))
    """

    def __init__(
        self,
        backend: StorageBackend,
        settings: Settings,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the gate.

        Args:
            backend: Storage backend holding the queue table
            settings: Application settings
            rng: Random source for the sampling draw
            clock: Returns the capture timestamp for new hits

        Raises:
            ValueError: If IP hashing is enabled without a site secret
        """
        if settings.traffic.log_ip_hash and not settings.site_secret:
            raise ValueError("site_secret is required when log_ip_hash is enabled")

        self._backend = backend
        self._settings = settings
        self._rng = rng or random.Random()
        self._clock = clock or _utcnow
        self.stats = GateStats()

    @property
    def settings(self) -> Settings:
        return self._settings

    def _accept_sample(self) -> bool:
        rate = self._settings.traffic.sampling_rate
        if rate >= MAX_SAMPLING_RATE:
            return True
        return self._rng.randint(1, MAX_SAMPLING_RATE) <= rate

    def _hash_client_ip(self, ctx: RequestContext) -> Optional[str]:
        if not self._settings.traffic.log_ip_hash:
            return None
        client_ip = resolve_client_ip(ctx.headers, ctx.remote_addr)
        if client_ip is None:
            return None
        return anonymize_ip(client_ip, self._settings.site_secret)

    def handle(self, ctx: RequestContext) -> Optional[TrafficHit]:
        """
        Record the request if it is AI traffic.

        Args:
            ctx: Request context

        Returns:
            The enqueued hit, or None when the request was not recorded
        """
        self.stats.increment("seen")

        if not self._settings.traffic.enabled or ctx.is_internal:
            self.stats.increment("skipped")
            return None

        classification = classify_traffic(ctx.user_agent, ctx.referrer)
        if classification is None:
            self.stats.increment("unmatched")
            return None

        if not self._accept_sample():
            self.stats.increment("sampled_out")
            return None

        hit = TrafficHit.create(
            bot_category=classification.bot_category,
            user_agent=ctx.user_agent,
            referrer=ctx.referrer,
            request_path=ctx.request_path,
            method=ctx.method,
            ip_hash=self._hash_client_ip(ctx),
            observed_at=self._clock(),
        )

        try:
            self._backend.enqueue_hit(hit)
        except StorageError as e:
            self.stats.increment("dropped")
            logger.warning(f"Dropped {hit.bot_category} hit, queue append failed: {e}")
            return None

        self.stats.increment("enqueued")
        logger.debug(
            f"Queued {hit.bot_category} hit for {hit.request_path} "
            f"(matched on {classification.source})"
        )
        return hit
