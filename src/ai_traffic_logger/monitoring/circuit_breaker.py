"""
Circuit breaker for the batch flush job.

If the durable insert keeps failing, every tick would re-read the same
queue rows and fail again. After a threshold of consecutive failures the
breaker opens and ticks are skipped until a recovery timeout passes; the
next tick then runs as a half-open probe. Queued rows are never dropped.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

STATE_CLOSED = "closed"
STATE_OPEN = "open"
STATE_HALF_OPEN = "half-open"


@dataclass
class CircuitBreakerState:
    """Mutable breaker state; opened_at is a clock() reading."""

    failure_count: int = 0
    opened_at: Optional[float] = None
    state: str = STATE_CLOSED
    success_count_in_half_open: int = 0


class CircuitBreaker:
    """
    Consecutive-failure breaker guarding the flush tick.

    BatchFlushJob asks is_open before each tick and reports the outcome
    with record_success or record_failure.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout_seconds: float = 900,
        success_threshold: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Create a closed breaker.

        Args:
            failure_threshold: Consecutive failures before opening the circuit
            recovery_timeout_seconds: Seconds an open breaker skips ticks
            success_threshold: Half-open successes needed to close again
            clock: Monotonic time source in seconds
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout_seconds
        self.success_threshold = success_threshold
        self._clock = clock
        self.state = CircuitBreakerState()

    @property
    def is_open(self) -> bool:
        """True while ticks should be skipped; flips to half-open after the timeout."""
        if self.state.state == STATE_OPEN:
            if self.state.opened_at is not None:
                elapsed = self._clock() - self.state.opened_at
                if elapsed >= self.recovery_timeout:
                    self.state.state = STATE_HALF_OPEN
                    self.state.success_count_in_half_open = 0
                    logger.info("Flush breaker half-open, next tick is a probe")
                    return False
            return True
        return False

    def record_success(self) -> None:
        """Record a tick that flushed without error."""
        if self.state.state == STATE_HALF_OPEN:
            self.state.success_count_in_half_open += 1
            if self.state.success_count_in_half_open >= self.success_threshold:
                self.reset()
                logger.info("Flush breaker closed, storage recovered")
        elif self.state.state == STATE_CLOSED:
            self.state.failure_count = 0

    def record_failure(self) -> None:
        """Record a tick that failed; may open the breaker."""
        self.state.failure_count += 1

        if self.state.state == STATE_HALF_OPEN:
            self._open()
            logger.warning("Flush probe failed, breaker open again")
        elif self.state.failure_count >= self.failure_threshold:
            self._open()
            logger.warning(
                f"Flush breaker open after {self.state.failure_count} consecutive failures"
            )

    def _open(self) -> None:
        self.state.state = STATE_OPEN
        self.state.opened_at = self._clock()

    def reset(self) -> None:
        """Close the breaker and forget past failures."""
        self.state = CircuitBreakerState()

    def get_state(self) -> dict:
        """State summary for status output."""
        return {
            "state": self.state.state,
            "failure_count": self.state.failure_count,
        }
