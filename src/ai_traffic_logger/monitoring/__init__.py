"""Monitoring module for pipeline health."""

from .circuit_breaker import CircuitBreaker, CircuitBreakerState

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerState",
]
