"""Resilience utilities for infrastructure.

Usage example:
    from bookyolo_client.infrastructure.resilience import EndpointTimeoutPolicy, RetryPolicy

    retry_policy = RetryPolicy(max_retries=3, base_delay_seconds=1.0)
    timeout_policy = EndpointTimeoutPolicy()
    timeout_policy.timeout_for("/compare")  # 60.0
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import override

from ..domain.outcomes import TimeoutClass
from ..protocols import RetryPolicy as RetryPolicyProtocol
from ..protocols import TimeoutPolicy as TimeoutPolicyProtocol

LONG_TIMEOUT_MARKERS: tuple[str, ...] = ("/ask", "/question", "/compare")


@dataclass
class RetryPolicy(RetryPolicyProtocol):
    """Exponential backoff for transient failures.

    Delay before retry k (1-based) is `base_delay_seconds * multiplier**(k-1)`,
    capped at `max_backoff_seconds`, plus optional jitter.
    """

    max_retries: int = 3
    base_delay_seconds: float = 1.0
    multiplier: float = 2.0
    max_backoff_seconds: float = 8.0
    jitter_seconds: float = 0.0

    @override
    def compute_backoff(self, attempt: int) -> float:
        """Compute the delay after failed attempt number `attempt` (0-based)."""
        base = min(self.max_backoff_seconds, self.base_delay_seconds * (self.multiplier**attempt))
        if self.jitter_seconds > 0:
            base += random.uniform(0.0, self.jitter_seconds)
        return float(base)

    @property
    def max_attempts(self) -> int:
        return 1 + self.max_retries


@dataclass
class EndpointTimeoutPolicy(TimeoutPolicyProtocol):
    """Timeout classes keyed by endpoint substring.

    AI-backed endpoints (questions, comparisons) have much higher latency variance
    and get the long class.
    """

    short_timeout_seconds: float = 30.0
    long_timeout_seconds: float = 60.0
    long_markers: tuple[str, ...] = LONG_TIMEOUT_MARKERS

    @override
    def classify(self, endpoint: str) -> TimeoutClass:
        if any(marker in endpoint for marker in self.long_markers):
            return TimeoutClass.LONG
        return TimeoutClass.SHORT

    @override
    def timeout_for(self, endpoint: str) -> float:
        if self.classify(endpoint) is TimeoutClass.LONG:
            return self.long_timeout_seconds
        return self.short_timeout_seconds
