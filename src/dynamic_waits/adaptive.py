"""Network-aware adaptive timeouts.

An ``AdaptiveTimeoutPolicy`` turns a base timeout into an effective one using:

- the current ``NetworkProfile`` (a step function of its severity), and
- a reliability factor learned from previous waits.

Nothing is stored between calls. ``record()`` returns a new policy carrying the
updated factor and the caller decides whether to keep it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import FrozenSet

from .errors import ConfigurationError
from .network import FAST, NetworkProfile, scaling_factor
from .outcome import FailureKind, WaitOutcome
from .policy import PollPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReliabilityTuning:
    """Multipliers applied to the reliability factor after each wait.

    - success_factor: fast success, shrink the timeout a little.
    - slow_success_factor: success that used more than ``slow_ratio`` of the budget.
    - failure_factor: timeout or exhausted fallback chain.
    - smoothing: EMA weight of the new observation (0 keeps the old factor,
      1 jumps straight to it).
    """

    success_factor: float = 0.95
    slow_success_factor: float = 1.1
    failure_factor: float = 1.25
    slow_ratio: float = 0.75
    smoothing: float = 0.3
    min_factor: float = 0.5
    max_factor: float = 5.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.smoothing <= 1.0:
            raise ConfigurationError(f"smoothing must be within [0, 1], got {self.smoothing!r}")
        if not 0.0 < self.slow_ratio <= 1.0:
            raise ConfigurationError(f"slow_ratio must be within (0, 1], got {self.slow_ratio!r}")
        if self.min_factor <= 0 or self.max_factor < self.min_factor:
            raise ConfigurationError("need 0 < min_factor <= max_factor")
        for name in ("success_factor", "slow_success_factor", "failure_factor"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be > 0")


def update_reliability(
    factor: float,
    outcome: WaitOutcome,
    timeout: float,
    tuning: ReliabilityTuning = ReliabilityTuning(),
) -> float:
    """Return the reliability factor to use for the next wait."""
    if outcome.ok:
        slow = timeout > 0 and outcome.elapsed >= tuning.slow_ratio * timeout
        multiplier = tuning.slow_success_factor if slow else tuning.success_factor
    elif outcome.kind in (FailureKind.TIMEOUT, FailureKind.ALL_STRATEGIES_EXHAUSTED):
        multiplier = tuning.failure_factor
    else:
        # Cancellations and application errors say nothing about speed.
        return factor

    target = factor * multiplier
    smoothed = factor + tuning.smoothing * (target - factor)
    return min(max(smoothed, tuning.min_factor), tuning.max_factor)


@dataclass(frozen=True)
class AdaptiveTimeoutPolicy:
    base_timeout: float
    profile: NetworkProfile = FAST
    reliability: float = 1.0
    cap_multiple: float = 5.0
    poll_interval: float = 0.5
    tuning: ReliabilityTuning = field(default_factory=ReliabilityTuning)
    ignored_failure_kinds: FrozenSet[str] = field(default_factory=frozenset)
    backoff_factor: float = 1.0

    def __post_init__(self) -> None:
        if self.base_timeout <= 0:
            raise ConfigurationError(f"base_timeout must be > 0, got {self.base_timeout!r}")
        if self.cap_multiple < 1.0:
            raise ConfigurationError(f"cap_multiple must be >= 1.0, got {self.cap_multiple!r}")
        if self.reliability <= 0:
            raise ConfigurationError(f"reliability must be > 0, got {self.reliability!r}")

    def scaling_factor(self) -> float:
        return scaling_factor(self.profile)

    def effective_timeout(self) -> float:
        multiple = min(self.scaling_factor() * self.reliability, self.cap_multiple)
        return self.base_timeout * multiple

    def to_poll_policy(self) -> PollPolicy:
        return PollPolicy(
            timeout=self.effective_timeout(),
            poll_interval=self.poll_interval,
            ignored_failure_kinds=self.ignored_failure_kinds,
            backoff_factor=self.backoff_factor,
        )

    def record(self, outcome: WaitOutcome) -> "AdaptiveTimeoutPolicy":
        factor = update_reliability(self.reliability, outcome, self.effective_timeout(), self.tuning)
        if factor != self.reliability:
            logger.debug(
                "reliability %.3f -> %.3f after %s wait on %s",
                self.reliability, factor, "ok" if outcome.ok else outcome.kind.value, self.profile.name,
            )
        return replace(self, reliability=factor)

    def with_profile(self, profile: NetworkProfile) -> "AdaptiveTimeoutPolicy":
        return replace(self, profile=profile)
