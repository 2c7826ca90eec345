"""Conditions and chains built on top of ``WaitEngine.wait``."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .conditions import NOT_YET, Condition, ConditionResult, Satisfied, failure_from_exception
from .engine import CancelSignal, WaitEngine
from .errors import ConfigurationError
from .outcome import FailureKind, WaitOutcome
from .policy import PollPolicy

logger = logging.getLogger(__name__)

_UNSET = object()


class StabilityCondition:
    """Satisfied once ``snapshot_fn(target)`` returns the same value N polls in a row.

    Used for DOM settling: snapshot the page source (or a hash of it) and wait
    for it to stop changing.
    """

    def __init__(self, snapshot_fn: Callable[[Any], Any], required_stable_samples: int = 3) -> None:
        if isinstance(required_stable_samples, bool) or not isinstance(required_stable_samples, int):
            raise ConfigurationError("required_stable_samples must be an int")
        if required_stable_samples < 1:
            raise ConfigurationError(
                f"required_stable_samples must be >= 1, got {required_stable_samples}"
            )
        self.snapshot_fn = snapshot_fn
        self.required_stable_samples = required_stable_samples
        self.__name__ = f"stable({getattr(snapshot_fn, '__name__', 'snapshot')})"
        self.reset()

    def reset(self) -> None:
        self._last: Any = _UNSET
        self._count = 0

    def __call__(self, target: Any) -> ConditionResult:
        sample = self.snapshot_fn(target)
        if self._last is not _UNSET and sample == self._last:
            self._count += 1
        else:
            self._last = sample
            self._count = 1
        if self._count >= self.required_stable_samples:
            return Satisfied(sample)
        return NOT_YET


@dataclass(frozen=True)
class ActivitySample:
    """Activity as reported by the browser: in-flight requests and timestamps in seconds."""

    pending: int
    last_activity: Optional[float]
    now: float


class IdleCondition:
    """Satisfied when nothing is in flight and the last activity is ``idle_threshold`` old.

    ``activity_fn(target)`` must return an ``ActivitySample``; all timestamps
    come from the observed system, never from the engine's clock.
    """

    def __init__(self, activity_fn: Callable[[Any], ActivitySample], idle_threshold: float = 0.5) -> None:
        if idle_threshold < 0:
            raise ConfigurationError(f"idle_threshold must be >= 0, got {idle_threshold!r}")
        self.activity_fn = activity_fn
        self.idle_threshold = idle_threshold
        self.__name__ = "idle"

    def __call__(self, target: Any) -> ConditionResult:
        sample = self.activity_fn(target)
        if sample.pending > 0:
            return NOT_YET
        if sample.last_activity is None:
            return Satisfied(sample)
        if sample.now - sample.last_activity >= self.idle_threshold:
            return Satisfied(sample)
        return NOT_YET


@dataclass(frozen=True)
class Strategy:
    """One way of reaching a goal inside a fallback chain.

    ``factory`` builds a fresh condition each time the strategy is attempted.
    ``verify(target, value)`` optionally double-checks a success.
    """

    label: str
    factory: Callable[[], Condition]
    weight: float = 1.0
    verify: Optional[Callable[[Any, Any], bool]] = None


StrategyChain = Sequence[Strategy]


class FallbackChain:
    """Try strategies in order, each with its share of the timeout; first success wins."""

    def __init__(
        self,
        strategies: StrategyChain,
        policy: PollPolicy,
        engine: Optional[WaitEngine] = None,
    ) -> None:
        if not strategies:
            raise ConfigurationError("a fallback chain needs at least one strategy")
        if not isinstance(policy, PollPolicy):
            raise ConfigurationError(f"policy must be a PollPolicy, got {type(policy).__name__}")
        for strategy in strategies:
            if strategy.weight <= 0:
                raise ConfigurationError(f"strategy {strategy.label!r} has non-positive weight")
        self.strategies = list(strategies)
        self.policy = policy
        self.engine = engine or WaitEngine()

    def sub_policies(self) -> List[PollPolicy]:
        total = sum(s.weight for s in self.strategies)
        policies = []
        for strategy in self.strategies:
            share = self.policy.timeout * strategy.weight / total
            policies.append(
                replace(self.policy, timeout=share, poll_interval=min(self.policy.poll_interval, share))
            )
        return policies

    @staticmethod
    def _verify(strategy: Strategy, target: Any, outcome: WaitOutcome) -> WaitOutcome:
        """Re-read the target; a failed or raising check turns the success into a permanent failure."""
        try:
            verified = strategy.verify(target, outcome.value)
        except Exception as exc:  # noqa: BLE001
            logger.debug("verification for %s raised %s", strategy.label, type(exc).__name__)
            return WaitOutcome.failure(
                FailureKind.PERMANENT, outcome.elapsed, outcome.poll_count, failure_from_exception(exc)
            )
        if verified:
            return outcome
        return WaitOutcome.failure(
            FailureKind.PERMANENT,
            outcome.elapsed,
            outcome.poll_count,
            f"verification failed for value {outcome.value!r}",
        )

    def run(self, target: Any = None, cancel: Optional[CancelSignal] = None) -> WaitOutcome:
        failures: List[Tuple[str, WaitOutcome]] = []
        elapsed = 0.0
        polls = 0

        for strategy, sub_policy in zip(self.strategies, self.sub_policies()):
            logger.debug("trying strategy %s (budget %.2fs)", strategy.label, sub_policy.timeout)
            outcome = self.engine.wait(strategy.factory(), sub_policy, target=target, cancel=cancel)
            elapsed += outcome.elapsed
            polls += outcome.poll_count

            if outcome.ok and strategy.verify is not None:
                outcome = self._verify(strategy, target, outcome)

            if outcome.ok:
                logger.info("strategy %s succeeded after %.2fs", strategy.label, outcome.elapsed)
                return WaitOutcome.success(
                    outcome.value,
                    elapsed,
                    polls,
                    label=strategy.label,
                    strategy_failures=tuple(failures),
                )

            outcome = outcome.with_label(strategy.label)
            logger.info("strategy %s failed: %s", strategy.label, outcome.kind.value)
            if outcome.kind is FailureKind.CANCELLED:
                return WaitOutcome.failure(
                    FailureKind.CANCELLED,
                    elapsed,
                    polls,
                    outcome.last_error,
                    label=strategy.label,
                    strategy_failures=tuple(failures),
                )
            failures.append((strategy.label, outcome))

        logger.warning("all %d strategies failed", len(failures))
        reasons = [
            f"{label}: {outcome.kind.value}" + (f" ({outcome.last_error})" if outcome.last_error is not None else "")
            for label, outcome in failures
        ]
        return WaitOutcome.failure(
            FailureKind.ALL_STRATEGIES_EXHAUSTED,
            elapsed,
            polls,
            reasons,
            strategy_failures=tuple(failures),
        )
