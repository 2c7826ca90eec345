"""Condition-polling wait engine.

Every wait strategy in the package (fixed timeouts, fluent polling, DOM
stability, network idle, multi-strategy fallback) reduces to ``WaitEngine.wait``:
evaluate a condition against a target on a schedule until it succeeds, fails
permanently, runs out of time, or is cancelled.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Iterable, Optional, Union

from .conditions import (
    Condition,
    NotYetSatisfied,
    PermanentFailure,
    Satisfied,
    coerce_result,
    failure_from_exception,
)
from .errors import ConfigurationError
from .outcome import FailureKind, WaitOutcome
from .policy import FailureKindSpec, PollPolicy

logger = logging.getLogger(__name__)

CancelSignal = Union[threading.Event, Callable[[], bool]]


def _is_cancelled(cancel: Optional[CancelSignal]) -> bool:
    if cancel is None:
        return False
    is_set = getattr(cancel, "is_set", None)
    if callable(is_set):
        return bool(is_set())
    return bool(cancel())


def _condition_name(condition: Any) -> str:
    return getattr(condition, "__name__", None) or type(condition).__name__


class WaitEngine:
    """Polls conditions under a ``PollPolicy``.

    ``clock`` returns monotonic seconds and ``sleep`` blocks for a number of
    seconds; both are injectable so callers (and tests) control time. The
    engine keeps no state between ``wait`` calls.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.clock = clock
        self._sleep = sleep

    def _pause(self, seconds: float, cancel: Optional[CancelSignal]) -> None:
        if seconds <= 0:
            return
        if self._sleep is not None:
            self._sleep(seconds)
        elif isinstance(cancel, threading.Event):
            # Wakes early on cancel; the flag is acted upon at the next poll.
            cancel.wait(seconds)
        else:
            time.sleep(seconds)

    def wait(
        self,
        condition: Condition,
        policy: PollPolicy,
        target: Any = None,
        cancel: Optional[CancelSignal] = None,
    ) -> WaitOutcome:
        """Poll ``condition(target)`` until success, permanent failure, timeout or cancel.

        Raises:
            ConfigurationError: the policy or condition is unusable. Every
                runtime failure is returned as a failed ``WaitOutcome`` instead.
        """
        if not isinstance(policy, PollPolicy):
            raise ConfigurationError(f"policy must be a PollPolicy, got {type(policy).__name__}")
        if not callable(condition):
            raise ConfigurationError(f"condition must be callable, got {type(condition).__name__}")

        name = _condition_name(condition)
        t0 = self.clock()
        polls = 0
        last_error: Optional[PermanentFailure] = None

        while True:
            if _is_cancelled(cancel):
                elapsed = self.clock() - t0
                logger.debug("wait %s cancelled after %.3fs (%d polls)", name, elapsed, polls)
                return WaitOutcome.failure(FailureKind.CANCELLED, elapsed, polls, last_error)

            polls += 1
            try:
                result = coerce_result(condition(target))
            except Exception as exc:  # noqa: BLE001
                result = failure_from_exception(exc)
            elapsed = self.clock() - t0

            if isinstance(result, Satisfied):
                logger.debug("wait %s satisfied after %.3fs (%d polls)", name, elapsed, polls)
                return WaitOutcome.success(result.value, elapsed, polls)

            if isinstance(result, PermanentFailure):
                if not policy.is_ignored(result):
                    logger.debug("wait %s failed permanently: %s", name, result)
                    return WaitOutcome.failure(FailureKind.PERMANENT, elapsed, polls, result)
                last_error = result
            elif not isinstance(result, NotYetSatisfied):
                raise ConfigurationError(f"condition {name} returned unsupported result {result!r}")

            remaining = policy.timeout - elapsed
            if remaining <= 0:
                logger.debug("wait %s timed out after %.3fs (%d polls)", name, elapsed, polls)
                return WaitOutcome.failure(FailureKind.TIMEOUT, elapsed, polls, last_error)

            self._pause(min(policy.interval_after(polls), remaining), cancel)


_default_engine = WaitEngine()


def wait_for(
    condition: Condition,
    timeout: float,
    poll_interval: float = 0.5,
    *,
    target: Any = None,
    ignoring: Iterable[FailureKindSpec] = (),
    backoff_factor: float = 1.0,
    cancel: Optional[CancelSignal] = None,
    engine: Optional[WaitEngine] = None,
) -> WaitOutcome:
    """One-call wait with an ad hoc ``PollPolicy``."""
    policy = PollPolicy(
        timeout=timeout,
        poll_interval=poll_interval,
        backoff_factor=backoff_factor,
    ).ignoring(*ignoring)
    return (engine or _default_engine).wait(condition, policy, target=target, cancel=cancel)
