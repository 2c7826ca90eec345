from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import FrozenSet, Iterable, Optional, Type, Union

from .conditions import PermanentFailure
from .errors import ConfigurationError

FailureKindSpec = Union[str, Type[BaseException]]


def _kind_name(kind: FailureKindSpec) -> str:
    if isinstance(kind, type) and issubclass(kind, BaseException):
        return kind.__name__
    if isinstance(kind, str) and kind.strip():
        return kind.strip()
    raise ConfigurationError(f"failure kind must be a name or exception class, got {kind!r}")


def _positive(name: str, value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(f"{name} must be > 0, got {value!r}")


@dataclass(frozen=True)
class PollPolicy:
    """How long and how often a condition is polled.

    Times are in seconds. ``ignored_failure_kinds`` lists permanent-failure
    kinds (or exception class names) that should be retried instead of ending
    the wait.
    """

    timeout: float
    poll_interval: float = 0.5
    ignored_failure_kinds: FrozenSet[str] = field(default_factory=frozenset)
    backoff_factor: float = 1.0
    max_interval: Optional[float] = None

    def __post_init__(self) -> None:
        _positive("timeout", self.timeout)
        _positive("poll_interval", self.poll_interval)
        _positive("backoff_factor", self.backoff_factor)
        if self.backoff_factor < 1.0:
            raise ConfigurationError(f"backoff_factor must be >= 1.0, got {self.backoff_factor!r}")
        if self.max_interval is not None:
            _positive("max_interval", self.max_interval)
            if self.max_interval < self.poll_interval:
                raise ConfigurationError("max_interval must be >= poll_interval")
        kinds = frozenset(_kind_name(k) for k in self.ignored_failure_kinds)
        object.__setattr__(self, "ignored_failure_kinds", kinds)

    def interval_after(self, polls: int) -> float:
        """Sleep before the next poll once ``polls`` evaluations have failed."""
        exponent = max(0, polls - 1)
        interval = self.poll_interval * (self.backoff_factor ** exponent)
        if self.max_interval is not None:
            interval = min(interval, self.max_interval)
        return interval

    def ignoring(self, *kinds: FailureKindSpec) -> "PollPolicy":
        merged = set(self.ignored_failure_kinds)
        merged.update(_kind_name(k) for k in kinds)
        return replace(self, ignored_failure_kinds=frozenset(merged))

    def with_timeout(self, timeout: float) -> "PollPolicy":
        return replace(self, timeout=timeout)

    def is_ignored(self, failure: PermanentFailure) -> bool:
        if failure.kind in self.ignored_failure_kinds:
            return True
        if failure.error is not None:
            names: Iterable[str] = (cls.__name__ for cls in type(failure.error).__mro__)
            return any(name in self.ignored_failure_kinds for name in names)
        return False
