from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .errors import WaitFailedError


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    PERMANENT = "permanent"
    CANCELLED = "cancelled"
    ALL_STRATEGIES_EXHAUSTED = "all_strategies_exhausted"


@dataclass(frozen=True)
class WaitOutcome:
    """Result of one wait: either a success with a value or a typed failure.

    ``label`` names the fallback strategy that produced the outcome, if any.
    ``strategy_failures`` holds ``(label, outcome)`` pairs for strategies that
    failed before this outcome was reached.
    """

    ok: bool
    elapsed: float
    poll_count: int
    value: Any = None
    kind: Optional[FailureKind] = None
    last_error: Any = None
    label: Optional[str] = None
    strategy_failures: Tuple[Tuple[str, "WaitOutcome"], ...] = ()

    def __post_init__(self) -> None:
        if self.ok and self.kind is not None:
            raise ValueError("a successful outcome cannot carry a failure kind")
        if not self.ok and self.kind is None:
            raise ValueError("a failed outcome needs a failure kind")

    @classmethod
    def success(
        cls,
        value: Any,
        elapsed: float,
        poll_count: int,
        *,
        label: Optional[str] = None,
        strategy_failures: Tuple[Tuple[str, "WaitOutcome"], ...] = (),
    ) -> "WaitOutcome":
        return cls(
            ok=True,
            elapsed=elapsed,
            poll_count=poll_count,
            value=value,
            label=label,
            strategy_failures=strategy_failures,
        )

    @classmethod
    def failure(
        cls,
        kind: FailureKind,
        elapsed: float,
        poll_count: int,
        last_error: Any = None,
        *,
        label: Optional[str] = None,
        strategy_failures: Tuple[Tuple[str, "WaitOutcome"], ...] = (),
    ) -> "WaitOutcome":
        return cls(
            ok=False,
            elapsed=elapsed,
            poll_count=poll_count,
            kind=kind,
            last_error=last_error,
            label=label,
            strategy_failures=strategy_failures,
        )

    def __bool__(self) -> bool:
        return self.ok

    def with_label(self, label: str) -> "WaitOutcome":
        return replace(self, label=label)

    def raise_for_failure(self) -> "WaitOutcome":
        if not self.ok:
            raise WaitFailedError(self)
        return self

    def as_dict(self) -> Dict[str, Any]:
        last_error = self.last_error
        if isinstance(last_error, list):
            last_error = [str(item) for item in last_error]
        elif last_error is not None:
            last_error = str(last_error)
        return {
            "ok": self.ok,
            "kind": self.kind.value if self.kind else None,
            "elapsed": round(self.elapsed, 3),
            "poll_count": self.poll_count,
            "value": self.value if isinstance(self.value, (str, int, float, bool, type(None))) else repr(self.value),
            "last_error": last_error,
            "label": self.label,
            "strategy_failures": [
                {"label": label, **outcome.as_dict()} for label, outcome in self.strategy_failures
            ],
        }
