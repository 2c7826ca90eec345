"""Turn wait outcomes into something a person reading a test log can act on."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from .outcome import FailureKind, WaitOutcome


@dataclass
class Diagnosis:
    failure_type: str  # ok, app_slow, app_error, cancelled, no_strategy_worked
    detail: str
    retryable: bool

    def as_dict(self) -> Dict[str, Any]:
        return {"failure_type": self.failure_type, "detail": self.detail, "retryable": self.retryable}


def summarize(outcome: WaitOutcome) -> str:
    label = f" [{outcome.label}]" if outcome.label else ""
    if outcome.ok:
        return f"succeeded{label} after {outcome.elapsed:.2f}s ({outcome.poll_count} polls)"
    text = f"{outcome.kind.value}{label} after {outcome.elapsed:.2f}s ({outcome.poll_count} polls)"
    if outcome.last_error is not None:
        text += f": {outcome.last_error}"
    return text


def diagnose(outcome: WaitOutcome) -> Diagnosis:
    """Separate "the app is slow" from "the app is broken" from "we gave up"."""
    if outcome.ok:
        return Diagnosis("ok", summarize(outcome), retryable=False)

    if outcome.kind is FailureKind.TIMEOUT:
        if outcome.last_error is not None:
            detail = f"Target never became available; last transient error was {outcome.last_error}"
        else:
            detail = "Condition stayed unsatisfied for the whole budget; application may be slow"
        return Diagnosis("app_slow", f"{detail} ({summarize(outcome)})", retryable=True)

    if outcome.kind is FailureKind.PERMANENT:
        return Diagnosis(
            "app_error",
            f"Observed system reported an unrecoverable error: {outcome.last_error}",
            retryable=False,
        )

    if outcome.kind is FailureKind.CANCELLED:
        return Diagnosis("cancelled", f"Wait cancelled by caller ({summarize(outcome)})", retryable=False)

    # Exhausted chain: retry only makes sense if some strategy merely timed out.
    any_slow = any(o.kind is FailureKind.TIMEOUT for _, o in outcome.strategy_failures)
    tried = ", ".join(label for label, _ in outcome.strategy_failures) or "none"
    return Diagnosis(
        "no_strategy_worked",
        f"All strategies failed (tried: {tried})",
        retryable=any_slow,
    )
