from __future__ import annotations

from dynamic_waits.conditions import PermanentFailure
from dynamic_waits.diagnostics import diagnose, summarize
from dynamic_waits.outcome import FailureKind, WaitOutcome


def test_ok() -> None:
    d = diagnose(WaitOutcome.success("x", 1.5, 3, label="native_value"))
    assert d.failure_type == "ok"
    assert "native_value" in d.detail


def test_timeout_is_app_slow() -> None:
    d = diagnose(WaitOutcome.failure(FailureKind.TIMEOUT, 10.0, 21))
    assert d.failure_type == "app_slow"
    assert d.retryable is True


def test_timeout_mentions_last_transient_error() -> None:
    missing = PermanentFailure("no_such_element", "#finish")
    d = diagnose(WaitOutcome.failure(FailureKind.TIMEOUT, 10.0, 21, missing))
    assert "no_such_element" in d.detail


def test_permanent_is_app_error() -> None:
    d = diagnose(WaitOutcome.failure(FailureKind.PERMANENT, 0.2, 1, PermanentFailure("application_error", "500")))
    assert d.failure_type == "app_error"
    assert d.retryable is False
    assert "500" in d.detail


def test_cancelled() -> None:
    d = diagnose(WaitOutcome.failure(FailureKind.CANCELLED, 2.0, 2))
    assert d.failure_type == "cancelled"
    assert d.retryable is False


def test_exhausted_retryable_only_when_something_timed_out() -> None:
    timed_out = WaitOutcome.failure(FailureKind.TIMEOUT, 5.0, 6)
    broken = WaitOutcome.failure(FailureKind.PERMANENT, 0.0, 1)

    slow_chain = WaitOutcome.failure(
        FailureKind.ALL_STRATEGIES_EXHAUSTED, 5.0, 7, strategy_failures=(("native", broken), ("js", timed_out))
    )
    broken_chain = WaitOutcome.failure(
        FailureKind.ALL_STRATEGIES_EXHAUSTED, 0.0, 2, strategy_failures=(("native", broken), ("js", broken))
    )

    assert diagnose(slow_chain).failure_type == "no_strategy_worked"
    assert diagnose(slow_chain).retryable is True
    assert diagnose(broken_chain).retryable is False
    assert "native, js" in diagnose(broken_chain).detail


def test_summarize() -> None:
    text = summarize(WaitOutcome.failure(FailureKind.TIMEOUT, 3.0, 4, "still loading"))
    assert text == "timeout after 3.00s (4 polls): still loading"
    assert diagnose(WaitOutcome.failure(FailureKind.TIMEOUT, 3.0, 4)).as_dict()["failure_type"] == "app_slow"
