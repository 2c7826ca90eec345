from __future__ import annotations

import pytest

from dynamic_waits.conditions import (
    NOT_YET,
    PermanentFailure,
    Satisfied,
    all_of,
    any_of,
    coerce_result,
    failure_from_exception,
    negate,
    observe,
)
from dynamic_waits.errors import ConfigurationError
from dynamic_waits.outcome import FailureKind
from dynamic_waits.policy import PollPolicy


class TestCoerce:
    @pytest.mark.parametrize("raw", [None, False, 0, "", []])
    def test_falsy_is_not_yet(self, raw) -> None:
        assert coerce_result(raw) is NOT_YET

    def test_truthy_is_satisfied(self) -> None:
        assert coerce_result("element") == Satisfied("element")

    def test_results_pass_through(self) -> None:
        failure = PermanentFailure("application_error")
        assert coerce_result(failure) is failure

    def test_failure_from_exception_uses_first_line(self) -> None:
        failure = failure_from_exception(RuntimeError("boom\nstack trace follows"))
        assert failure.kind == "RuntimeError"
        assert failure.reason == "boom"
        assert str(failure) == "RuntimeError: boom"


class TestObserve:
    def test_transient_exceptions_mean_not_yet(self) -> None:
        def lookup(_target):
            raise KeyError("finish")

        assert observe(lookup, transient=(KeyError,))(None) is NOT_YET

    def test_other_exceptions_end_the_wait(self, engine) -> None:
        def lookup(_target):
            raise ZeroDivisionError("division by zero")

        outcome = engine.wait(observe(lookup, transient=(KeyError,)), PollPolicy(timeout=5, poll_interval=1))
        assert outcome.kind is FailureKind.PERMANENT
        assert outcome.last_error.kind == "ZeroDivisionError"


class TestCombinators:
    def test_all_of(self) -> None:
        assert all_of(lambda _t: 1, lambda _t: "two")(None) == Satisfied((1, "two"))
        assert all_of(lambda _t: 1, lambda _t: None)(None) is NOT_YET

    def test_all_of_stops_at_first_failure(self) -> None:
        failure = PermanentFailure("application_error")
        calls = []
        result = all_of(lambda _t: failure, lambda _t: calls.append(1))(None)
        assert result is failure
        assert calls == []

    def test_any_of_prefers_satisfied_over_failure(self) -> None:
        failure = PermanentFailure("application_error")
        assert any_of(lambda _t: failure, lambda _t: "ok")(None) == Satisfied("ok")
        assert any_of(lambda _t: failure, lambda _t: None)(None) is failure
        assert any_of(lambda _t: None, lambda _t: False)(None) is NOT_YET

    def test_negate(self) -> None:
        assert negate(lambda _t: True)(None) is NOT_YET
        assert negate(lambda _t: False)(None) == Satisfied(True)
        failure = PermanentFailure("page_closed")
        assert negate(lambda _t: failure)(None) is failure


class TestPollPolicy:
    def test_interval_without_backoff(self) -> None:
        policy = PollPolicy(timeout=5, poll_interval=0.5)
        assert [policy.interval_after(n) for n in (1, 2, 3)] == [0.5, 0.5, 0.5]

    def test_interval_with_backoff_and_cap(self) -> None:
        policy = PollPolicy(timeout=60, poll_interval=1, backoff_factor=2, max_interval=5)
        assert [policy.interval_after(n) for n in (1, 2, 3, 4)] == [1, 2, 4, 5]

    def test_ignoring_accepts_classes_and_names(self) -> None:
        policy = PollPolicy(timeout=5).ignoring(LookupError, "stale_element")
        assert policy.ignored_failure_kinds == frozenset({"LookupError", "stale_element"})
        assert policy.is_ignored(failure_from_exception(KeyError("x")))
        assert not policy.is_ignored(PermanentFailure("application_error"))

    def test_ignoring_rejects_garbage(self) -> None:
        with pytest.raises(ConfigurationError):
            PollPolicy(timeout=5).ignoring(42)

    def test_with_timeout_keeps_everything_else(self) -> None:
        policy = PollPolicy(timeout=5, poll_interval=0.25).ignoring("no_such_element")
        longer = policy.with_timeout(20)
        assert longer.timeout == 20
        assert longer.poll_interval == 0.25
        assert longer.ignored_failure_kinds == policy.ignored_failure_kinds
