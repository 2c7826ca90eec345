"""Tri-state condition results.

A condition is any callable taking the wait target (a WebDriver, a Playwright
page, or whatever the caller passes) and returning one of:

- ``Satisfied(value)``: stop polling, the wait succeeded.
- ``NOT_YET``: keep polling.
- ``PermanentFailure(kind, reason)``: the observed system reported a real error.

Plain return values are accepted too. Truthy values count as satisfied and
falsy ones as not yet satisfied, the same contract Selenium's expected
conditions follow.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type, Union


class ConditionResult:
    """Marker base class for the three condition results."""

    __slots__ = ()


@dataclass(frozen=True)
class Satisfied(ConditionResult):
    value: Any = True


class NotYetSatisfied(ConditionResult):
    __slots__ = ()

    def __repr__(self) -> str:
        return "NOT_YET"


NOT_YET = NotYetSatisfied()


@dataclass(frozen=True)
class PermanentFailure(ConditionResult):
    kind: str
    reason: str = ""
    error: Optional[BaseException] = None

    def __str__(self) -> str:
        return f"{self.kind}: {self.reason}" if self.reason else self.kind


Condition = Callable[[Any], Union[ConditionResult, Any]]


def coerce_result(raw: Any) -> ConditionResult:
    if isinstance(raw, ConditionResult):
        return raw
    if raw:
        return Satisfied(raw)
    return NOT_YET


def failure_from_exception(exc: BaseException) -> PermanentFailure:
    """Describe a raised exception as a permanent failure keyed by its class name."""
    message = str(exc).strip().splitlines()[0] if str(exc).strip() else ""
    return PermanentFailure(kind=type(exc).__name__, reason=message, error=exc)


def observe(
    fn: Callable[[Any], Any],
    transient: Tuple[Type[BaseException], ...] = (),
) -> Condition:
    """Wrap ``fn`` so that exceptions listed in ``transient`` mean "not yet".

    Anything else raised by ``fn`` propagates and the engine reports it as a
    permanent failure.
    """

    def _condition(target: Any) -> ConditionResult:
        try:
            return coerce_result(fn(target))
        except transient:
            return NOT_YET

    _condition.__name__ = getattr(fn, "__name__", "observed")
    return _condition


def all_of(*conditions: Condition) -> Condition:
    """Satisfied when every condition is; the value is the tuple of their values."""

    def _condition(target: Any) -> ConditionResult:
        values = []
        for condition in conditions:
            result = coerce_result(condition(target))
            if not isinstance(result, Satisfied):
                return result
            values.append(result.value)
        return Satisfied(tuple(values))

    return _condition


def any_of(*conditions: Condition) -> Condition:
    """Satisfied by the first satisfied condition.

    A permanent failure from any member is reported only when no other member
    is satisfied on the same poll.
    """

    def _condition(target: Any) -> ConditionResult:
        failure: Optional[PermanentFailure] = None
        for condition in conditions:
            result = coerce_result(condition(target))
            if isinstance(result, Satisfied):
                return result
            if isinstance(result, PermanentFailure) and failure is None:
                failure = result
        return failure if failure is not None else NOT_YET

    return _condition


def negate(condition: Condition) -> Condition:
    """Satisfied while ``condition`` is not; permanent failures pass through."""

    def _condition(target: Any) -> ConditionResult:
        result = coerce_result(condition(target))
        if isinstance(result, Satisfied):
            return NOT_YET
        if isinstance(result, PermanentFailure):
            return result
        return Satisfied(True)

    return _condition
