from __future__ import annotations

from typing import List

import pytest

from dynamic_waits.engine import WaitEngine


class FakeClock:
    """Monotonic clock that only moves when something sleeps or advances it."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(clock: FakeClock) -> WaitEngine:
    return WaitEngine(clock=clock, sleep=clock.sleep)


def sequence(*values):
    """Condition returning ``values`` in order, repeating the last one forever."""
    state = {"i": 0}

    def _condition(_target):
        i = min(state["i"], len(values) - 1)
        state["i"] += 1
        return values[i]

    _condition.calls = state
    return _condition
