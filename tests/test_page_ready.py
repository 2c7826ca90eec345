from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from playwright.sync_api import Error as PlaywrightError

from dynamic_waits.conditions import NOT_YET, PermanentFailure, Satisfied
from dynamic_waits.outcome import FailureKind
from dynamic_waits.page_ready import PAGE_CLOSED, content_snapshot, document_ready, selector_state, wait_ready
from dynamic_waits.policy import PollPolicy


def make_page(states=("complete",), html="<html><body>ok</body></html>"):
    page = MagicMock()
    page.is_closed.return_value = False
    page.evaluate.side_effect = list(states) + [states[-1]] * 100
    page.content.return_value = html
    return page


class TestDocumentReady:
    def test_loading_then_complete(self) -> None:
        page = make_page(states=("loading", "complete"))
        assert document_ready(page) is NOT_YET
        assert document_ready(page) == Satisfied("complete")

    def test_closed_page(self) -> None:
        page = make_page()
        page.is_closed.return_value = True
        result = document_ready(page)
        assert isinstance(result, PermanentFailure)
        assert result.kind == PAGE_CLOSED

    def test_target_closed_error(self) -> None:
        page = make_page()
        page.evaluate.side_effect = PlaywrightError("Target page, context or browser has been closed")
        result = document_ready(page)
        assert result.kind == PAGE_CLOSED
        assert "closed" in result.reason


class TestSelectorState:
    def test_visible(self) -> None:
        page = MagicMock()
        handle = MagicMock()
        handle.is_visible.return_value = True
        page.query_selector.return_value = handle
        assert selector_state("#finish")(page) == Satisfied(handle)

    def test_hidden_when_missing(self) -> None:
        page = MagicMock()
        page.query_selector.return_value = None
        assert selector_state("#loading", "hidden")(page) == Satisfied(True)
        assert selector_state("#loading", "detached")(page) == Satisfied(True)
        assert selector_state("#loading", "attached")(page) is NOT_YET

    def test_invalid_state(self) -> None:
        with pytest.raises(ValueError):
            selector_state("#x", "focused")


class TestWaitReady:
    def test_ready_and_settled(self, engine) -> None:
        page = make_page(states=("loading", "complete"))
        outcome = wait_ready(page, PollPolicy(timeout=10, poll_interval=0.5), engine=engine)
        assert outcome.ok is True
        assert outcome.value == content_snapshot(page)
        assert outcome.poll_count == 4
        assert outcome.elapsed == pytest.approx(1.0)

    def test_never_loads(self, engine) -> None:
        page = make_page(states=("loading",))
        outcome = wait_ready(page, PollPolicy(timeout=2, poll_interval=0.5), engine=engine)
        assert outcome.kind is FailureKind.TIMEOUT

    def test_no_budget_left_for_settling(self, engine) -> None:
        page = make_page(states=("loading", "loading", "complete"))
        outcome = wait_ready(page, PollPolicy(timeout=1, poll_interval=0.5), engine=engine)
        assert outcome.kind is FailureKind.TIMEOUT
        assert outcome.poll_count == 3

    def test_content_keeps_changing(self, engine) -> None:
        page = make_page()
        page.content.side_effect = (f"<p>{i}</p>" for i in range(1000))
        outcome = wait_ready(page, PollPolicy(timeout=3, poll_interval=0.5), engine=engine)
        assert outcome.kind is FailureKind.TIMEOUT
        assert outcome.elapsed <= 3.5

    def test_closed_page_is_permanent(self, engine) -> None:
        page = make_page()
        page.is_closed.return_value = True
        outcome = wait_ready(page, PollPolicy(timeout=10), engine=engine)
        assert outcome.kind is FailureKind.PERMANENT
