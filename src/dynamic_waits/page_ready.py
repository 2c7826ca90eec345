"""Page readiness for Playwright pages, driven by the wait engine.

Prefer polling for explicit DOM-ready signals over fixed sleeps: wait for
``document.readyState == "complete"``, then for the DOM to stop changing.
"""
from __future__ import annotations

import hashlib
import logging
from typing import Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page

from .composite import StabilityCondition
from .conditions import NOT_YET, Condition, ConditionResult, PermanentFailure, Satisfied
from .engine import CancelSignal, WaitEngine
from .outcome import FailureKind, WaitOutcome
from .policy import PollPolicy

logger = logging.getLogger(__name__)

PAGE_CLOSED = "page_closed"

_STATES = ("attached", "detached", "visible", "hidden")


def _closed(exc: PlaywrightError) -> PermanentFailure:
    return PermanentFailure(PAGE_CLOSED, exc.message, exc)


def document_ready(page: Page) -> ConditionResult:
    try:
        if page.is_closed():
            return PermanentFailure(PAGE_CLOSED, "page was closed")
        state = page.evaluate("document.readyState")
    except PlaywrightError as exc:
        return _closed(exc)
    return Satisfied(state) if state == "complete" else NOT_YET


def selector_state(selector: str, state: str = "visible") -> Condition:
    """Condition on one element's state: attached, detached, visible or hidden.

    Args:
        selector: CSS selector.
        state: Element state to wait for.
    """
    if state not in _STATES:
        raise ValueError(f"state must be one of {_STATES}, got {state!r}")

    def _condition(page: Page) -> ConditionResult:
        try:
            handle = page.query_selector(selector)
            if state == "attached":
                return Satisfied(handle) if handle is not None else NOT_YET
            if state == "detached":
                return Satisfied(True) if handle is None else NOT_YET
            visible = handle is not None and handle.is_visible()
        except PlaywrightError as exc:
            return _closed(exc)
        if state == "visible":
            return Satisfied(handle) if visible else NOT_YET
        return Satisfied(True) if not visible else NOT_YET

    _condition.__name__ = f"selector_state({selector!r}, {state})"
    return _condition


def content_snapshot(page: Page) -> str:
    return hashlib.sha1(page.content().encode("utf-8")).hexdigest()


def wait_ready(
    page: Page,
    policy: PollPolicy,
    engine: Optional[WaitEngine] = None,
    stable_samples: int = 2,
    cancel: Optional[CancelSignal] = None,
) -> WaitOutcome:
    """Wait for readyState complete, then for the content to settle.

    Both phases share ``policy.timeout``; the returned outcome reports the
    combined elapsed time and poll count.
    """
    engine = engine or WaitEngine()
    loaded = engine.wait(document_ready, policy, target=page, cancel=cancel)
    if not loaded.ok:
        logger.warning("page never reached readyState complete: %s", loaded.kind.value)
        return loaded

    remaining = policy.timeout - loaded.elapsed
    if remaining <= 0:
        return WaitOutcome.failure(FailureKind.TIMEOUT, loaded.elapsed, loaded.poll_count)
    settle_policy = policy.with_timeout(remaining)
    settled = engine.wait(StabilityCondition(content_snapshot, stable_samples), settle_policy, target=page, cancel=cancel)
    elapsed = loaded.elapsed + settled.elapsed
    polls = loaded.poll_count + settled.poll_count
    if settled.ok:
        return WaitOutcome.success(settled.value, elapsed, polls)
    return WaitOutcome.failure(settled.kind, elapsed, polls, settled.last_error)
