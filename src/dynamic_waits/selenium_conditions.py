"""Conditions over a Selenium WebDriver.

Each factory returns a condition that takes the driver as its target, so they
plug straight into ``WaitEngine.wait(condition, policy, target=driver)``.
Missing or stale elements are reported as permanent failures with the kinds
in ``TRANSIENT_KINDS``; policies built by ``fluent_policy`` retry them, the way
``FluentWait.ignoring(NoSuchElementException)`` does.
"""
from __future__ import annotations

import hashlib
import logging
from typing import Any, Optional, Tuple

from selenium.common.exceptions import (
    JavascriptException,
    NoSuchElementException,
    StaleElementReferenceException,
)
from selenium.webdriver.remote.webdriver import WebDriver

from .composite import ActivitySample
from .conditions import NOT_YET, Condition, ConditionResult, PermanentFailure, Satisfied, coerce_result
from .config import Timeouts
from .policy import PollPolicy

logger = logging.getLogger(__name__)

Locator = Tuple[str, str]

NO_SUCH_ELEMENT = "no_such_element"
STALE_ELEMENT = "stale_element"
APPLICATION_ERROR = "application_error"
TRANSIENT_KINDS = frozenset(
    {NO_SUCH_ELEMENT, STALE_ELEMENT, NoSuchElementException.__name__, StaleElementReferenceException.__name__}
)

# Counts in-flight fetch/XHR calls. Installed once per page by network_activity().
_ACTIVITY_TRACKER_JS = """
if (!window.__dwActivity) {
  var state = {pending: 0, last: null};
  window.__dwActivity = state;
  var mark = function () { state.last = performance.now(); };
  if (window.fetch) {
    var origFetch = window.fetch;
    window.fetch = function () {
      state.pending++; mark();
      return origFetch.apply(this, arguments).finally(function () { state.pending--; mark(); });
    };
  }
  var origSend = XMLHttpRequest.prototype.send;
  XMLHttpRequest.prototype.send = function () {
    state.pending++; mark();
    this.addEventListener('loadend', function () { state.pending--; mark(); });
    return origSend.apply(this, arguments);
  };
}
var entries = performance.getEntriesByType('resource');
var lastEnd = null;
for (var i = 0; i < entries.length; i++) {
  if (lastEnd === null || entries[i].responseEnd > lastEnd) { lastEnd = entries[i].responseEnd; }
}
var tracked = window.__dwActivity.last;
var last = tracked === null ? lastEnd : (lastEnd === null ? tracked : Math.max(tracked, lastEnd));
var jq = (window.jQuery && window.jQuery.active) ? window.jQuery.active : 0;
return {pending: window.__dwActivity.pending + jq, last: last, now: performance.now()};
"""


def fluent_policy(
    timeout: float = Timeouts.MEDIUM_WAIT,
    poll_interval: float = Timeouts.POLL,
    backoff_factor: float = 1.0,
) -> PollPolicy:
    """Policy that keeps polling while elements are missing or stale."""
    return PollPolicy(
        timeout=timeout,
        poll_interval=poll_interval,
        ignored_failure_kinds=TRANSIENT_KINDS,
        backoff_factor=backoff_factor,
    )


def _find(driver: WebDriver, locator: Locator) -> Any:
    return driver.find_element(*locator)


def _guarded(name: str, body) -> Condition:
    """Map element lookup errors onto permanent failures the policy may ignore."""

    def _condition(driver: WebDriver) -> ConditionResult:
        try:
            return coerce_result(body(driver))
        except NoSuchElementException as exc:
            return PermanentFailure(NO_SUCH_ELEMENT, exc.msg or "element not found", exc)
        except StaleElementReferenceException as exc:
            return PermanentFailure(STALE_ELEMENT, exc.msg or "element went stale", exc)

    _condition.__name__ = name
    return _condition


def presence_of(locator: Locator) -> Condition:
    return _guarded(f"presence_of{locator}", lambda d: _find(d, locator))


def visibility_of(locator: Locator) -> Condition:
    def body(driver: WebDriver):
        element = _find(driver, locator)
        return element if element.is_displayed() else False

    return _guarded(f"visibility_of{locator}", body)


def invisibility_of(locator: Locator) -> Condition:
    """Satisfied when the element is hidden or gone from the DOM."""

    def _condition(driver: WebDriver) -> ConditionResult:
        try:
            return NOT_YET if _find(driver, locator).is_displayed() else Satisfied(True)
        except (NoSuchElementException, StaleElementReferenceException):
            return Satisfied(True)

    _condition.__name__ = f"invisibility_of{locator}"
    return _condition


def element_to_be_clickable(locator: Locator) -> Condition:
    def body(driver: WebDriver):
        element = _find(driver, locator)
        return element if element.is_displayed() and element.is_enabled() else False

    return _guarded(f"element_to_be_clickable{locator}", body)


def text_to_be(locator: Locator, expected: str, strip: bool = True) -> Condition:
    def body(driver: WebDriver):
        text = _find(driver, locator).text
        if strip:
            text = text.strip()
        return text if text == expected else False

    return _guarded(f"text_to_be{locator}", body)


def document_ready(driver: WebDriver) -> ConditionResult:
    state = driver.execute_script("return document.readyState")
    return Satisfied(state) if state == "complete" else NOT_YET


def js_truthy(script: str, *args: Any) -> Condition:
    """Satisfied with the script's return value once it is truthy."""

    def _condition(driver: WebDriver) -> ConditionResult:
        try:
            return coerce_result(driver.execute_script(script, *args))
        except JavascriptException as exc:
            return PermanentFailure("javascript_error", exc.msg or str(exc), exc)

    _condition.__name__ = "js_truthy"
    return _condition


def dom_snapshot(locator: Optional[Locator] = None):
    """Snapshot function for ``StabilityCondition``: a digest of the page or one element."""

    def _snapshot(driver: WebDriver) -> str:
        if locator is None:
            html = driver.page_source
        else:
            html = _find(driver, locator).get_attribute("outerHTML") or ""
        return hashlib.sha1(html.encode("utf-8")).hexdigest()

    _snapshot.__name__ = "dom_snapshot"
    return _snapshot


def network_activity(driver: WebDriver) -> ActivitySample:
    """Activity function for ``IdleCondition``; times are browser seconds."""
    data = driver.execute_script(_ACTIVITY_TRACKER_JS) or {}
    last = data.get("last")
    return ActivitySample(
        pending=int(data.get("pending") or 0),
        last_activity=None if last is None else float(last) / 1000.0,
        now=float(data.get("now") or 0) / 1000.0,
    )


def fails_if_visible(condition: Condition, error_locator: Locator, reason: str = "error shown") -> Condition:
    """Wrap ``condition`` so a visible error element ends the wait immediately."""

    def _condition(driver: WebDriver) -> ConditionResult:
        for element in driver.find_elements(*error_locator):
            try:
                if element.is_displayed():
                    text = element.text.strip()
                    return PermanentFailure(APPLICATION_ERROR, f"{reason}: {text}" if text else reason)
            except StaleElementReferenceException:
                continue
        return coerce_result(condition(driver))

    _condition.__name__ = getattr(condition, "__name__", "condition")
    return _condition
