"""Dropdown selection that works on native ``<select>`` and custom widgets alike.

``select_option`` runs a fallback chain: native select by visible text, native
select by value, click-to-open custom dropdown, then a JavaScript assignment.
Each strategy only counts when reading the control back shows the requested
option.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from selenium.common.exceptions import NoSuchElementException
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.support.select import Select

from .composite import FallbackChain, Strategy
from .conditions import Condition
from .engine import CancelSignal, WaitEngine
from .errors import ConfigurationError
from .outcome import WaitOutcome
from .policy import PollPolicy
from .selenium_conditions import Locator, fluent_policy

logger = logging.getLogger(__name__)

_SELECT_BY_TEXT_JS = """
var select = arguments[0], text = arguments[1];
for (var i = 0; i < select.options.length; i++) {
  if (select.options[i].text.trim() === text) {
    select.selectedIndex = i;
    select.dispatchEvent(new Event('input', {bubbles: true}));
    select.dispatchEvent(new Event('change', {bubbles: true}));
    return select.options[i].text.trim();
  }
}
return null;
"""


def _xpath_literal(text: str) -> str:
    if "'" not in text:
        return f"'{text}'"
    if '"' not in text:
        return f'"{text}"'
    parts = text.split("'")
    return "concat(" + ", \"'\", ".join(f"'{p}'" for p in parts) + ")"


def _normalize(text: str) -> str:
    return " ".join(text.split()).casefold()


def _is_native_select(element: Any) -> bool:
    return (element.tag_name or "").lower() == "select"


def selected_texts(driver: WebDriver, locator: Locator) -> List[str]:
    element = driver.find_element(*locator)
    if _is_native_select(element):
        return [o.text.strip() for o in Select(element).all_selected_options]
    text = (element.text or "").strip()
    return [text] if text else []


def option_texts(driver: WebDriver, locator: Locator) -> List[str]:
    return [o.text.strip() for o in Select(driver.find_element(*locator)).options]


def select_many(driver: WebDriver, locator: Locator, indexes: Sequence[int]) -> List[str]:
    """Select several options of a multi-select by index and return the selection."""
    select = Select(driver.find_element(*locator))
    if not select.is_multiple:
        raise ConfigurationError("select_many needs a <select multiple> element")
    for index in indexes:
        select.select_by_index(index)
    return [o.text.strip() for o in select.all_selected_options]


def select_index(driver: WebDriver, locator: Locator, index: int) -> str:
    """Select the option at ``index`` of a single ``<select>`` and return its text."""
    select = Select(driver.find_element(*locator))
    select.select_by_index(index)
    return select.first_selected_option.text.strip()


def deselect_index(driver: WebDriver, locator: Locator, index: int) -> List[str]:
    select = Select(driver.find_element(*locator))
    select.deselect_by_index(index)
    return [o.text.strip() for o in select.all_selected_options]


def _native_by_text(locator: Locator, text: str) -> Condition:
    def _condition(driver: WebDriver) -> str:
        select = Select(driver.find_element(*locator))
        select.select_by_visible_text(text)
        return select.first_selected_option.text.strip()

    return _condition


def _native_by_value(locator: Locator, value: str) -> Condition:
    def _condition(driver: WebDriver) -> str:
        select = Select(driver.find_element(*locator))
        select.select_by_value(value)
        return select.first_selected_option.text.strip()

    return _condition


def _custom_click(locator: Locator, text: str) -> Condition:
    option_xpath = (
        "//*[self::li or self::div or self::span or self::a or self::option]"
        f"[normalize-space(.)={_xpath_literal(text)}]"
    )

    def _condition(driver: WebDriver) -> Any:
        trigger = driver.find_element(*locator)
        visible = [o for o in driver.find_elements(By.XPATH, option_xpath) if o.is_displayed()]
        if not visible:
            trigger.click()
            return False
        visible[-1].click()
        return text

    return _condition


def _javascript(locator: Locator, text: str) -> Condition:
    def _condition(driver: WebDriver) -> Any:
        element = driver.find_element(*locator)
        chosen = driver.execute_script(_SELECT_BY_TEXT_JS, element, text)
        if chosen is None:
            raise NoSuchElementException(f"no option with text {text!r}")
        return chosen

    return _condition


def select_option(
    driver: WebDriver,
    locator: Locator,
    text: str,
    value: Optional[str] = None,
    policy: Optional[PollPolicy] = None,
    engine: Optional[WaitEngine] = None,
    cancel: Optional[CancelSignal] = None,
) -> WaitOutcome:
    """Select ``text`` in the dropdown at ``locator`` using the first strategy that works.

    A strategy only counts when the control reads back exactly ``text``,
    ignoring case and runs of whitespace, so "Option 10" never passes for
    "Option 1".
    """
    policy = policy or fluent_policy()
    wanted = _normalize(text)

    def verify(target: WebDriver, _value: Any) -> bool:
        try:
            return any(_normalize(selected) == wanted for selected in selected_texts(target, locator))
        except NoSuchElementException:
            return False

    strategies = [Strategy("native_visible_text", lambda: _native_by_text(locator, text), verify=verify)]
    if value is not None:
        strategies.append(Strategy("native_value", lambda: _native_by_value(locator, value), verify=verify))
    strategies.append(Strategy("custom_click", lambda: _custom_click(locator, text), verify=verify))
    strategies.append(Strategy("javascript", lambda: _javascript(locator, text), verify=verify))

    outcome = FallbackChain(strategies, policy, engine=engine).run(target=driver, cancel=cancel)
    if outcome.ok:
        logger.info("selected %r via %s", text, outcome.label)
    else:
        logger.warning("could not select %r in %s", text, locator)
    return outcome
