"""Workflow assertions.

Every check returns an AssertionResult; a failing check is data, not an
exception. Checks that read the element first wait for it to be attached,
and report "element not found in DOM" if it never shows up. Playwright
errors other than that timeout propagate to the executor.
"""

from typing import Any, Awaitable, Callable

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from uifeedback.interaction.selectors import resolve_selector
from uifeedback.workflow.models import AssertionResult, WorkflowStep

NOT_FOUND = "element not found in DOM"

Check = Callable[[Any, WorkflowStep, int], Awaitable[AssertionResult]]
_CHECKS: dict[str, Check] = {}


def _matches(count: int) -> str:
    return f"{count} match{'es' if count > 1 else ''}"


def _verdict(
    step: WorkflowStep,
    passed: bool,
    expected: str | None,
    actual: str | None,
    pass_message: str,
    fail_message: str,
) -> AssertionResult:
    return AssertionResult(
        passed=passed,
        assert_type=step.assert_type or "",
        selector=step.selector or "",
        expected=expected,
        actual=actual,
        message=f"PASS: {pass_message}" if passed else f"FAIL: {fail_message}",
    )


async def _attached(locator: Any, timeout: int) -> bool:
    try:
        await locator.wait_for(state="attached", timeout=timeout)
    except PlaywrightTimeoutError:
        return False
    return True


def _check(kind: str, expected: Callable[[WorkflowStep], str], needs_element: bool = True):
    """Register an assertion kind.

    The decorated coroutine gets ``(locator, step, timeout, expected)`` and
    only runs once the element is attached when ``needs_element`` is set.
    """

    def register(fn):
        async def run(locator: Any, step: WorkflowStep, timeout: int) -> AssertionResult:
            exp = expected(step)
            if needs_element and not await _attached(locator, timeout):
                message = f'Element "{step.selector}" not found in DOM'
                return _verdict(step, False, exp, NOT_FOUND, message, message)
            return await fn(locator, step, timeout, exp)

        _CHECKS[kind] = run
        return fn

    return register


@_check("exists", lambda s: "element exists in DOM", needs_element=False)
async def _exists(locator, step, timeout, expected):
    count = await locator.count()
    return _verdict(
        step,
        count > 0,
        expected,
        f"found ({_matches(count)})" if count else "not found",
        f'Element "{step.selector}" exists ({_matches(count)})',
        f'Element "{step.selector}" does not exist',
    )


@_check("not-exists", lambda s: "element does not exist in DOM", needs_element=False)
async def _not_exists(locator, step, timeout, expected):
    count = await locator.count()
    return _verdict(
        step,
        count == 0,
        expected,
        f"found ({_matches(count)})" if count else "not found",
        f'Element "{step.selector}" does not exist',
        f'Element "{step.selector}" exists ({_matches(count)})',
    )


@_check("visible", lambda s: "element is visible")
async def _visible(locator, step, timeout, expected):
    visible = await locator.is_visible()
    return _verdict(
        step,
        visible,
        expected,
        "visible" if visible else "hidden",
        f'Element "{step.selector}" is visible',
        f'Element "{step.selector}" is hidden',
    )


@_check("hidden", lambda s: "element is hidden", needs_element=False)
async def _hidden(locator, step, timeout, expected):
    if await locator.count() == 0:
        return _verdict(
            step,
            True,
            expected,
            "not in DOM (hidden)",
            f'Element "{step.selector}" is not in DOM (counts as hidden)',
            "",
        )
    visible = await locator.is_visible()
    return _verdict(
        step,
        not visible,
        expected,
        "visible" if visible else "hidden",
        f'Element "{step.selector}" is hidden',
        f'Element "{step.selector}" is visible',
    )


@_check("text-equals", lambda s: f'text equals "{s.expected}"')
async def _text_equals(locator, step, timeout, expected):
    text = (await locator.inner_text(timeout=timeout)).strip()
    return _verdict(
        step,
        text == step.expected,
        expected,
        f'"{text}"',
        f'Text of "{step.selector}" equals "{step.expected}"',
        f'Text of "{step.selector}" is "{text}", expected "{step.expected}"',
    )


@_check("text-contains", lambda s: f'text contains "{s.expected}"')
async def _text_contains(locator, step, timeout, expected):
    text = await locator.inner_text(timeout=timeout)
    return _verdict(
        step,
        (step.expected or "") in text,
        expected,
        f'"{text}"',
        f'Text of "{step.selector}" contains "{step.expected}"',
        f'Text of "{step.selector}" is "{text}", does not contain "{step.expected}"',
    )


@_check("has-attribute", lambda s: f'has attribute "{s.attribute}"')
async def _has_attribute(locator, step, timeout, expected):
    value = await locator.get_attribute(step.attribute, timeout=timeout)
    present = value is not None
    return _verdict(
        step,
        present,
        expected,
        f'attribute "{step.attribute}" present (value: "{value}")'
        if present
        else f'attribute "{step.attribute}" not found',
        f'Element "{step.selector}" has attribute "{step.attribute}"',
        f'Element "{step.selector}" does not have attribute "{step.attribute}"',
    )


@_check("attribute-equals", lambda s: f'attribute "{s.attribute}" equals "{s.expected}"')
async def _attribute_equals(locator, step, timeout, expected):
    value = await locator.get_attribute(step.attribute, timeout=timeout)
    shown = f'"{value}"' if value is not None else "not found"
    return _verdict(
        step,
        value == step.expected,
        expected,
        f'"{value}"' if value is not None else "attribute not found",
        f'Attribute "{step.attribute}" of "{step.selector}" equals "{step.expected}"',
        f'Attribute "{step.attribute}" of "{step.selector}" is {shown}, '
        f'expected "{step.expected}"',
    )


@_check("enabled", lambda s: "element is enabled")
async def _enabled(locator, step, timeout, expected):
    enabled = await locator.is_enabled(timeout=timeout)
    return _verdict(
        step,
        enabled,
        expected,
        "enabled" if enabled else "disabled",
        f'Element "{step.selector}" is enabled',
        f'Element "{step.selector}" is disabled',
    )


@_check("disabled", lambda s: "element is disabled")
async def _disabled(locator, step, timeout, expected):
    enabled = await locator.is_enabled(timeout=timeout)
    return _verdict(
        step,
        not enabled,
        expected,
        "enabled" if enabled else "disabled",
        f'Element "{step.selector}" is disabled',
        f'Element "{step.selector}" is enabled',
    )


@_check("checked", lambda s: "element is checked")
async def _checked(locator, step, timeout, expected):
    checked = await locator.is_checked(timeout=timeout)
    return _verdict(
        step,
        checked,
        expected,
        "checked" if checked else "not checked",
        f'Element "{step.selector}" is checked',
        f'Element "{step.selector}" is not checked',
    )


@_check("not-checked", lambda s: "element is not checked")
async def _not_checked(locator, step, timeout, expected):
    checked = await locator.is_checked(timeout=timeout)
    return _verdict(
        step,
        not checked,
        expected,
        "checked" if checked else "not checked",
        f'Element "{step.selector}" is not checked',
        f'Element "{step.selector}" is checked',
    )


@_check("value-equals", lambda s: f'value equals "{s.expected}"')
async def _value_equals(locator, step, timeout, expected):
    value = await locator.input_value(timeout=timeout)
    return _verdict(
        step,
        value == step.expected,
        expected,
        f'"{value}"',
        f'Value of "{step.selector}" equals "{step.expected}"',
        f'Value of "{step.selector}" is "{value}", expected "{step.expected}"',
    )


async def evaluate_assertion(page: Any, step: WorkflowStep, timeout: int) -> AssertionResult:
    """Evaluate ``step.assert_type`` against ``step.selector`` on ``page``."""
    check = _CHECKS.get(step.assert_type or "")
    if check is None:
        return AssertionResult(
            passed=False,
            assert_type=step.assert_type or "",
            selector=step.selector or "",
            expected=None,
            actual=None,
            message=f"Unknown assertion type: {step.assert_type}",
        )
    return await check(resolve_selector(page, step.selector or ""), step, timeout)
