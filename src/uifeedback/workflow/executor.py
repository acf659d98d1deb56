"""Sequential workflow execution with per-step screenshots and diagnostics."""

import asyncio
import logging
from typing import Any

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from uifeedback.capture.base import Collector
from uifeedback.config import (
    DEFAULT_TIMEOUT_MS,
    LOAD_SETTLE_S,
    WORKFLOW_SCREENSHOT_MAX_WIDTH,
    WORKFLOW_SCREENSHOT_QUALITY,
)
from uifeedback.interaction.selectors import resolve_selector
from uifeedback.screenshot.capture import capture_optimized
from uifeedback.session.models import SurfaceKind
from uifeedback.session.registry import SessionRegistry
from uifeedback.workflow.assertions import evaluate_assertion
from uifeedback.workflow.models import (
    ASSERT_TYPES,
    ASSERT_TYPES_NEEDING_ATTRIBUTE,
    ASSERT_TYPES_NEEDING_EXPECTED,
    StepResult,
    WorkflowResult,
    WorkflowStep,
)

logger = logging.getLogger(__name__)

TYPE_DELAY_MS = 50


def validate_step(step: WorkflowStep, index: int) -> str | None:
    """Return a message naming the missing field, or None if ``step`` is runnable."""
    action = step.action
    if action in ("click", "wait", "type", "assert") and not step.selector:
        return f"Step {index}: '{action}' requires a 'selector' field"
    if action == "type" and step.text is None:
        return f"Step {index}: 'type' requires a 'text' field"
    if action == "navigate" and not step.url:
        return f"Step {index}: 'navigate' requires a 'url' field"
    if action == "assert":
        kind = step.assert_type
        if not kind:
            return f"Step {index}: 'assert' requires an 'assert_type' field"
        if kind not in ASSERT_TYPES:
            return f"Step {index}: unknown assert_type '{kind}'"
        if kind in ASSERT_TYPES_NEEDING_EXPECTED and step.expected is None:
            return f"Step {index}: assertion '{kind}' requires an 'expected' field"
        if kind in ASSERT_TYPES_NEEDING_ATTRIBUTE and not step.attribute:
            return f"Step {index}: assertion '{kind}' requires an 'attribute' field"
    elif action not in ("click", "type", "navigate", "screenshot", "wait"):
        return f"Step {index}: unknown action '{action}'"
    return None


class _DeltaTracker:
    """Console and error entries that arrived since the previous step.

    Counts are kept per collector against its ``appended`` total, so a
    saturated buffer or a second page cannot shift what counts as new.
    """

    def __init__(self, registry: SessionRegistry, session_id: str):
        self.registry = registry
        self.session_id = session_id
        self._seen: dict[Collector, int] = {}

    def _fresh(self, collectors: list[Collector]) -> list[Any]:
        fresh: list[Any] = []
        for collector in collectors:
            count = collector.appended - self._seen.get(collector, 0)
            self._seen[collector] = collector.appended
            if count > 0:
                entries = collector.entries()
                fresh.extend(entries[-min(count, len(entries)):])
        return sorted(fresh, key=lambda entry: entry.timestamp)

    def take(self, result: StepResult) -> None:
        result.console_delta = self._fresh(self.registry.get_console_collectors(self.session_id))
        result.error_delta = self._fresh(self.registry.get_error_collectors(self.session_id))


async def _settle(page: Any) -> None:
    try:
        await asyncio.wait_for(page.wait_for_load_state("load"), LOAD_SETTLE_S)
    except (asyncio.TimeoutError, PlaywrightTimeoutError):
        pass


async def _run_action(
    page: Any,
    step: WorkflowStep,
    result: StepResult,
    timeout: int,
) -> None:
    action = step.action
    if action == "click":
        kwargs: dict[str, Any] = {"timeout": timeout}
        if step.button:
            kwargs["button"] = step.button
        if step.click_count:
            kwargs["click_count"] = step.click_count
        await resolve_selector(page, step.selector).click(**kwargs)
        await _settle(page)
    elif action == "type":
        locator = resolve_selector(page, step.selector)
        if step.press_sequentially:
            await locator.fill("", timeout=timeout)
            await locator.press_sequentially(step.text, delay=TYPE_DELAY_MS, timeout=timeout)
        elif not step.clear:
            await locator.click(timeout=timeout)
            await page.keyboard.insert_text(step.text)
        else:
            await locator.fill(step.text, timeout=timeout)
    elif action == "navigate":
        await page.goto(step.url, wait_until="load", timeout=timeout)
    elif action == "wait":
        await resolve_selector(page, step.selector).wait_for(
            state=step.state or "visible", timeout=timeout
        )
    elif action == "assert":
        result.assertion = await evaluate_assertion(page, step, timeout)
        if not result.assertion.passed:
            result.error = result.assertion.message


async def _screenshot(page: Any, step: WorkflowStep, result: StepResult) -> None:
    image = await capture_optimized(
        page,
        full_page=step.full_page,
        max_width=WORKFLOW_SCREENSHOT_MAX_WIDTH,
        quality=WORKFLOW_SCREENSHOT_QUALITY,
    )
    result.screenshot = image.data
    result.screenshot_mime_type = image.mime_type


async def execute_workflow(
    page: Any,
    steps: list[WorkflowStep],
    registry: SessionRegistry,
    session_id: str,
    identifier: str,
    kind: SurfaceKind = "web",
) -> WorkflowResult:
    """Run ``steps`` in order against ``page``, stopping at the first failure.

    All steps are validated up front; if any is invalid nothing runs and the
    result carries the validation errors with ``failed_step`` pointing at the
    first invalid step.
    """
    invalid = [(i, validate_step(step, i)) for i, step in enumerate(steps)]
    invalid = [(i, message) for i, message in invalid if message]
    if invalid:
        return WorkflowResult(
            total_steps=len(steps),
            failed_step=invalid[0][0],
            validation_errors=[message for _, message in invalid],
        )

    logger.info("Running %d-step workflow on %s (session %s)", len(steps), identifier, session_id)
    results: list[StepResult] = []
    deltas = _DeltaTracker(registry, session_id)

    for index, step in enumerate(steps):
        result = StepResult(step_index=index, action=step.action)
        results.append(result)
        timeout = step.timeout if step.timeout is not None else DEFAULT_TIMEOUT_MS
        try:
            await _run_action(page, step, result, timeout)
            if step.action == "navigate":
                if kind == "web":
                    registry.rekey_identifier(session_id, identifier, step.url)
                    identifier = step.url
                ref = registry.get_surface_ref(session_id, identifier)
                if ref is not None:
                    ref.url = step.url
            if result.error is None:
                await _screenshot(page, step, result)
        except Exception as exc:
            result.error = str(exc) or type(exc).__name__

        if result.error is not None and result.screenshot is None:
            try:
                await _screenshot(page, step, result)
            except Exception:
                logger.debug("Failure screenshot for step %d unavailable", index, exc_info=True)

        deltas.take(result)
        if result.error is not None:
            logger.info("Workflow stopped at step %d: %s", index, result.error)
            break
        result.success = True

    failed = next((r.step_index for r in results if not r.success), None)
    return WorkflowResult(
        steps=results,
        total_steps=len(steps),
        completed_steps=sum(1 for r in results if r.success),
        failed_step=failed,
    )
