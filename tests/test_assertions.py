"""Tests for workflow assertions."""

import pytest

from conftest import FakeElement, FakePage
from uifeedback.workflow.assertions import NOT_FOUND, evaluate_assertion
from uifeedback.workflow.models import ASSERT_TYPES, WorkflowStep

pytestmark = pytest.mark.anyio


@pytest.fixture
def form_page():
    return FakePage(
        elements={
            "#title": FakeElement(text="  Dashboard  "),
            "#banner": FakeElement(text="Welcome back, Ada", visible=False),
            "#save": FakeElement(enabled=False, attributes={"aria-busy": "true"}),
            "#terms": FakeElement(checked=True),
            "#email": FakeElement(value="ada@example.com"),
            "li.item": FakeElement(count=3),
            "[data-testid=link]": FakeElement(attributes={"href": "/docs"}),
        }
    )


async def check(page, selector, assert_type, **kwargs):
    step = WorkflowStep(action="assert", selector=selector, assert_type=assert_type, **kwargs)
    return await evaluate_assertion(page, step, 500)


def test_every_kind_is_registered():
    from uifeedback.workflow.assertions import _CHECKS

    assert set(_CHECKS) == set(ASSERT_TYPES)


class TestPresence:
    async def test_exists_counts_matches(self, form_page):
        result = await check(form_page, "li.item", "exists")
        assert result.passed
        assert result.actual == "found (3 matches)"
        assert result.message == 'PASS: Element "li.item" exists (3 matches)'

    async def test_exists_single(self, form_page):
        result = await check(form_page, "#title", "exists")
        assert result.actual == "found (1 match)"

    async def test_exists_fails(self, form_page):
        result = await check(form_page, "#nope", "exists")
        assert not result.passed
        assert result.actual == "not found"
        assert result.message.startswith("FAIL:")

    async def test_not_exists(self, form_page):
        assert (await check(form_page, "#nope", "not-exists")).passed
        failed = await check(form_page, "li.item", "not-exists")
        assert not failed.passed
        assert failed.actual == "found (3 matches)"


class TestVisibility:
    async def test_visible(self, form_page):
        assert (await check(form_page, "#title", "visible")).passed
        hidden = await check(form_page, "#banner", "visible")
        assert not hidden.passed
        assert hidden.actual == "hidden"

    async def test_visible_missing_element(self, form_page):
        result = await check(form_page, "#nope", "visible")
        assert not result.passed
        assert result.actual == NOT_FOUND
        assert result.expected == "element is visible"

    async def test_hidden_when_absent(self, form_page):
        result = await check(form_page, "#nope", "hidden")
        assert result.passed
        assert result.actual == "not in DOM (hidden)"

    async def test_hidden(self, form_page):
        assert (await check(form_page, "#banner", "hidden")).passed
        assert not (await check(form_page, "#title", "hidden")).passed


class TestText:
    async def test_text_equals_trims(self, form_page):
        result = await check(form_page, "#title", "text-equals", expected="Dashboard")
        assert result.passed
        assert result.expected == 'text equals "Dashboard"'

    async def test_text_equals_mismatch(self, form_page):
        result = await check(form_page, "#title", "text-equals", expected="Home")
        assert not result.passed
        assert result.message == 'FAIL: Text of "#title" is "Dashboard", expected "Home"'

    async def test_text_contains(self, form_page):
        assert (await check(form_page, "#banner", "text-contains", expected="Ada")).passed
        assert not (await check(form_page, "#banner", "text-contains", expected="Bob")).passed

    async def test_text_missing_element(self, form_page):
        result = await check(form_page, "#nope", "text-equals", expected="x")
        assert result.actual == NOT_FOUND
        assert result.message == 'FAIL: Element "#nope" not found in DOM'


class TestAttributes:
    async def test_has_attribute(self, form_page):
        result = await check(form_page, "testid=link", "has-attribute", attribute="href")
        assert result.passed
        assert result.actual == 'attribute "href" present (value: "/docs")'
        assert not (await check(form_page, "testid=link", "has-attribute", attribute="target")).passed

    async def test_attribute_equals(self, form_page):
        ok = await check(form_page, "#save", "attribute-equals", attribute="aria-busy", expected="true")
        assert ok.passed
        missing = await check(form_page, "#save", "attribute-equals", attribute="title", expected="x")
        assert not missing.passed
        assert missing.actual == "attribute not found"

    async def test_value_equals(self, form_page):
        assert (await check(form_page, "#email", "value-equals", expected="ada@example.com")).passed
        wrong = await check(form_page, "#email", "value-equals", expected="bob@example.com")
        assert wrong.actual == '"ada@example.com"'


class TestStates:
    async def test_enabled_disabled(self, form_page):
        assert (await check(form_page, "#save", "disabled")).passed
        enabled = await check(form_page, "#save", "enabled")
        assert not enabled.passed
        assert enabled.actual == "disabled"

    async def test_checked(self, form_page):
        assert (await check(form_page, "#terms", "checked")).passed
        not_checked = await check(form_page, "#terms", "not-checked")
        assert not not_checked.passed
        assert not_checked.actual == "checked"

    async def test_state_missing_element(self, form_page):
        for kind in ("enabled", "disabled", "checked", "not-checked"):
            result = await check(form_page, "#nope", kind)
            assert not result.passed
            assert result.actual == NOT_FOUND


async def test_unknown_kind(form_page):
    result = await check(form_page, "#title", "sparkly")
    assert not result.passed
    assert result.expected is None
    assert result.actual is None
    assert result.message == "Unknown assertion type: sparkly"


async def test_strict_mode_violation_propagates(form_page):
    from playwright.async_api import Error as PlaywrightError

    with pytest.raises(PlaywrightError, match="strict mode violation"):
        await check(form_page, "li.item", "text-equals", expected="x")
