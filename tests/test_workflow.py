"""Tests for workflow validation and execution."""

from types import SimpleNamespace

import pytest

from conftest import FakeElement, FakePage
from uifeedback.capture.console import attach_console_collector
from uifeedback.capture.errors import attach_error_collector
from uifeedback.session.models import SurfaceRef
from uifeedback.workflow.executor import execute_workflow, validate_step
from uifeedback.workflow.models import WorkflowStep

pytestmark = pytest.mark.anyio

HOME = "http://localhost:3000/"


def log_message(text, level="log"):
    return SimpleNamespace(type=level, text=text, location={})


@pytest.fixture
def app_page():
    return FakePage(
        HOME,
        elements={
            "#submit": FakeElement(text="Submit"),
            "#email": FakeElement(),
            "#title": FakeElement(text="  Hello  "),
        },
    )


@pytest.fixture
def session(registry, app_page):
    sid = registry.create()
    registry.set_surface_ref(sid, HOME, SurfaceRef(kind="web", page=app_page, url=HOME))
    registry.set_console_collector(sid, HOME, attach_console_collector(app_page))
    registry.set_error_collector(sid, HOME, attach_error_collector(app_page))
    return sid


class TestValidateStep:
    @pytest.mark.parametrize(
        "step, message",
        [
            (WorkflowStep(action="click"), "Step 0: 'click' requires a 'selector' field"),
            (WorkflowStep(action="type", selector="#a"), "Step 0: 'type' requires a 'text' field"),
            (WorkflowStep(action="navigate"), "Step 0: 'navigate' requires a 'url' field"),
            (WorkflowStep(action="wait"), "Step 0: 'wait' requires a 'selector' field"),
            (
                WorkflowStep(action="assert", selector="#a"),
                "Step 0: 'assert' requires an 'assert_type' field",
            ),
            (
                WorkflowStep(action="assert", selector="#a", assert_type="shiny"),
                "Step 0: unknown assert_type 'shiny'",
            ),
            (
                WorkflowStep(action="assert", selector="#a", assert_type="text-equals"),
                "Step 0: assertion 'text-equals' requires an 'expected' field",
            ),
            (
                WorkflowStep(
                    action="assert", selector="#a", assert_type="attribute-equals", expected="x"
                ),
                "Step 0: assertion 'attribute-equals' requires an 'attribute' field",
            ),
        ],
    )
    def test_invalid(self, step, message):
        assert validate_step(step, 0) == message

    @pytest.mark.parametrize(
        "step",
        [
            WorkflowStep(action="screenshot"),
            WorkflowStep(action="type", selector="#a", text=""),
            WorkflowStep(action="assert", selector="#a", assert_type="visible"),
            WorkflowStep(action="assert", selector="#a", assert_type="has-attribute", attribute="href"),
        ],
    )
    def test_valid(self, step):
        assert validate_step(step, 3) is None


class TestExecuteWorkflow:
    async def test_stops_at_failed_assertion(self, registry, session, app_page):
        app_page.on_click["#submit"] = lambda p: p.emit("console", log_message("submitted"))
        steps = [
            WorkflowStep(action="click", selector="#submit"),
            WorkflowStep(action="type", selector="#email", text="a@b.c"),
            WorkflowStep(
                action="assert", selector="#title", assert_type="text-equals", expected="Welcome"
            ),
            WorkflowStep(action="screenshot"),
        ]

        result = await execute_workflow(app_page, steps, registry, session, HOME)

        assert [s.step_index for s in result.steps] == [0, 1, 2]
        assert [s.success for s in result.steps] == [True, True, False]
        assert result.total_steps == 4
        assert result.completed_steps == 2
        assert result.failed_step == 2
        assert result.status == "stopped"

        failed = result.steps[2]
        assert failed.assertion.passed is False
        assert failed.assertion.actual == '"Hello"'
        assert failed.error == failed.assertion.message
        assert failed.screenshot is not None

        assert [e.text for e in result.steps[0].console_delta] == ["submitted"]
        assert result.steps[1].console_delta == []
        assert app_page.elements["#email"].value == "a@b.c"

    async def test_every_step_gets_webp_screenshot(self, registry, session, app_page):
        steps = [WorkflowStep(action="screenshot"), WorkflowStep(action="wait", selector="#title")]
        result = await execute_workflow(app_page, steps, registry, session, HOME)
        assert result.status == "complete"
        assert result.failed_step is None
        assert all(s.screenshot_mime_type == "image/webp" for s in result.steps)

    async def test_invalid_step_runs_nothing(self, registry, session, app_page):
        steps = [
            WorkflowStep(action="type", selector="#email"),
            WorkflowStep(action="click", selector="#submit"),
            WorkflowStep(action="navigate"),
        ]
        result = await execute_workflow(app_page, steps, registry, session, HOME)
        assert result.steps == []
        assert result.completed_steps == 0
        assert result.failed_step == 0
        assert len(result.validation_errors) == 2
        assert result.status == "invalid"
        assert app_page.actions == []
        assert app_page.screenshot_calls == 0

    async def test_action_error_stops(self, registry, session, app_page):
        steps = [
            WorkflowStep(action="click", selector="#missing", timeout=100),
            WorkflowStep(action="click", selector="#submit"),
        ]
        result = await execute_workflow(app_page, steps, registry, session, HOME)
        assert len(result.steps) == 1
        assert result.failed_step == 0
        assert "Timeout 100ms" in result.steps[0].error
        assert result.steps[0].screenshot is not None
        assert not any(a[0] == "click" for a in app_page.actions)

    async def test_screenshot_failure_fails_step(self, registry, session, app_page):
        app_page.fail_screenshots = True
        result = await execute_workflow(
            app_page, [WorkflowStep(action="screenshot")], registry, session, HOME
        )
        assert result.steps[0].success is False
        assert "closed" in result.steps[0].error
        assert result.steps[0].screenshot is None

    async def test_error_delta(self, registry, session, app_page):
        app_page.on_click["#submit"] = lambda p: p.emit(
            "pageerror", SimpleNamespace(message="boom", stack=None)
        )
        steps = [WorkflowStep(action="screenshot"), WorkflowStep(action="click", selector="#submit")]
        result = await execute_workflow(app_page, steps, registry, session, HOME)
        assert result.steps[0].error_delta == []
        assert [e.message for e in result.steps[1].error_delta] == ["boom"]

    async def test_console_delta_with_full_buffer(self, registry, app_page):
        sid = registry.create()
        registry.set_surface_ref(sid, HOME, SurfaceRef(kind="web", page=app_page, url=HOME))
        registry.set_console_collector(sid, HOME, attach_console_collector(app_page, max_entries=3))
        for i in range(3):
            app_page.emit("console", log_message(f"old-{i}"))
        app_page.on_click["#submit"] = lambda p: p.emit("console", log_message("new-during-step"))

        steps = [WorkflowStep(action="screenshot"), WorkflowStep(action="click", selector="#submit")]
        result = await execute_workflow(app_page, steps, registry, sid, HOME)

        assert [e.text for e in result.steps[0].console_delta] == ["old-0", "old-1", "old-2"]
        assert [e.text for e in result.steps[1].console_delta] == ["new-during-step"]

    async def test_console_delta_across_pages(self, registry, app_page):
        other_url = "http://localhost:3000/other"
        other = FakePage(other_url)
        sid = registry.create()
        registry.set_surface_ref(sid, HOME, SurfaceRef(kind="web", page=app_page, url=HOME))
        registry.set_surface_ref(sid, other_url, SurfaceRef(kind="web", page=other, url=other_url))
        registry.set_console_collector(sid, HOME, attach_console_collector(app_page))
        registry.set_console_collector(sid, other_url, attach_console_collector(other))
        other.emit("console", log_message("b-old"))
        app_page.on_click["#submit"] = lambda p: p.emit("console", log_message("a-new"))

        steps = [WorkflowStep(action="screenshot"), WorkflowStep(action="click", selector="#submit")]
        result = await execute_workflow(app_page, steps, registry, sid, HOME)

        assert [e.text for e in result.steps[0].console_delta] == ["b-old"]
        assert [e.text for e in result.steps[1].console_delta] == ["a-new"]

    async def test_navigate_rekeys_web_surface(self, registry, session, app_page):
        settings = "http://localhost:3000/settings"
        steps = [
            WorkflowStep(action="navigate", url=settings),
            WorkflowStep(action="screenshot"),
        ]
        result = await execute_workflow(app_page, steps, registry, session, HOME)
        assert result.status == "complete"
        assert registry.get_surface_identifiers(session) == [settings]
        assert registry.get_surface_ref(session, settings).url == settings
        assert registry.get_console_collector(session, settings) is not None
        assert registry.get_console_collector(session, HOME) is None

    async def test_navigate_keeps_embedded_identifier(self, registry):
        sid = registry.create()
        page = FakePage("app://index.html")
        ref = SurfaceRef(kind="embedded", page=page)
        registry.set_surface_ref(sid, "electron", ref)
        steps = [WorkflowStep(action="navigate", url="app://settings.html")]
        result = await execute_workflow(page, steps, registry, sid, "electron", "embedded")
        assert result.status == "complete"
        assert registry.get_surface_identifiers(sid) == ["electron"]
        assert ref.url == "app://settings.html"

    async def test_type_modes(self, registry, session, app_page):
        app_page.elements["#email"].value = "abc"
        steps = [
            WorkflowStep(action="type", selector="#email", text="d", clear=False),
            WorkflowStep(action="type", selector="#email", text="xyz", press_sequentially=True),
        ]
        await execute_workflow(app_page, steps, registry, session, HOME)
        assert ("insert_text", "d") in app_page.actions
        assert ("fill", "#email", "") in app_page.actions
        assert ("press_sequentially", "#email", "xyz", 50) in app_page.actions

    async def test_click_options(self, registry, session, app_page):
        steps = [WorkflowStep(action="click", selector="#submit", button="right", click_count=2)]
        await execute_workflow(app_page, steps, registry, session, HOME)
        (click,) = [a for a in app_page.actions if a[0] == "click"]
        assert click[2]["button"] == "right"
        assert click[2]["click_count"] == 2
