"""Workflow step and result models."""

from typing import Literal

from pydantic import BaseModel, Field

from uifeedback.capture.models import ConsoleEntry, ErrorEntry, now_iso

ActionKind = Literal["click", "type", "navigate", "screenshot", "wait", "assert"]

ASSERT_TYPES = (
    "exists",
    "not-exists",
    "visible",
    "hidden",
    "text-equals",
    "text-contains",
    "has-attribute",
    "attribute-equals",
    "enabled",
    "disabled",
    "checked",
    "not-checked",
    "value-equals",
)
ASSERT_TYPES_NEEDING_EXPECTED = frozenset(
    {"text-equals", "text-contains", "attribute-equals", "value-equals"}
)
ASSERT_TYPES_NEEDING_ATTRIBUTE = frozenset({"has-attribute", "attribute-equals"})


class WorkflowStep(BaseModel):
    """One workflow action. Which fields are required depends on ``action``."""

    action: ActionKind
    selector: str | None = Field(
        default=None,
        description="CSS, text=, role=, testid= or xpath= selector (click, type, wait, assert)",
    )
    text: str | None = Field(default=None, description="Text to type (type)")
    url: str | None = Field(default=None, description="URL to load (navigate)")
    button: Literal["left", "right", "middle"] | None = None
    click_count: int | None = Field(default=None, ge=1, le=3)
    press_sequentially: bool = False
    clear: bool = True
    full_page: bool = False
    state: Literal["visible", "hidden", "attached", "detached"] | None = None
    assert_type: str | None = Field(
        default=None, description=f"Assertion kind (assert): {', '.join(ASSERT_TYPES)}"
    )
    expected: str | None = None
    attribute: str | None = None
    timeout: int | None = Field(default=None, ge=0, description="Step timeout in ms")


class AssertionResult(BaseModel):
    passed: bool
    assert_type: str
    selector: str
    expected: str | None
    actual: str | None
    message: str


class StepResult(BaseModel):
    step_index: int
    action: str
    success: bool = False
    timestamp: str = Field(default_factory=now_iso)
    screenshot: bytes | None = Field(default=None, exclude=True)
    screenshot_mime_type: str | None = None
    console_delta: list[ConsoleEntry] = Field(default_factory=list)
    error_delta: list[ErrorEntry] = Field(default_factory=list)
    error: str | None = None
    assertion: AssertionResult | None = None


class WorkflowResult(BaseModel):
    steps: list[StepResult] = Field(default_factory=list)
    total_steps: int
    completed_steps: int = 0
    failed_step: int | None = None
    validation_errors: list[str] = Field(default_factory=list)

    @property
    def status(self) -> str:
        if self.validation_errors:
            return "invalid"
        if self.failed_step is not None:
            return "stopped"
        return "complete"
