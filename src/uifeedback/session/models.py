"""Session data models."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from uifeedback.config import EMBEDDED_IDENTIFIER

SurfaceKind = Literal["web", "embedded"]


@dataclass
class Resource:
    """Something a session must release when it ends (a browser, a process tree)."""

    release: Callable[[], Awaitable[None]]
    label: str = "resource"


@dataclass
class SurfaceRef:
    """An open automation surface: a web page or the embedded app window."""

    kind: SurfaceKind
    page: Any
    browser: Any = None
    context: Any = None
    url: str | None = None

    @property
    def identifier(self) -> str:
        if self.kind == "embedded":
            return EMBEDDED_IDENTIFIER
        return self.url or "unknown"


class Session(BaseModel):
    """A caller's working set of launched apps and browsers."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    resources: list[Resource] = Field(default_factory=list)


class AutoCapture(BaseModel):
    """Latest screenshot taken automatically after a navigation."""

    image: bytes
    mime_type: str = "image/webp"
    url: str
    width: int = 0
    height: int = 0
    captured_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
