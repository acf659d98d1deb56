"""Diagnostic entry models captured by collectors."""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SourceLocation(BaseModel):
    url: str
    line_number: int = 0
    column_number: int = 0


class ConsoleEntry(BaseModel):
    """A browser console message."""

    timestamp: str = Field(default_factory=now_iso)
    level: str
    text: str
    location: SourceLocation | None = None


class ErrorEntry(BaseModel):
    """An uncaught exception or a page crash."""

    timestamp: str = Field(default_factory=now_iso)
    type: Literal["uncaught-exception", "page-crash"]
    message: str
    stack: str | None = None


class NetworkEntry(BaseModel):
    """A completed or failed HTTP exchange. Bodies and headers are not kept."""

    timestamp: str = Field(default_factory=now_iso)
    method: str
    url: str
    resource_type: str = ""
    status: int
    status_text: str = ""
    duration_ms: int | None = None
    error_text: str | None = None
    from_service_worker: bool | None = None


class ProcessOutputEntry(BaseModel):
    """One line of child process output."""

    timestamp: str = Field(default_factory=now_iso)
    stream: Literal["stdout", "stderr"]
    text: str
