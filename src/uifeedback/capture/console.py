"""Browser console capture."""

from typing import Any

from uifeedback.capture.base import Collector
from uifeedback.capture.models import ConsoleEntry, SourceLocation
from uifeedback.config import CONSOLE_MAX_ENTRIES


def attach_console_collector(
    page: Any, max_entries: int = CONSOLE_MAX_ENTRIES
) -> Collector[ConsoleEntry]:
    """Record every console message of a Playwright page.

    The level is kept as Playwright reports it (``log``, ``warning``, ``error``...).
    """
    collector: Collector[ConsoleEntry] = Collector(max_entries)

    def on_console(msg: Any) -> None:
        location = msg.location or {}
        entry = ConsoleEntry(level=msg.type, text=msg.text)
        if location.get("url"):
            entry.location = SourceLocation(
                url=location["url"],
                line_number=location.get("lineNumber", 0),
                column_number=location.get("columnNumber", 0),
            )
        collector.append(entry)

    collector.listen(page, "console", on_console)
    return collector
