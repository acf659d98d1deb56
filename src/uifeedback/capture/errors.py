"""Uncaught exception and page crash capture."""

from typing import Any

from uifeedback.capture.base import Collector
from uifeedback.capture.models import ErrorEntry
from uifeedback.config import ERROR_MAX_ENTRIES


def attach_error_collector(
    page: Any, max_entries: int = ERROR_MAX_ENTRIES
) -> Collector[ErrorEntry]:
    collector: Collector[ErrorEntry] = Collector(max_entries)

    def on_page_error(error: Any) -> None:
        collector.append(
            ErrorEntry(
                type="uncaught-exception",
                message=getattr(error, "message", None) or str(error),
                stack=getattr(error, "stack", None),
            )
        )

    def on_crash(_page: Any) -> None:
        collector.append(
            ErrorEntry(type="page-crash", message="Page crashed (possible out of memory)")
        )

    collector.listen(page, "pageerror", on_page_error)
    collector.listen(page, "crash", on_crash)
    return collector
