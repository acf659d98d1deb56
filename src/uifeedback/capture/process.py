"""Child process stdout/stderr capture."""

from typing import Any

from uifeedback.capture.base import Collector
from uifeedback.capture.models import ProcessOutputEntry
from uifeedback.config import PROCESS_MAX_ENTRIES


def attach_process_collector(
    process: Any, max_entries: int = PROCESS_MAX_ENTRIES
) -> Collector[ProcessOutputEntry]:
    """Record output lines of a ProcessHandle, tagged with their stream."""
    collector: Collector[ProcessOutputEntry] = Collector(max_entries)

    def on_output(stream: str, text: str) -> None:
        for line in text.split("\n"):
            line = line.rstrip()
            if line:
                collector.append(ProcessOutputEntry(stream=stream, text=line))

    collector.listen(process, "output", on_output)
    return collector
