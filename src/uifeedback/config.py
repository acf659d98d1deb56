"""Configuration defaults for uifeedback."""

import os


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


LOG_LEVEL = os.environ.get("UIFEEDBACK_LOG_LEVEL", "INFO").upper()
HEADLESS = os.environ.get("UIFEEDBACK_HEADLESS", "1") != "0"

# Timeouts (milliseconds unless noted)
DEFAULT_TIMEOUT_MS = _env_int("UIFEEDBACK_TIMEOUT_MS", 30_000)
READY_TIMEOUT_MS = _env_int("UIFEEDBACK_READY_TIMEOUT_MS", 60_000)
ELECTRON_TIMEOUT_MS = 30_000
LOAD_SETTLE_S = 2.0
KILL_TIMEOUT_S = 5.0
PORT_POLL_INTERVAL_S = 0.5

# Collector buffer bounds
CONSOLE_MAX_ENTRIES = 1000
ERROR_MAX_ENTRIES = 100
NETWORK_MAX_ENTRIES = 500
PROCESS_MAX_ENTRIES = 5000

# Screenshots
VIEWPORT = {"width": 1280, "height": 720}
SCREENSHOT_MAX_WIDTH = 1280
SCREENSHOT_QUALITY = 80
WORKFLOW_SCREENSHOT_MAX_WIDTH = 1024
WORKFLOW_SCREENSHOT_QUALITY = 60

WORKFLOW_MAX_STEPS = 20

# Identifier of the single embedded (Electron) surface in a session
EMBEDDED_IDENTIFIER = "electron"

CAPABILITIES = [
    "process_lifecycle",
    "screenshots",
    "interactions",
    "error_capture",
    "workflows",
    "page_inspection",
]
