"""Dev server readiness detection.

Two strategies race: known "ready" lines in the process output, and a TCP
connect to ``localhost:<port>`` every 500ms. Whichever succeeds first wins;
the process exiting first is a failure.
"""

import asyncio
import logging
import re

from uifeedback.config import PORT_POLL_INTERVAL_S, READY_TIMEOUT_MS
from uifeedback.errors import ServerNotReadyError
from uifeedback.process.launcher import ProcessHandle

logger = logging.getLogger(__name__)

READY_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"Local:.*https?://localhost[:\d]*",  # Vite
        r"webpack.*compiled",
        r"ready.*started.*server.*on",  # Next.js
        r"server.*(?:listening|running|started).*:\d+",
        r"ready on",  # Next.js
        r"compiled successfully",  # CRA
    )
]


def matches_ready_pattern(text: str) -> bool:
    return any(p.search(text) for p in READY_PATTERNS)


async def is_port_open(port: int, host: str = "localhost", timeout: float = 0.5) -> bool:
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout)
    except (OSError, asyncio.TimeoutError):
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


async def wait_until_ready(
    handle: ProcessHandle,
    port: int,
    timeout_ms: int = READY_TIMEOUT_MS,
    *,
    poll_interval: float = PORT_POLL_INTERVAL_S,
    match_output: bool = True,
) -> str:
    """Wait until the server behind ``handle`` accepts connections on ``port``.

    With ``match_output`` off only the port is polled.
    Returns ``"output"`` or ``"port"`` depending on which strategy fired.
    Raises ServerNotReadyError on exit or timeout.
    """
    loop = asyncio.get_running_loop()
    ready: asyncio.Future[str] = loop.create_future()

    def on_output(stream: str, text: str) -> None:
        if match_output and not ready.done() and matches_ready_pattern(text):
            ready.set_result("output")

    def on_exit(code: int | None) -> None:
        if not ready.done():
            ready.set_exception(
                ServerNotReadyError(
                    f"Server process exited with code {code} before becoming "
                    f"ready on port {port}",
                    code,
                )
            )

    async def poll_port() -> None:
        while not ready.done():
            if await is_port_open(port):
                if not ready.done():
                    ready.set_result("port")
                return
            await asyncio.sleep(poll_interval)

    handle.on("output", on_output)
    handle.on("exit", on_exit)
    if handle.exited:
        on_exit(handle.returncode)
    poller = asyncio.create_task(poll_port())
    try:
        how = await asyncio.wait_for(ready, timeout_ms / 1000)
    except asyncio.TimeoutError:
        raise ServerNotReadyError(
            f"Server did not become ready on port {port} within {timeout_ms}ms",
            handle.returncode,
        ) from None
    finally:
        poller.cancel()
        handle.remove_listener("output", on_output)
        handle.remove_listener("exit", on_exit)

    logger.info("Server ready on port %d (detected via %s)", port, how)
    return how
