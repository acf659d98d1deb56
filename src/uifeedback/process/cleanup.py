"""Process tree termination."""

import asyncio
import logging
import os
import signal

from uifeedback.config import KILL_TIMEOUT_S
from uifeedback.process.launcher import IS_WINDOWS, ProcessHandle
from uifeedback.session.models import Resource

logger = logging.getLogger(__name__)


async def _taskkill(pid: int, timeout: float) -> None:
    proc = await asyncio.create_subprocess_exec(
        "taskkill",
        "/PID",
        str(pid),
        "/T",
        "/F",
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
    )
    await asyncio.wait_for(proc.wait(), timeout)


def _signal_group(pgid: int, sig: int) -> bool:
    """Signal every process in the group; False once the group is empty."""
    try:
        os.killpg(pgid, sig)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


async def kill_process_tree(pid: int, timeout: float = KILL_TIMEOUT_S) -> None:
    """Terminate ``pid`` and its descendants. Never raises.

    On POSIX the process was started as a session leader, so its process
    group is signalled: SIGTERM first, SIGKILL if anything is left after
    ``timeout`` seconds.
    """
    try:
        if IS_WINDOWS:
            await _taskkill(pid, timeout)
            logger.info("Killed process tree for PID %d", pid)
            return

        try:
            pgid = os.getpgid(pid)
        except ProcessLookupError:
            logger.debug("PID %d already gone", pid)
            return
        _signal_group(pgid, signal.SIGTERM)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if not _signal_group(pgid, 0):
                logger.info("Killed process tree for PID %d", pid)
                return
            await asyncio.sleep(0.1)
        logger.warning("PID %d ignored SIGTERM for %.1fs, sending SIGKILL", pid, timeout)
        _signal_group(pgid, signal.SIGKILL)
    except Exception:
        logger.exception("Tree-kill failed for PID %d (process may already be dead)", pid)


def process_resource(handle: ProcessHandle, label: str | None = None) -> Resource:
    """Session resource that kills the process tree unless it already exited."""

    async def release() -> None:
        if handle.exited:
            return
        await kill_process_tree(handle.pid)
        try:
            await asyncio.wait_for(handle.wait(), KILL_TIMEOUT_S)
        except asyncio.TimeoutError:
            logger.warning("[%s] Still running after tree-kill", handle.label)

    return Resource(release=release, label=label or handle.label)
