"""Child process spawning with line-by-line output fan-out."""

import asyncio
import logging
import os
import shutil
import subprocess
import sys
from typing import Any, Callable

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"

EVENTS = ("output", "exit")

READ_CHUNK_BYTES = 16 * 1024
MAX_LINE_BYTES = 64 * 1024
TRUNCATED_MARKER = " ... [line truncated]"


class ProcessHandle:
    """A spawned process whose stdout/stderr lines are pushed to listeners.

    Events:
      ``output`` handler(stream, text) - one decoded line, stream is
        ``"stdout"`` or ``"stderr"``
      ``exit`` handler(returncode) - after both streams are drained
    """

    def __init__(self, process: asyncio.subprocess.Process, label: str):
        self._process = process
        self.label = label
        self._listeners: dict[str, list[Callable[..., Any]]] = {e: [] for e in EVENTS}
        self._pumps = [
            asyncio.create_task(self._pump(process.stdout, "stdout")),
            asyncio.create_task(self._pump(process.stderr, "stderr")),
        ]
        self._exit_task = asyncio.create_task(self._watch_exit())

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def exited(self) -> bool:
        return self._exit_task.done()

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self._listeners[event].append(handler)

    def remove_listener(self, event: str, handler: Callable[..., Any]) -> None:
        handlers = self._listeners.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def _emit(self, event: str, *args: Any) -> None:
        for handler in list(self._listeners[event]):
            try:
                handler(*args)
            except Exception:
                logger.exception("[%s] %s listener failed", self.label, event)

    async def _pump(self, stream: asyncio.StreamReader | None, name: str) -> None:
        """Forward complete lines from ``stream``.

        Reads fixed-size chunks rather than ``readline`` so an oversized line
        cannot stall the pipe; such a line is cut at MAX_LINE_BYTES and the
        rest of it is discarded.
        """
        if stream is None:
            return
        pending = bytearray()
        discarding = False
        while True:
            chunk = await stream.read(READ_CHUNK_BYTES)
            if not chunk:
                break
            pending += chunk
            while True:
                end = pending.find(b"\n")
                if end < 0:
                    break
                line = bytes(pending[:end])
                del pending[: end + 1]
                if discarding:
                    discarding = False
                    continue
                self._emit_line(name, line)
            if len(pending) > MAX_LINE_BYTES and not discarding:
                self._emit_line(name, bytes(pending[:MAX_LINE_BYTES]), truncated=True)
                discarding = True
            if discarding:
                pending.clear()
        if pending and not discarding:
            self._emit_line(name, bytes(pending))

    def _emit_line(self, name: str, line: bytes, truncated: bool = False) -> None:
        text = line.decode("utf-8", errors="replace").rstrip("\r")
        if truncated:
            text += TRUNCATED_MARKER
        logger.debug("[%s %s] %s", self.label, name, text[:500])
        self._emit("output", name, text)

    async def _watch_exit(self) -> int:
        code = await self._process.wait()
        for name, outcome in zip(
            ("stdout", "stderr"), await asyncio.gather(*self._pumps, return_exceptions=True)
        ):
            if isinstance(outcome, Exception):
                logger.error("[%s] %s reader failed: %s", self.label, name, outcome)
        logger.info("[%s] Exited: code=%s", self.label, code)
        self._emit("exit", code)
        return code

    async def wait(self) -> int:
        return await asyncio.shield(self._exit_task)


def _resolve_command(command: str, cwd: str | None) -> str:
    """Prefer a project-local ``node_modules/.bin`` binary, then PATH."""
    if cwd and os.sep not in command and "/" not in command:
        local = shutil.which(command, path=os.path.join(cwd, "node_modules", ".bin"))
        if local:
            return local
    return shutil.which(command) or command


async def spawn(
    command: str,
    args: list[str] | None = None,
    cwd: str | None = None,
    *,
    label: str | None = None,
    env: dict[str, str] | None = None,
) -> ProcessHandle:
    """Start ``command`` in its own process group with piped output.

    Raises OSError (FileNotFoundError, PermissionError) if it cannot start.
    """
    args = list(args or [])
    label = label or command
    executable = _resolve_command(command, cwd)
    kwargs: dict[str, Any] = {
        "cwd": cwd,
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.PIPE,
        "stderr": subprocess.PIPE,
        "env": {**os.environ, **env} if env else None,
    }
    if IS_WINDOWS:
        kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        kwargs["start_new_session"] = True

    logger.info("[%s] Spawning: %s %s (cwd=%s)", label, executable, " ".join(args), cwd)
    process = await asyncio.create_subprocess_exec(executable, *args, **kwargs)
    logger.info("[%s] Started pid %s", label, process.pid)
    return ProcessHandle(process, label)
