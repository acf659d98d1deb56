"""MCP tool handlers.

Each public coroutine of ToolHandlers is registered as one tool by
``uifeedback.mcp.server.create_server``; its docstring is the tool
description. Failures are raised as ToolError so FastMCP marks the result
with isError.
"""

import asyncio
import logging
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Any, Callable, Iterator, Literal

from mcp.server.fastmcp import Image
from mcp.server.fastmcp.exceptions import ToolError
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from pydantic import BaseModel, Field

from uifeedback import __version__
from uifeedback.automation.engine import BrowserEngine
from uifeedback.capture.console import attach_console_collector
from uifeedback.capture.errors import attach_error_collector
from uifeedback.capture.network import attach_network_collector
from uifeedback.capture.process import attach_process_collector
from uifeedback.config import (
    CAPABILITIES,
    DEFAULT_TIMEOUT_MS,
    ELECTRON_TIMEOUT_MS,
    EMBEDDED_IDENTIFIER,
    READY_TIMEOUT_MS,
    SCREENSHOT_MAX_WIDTH,
    SCREENSHOT_QUALITY,
    WORKFLOW_MAX_STEPS,
)
from uifeedback.errors import (
    AmbiguousSurfaceError,
    ServerNotReadyError,
    SessionNotFoundError,
    SurfaceNotFoundError,
    WorkflowValidationError,
    tool_error,
)
from uifeedback.interaction.resolver import resolve_surface
from uifeedback.interaction.selectors import resolve_selector
from uifeedback.process.cleanup import process_resource
from uifeedback.process.launcher import spawn
from uifeedback.process.monitor import wait_until_ready
from uifeedback.process.ports import find_free_port, suggest_port
from uifeedback.screenshot.auto_capture import setup_auto_capture
from uifeedback.screenshot.capture import capture_optimized
from uifeedback.screenshot.optimize import optimize_screenshot
from uifeedback.session.models import Resource, SurfaceRef
from uifeedback.session.registry import SessionRegistry, close_surface
from uifeedback.workflow.executor import execute_workflow, validate_step
from uifeedback.workflow.models import WorkflowStep

logger = logging.getLogger(__name__)

TOOL_NAMES = (
    "get_version",
    "create_session",
    "list_sessions",
    "end_session",
    "check_port",
    "launch_web_server",
    "launch_electron",
    "stop_process",
    "screenshot_web",
    "screenshot_electron",
    "get_screenshot",
    "click_element",
    "type_text",
    "press_key",
    "wait_for_element",
    "get_element_state",
    "navigate",
    "hover_element",
    "scroll",
    "select_option",
    "evaluate_javascript",
    "get_page_content",
    "wait_for_condition",
    "get_console_logs",
    "get_errors",
    "get_network_logs",
    "get_process_output",
    "run_workflow",
)

SELECTOR_HELP = (
    "Element selector. CSS: #id, .class, div > span. Text: text=Click me. "
    "Role: role=button[name='Submit']. Test ID: testid=my-btn"
)
PAGE_HELP = "URL or 'electron' to target a specific page. Omit if the session has only one page."

SessionId = Annotated[str, Field(description="Session ID from create_session")]
Selector = Annotated[str, Field(description=SELECTOR_HELP)]
PageIdentifier = Annotated[str | None, Field(description=PAGE_HELP)]
TimeoutMs = Annotated[int, Field(ge=0, description="Max wait time in ms")]
MaxWidth = Annotated[int, Field(ge=100, le=3840, description="Max image width in pixels")]
Quality = Annotated[int, Field(ge=1, le=100, description="WebP quality 1-100")]

SCROLL_SETTLE_S = 0.15
SCROLL_PAGE_JS = """(position) => {
    const root = document.scrollingElement || document.documentElement;
    root.scrollTop = position === "top" ? 0 : root.scrollHeight;
}"""
SCROLL_ELEMENT_JS = """(el, position) => {
    el.scrollTop = position === "top" ? 0 : el.scrollHeight;
}"""
BODY_TEXT_JS = "() => document.body.innerText"


class Point(BaseModel):
    x: float
    y: float


@contextmanager
def reported(
    action: str,
    *,
    selector: str | None = None,
    timeout: int | None = None,
    fix: str | None = None,
) -> Iterator[None]:
    """Translate coordination and Playwright errors into ToolError."""
    try:
        yield
    except ToolError:
        raise
    except SessionNotFoundError as exc:
        hint = (
            f"Available sessions: {', '.join(exc.available)}"
            if exc.available
            else "Create a session first with create_session."
        )
        raise tool_error(
            str(exc), "The session may have already been ended or never existed", hint
        ) from exc
    except (SurfaceNotFoundError, AmbiguousSurfaceError) as exc:
        raise tool_error(
            str(exc),
            f"Available pages: {', '.join(exc.available)}" if exc.available else None,
            "Pass page_identifier with one of the available pages." if exc.available else None,
        ) from exc
    except WorkflowValidationError as exc:
        raise tool_error(
            "Workflow validation failed", "; ".join(exc.errors), "Fix the step parameters and retry."
        ) from exc
    except PlaywrightTimeoutError as exc:
        if selector:
            raise tool_error(
                f"Element not found within {timeout}ms",
                f'Selector "{selector}" did not match an actionable element',
                "Check the selector, wait for the element with wait_for_element, or "
                "increase the timeout. Take a screenshot to verify the page state.",
            ) from exc
        raise tool_error(
            f"Timed out after {timeout}ms while trying to {action}", str(exc), fix
        ) from exc
    except PlaywrightError as exc:
        if "strict mode violation" in str(exc):
            raise tool_error(
                "Selector matched multiple elements",
                f'Selector "{selector}" matched more than one element (strict mode violation)',
                "Use a more specific selector, or add :nth-child(), :first-of-type or "
                "similar to target a single element.",
            ) from exc
        raise tool_error(f"Failed to {action}", str(exc), fix) from exc


def _image(data: bytes, mime_type: str) -> Image:
    return Image(data=data, format=mime_type.split("/", 1)[1])


def _result_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def url_matcher(pattern: str) -> Callable[[str], bool]:
    """Substring match, or a glob where ``**`` spans path segments and ``*`` does not."""
    if "*" not in pattern:
        return lambda url: pattern in url
    segments = ("[^/]*".join(map(re.escape, part.split("*"))) for part in pattern.split("**"))
    regex = re.compile(".*".join(segments))
    return lambda url: regex.search(url) is not None


def _newest_first(entries: list[Any], limit: int | None) -> dict[str, Any]:
    entries = sorted(entries, key=lambda e: e.timestamp, reverse=True)
    total = len(entries)
    if limit is not None:
        entries = entries[:limit]
    result: dict[str, Any] = {
        "count": len(entries),
        "entries": [e.model_dump(mode="json") for e in entries],
    }
    if limit is not None:
        result["total_available"] = total
        result["truncated"] = total > limit
    return result


class ToolHandlers:
    """Tool implementations bound to one registry and one browser engine."""

    def __init__(self, registry: SessionRegistry, engine: BrowserEngine):
        self.registry = registry
        self.engine = engine

    # ── Helpers ──────────────────────────────────────────────────

    def _require_session(self, session_id: str) -> None:
        if self.registry.get(session_id) is None:
            raise SessionNotFoundError(session_id, self.registry.list_sessions())

    def _instrument_page(self, session_id: str, identifier: str, page: Any) -> None:
        """Attach the page collectors and auto-capture under ``identifier``."""
        self.registry.set_console_collector(session_id, identifier, attach_console_collector(page))
        self.registry.set_error_collector(session_id, identifier, attach_error_collector(page))
        self.registry.set_network_collector(session_id, identifier, attach_network_collector(page))
        detach = setup_auto_capture(page, session_id, self.registry)

        async def release() -> None:
            detach()

        self.registry.add_resource(session_id, Resource(release=release, label="auto-capture"))

    async def _adopt_process(
        self, session_id: str, identifier: str, handle: Any, label: str
    ) -> None:
        """Take ownership of a spawned process, killing it if the session is gone."""
        collector = attach_process_collector(handle)
        try:
            self.registry.set_process_collector(session_id, identifier, collector)
            self.registry.add_resource(session_id, process_resource(handle, label=label))
        except SessionNotFoundError:
            logger.info("Session %s ended while %s was starting; stopping it", session_id, label)
            collector.detach()
            await process_resource(handle, label=label).release()
            raise

    async def _adopt_surface(self, session_id: str, identifier: str, ref: SurfaceRef) -> None:
        """Register and instrument a new page, closing it if the session is gone."""
        try:
            self.registry.set_surface_ref(session_id, identifier, ref)
        except SessionNotFoundError:
            logger.info("Session %s ended while %s was opening; closing it", session_id, identifier)
            try:
                await close_surface(ref)
            except Exception:
                logger.exception("Error closing orphaned surface %s", identifier)
            raise
        self._instrument_page(session_id, identifier, ref.page)

    async def _snapshot(
        self,
        page: Any,
        meta: dict[str, Any],
        *,
        full_page: bool = False,
        max_width: int = SCREENSHOT_MAX_WIDTH,
        quality: int = SCREENSHOT_QUALITY,
    ) -> list:
        image = await capture_optimized(
            page, full_page=full_page, max_width=max_width, quality=quality
        )
        meta = {
            **meta,
            "width": image.width,
            "height": image.height,
            "original_size": image.original_size,
            "optimized_size": image.optimized_size,
        }
        return [meta, _image(image.data, image.mime_type)]

    # ── Server & sessions ────────────────────────────────────────

    async def get_version(self) -> dict:
        """Return the server name, version and capability list."""
        return {"name": "uifeedback", "version": __version__, "capabilities": CAPABILITIES}

    async def create_session(self) -> dict:
        """Create a session to group launched apps, browsers and their logs.

        Every other tool takes the returned session_id. End it with end_session
        to stop processes and close browsers.
        """
        session_id = self.registry.create()
        return {"session_id": session_id, "status": "created"}

    async def list_sessions(self) -> dict:
        """List live sessions with their open pages and resource counts."""
        sessions = []
        for session_id in self.registry.list_sessions():
            session = self.registry.get(session_id)
            if session is None:
                continue
            sessions.append(
                {
                    "session_id": session_id,
                    "created_at": session.created_at.isoformat(),
                    "resources": len(session.resources),
                    "pages": self.registry.get_surface_identifiers(session_id),
                }
            )
        return {"count": len(sessions), "sessions": sessions}

    async def end_session(self, session_id: SessionId) -> dict:
        """End a session: stop its processes, close its browsers, drop its logs.

        Args:
            session_id: Session to end
        """
        with reported("end session"):
            self._require_session(session_id)
            await self.registry.destroy(session_id)
        return {"session_id": session_id, "status": "ended"}

    async def check_port(
        self, port: Annotated[int, Field(ge=1, le=65535, description="Port to check")]
    ) -> dict:
        """Check whether a TCP port is free. Use before launch_web_server.

        Args:
            port: Port number to check
        """
        available = suggest_port(port)
        if available == port:
            return {"port": port, "available": True}
        return {
            "port": port,
            "available": False,
            "suggested_alternative": available,
            "message": f"Port {port} is in use. Port {available} is available.",
        }

    # ── Processes ────────────────────────────────────────────────

    async def launch_web_server(
        self,
        session_id: SessionId,
        command: Annotated[str, Field(description="Command to run, e.g. 'npm', 'npx', 'node'")],
        args: Annotated[list[str], Field(description="Command arguments, e.g. ['run', 'dev']")],
        cwd: Annotated[str, Field(description="Working directory of the project")],
        port: Annotated[int, Field(ge=1, le=65535, description="Port the server listens on")],
        timeout_ms: Annotated[int, Field(ge=1000, le=300_000)] = READY_TIMEOUT_MS,
    ) -> dict:
        """Launch a web dev server and wait until it accepts connections.

        Readiness is detected from known dev server output (Vite, webpack,
        Next.js, CRA) or by the port accepting TCP connections. Its output is
        kept for get_process_output.

        Args:
            session_id: Session that owns the process
            command: Executable to run
            args: Arguments for the command
            cwd: Working directory
            port: Expected listening port
            timeout_ms: Readiness timeout in ms (default 60000)
        """
        identifier = f"WebServer:{port}"
        with reported("launch web server"):
            self._require_session(session_id)
        resolved_cwd = str(Path(cwd).expanduser().resolve())

        try:
            handle = await spawn(command, args, resolved_cwd, label=identifier)
        except OSError as exc:
            raise tool_error(
                "Failed to start web server",
                f"{command} {' '.join(args)} in {resolved_cwd}: {exc}",
                "Check the command, arguments and working directory are correct.",
            ) from exc

        with reported("launch web server"):
            await self._adopt_process(session_id, identifier, handle, identifier)

        try:
            await wait_until_ready(handle, port, timeout_ms)
        except ServerNotReadyError as exc:
            raise tool_error(
                "Web server failed to become ready",
                str(exc),
                "Check the command and port. Use get_process_output to read the server logs.",
            ) from exc

        return {
            "session_id": session_id,
            "type": "web-server",
            "pid": handle.pid,
            "port": port,
            "url": f"http://localhost:{port}",
            "status": "ready",
            "command": command,
            "args": args,
            "cwd": resolved_cwd,
        }

    async def launch_electron(
        self,
        session_id: SessionId,
        entry_path: Annotated[str, Field(description="Electron main entry file, e.g. main.js")],
        cwd: Annotated[str | None, Field(description="Working directory")] = None,
        electron_path: Annotated[
            str, Field(description="Electron executable (node_modules/.bin is searched first)")
        ] = "electron",
        timeout_ms: Annotated[int, Field(ge=1000, le=120_000)] = ELECTRON_TIMEOUT_MS,
    ) -> dict:
        """Launch an Electron app and attach to its first window for automation.

        The window becomes the session's 'electron' page: screenshots,
        interactions, logs and workflows work on it like on a web page.

        Args:
            session_id: Session that owns the app
            entry_path: Path to the Electron main entry file
            cwd: Working directory (defaults to the entry file's directory)
            electron_path: Electron binary to run
            timeout_ms: Launch timeout in ms (default 30000)
        """
        with reported("launch Electron app"):
            self._require_session(session_id)
        if self.registry.get_surface_ref(session_id, EMBEDDED_IDENTIFIER) is not None:
            raise tool_error(
                "An Electron app is already running in this session",
                f"Session {session_id} already has an '{EMBEDDED_IDENTIFIER}' page",
                "Stop it with stop_process or use another session.",
            )

        entry = Path(entry_path).expanduser().resolve()
        resolved_cwd = str(Path(cwd).expanduser().resolve()) if cwd else str(entry.parent)
        cdp_port = find_free_port()

        try:
            handle = await spawn(
                electron_path,
                [f"--remote-debugging-port={cdp_port}", str(entry)],
                resolved_cwd,
                label="Electron",
            )
        except OSError as exc:
            raise tool_error(
                "Failed to launch Electron app",
                str(exc),
                "Ensure Electron is installed in the target project or pass electron_path.",
            ) from exc

        with reported("launch Electron app"):
            await self._adopt_process(session_id, EMBEDDED_IDENTIFIER, handle, "Electron")

        try:
            await wait_until_ready(handle, cdp_port, timeout_ms, match_output=False)
        except ServerNotReadyError as exc:
            raise tool_error(
                "Electron app failed to start",
                str(exc),
                "Check the entry path points to a valid Electron main file. "
                "Use get_process_output to read its output.",
            ) from exc

        with reported("attach to Electron window", timeout=timeout_ms):
            browser, page = await self.engine.connect_embedded(cdp_port, timeout_ms)
            await self._adopt_surface(
                session_id,
                EMBEDDED_IDENTIFIER,
                SurfaceRef(kind="embedded", page=page, browser=browser),
            )

        return {
            "session_id": session_id,
            "type": "electron",
            "status": "ready",
            "pid": handle.pid,
            "entry_path": str(entry),
            "window_title": await page.title(),
        }

    async def stop_process(self, session_id: SessionId) -> dict:
        """Stop every process in a session and clean up its resources.

        This ends the session; create a new one to launch again.

        Args:
            session_id: Session whose processes to stop
        """
        with reported("stop processes"):
            self._require_session(session_id)
            await self.registry.destroy(session_id)
        return {
            "session_id": session_id,
            "stopped": True,
            "message": "All processes in session stopped and resources cleaned up",
        }

    # ── Screenshots ──────────────────────────────────────────────

    async def screenshot_web(
        self,
        session_id: SessionId,
        url: Annotated[str, Field(description="URL to capture, e.g. http://localhost:3000")],
        full_page: bool = False,
        max_width: MaxWidth = SCREENSHOT_MAX_WIDTH,
        quality: Quality = SCREENSHOT_QUALITY,
    ) -> list:
        """Capture a web page by URL. Opens a browser for the URL on first use.

        The page stays open as a session page so it can be clicked, typed into
        and inspected afterwards.

        Args:
            session_id: Session to open the page in
            url: Page URL
            full_page: Capture the full scrollable page instead of the viewport
            max_width: Max image width in pixels (default 1280)
            quality: WebP quality (default 80)
        """
        fix = "Check the URL is reachable. For dev servers, start one first with launch_web_server."
        with reported("capture web screenshot", timeout=DEFAULT_TIMEOUT_MS, fix=fix):
            self._require_session(session_id)
            ref = self.registry.get_surface_ref(session_id, url)
            if ref is None:
                logger.info("Opening browser for %s in session %s", url, session_id)
                browser, context, page = await self.engine.open_page(url, DEFAULT_TIMEOUT_MS)
                ref = SurfaceRef(kind="web", page=page, browser=browser, context=context, url=url)
                await self._adopt_surface(session_id, url, ref)
            elif ref.page.url != url:
                await ref.page.goto(url, wait_until="load", timeout=DEFAULT_TIMEOUT_MS)

            return await self._snapshot(
                ref.page,
                {
                    "session_id": session_id,
                    "type": "web",
                    "url": url,
                    "mode": "full-page" if full_page else "viewport",
                },
                full_page=full_page,
                max_width=max_width,
                quality=quality,
            )

    async def screenshot_electron(
        self,
        session_id: SessionId,
        full_page: bool = False,
        selector: Annotated[
            str | None, Field(description="Capture only this element (cannot combine with full_page)")
        ] = None,
        max_width: MaxWidth = SCREENSHOT_MAX_WIDTH,
        quality: Quality = SCREENSHOT_QUALITY,
    ) -> list:
        """Capture the window of the session's Electron app.

        Args:
            session_id: Session running the Electron app
            full_page: Capture the full scrollable page
            selector: Element to capture instead of the whole window
            max_width: Max image width in pixels (default 1280)
            quality: WebP quality (default 80)
        """
        if selector and full_page:
            raise tool_error(
                "Cannot combine selector with full_page",
                "Element screenshots are always cropped to the element's bounding box",
                "Remove full_page when using selector.",
            )
        with reported(
            "capture Electron screenshot",
            selector=selector,
            timeout=DEFAULT_TIMEOUT_MS,
            fix="Ensure the Electron app is still running and its window is open.",
        ):
            self._require_session(session_id)
            ref = self.registry.get_surface_ref(session_id, EMBEDDED_IDENTIFIER)
            if ref is None:
                raise tool_error(
                    "No Electron app found for this session",
                    f"Session {session_id} has no Electron page",
                    "Launch an Electron app first with launch_electron.",
                )
            meta = {
                "session_id": session_id,
                "type": "electron",
                "mode": "element" if selector else ("full-page" if full_page else "viewport"),
            }
            if not selector:
                return await self._snapshot(
                    ref.page, meta, full_page=full_page, max_width=max_width, quality=quality
                )
            raw = await resolve_selector(ref.page, selector).screenshot(
                type="png", timeout=DEFAULT_TIMEOUT_MS
            )
        image = optimize_screenshot(raw, max_width=max_width, quality=quality)
        meta.update(selector=selector, width=image.width, height=image.height)
        return [meta, _image(image.data, image.mime_type)]

    async def get_screenshot(self, session_id: SessionId) -> list:
        """Return the latest screenshot taken automatically after a navigation.

        Args:
            session_id: Session to read
        """
        with reported("read auto-capture"):
            self._require_session(session_id)
        capture = self.registry.get_auto_capture(session_id)
        if capture is None:
            raise tool_error(
                "No auto-captured screenshot available",
                f"Session {session_id} has no auto-capture yet. Auto-captures are "
                "taken after page navigations in web and Electron apps.",
                "Use screenshot_web or screenshot_electron for an on-demand capture.",
            )
        meta = {
            "session_id": session_id,
            "source": "auto-capture",
            "url": capture.url,
            "captured_at": capture.captured_at.isoformat(),
            "width": capture.width,
            "height": capture.height,
        }
        return [meta, _image(capture.image, capture.mime_type)]

    # ── Interactions ─────────────────────────────────────────────

    async def click_element(
        self,
        session_id: SessionId,
        selector: Selector,
        page_identifier: PageIdentifier = None,
        button: Literal["left", "right", "middle"] = "left",
        click_count: Annotated[int, Field(ge=1, le=3)] = 1,
        force: bool = False,
        timeout: TimeoutMs = DEFAULT_TIMEOUT_MS,
    ) -> list:
        """Click an element and return a screenshot of the result.

        Args:
            session_id: Session ID
            selector: Element to click
            page_identifier: Page to act on when the session has several
            button: Mouse button
            click_count: 2 for a double click
            force: Skip actionability checks
            timeout: Max wait for the element in ms (default 30000)
        """
        with reported("click element", selector=selector, timeout=timeout):
            target = resolve_surface(self.registry, session_id, page_identifier)
            page = target.page
            await resolve_selector(page, selector).click(
                button=button, click_count=click_count, force=force, timeout=timeout
            )
            try:
                await page.wait_for_load_state("load", timeout=2000)
            except PlaywrightTimeoutError:
                pass
            return await self._snapshot(
                page,
                {"session_id": session_id, "action": "click", "selector": selector, "success": True},
            )

    async def type_text(
        self,
        session_id: SessionId,
        selector: Selector,
        text: Annotated[str, Field(description="Text to type into the field")],
        page_identifier: PageIdentifier = None,
        press_sequentially: bool = False,
        delay: Annotated[int, Field(ge=0)] = 50,
        clear: bool = True,
        timeout: TimeoutMs = DEFAULT_TIMEOUT_MS,
    ) -> list:
        """Type into an input or textarea and return a screenshot.

        Fills the field by default. Set press_sequentially for inputs that
        react to individual keystrokes, and clear=False to append.

        Args:
            session_id: Session ID
            selector: Input field
            text: Text to type
            page_identifier: Page to act on when the session has several
            press_sequentially: Type one key at a time
            delay: Delay between keys in ms when typing sequentially
            clear: Replace the current value (default) instead of appending
            timeout: Max wait for the element in ms (default 30000)
        """
        with reported("type text", selector=selector, timeout=timeout):
            target = resolve_surface(self.registry, session_id, page_identifier)
            page = target.page
            locator = resolve_selector(page, selector)
            if press_sequentially:
                if clear:
                    await locator.fill("", timeout=timeout)
                else:
                    await locator.click(timeout=timeout)
                await locator.press_sequentially(text, delay=delay, timeout=timeout)
            elif not clear:
                await locator.click(timeout=timeout)
                await page.keyboard.insert_text(text)
            else:
                await locator.fill(text, timeout=timeout)
            return await self._snapshot(
                page,
                {
                    "session_id": session_id,
                    "action": "type",
                    "selector": selector,
                    "text_length": len(text),
                    "mode": "press_sequentially" if press_sequentially else "fill",
                    "success": True,
                },
            )

    async def press_key(
        self,
        session_id: SessionId,
        key: Annotated[
            str, Field(description="Key or combination: Enter, Escape, Tab, Control+A, Shift+Tab")
        ],
        selector: Annotated[
            str | None, Field(description="Element to focus first; omit to send to the page")
        ] = None,
        page_identifier: PageIdentifier = None,
        timeout: TimeoutMs = DEFAULT_TIMEOUT_MS,
    ) -> list:
        """Press a key or key combination and return a screenshot.

        Args:
            session_id: Session ID
            key: Key name
            selector: Element that receives the key press
            page_identifier: Page to act on when the session has several
            timeout: Max wait for the element in ms (default 30000)
        """
        with reported("press key", selector=selector, timeout=timeout):
            target = resolve_surface(self.registry, session_id, page_identifier)
            page = target.page
            if selector:
                await resolve_selector(page, selector).press(key, timeout=timeout)
            else:
                await page.keyboard.press(key)
            return await self._snapshot(
                page,
                {"session_id": session_id, "action": "press_key", "key": key, "success": True},
            )

    async def wait_for_element(
        self,
        session_id: SessionId,
        selector: Selector,
        state: Literal["visible", "hidden", "attached", "detached"] = "visible",
        page_identifier: PageIdentifier = None,
        timeout: TimeoutMs = DEFAULT_TIMEOUT_MS,
    ) -> list:
        """Wait for an element to reach a state, then return a screenshot.

        Args:
            session_id: Session ID
            selector: Element to wait for
            state: visible, hidden, attached (in DOM) or detached (removed)
            page_identifier: Page to act on when the session has several
            timeout: Max wait in ms (default 30000)
        """
        with reported("wait for element", selector=selector, timeout=timeout):
            target = resolve_surface(self.registry, session_id, page_identifier)
            try:
                await resolve_selector(target.page, selector).wait_for(state=state, timeout=timeout)
            except PlaywrightTimeoutError as exc:
                raise tool_error(
                    f"Element did not reach state '{state}' within {timeout}ms",
                    f'Selector: "{selector}", target state: "{state}"',
                    "Take a screenshot to see the current page state.",
                ) from exc
            return await self._snapshot(
                target.page,
                {
                    "session_id": session_id,
                    "action": "wait_for_element",
                    "selector": selector,
                    "state": state,
                    "success": True,
                },
            )

    async def get_element_state(
        self,
        session_id: SessionId,
        selector: Selector,
        page_identifier: PageIdentifier = None,
        attributes: Annotated[
            list[str] | None, Field(description="Attribute names to read, e.g. ['href', 'class']")
        ] = None,
        timeout: TimeoutMs = DEFAULT_TIMEOUT_MS,
    ) -> dict:
        """Read an element's text, visibility, enabled/checked state and attributes.

        Args:
            session_id: Session ID
            selector: Element to inspect
            page_identifier: Page to act on when the session has several
            attributes: Attributes to read
            timeout: Max wait for the element in ms (default 30000)
        """
        with reported("read element state", selector=selector, timeout=timeout):
            target = resolve_surface(self.registry, session_id, page_identifier)
            locator = resolve_selector(target.page, selector)
            await locator.wait_for(state="attached", timeout=timeout)

            async def optional(coro: Any) -> Any:
                try:
                    return await coro
                except PlaywrightError:
                    return None

            text, inner, visible, enabled, editable, value, checked, box = await asyncio.gather(
                locator.text_content(timeout=timeout),
                locator.inner_text(timeout=timeout),
                locator.is_visible(),
                locator.is_enabled(timeout=timeout),
                optional(locator.is_editable(timeout=timeout)),
                optional(locator.input_value(timeout=timeout)),
                optional(locator.is_checked(timeout=timeout)),
                locator.bounding_box(),
            )
            attrs = {}
            for name in attributes or []:
                attrs[name] = await locator.get_attribute(name, timeout=timeout)

        return {
            "selector": selector,
            "visible": visible,
            "enabled": enabled,
            "editable": bool(editable),
            "checked": checked,
            "text_content": text,
            "inner_text": inner,
            "input_value": value,
            "attributes": attrs,
            "bounding_box": box,
        }

    async def navigate(
        self,
        session_id: SessionId,
        action: Literal["goto", "back", "forward"] = "goto",
        url: Annotated[str | None, Field(description="URL to load (required for goto)")] = None,
        page_identifier: PageIdentifier = None,
        wait_until: Literal["load", "domcontentloaded", "commit"] = "load",
        timeout: TimeoutMs = DEFAULT_TIMEOUT_MS,
    ) -> list:
        """Load a URL or go back/forward in history, then return a screenshot.

        After goto, back or forward, a web page is addressed by the URL it
        landed on.

        Args:
            session_id: Session ID
            action: goto, back or forward
            url: Target URL for goto
            page_identifier: Page to act on when the session has several
            wait_until: When navigation counts as complete (default load)
            timeout: Max wait in ms (default 30000)
        """
        if action == "goto" and not url:
            raise tool_error(
                "URL is required when action is 'goto'",
                "The 'goto' action navigates to a specific URL",
                "Provide a url, e.g. url='http://localhost:3000'.",
            )
        fix = "Check the URL is correct and the server is running."
        with reported("navigate", timeout=timeout, fix=fix):
            target = resolve_surface(self.registry, session_id, page_identifier)
            page = target.page
            if action == "goto":
                await page.goto(url, wait_until=wait_until, timeout=timeout)
                if target.surface.kind == "web":
                    self.registry.rekey_identifier(session_id, target.identifier, url)
                target.surface.url = url
            else:
                go = page.go_back if action == "back" else page.go_forward
                if await go(wait_until=wait_until, timeout=timeout) is None:
                    raise tool_error(
                        f"Cannot go {action}",
                        f"No {'previous' if action == 'back' else 'forward'} page in history",
                        "Navigate to a URL first." if action == "back" else "Use back first.",
                    )
                if target.surface.kind == "web" and page.url != target.identifier:
                    self.registry.rekey_identifier(session_id, target.identifier, page.url)
                target.surface.url = page.url
            return await self._snapshot(
                page,
                {"session_id": session_id, "action": action, "url": page.url, "success": True},
            )

    # ── Page tools ───────────────────────────────────────────────

    async def hover_element(
        self,
        session_id: SessionId,
        selector: Selector,
        page_identifier: PageIdentifier = None,
        position: Annotated[
            Point | None, Field(description="Point inside the element, relative to its top-left")
        ] = None,
        force: bool = False,
        timeout: TimeoutMs = DEFAULT_TIMEOUT_MS,
    ) -> list:
        """Hover over an element to trigger tooltips, menus or hover styles.

        The screenshot is taken immediately, while the hover state is showing.

        Args:
            session_id: Session ID
            selector: Element to hover
            page_identifier: Page to act on when the session has several
            position: Hover point within the element
            force: Skip actionability checks
            timeout: Max wait for the element in ms (default 30000)
        """
        with reported("hover element", selector=selector, timeout=timeout):
            target = resolve_surface(self.registry, session_id, page_identifier)
            await resolve_selector(target.page, selector).hover(
                position=position.model_dump() if position else None, force=force, timeout=timeout
            )
            return await self._snapshot(
                target.page,
                {"session_id": session_id, "action": "hover", "selector": selector, "success": True},
            )

    async def scroll(
        self,
        session_id: SessionId,
        target: Annotated[
            str | None,
            Field(description="Element to scroll into view, or the container to scroll within"),
        ] = None,
        direction: Literal["up", "down", "left", "right"] | None = None,
        amount: Annotated[int, Field(ge=1, description="Pixels to scroll")] = 500,
        scroll_to: Literal["top", "bottom"] | None = None,
        page_identifier: PageIdentifier = None,
        timeout: TimeoutMs = DEFAULT_TIMEOUT_MS,
    ) -> list:
        """Scroll the page or an element, then return a screenshot.

        With direction, scrolls by amount pixels (over target if given). With
        scroll_to, jumps to the top or bottom of the page or of target. With
        only target, scrolls that element into view.

        Args:
            session_id: Session ID
            target: Element selector
            direction: Wheel direction
            amount: Pixels for direction scrolling (default 500)
            scroll_to: top or bottom
            page_identifier: Page to act on when the session has several
            timeout: Max wait for the element in ms (default 30000)
        """
        if not (target or direction or scroll_to):
            raise tool_error(
                "No scroll parameters provided",
                "At least one of target, direction or scroll_to must be specified",
                "Use target to scroll an element into view, direction to scroll by pixels, "
                "or scroll_to to jump to the top or bottom.",
            )
        fix = "Take a screenshot to verify the page state and that the element exists."
        with reported("scroll", selector=target, timeout=timeout, fix=fix):
            surface = resolve_surface(self.registry, session_id, page_identifier)
            page = surface.page
            if direction:
                mode = f"direction:{direction}"
                dx, dy = {
                    "up": (0, -amount),
                    "down": (0, amount),
                    "left": (-amount, 0),
                    "right": (amount, 0),
                }[direction]
                if target:
                    await resolve_selector(page, target).hover(timeout=timeout)
                await page.mouse.wheel(dx, dy)
                await asyncio.sleep(SCROLL_SETTLE_S)
            elif scroll_to:
                mode = f"scrollTo:{scroll_to}"
                if target:
                    await resolve_selector(page, target).evaluate(
                        SCROLL_ELEMENT_JS, scroll_to, timeout=timeout
                    )
                else:
                    await page.evaluate(SCROLL_PAGE_JS, scroll_to)
                await asyncio.sleep(SCROLL_SETTLE_S)
            else:
                mode = "intoView"
                await resolve_selector(page, target).scroll_into_view_if_needed(timeout=timeout)
            return await self._snapshot(
                page,
                {
                    "session_id": session_id,
                    "action": "scroll",
                    "target": target,
                    "scroll_mode": mode,
                    "success": True,
                },
            )

    async def select_option(
        self,
        session_id: SessionId,
        selector: Annotated[str, Field(description="Selector of a native <select> element")],
        value: Annotated[str | None, Field(description="Option value attribute")] = None,
        label: Annotated[str | None, Field(description="Option visible text")] = None,
        index: Annotated[int | None, Field(ge=0, description="Zero-based option index")] = None,
        page_identifier: PageIdentifier = None,
        timeout: TimeoutMs = DEFAULT_TIMEOUT_MS,
    ) -> list:
        """Select an option in a <select> dropdown by value, label or index.

        For custom dropdown components use click_element instead.

        Args:
            session_id: Session ID
            selector: The <select> element
            value: Select by value
            label: Select by visible text
            index: Select by position
            page_identifier: Page to act on when the session has several
            timeout: Max wait for the element in ms (default 30000)
        """
        given = {"value": value, "label": label, "index": index}
        choice = {name: v for name, v in given.items() if v is not None}
        if len(choice) != 1:
            raise tool_error(
                "Provide exactly one of: value, label, or index",
                f"Got {len(choice)} selection methods",
                "Use value for the option's value attribute, label for its visible text, "
                "or index for its zero-based position.",
            )
        fix = "Take a screenshot to verify the element exists and is a <select> dropdown."
        with reported("select option", selector=selector, timeout=timeout, fix=fix):
            target = resolve_surface(self.registry, session_id, page_identifier)
            try:
                await resolve_selector(target.page, selector).select_option(
                    **choice, timeout=timeout
                )
            except PlaywrightError as exc:
                if "not a <select>" not in str(exc):
                    raise
                raise tool_error(
                    "Element is not a <select> dropdown",
                    f'Selector "{selector}" matched an element that is not a native <select>',
                    "Use click_element for custom dropdown components.",
                ) from exc
            return await self._snapshot(
                target.page,
                {
                    "session_id": session_id,
                    "action": "select",
                    "selector": selector,
                    **choice,
                    "success": True,
                },
            )

    async def evaluate_javascript(
        self,
        session_id: SessionId,
        expression: Annotated[
            str,
            Field(
                description="JavaScript expression evaluated in the page. Wrap multi-statement "
                "code in an IIFE."
            ),
        ],
        page_identifier: PageIdentifier = None,
        timeout: TimeoutMs = DEFAULT_TIMEOUT_MS,
    ) -> dict:
        """Run JavaScript in the page and return its JSON-serializable result.

        DOM nodes, functions and undefined come back as null.

        Args:
            session_id: Session ID
            expression: Code to evaluate
            page_identifier: Page to act on when the session has several
            timeout: Max evaluation time in ms (default 30000)
        """
        with reported("evaluate JavaScript", fix="Take a screenshot to verify the page state."):
            target = resolve_surface(self.registry, session_id, page_identifier)
            try:
                result = await asyncio.wait_for(
                    target.page.evaluate(expression), timeout / 1000 or None
                )
            except asyncio.TimeoutError as exc:
                raise tool_error(
                    "Evaluation timed out",
                    f"Expression did not complete within {timeout}ms",
                    "The expression may be stuck in a loop or waiting on something. "
                    "Simplify it or increase the timeout.",
                ) from exc
            except PlaywrightError as exc:
                raise tool_error(
                    "JavaScript evaluation error",
                    str(exc),
                    "Check the expression syntax and that referenced names exist in the page.",
                ) from exc

        response = {
            "expression": expression if len(expression) <= 200 else expression[:200] + "...",
            "result_type": _result_type(result),
            "result": result,
        }
        if result is None:
            response["note"] = (
                "Result is null or undefined. The expression may have returned nothing, "
                "or a value that cannot be serialized (DOM node, function)."
            )
        return response

    async def get_page_content(
        self,
        session_id: SessionId,
        selector: Annotated[
            str | None, Field(description="Element to read; omit for the whole page")
        ] = None,
        format: Literal["text", "html"] = "text",
        page_identifier: PageIdentifier = None,
        max_length: Annotated[
            int | None, Field(ge=1, description="Truncate the content to this many characters")
        ] = None,
        timeout: TimeoutMs = DEFAULT_TIMEOUT_MS,
    ) -> dict:
        """Read the visible text or the HTML of the page or of one element.

        Returns text, not a screenshot. Use a selector on large pages.

        Args:
            session_id: Session ID
            selector: Element to read
            format: text (innerText) or html
            page_identifier: Page to act on when the session has several
            max_length: Character limit for the content
            timeout: Max wait for the element in ms (default 30000)
        """
        fix = "Take a screenshot to verify the page state."
        with reported("extract page content", selector=selector, timeout=timeout, fix=fix):
            target = resolve_surface(self.registry, session_id, page_identifier)
            page = target.page
            if selector:
                locator = resolve_selector(page, selector)
                await locator.wait_for(state="attached", timeout=timeout)
                if format == "html":
                    content = await locator.inner_html(timeout=timeout)
                else:
                    content = await locator.inner_text(timeout=timeout)
            elif format == "html":
                content = await page.content()
            else:
                content = await page.evaluate(BODY_TEXT_JS)

        content = content or ""
        truncated = max_length is not None and len(content) > max_length
        if truncated:
            content = content[:max_length]
        return {
            "selector": selector,
            "format": format,
            "length": len(content),
            "truncated": truncated,
            "content": content,
        }

    async def wait_for_condition(
        self,
        session_id: SessionId,
        condition_type: Literal["network_idle", "javascript", "url"],
        expression: Annotated[
            str | None,
            Field(description="JavaScript that must become truthy (condition_type 'javascript')"),
        ] = None,
        url_pattern: Annotated[
            str | None,
            Field(description="URL substring or glob such as '**/api/data' (condition_type 'url')"),
        ] = None,
        page_identifier: PageIdentifier = None,
        timeout: TimeoutMs = DEFAULT_TIMEOUT_MS,
    ) -> list:
        """Wait for network idle, a truthy JavaScript expression or a matching response.

        Returns a screenshot once the condition holds. Useful after triggering
        asynchronous work in the app.

        Args:
            session_id: Session ID
            condition_type: network_idle, javascript or url
            expression: Expression for javascript
            url_pattern: Response URL to wait for, for url
            page_identifier: Page to act on when the session has several
            timeout: Max wait in ms (default 30000)
        """
        if condition_type == "javascript" and not expression:
            raise tool_error(
                "Expression required for javascript condition",
                "condition_type is 'javascript' but no expression was provided",
                "Provide an expression that is truthy once the condition holds, e.g. "
                "'document.querySelector(\"#loaded\") !== null'.",
            )
        if condition_type == "url" and not url_pattern:
            raise tool_error(
                "URL pattern required for url condition",
                "condition_type is 'url' but no url_pattern was provided",
                "Provide a URL or glob, e.g. '**/api/data'.",
            )
        meta: dict[str, Any] = {
            "session_id": session_id,
            "action": "wait",
            "condition_type": condition_type,
            "expression": expression,
            "url_pattern": url_pattern,
            "success": True,
        }
        with reported("wait for condition", timeout=timeout):
            target = resolve_surface(self.registry, session_id, page_identifier)
            page = target.page
            try:
                if condition_type == "network_idle":
                    await page.wait_for_load_state("networkidle", timeout=timeout)
                elif condition_type == "javascript":
                    await page.wait_for_function(expression, timeout=timeout)
                else:
                    matches = url_matcher(url_pattern)
                    response = await page.wait_for_event(
                        "response", predicate=lambda r: matches(r.url), timeout=timeout
                    )
                    meta.update(url_matched=response.url, status=response.status)
            except PlaywrightTimeoutError as exc:
                raise tool_error(
                    "Condition not met within timeout",
                    f"{condition_type} condition did not resolve within {timeout}ms",
                    "The page may hold persistent connections (WebSocket, polling). Wait for a "
                    "JavaScript condition instead."
                    if condition_type == "network_idle"
                    else "Increase the timeout or check the condition can be met. Take a "
                    "screenshot to see the current page state.",
                ) from exc
            return await self._snapshot(page, meta)

    # ── Diagnostics ──────────────────────────────────────────────

    async def get_console_logs(
        self,
        session_id: SessionId,
        level: Literal["all", "log", "error", "warning", "info", "debug"] = "all",
        limit: Annotated[int, Field(ge=1, le=1000)] = 100,
    ) -> dict:
        """Browser console messages from every page in the session, newest first.

        Args:
            session_id: Session ID
            level: Only messages of this level (default all)
            limit: Max entries (default 100)
        """
        with reported("read console logs"):
            self._require_session(session_id)
        collectors = self.registry.get_console_collectors(session_id)
        if not collectors:
            return {
                "count": 0,
                "truncated": False,
                "entries": [],
                "note": "No console logs captured yet. Ensure a page exists in this session.",
            }
        entries = [e for c in collectors for e in c.entries()]
        if level != "all":
            entries = [e for e in entries if e.level == level]
        return _newest_first(entries, limit)

    async def get_errors(
        self,
        session_id: SessionId,
        error_type: Literal["all", "uncaught-exception", "page-crash"] = "all",
    ) -> dict:
        """Uncaught page exceptions and page crashes, newest first.

        Args:
            session_id: Session ID
            error_type: Only errors of this type (default all)
        """
        with reported("read errors"):
            self._require_session(session_id)
        collectors = self.registry.get_error_collectors(session_id)
        if not collectors:
            return {
                "count": 0,
                "entries": [],
                "note": "No errors captured yet. Ensure a page exists in this session.",
            }
        entries = [e for c in collectors for e in c.entries()]
        if error_type != "all":
            entries = [e for e in entries if e.type == error_type]
        return _newest_first(entries, None)

    async def get_network_logs(
        self,
        session_id: SessionId,
        status_filter: Annotated[
            Literal["all", "failed", "errors"],
            Field(description="failed: status 0 (network errors); errors: status 0 or >= 400"),
        ] = "all",
        limit: Annotated[int, Field(ge=1, le=500)] = 100,
    ) -> dict:
        """HTTP requests and responses of every page in the session, newest first.

        Args:
            session_id: Session ID
            status_filter: all, failed or errors
            limit: Max entries (default 100)
        """
        with reported("read network logs"):
            self._require_session(session_id)
        collectors = self.registry.get_network_collectors(session_id)
        if not collectors:
            return {
                "count": 0,
                "truncated": False,
                "entries": [],
                "note": "No network logs captured yet. Ensure a page exists in this session.",
            }
        entries = [e for c in collectors for e in c.entries()]
        if status_filter == "failed":
            entries = [e for e in entries if e.status == 0]
        elif status_filter == "errors":
            entries = [e for e in entries if e.status == 0 or e.status >= 400]
        return _newest_first(entries, limit)

    async def get_process_output(
        self,
        session_id: SessionId,
        stream: Literal["all", "stdout", "stderr"] = "all",
        limit: Annotated[int, Field(ge=1, le=5000)] = 200,
    ) -> dict:
        """stdout/stderr lines of processes launched in the session, newest first.

        Args:
            session_id: Session ID
            stream: Only this stream (default all)
            limit: Max lines (default 200)
        """
        with reported("read process output"):
            self._require_session(session_id)
        collectors = self.registry.get_process_collectors(session_id)
        if not collectors:
            return {
                "count": 0,
                "truncated": False,
                "entries": [],
                "note": "No process output captured yet. Ensure a process exists in this session.",
            }
        entries = [e for c in collectors for e in c.entries()]
        if stream != "all":
            entries = [e for e in entries if e.stream == stream]
        return _newest_first(entries, limit)

    # ── Workflows ────────────────────────────────────────────────

    async def run_workflow(
        self,
        session_id: SessionId,
        steps: Annotated[
            list[WorkflowStep],
            Field(min_length=1, max_length=WORKFLOW_MAX_STEPS, description="Steps to run in order"),
        ],
        page_identifier: PageIdentifier = None,
    ) -> list:
        """Run several actions in sequence with a screenshot and logs after each.

        Actions: click, type, navigate, screenshot, wait, assert. Execution
        stops at the first failing step. Assertions (assert_type) are exists,
        not-exists, visible, hidden, text-equals, text-contains, has-attribute,
        attribute-equals, enabled, disabled, checked, not-checked, value-equals.

        Args:
            session_id: Session ID
            steps: Up to 20 steps
            page_identifier: Page to act on when the session has several
        """
        with reported("run workflow", fix="Take a screenshot to check the current page state."):
            target = resolve_surface(self.registry, session_id, page_identifier)
            errors = [e for e in (validate_step(s, i) for i, s in enumerate(steps)) if e]
            if errors:
                raise WorkflowValidationError(errors)
            result = await execute_workflow(
                target.page,
                steps,
                self.registry,
                session_id,
                target.identifier,
                target.surface.kind,
            )

        content: list[Any] = [
            {
                "workflow": result.status,
                "total_steps": result.total_steps,
                "completed_steps": result.completed_steps,
                "failed_at_step": result.failed_step,
            }
        ]
        for step in result.steps:
            meta: dict[str, Any] = {
                "step": step.step_index,
                "action": step.action,
                "success": step.success,
                "error": step.error,
                "console_logs": len(step.console_delta),
                "errors": len(step.error_delta),
            }
            if step.assertion is not None:
                meta["assertion"] = step.assertion.model_dump()
            if step.error_delta:
                meta["error_details"] = [e.model_dump(mode="json") for e in step.error_delta]
            console_errors = [e for e in step.console_delta if e.level == "error"]
            if console_errors:
                meta["console_errors"] = [e.model_dump(mode="json") for e in console_errors]
            content.append(meta)
            if step.screenshot and step.screenshot_mime_type:
                content.append(_image(step.screenshot, step.screenshot_mime_type))
        return content
