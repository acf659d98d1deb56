"""Shared fixtures and in-memory stand-ins for Playwright pages and processes."""

import inspect
import io
from dataclasses import dataclass, field

import pytest
from PIL import Image
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from uifeedback.session.registry import SessionRegistry


@pytest.fixture
def anyio_backend():
    return "asyncio"


def make_png(width: int = 1600, height: int = 900, color=(30, 120, 200)) -> bytes:
    out = io.BytesIO()
    Image.new("RGB", (width, height), color).save(out, format="PNG")
    return out.getvalue()


class FakeEmitter:
    """Minimal ``on``/``remove_listener`` event source."""

    def __init__(self):
        self.listeners: dict[str, list] = {}

    def on(self, event, handler):
        self.listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event, handler):
        self.listeners.get(event, []).remove(handler)

    def listener_count(self, event=None) -> int:
        if event is None:
            return sum(len(h) for h in self.listeners.values())
        return len(self.listeners.get(event, []))

    def emit(self, event, *args):
        for handler in list(self.listeners.get(event, [])):
            handler(*args)

    async def emit_async(self, event, *args):
        for handler in list(self.listeners.get(event, [])):
            result = handler(*args)
            if inspect.isawaitable(result):
                await result


@dataclass
class FakeElement:
    text: str = ""
    visible: bool = True
    enabled: bool = True
    checked: bool = False
    value: str = ""
    attributes: dict = field(default_factory=dict)
    count: int = 1
    editable: bool = True
    options: list | None = None
    html: str = ""


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str):
        self.page = page
        self.selector = selector

    @property
    def element(self) -> FakeElement | None:
        return self.page.elements.get(self.selector)

    def _require(self, timeout=None) -> FakeElement:
        element = self.element
        if element is None:
            raise PlaywrightTimeoutError(
                f"Timeout {timeout}ms exceeded waiting for locator('{self.selector}')"
            )
        if element.count > 1:
            raise PlaywrightError(
                f"strict mode violation: locator('{self.selector}') resolved to "
                f"{element.count} elements"
            )
        return element

    async def click(self, timeout=None, **kwargs):
        self._require(timeout)
        self.page.actions.append(("click", self.selector, kwargs))
        handler = self.page.on_click.get(self.selector)
        if handler:
            handler(self.page)

    async def fill(self, text, timeout=None):
        element = self._require(timeout)
        element.value = text
        self.page.actions.append(("fill", self.selector, text))

    async def press_sequentially(self, text, delay=None, timeout=None):
        element = self._require(timeout)
        element.value += text
        self.page.actions.append(("press_sequentially", self.selector, text, delay))

    async def press(self, key, timeout=None):
        self._require(timeout)
        self.page.actions.append(("press", self.selector, key))

    async def wait_for(self, state="visible", timeout=None):
        element = self.element
        present = element is not None
        if state == "attached" and not present:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded")
        if state == "visible" and not (present and element.visible):
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded")
        if state == "detached" and present:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded")
        if state == "hidden" and present and element.visible:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded")
        self.page.actions.append(("wait_for", self.selector, state))

    async def count(self):
        element = self.element
        return element.count if element else 0

    async def is_visible(self):
        element = self.element
        return bool(element and element.visible)

    async def inner_text(self, timeout=None):
        return self._require(timeout).text

    async def text_content(self, timeout=None):
        return self._require(timeout).text

    async def get_attribute(self, name, timeout=None):
        return self._require(timeout).attributes.get(name)

    async def input_value(self, timeout=None):
        return self._require(timeout).value

    async def is_enabled(self, timeout=None):
        return self._require(timeout).enabled

    async def is_checked(self, timeout=None):
        return self._require(timeout).checked

    async def is_editable(self, timeout=None):
        return self._require(timeout).editable

    async def bounding_box(self):
        return {"x": 0, "y": 0, "width": 100, "height": 20} if self.element else None

    async def screenshot(self, type="png", timeout=None):
        self._require(timeout)
        return make_png(200, 40)

    async def hover(self, position=None, force=False, timeout=None):
        self._require(timeout)
        self.page.actions.append(("hover", self.selector, position, force))

    async def scroll_into_view_if_needed(self, timeout=None):
        self._require(timeout)
        self.page.actions.append(("scroll_into_view", self.selector))

    async def select_option(self, value=None, *, index=None, label=None, timeout=None):
        element = self._require(timeout)
        if element.options is None:
            raise PlaywrightError("Error: Element is not a <select> element")
        if index is not None:
            chosen = element.options[index]
        else:
            chosen = label if label is not None else value
        element.value = chosen
        self.page.actions.append(("select_option", self.selector, chosen))
        return [chosen]

    async def inner_html(self, timeout=None):
        return self._require(timeout).html

    async def evaluate(self, expression, arg=None, timeout=None):
        self._require(timeout)
        self.page.actions.append(("evaluate", self.selector, arg))


class FakeKeyboard:
    def __init__(self, page: "FakePage"):
        self.page = page

    async def insert_text(self, text):
        self.page.actions.append(("insert_text", text))

    async def press(self, key):
        self.page.actions.append(("keyboard.press", key))


class FakeMouse:
    def __init__(self, page: "FakePage"):
        self.page = page

    async def wheel(self, delta_x, delta_y):
        self.page.actions.append(("wheel", delta_x, delta_y))


class FakePage(FakeEmitter):
    def __init__(self, url: str = "http://localhost:3000/", elements=None):
        super().__init__()
        self.url = url
        self.elements: dict[str, FakeElement] = dict(elements or {})
        self.actions: list = []
        self.on_click: dict = {}
        self.history: list[str] = [url]
        self.history_index = 0
        self.main_frame = object()
        self.keyboard = FakeKeyboard(self)
        self.screenshot_calls = 0
        self.fail_screenshots = False
        self.viewport_size = {"width": 1280, "height": 720}
        self.mouse = FakeMouse(self)
        self.html = "<html><body></body></html>"
        self.network_busy = False
        # expression -> value; an exception is raised, a coroutine function awaited
        self.js: dict = {}
        self.responses: list = []

    def locator(self, selector):
        return FakeLocator(self, selector)

    def get_by_test_id(self, test_id):
        return FakeLocator(self, f"[data-testid={test_id}]")

    async def goto(self, url, wait_until="load", timeout=None):
        if url.startswith("http://unreachable"):
            raise PlaywrightError(f"net::ERR_CONNECTION_REFUSED at {url}")
        self.history = self.history[: self.history_index + 1] + [url]
        self.history_index += 1
        self.url = url
        self.actions.append(("goto", url))
        return object()

    async def go_back(self, wait_until="load", timeout=None):
        if self.history_index == 0:
            return None
        self.history_index -= 1
        self.url = self.history[self.history_index]
        return object()

    async def go_forward(self, wait_until="load", timeout=None):
        if self.history_index >= len(self.history) - 1:
            return None
        self.history_index += 1
        self.url = self.history[self.history_index]
        return object()

    async def wait_for_load_state(self, state="load", timeout=None):
        if state == "networkidle" and self.network_busy:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")
        return None

    async def evaluate(self, expression, arg=None):
        self.actions.append(("evaluate", expression, arg))
        result = self.js.get(expression)
        if isinstance(result, Exception):
            raise result
        if inspect.iscoroutinefunction(result):
            return await result()
        return result

    async def content(self):
        return self.html

    async def wait_for_function(self, expression, timeout=None):
        if not self.js.get(expression):
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")
        self.actions.append(("wait_for_function", expression))

    async def wait_for_event(self, event, predicate=None, timeout=None):
        for item in self.responses:
            if predicate is None or predicate(item):
                return item
        raise PlaywrightTimeoutError(
            f'Timeout {timeout}ms exceeded while waiting for event "{event}"'
        )

    async def screenshot(self, full_page=False, type="png"):
        self.screenshot_calls += 1
        if self.fail_screenshots:
            raise PlaywrightError("Target page, context or browser has been closed")
        return make_png()

    async def title(self):
        return "Fake App"


class FakeClosable:
    """Stand-in for a Browser or BrowserContext."""

    def __init__(self, log: list | None = None, name: str = "closable", fail: bool = False):
        self.log = log if log is not None else []
        self.name = name
        self.fail = fail
        self.closed = 0

    async def close(self):
        self.closed += 1
        self.log.append(f"close:{self.name}")
        if self.fail:
            raise RuntimeError(f"{self.name} close failed")


class FakeProcess(FakeEmitter):
    """Stand-in for ProcessHandle."""

    def __init__(self, pid: int = 4242):
        super().__init__()
        self.pid = pid
        self.returncode = None
        self.exited = False

    def output(self, stream, text):
        self.emit("output", stream, text)

    def exit(self, code=0):
        self.returncode = code
        self.exited = True
        self.emit("exit", code)

    async def wait(self):
        return self.returncode


class FakeEngine:
    """BrowserEngine stand-in handing out FakePages."""

    def __init__(self):
        self.pages: list[FakePage] = []
        self.stopped = False
        self.log: list[str] = []

    async def open_page(self, url, timeout=None):
        if url.startswith("http://unreachable"):
            raise PlaywrightError(f"net::ERR_CONNECTION_REFUSED at {url}")
        page = FakePage(url)
        self.pages.append(page)
        return FakeClosable(self.log, "browser"), FakeClosable(self.log, "context"), page

    async def connect_embedded(self, port, timeout=None):
        page = FakePage("app://index.html")
        self.pages.append(page)
        return FakeClosable(self.log, "cdp"), page

    async def stop(self):
        self.stopped = True


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def page():
    return FakePage()


@pytest.fixture
def png():
    return make_png()