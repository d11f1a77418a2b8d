# tests/fakes.py
import asyncio
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from parser import contract


class FakeElement:
    def __init__(self, visible=True, enabled=True, text=None, attrs=None, children=(), section=None):
        self.visible = visible
        self.enabled = enabled
        self.text = text
        self.attrs = dict(attrs or {})
        self.children = set(children)
        self.section = section
        self.detached = False


class FakeGuidePage:
    """
    In-memory stand-in for GuidePage.

    Elements are keyed by test id. Clicks run the callback registered in
    `on_click`; `on_wait` callbacks run on every wait so a test can script
    changes over time.
    """

    def __init__(self, url: str = "http://localhost:3000/"):
        self.url = url
        self.elements: Dict[str, FakeElement] = {}
        # step elements in document order; None stands for an element without a test id
        self.step_order: List[Optional[FakeElement]] = []
        self.on_click: Dict[str, Callable] = {}
        self.on_wait: List[Callable] = []

        self.prompt: Optional[Dict[str, str]] = None
        # accessible names of the buttons the prompt renders, in DOM order
        self.prompt_buttons: List[str] = []
        self.on_prompt_click: Dict[str, Callable] = {}

        self.on_target_click: Dict[str, Callable] = {}
        self.on_fill: Dict[str, Callable] = {}
        self.hovered: List[str] = []
        self.filled: List[Tuple[str, str]] = []

        self.responses: Dict[str, object] = {}
        self.clicks: List[str] = []
        self.evaluated: List[Tuple[str, object]] = []
        self.visited: List[str] = []
        self.screenshot_error: Optional[Exception] = None
        self.html = "<html><body>guide</body></html>"

        self._console_sinks: List[List[str]] = []

    # ─────────── scripting helpers ───────────

    def add_step(
        self,
        step_id: str,
        action: Optional[str] = None,
        do_it: bool = True,
        enabled: bool = True,
        completed: bool = False,
        skip: bool = False,
        section: Optional[str] = None,
        completes_on_click: bool = True,
        attrs: Optional[dict] = None,
    ) -> None:
        step_attrs = dict(attrs or {})
        if action is not None:
            step_attrs[contract.ATTR_TARGET_ACTION] = action
        step_attrs[contract.ATTR_TEST_ID] = contract.step(step_id)
        element = FakeElement(attrs=step_attrs, section=section)
        self.elements[contract.step(step_id)] = element
        self.step_order.append(element)

        if do_it:
            self.elements[contract.do_it_button(step_id)] = FakeElement(enabled=enabled)
            if completes_on_click:
                self.on_click[contract.do_it_button(step_id)] = lambda page: page.complete(step_id)
        if completed:
            self.complete(step_id)
        if skip:
            self.elements[contract.skip_button(step_id)] = FakeElement()

    def complete(self, step_id: str) -> None:
        self.elements[contract.step_completed(step_id)] = FakeElement()

    def remove(self, test_id: str) -> None:
        element = self.elements.pop(test_id, None)
        if element:
            element.detached = True

    def set_step_attr(self, step_id: str, name: str, value: Optional[str]) -> None:
        attrs = self.elements[contract.step(step_id)].attrs
        if value is None:
            attrs.pop(name, None)
        else:
            attrs[name] = value

    def emit_console_error(self, text: str) -> None:
        for sink in self._console_sinks:
            sink.append(text)

    @property
    def console_listener_count(self) -> int:
        return len(self._console_sinks)

    # ─────────── GuidePage surface ───────────

    async def wait(self, ms: int) -> None:
        for callback in list(self.on_wait):
            callback(self)
        await asyncio.sleep(ms / 1000)

    async def wait_for_idle(self, timeout_ms: int) -> None:
        await asyncio.sleep(0)

    async def goto(self, url: str) -> None:
        self.visited.append(url)
        self.url = url

    async def evaluate(self, script: str, arg=None):
        self.evaluated.append((script, arg))
        return None

    async def wait_for_first_step(self, timeout_ms: int) -> bool:
        return bool(self.step_order)

    async def step_elements(self) -> List[FakeElement]:
        return [el or FakeElement() for el in self.step_order if el is None or not el.detached]

    async def element_attribute(self, element: FakeElement, name: str) -> Optional[str]:
        return element.attrs.get(name)

    async def element_section_id(self, element: FakeElement) -> Optional[str]:
        return element.section

    async def scroll_element_into_view(self, element: FakeElement) -> None:
        await asyncio.sleep(0)

    async def step_attribute(self, step_id: str, name: str) -> Optional[str]:
        element = self.elements.get(contract.step(step_id))
        return element.attrs.get(name) if element else None

    async def scroll_step_into_view(self, step_id: str) -> None:
        await asyncio.sleep(0)

    async def count(self, test_id: str) -> int:
        return 1 if test_id in self.elements else 0

    async def is_visible(self, test_id: str) -> bool:
        element = self.elements.get(test_id)
        return bool(element and element.visible)

    async def is_enabled(self, test_id: str) -> bool:
        element = self.elements.get(test_id)
        return bool(element and element.enabled)

    async def text_of(self, test_id: str) -> Optional[str]:
        element = self.elements.get(test_id)
        return element.text if element else None

    async def contains(self, test_id: str, selector: str) -> bool:
        element = self.elements.get(test_id)
        return bool(element and selector in element.children)

    async def click(self, test_id: str, timeout_ms: int) -> None:
        if test_id not in self.elements:
            raise TimeoutError(f"Timeout {timeout_ms}ms exceeded waiting for {test_id}")
        self.clicks.append(test_id)
        callback = self.on_click.get(test_id)
        if callback:
            callback(self)

    async def wait_attached(self, test_id: str, timeout_ms: int) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        while test_id not in self.elements:
            if loop.time() >= deadline:
                return False
            await self.wait(1)
        return True

    async def prompt_visible(self) -> bool:
        return self.prompt is not None

    async def prompt_attribute(self, name: str) -> Optional[str]:
        return self.prompt.get(name) if self.prompt else None

    def _prompt_button(self, name) -> Optional[str]:
        if self.prompt is None:
            return None
        for label in self.prompt_buttons:
            matched = name.search(label) if hasattr(name, "search") else label == name
            if matched:
                return label
        return None

    async def prompt_has_control(self, name) -> bool:
        return self._prompt_button(name) is not None

    async def click_prompt_control(self, name, timeout_ms: int) -> None:
        label = self._prompt_button(name)
        if label is None:
            raise TimeoutError(f"Timeout {timeout_ms}ms exceeded waiting for prompt button {name}")
        self.clicks.append(label)
        callback = self.on_prompt_click.get(label)
        if callback:
            callback(self)

    async def click_target(self, ref_target: str, by_role: bool, timeout_ms: int) -> None:
        if ref_target not in self.on_target_click:
            raise RuntimeError(f"Target element not found: {ref_target}")
        self.clicks.append(ref_target)
        self.on_target_click[ref_target](self)

    async def hover_target(self, ref_target: str, timeout_ms: int) -> None:
        self.hovered.append(ref_target)

    async def fill_target(self, ref_target: str, value: str, timeout_ms: int) -> None:
        self.filled.append((ref_target, value))
        callback = self.on_fill.get(ref_target)
        if callback:
            callback(self, value)

    async def screenshot(self, path: str) -> None:
        if self.screenshot_error:
            raise self.screenshot_error
        Path(path).write_bytes(b"\x89PNG")

    async def content(self) -> str:
        return self.html

    @contextmanager
    def console_errors(self):
        sink: List[str] = []
        self._console_sinks.append(sink)
        try:
            yield sink
        finally:
            self._console_sinks.remove(sink)

    async def get_json(self, url: str, timeout_ms: int):
        response = self.responses.get(url, (200, {}))
        if isinstance(response, Exception):
            raise response
        return response
