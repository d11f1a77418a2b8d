# stage_hand/guide_page.py
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Pattern, Tuple, Union

from playwright.async_api import Error as PWError
from playwright.async_api import TimeoutError as PWTimeoutError

from parser import contract

logger = logging.getLogger(__name__)


class GuidePage:
    """
    Read/act surface the engine needs from a rendered guide.

    Wraps a Playwright page (or the Stagehand page proxying one). Every read
    is a one-shot query; callers build waits on top of them with
    stage_hand.polling.poll_until.
    """

    def __init__(self, page):
        self.page = page

    @property
    def url(self) -> str:
        return self.page.url

    async def wait(self, ms: int) -> None:
        await self.page.wait_for_timeout(ms)

    async def wait_for_idle(self, timeout_ms: int) -> None:
        try:
            await self.page.wait_for_load_state("networkidle", timeout=timeout_ms)
        except PWTimeoutError:
            logger.debug("Network idle not reached within %sms, continuing", timeout_ms)

    async def goto(self, url: str) -> None:
        await self.page.goto(url)

    async def evaluate(self, script: str, arg=None):
        return await self.page.evaluate(script, arg)

    async def wait_for_first_step(self, timeout_ms: int) -> bool:
        try:
            await self.page.locator(contract.STEP_SELECTOR).first.wait_for(state="visible", timeout=timeout_ms)
            return True
        except PWTimeoutError:
            return False

    # ─────────── step elements ───────────

    async def step_elements(self) -> list:
        return await self.page.locator(contract.STEP_SELECTOR).all()

    async def element_attribute(self, element, name: str) -> Optional[str]:
        return await element.get_attribute(name)

    async def element_section_id(self, element) -> Optional[str]:
        test_id = await element.evaluate(
            "(el, sel) => el.closest(sel)?.getAttribute('data-testid') ?? null",
            contract.SECTION_SELECTOR,
        )
        if not test_id:
            return None
        return contract.strip_prefix(test_id, contract.SECTION_TESTID_PREFIX)

    async def scroll_element_into_view(self, element) -> None:
        await element.scroll_into_view_if_needed()

    async def step_attribute(self, step_id: str, name: str) -> Optional[str]:
        loc = self.page.get_by_test_id(contract.step(step_id))
        if await loc.count() == 0:
            return None
        return await loc.first.get_attribute(name)

    async def scroll_step_into_view(self, step_id: str) -> None:
        await self.page.get_by_test_id(contract.step(step_id)).first.scroll_into_view_if_needed()

    # ─────────── controls by test id ───────────

    async def count(self, test_id: str) -> int:
        return await self.page.get_by_test_id(test_id).count()

    async def is_visible(self, test_id: str) -> bool:
        loc = self.page.get_by_test_id(test_id)
        if await loc.count() == 0:
            return False
        return await loc.first.is_visible()

    async def is_enabled(self, test_id: str) -> bool:
        loc = self.page.get_by_test_id(test_id)
        if await loc.count() == 0:
            return False
        return await loc.first.is_enabled()

    async def text_of(self, test_id: str) -> Optional[str]:
        loc = self.page.get_by_test_id(test_id)
        if await loc.count() == 0:
            return None
        return await loc.first.text_content()

    async def contains(self, test_id: str, selector: str) -> bool:
        return await self.page.get_by_test_id(test_id).locator(selector).count() > 0

    async def click(self, test_id: str, timeout_ms: int) -> None:
        await self.page.get_by_test_id(test_id).first.click(timeout=timeout_ms)

    async def wait_attached(self, test_id: str, timeout_ms: int) -> bool:
        try:
            await self.page.get_by_test_id(test_id).first.wait_for(state="attached", timeout=timeout_ms)
            return True
        except PWTimeoutError:
            return False

    # ─────────── guided prompt ───────────

    async def prompt_visible(self) -> bool:
        loc = self.page.locator(contract.PROMPT_SELECTOR)
        if await loc.count() == 0:
            return False
        return await loc.first.is_visible()

    async def prompt_attribute(self, name: str) -> Optional[str]:
        loc = self.page.locator(contract.PROMPT_SELECTOR)
        if await loc.count() == 0:
            return None
        return await loc.first.get_attribute(name)

    def _prompt_button(self, name: Union[str, Pattern[str]]):
        return self.page.locator(contract.PROMPT_SELECTOR).get_by_role("button", name=name, exact=True)

    async def prompt_has_control(self, name: Union[str, Pattern[str]]) -> bool:
        return await self._prompt_button(name).count() > 0

    async def click_prompt_control(self, name: Union[str, Pattern[str]], timeout_ms: int) -> None:
        await self._prompt_button(name).first.click(timeout=timeout_ms)

    # ─────────── guided targets ───────────

    async def _resolve_target(self, ref_target: str, by_role: bool):
        if by_role:
            by_name = self.page.get_by_role("button", name=ref_target)
            if await by_name.count() > 0:
                return by_name.first
        try:
            loc = self.page.locator(ref_target)
            if await loc.count() > 0:
                return loc.first
        except PWError as e:
            logger.debug(f"Selector lookup failed for '{ref_target}': {e}")
        raise RuntimeError(f"Target element not found: {ref_target}")

    async def click_target(self, ref_target: str, by_role: bool, timeout_ms: int) -> None:
        target = await self._resolve_target(ref_target, by_role)
        await target.click(timeout=timeout_ms)

    async def hover_target(self, ref_target: str, timeout_ms: int) -> None:
        target = await self._resolve_target(ref_target, by_role=False)
        await target.hover(timeout=timeout_ms)

    async def fill_target(self, ref_target: str, value: str, timeout_ms: int) -> None:
        target = await self._resolve_target(ref_target, by_role=False)
        await target.fill(value, timeout=timeout_ms)

    # ─────────── diagnostics ───────────

    async def screenshot(self, path: str) -> None:
        await self.page.screenshot(path=path, full_page=False)

    async def content(self) -> str:
        return await self.page.content()

    @contextmanager
    def console_errors(self) -> Iterator[List[str]]:
        """Collect console.error() output while the block runs."""
        errors: List[str] = []

        def _on_console(msg):
            if msg.type == "error":
                errors.append(msg.text)

        self.page.on("console", _on_console)
        try:
            yield errors
        finally:
            self.page.remove_listener("console", _on_console)

    async def get_json(self, url: str, timeout_ms: int) -> Tuple[int, Optional[dict]]:
        response = await self.page.request.get(url, timeout=timeout_ms)
        body = None
        if response.ok:
            try:
                body = await response.json()
            except (PWError, ValueError):
                body = None
        return response.status, body
