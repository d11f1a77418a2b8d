# stage_hand/guided_engine.py
import logging
import time
from typing import Optional

from config.config import DEFAULT_TIMINGS, Timings
from parser import contract
from parser.dsl_models import TestableStep
from parser.statuses import StepState
from stage_hand.polling import elapsed_ms, poll_until
from stage_hand.substep_prompt import SubstepPrompt

logger = logging.getLogger(__name__)

FORM_VALID = "valid"
FORM_INVALID = "invalid"


class GuidedEngine:
    """
    Drives a guided step through its sub-steps.

    After the action control is clicked the step element reports
    `executing` and shows a prompt per sub-step. The engine performs what
    the prompt asks for and waits for the sub-step index to advance, until
    the step reports `completed` or the declared count is used up.
    """

    def __init__(self, timings: Timings = DEFAULT_TIMINGS):
        self.timings = timings

    async def state(self, page, step: TestableStep) -> Optional[StepState]:
        return StepState.parse(await page.step_attribute(step.step_id, contract.ATTR_STEP_STATE))

    async def substep_index(self, page, step: TestableStep) -> int:
        raw = await page.step_attribute(step.step_id, contract.ATTR_SUBSTEP_INDEX)
        try:
            return int(raw) if raw else 0
        except ValueError:
            return 0

    async def _step_gone(self, page, step: TestableStep) -> bool:
        return await page.count(step.test_id) == 0

    def _raise_on_failure(self, step: TestableStep, state: Optional[StepState]) -> None:
        if state in (StepState.ERROR, StepState.CANCELLED):
            raise RuntimeError(f"Guided step {step.step_id} entered '{state.value}' state")

    async def wait_for_executing(self, page, step: TestableStep) -> None:
        async def _started():
            return await self.state(page, step) in (
                StepState.EXECUTING,
                StepState.COMPLETED,
                StepState.ERROR,
                StepState.CANCELLED,
            )

        started = await poll_until(page, _started, self.timings.guided_executing_timeout, self.timings.guided_poll_interval)
        if not started:
            raise TimeoutError(
                f"Timed out waiting for guided step {step.step_id} to start executing "
                f"after {self.timings.guided_executing_timeout}ms"
            )
        self._raise_on_failure(step, await self.state(page, step))

    async def run(self, page, step: TestableStep) -> None:
        total = step.guided_step_count or 1
        logger.info(f"🧭 Guided step {step.step_id}: {total} sub-step(s)")

        while True:
            state = await self.state(page, step)
            self._raise_on_failure(step, state)
            if state != StepState.EXECUTING:
                return

            index = await self.substep_index(page, step)
            if index >= total:
                return

            prompt = await self._wait_for_prompt(page, step, index, total)
            if prompt is None:
                # step finished while waiting for the prompt
                return

            logger.debug(f"   → substep {index + 1}/{total}: {prompt.describe()}")
            if await self._perform(page, step, prompt):
                return

            await self._wait_for_advance(page, step, index)

    async def _wait_for_prompt(self, page, step: TestableStep, index: int, total: int) -> Optional[SubstepPrompt]:
        async def _ready():
            if await page.prompt_visible():
                return True
            return await self.state(page, step) != StepState.EXECUTING

        if not await poll_until(page, _ready, self.timings.guided_prompt_timeout, self.timings.guided_poll_interval):
            raise TimeoutError(
                f"Timed out waiting for guided prompt on step {step.step_id} "
                f"(substep {index + 1}/{total}) after {self.timings.guided_prompt_timeout}ms"
            )

        if not await page.prompt_visible():
            self._raise_on_failure(step, await self.state(page, step))
            return None
        return await SubstepPrompt.read(page)

    async def _perform(self, page, step: TestableStep, prompt: SubstepPrompt) -> bool:
        """Carry out one prompt. True when the step is already finished."""
        action = prompt.action

        if action == "noop":
            if prompt.has_continue_control:
                await page.click_prompt_control(contract.PROMPT_CONTINUE_LABEL, self.timings.guided_substep_timeout)
            return False

        if action in ("button", "highlight"):
            ref_target = self._require_target(step, prompt)
            url_before = page.url
            await page.click_target(ref_target, by_role=action == "button", timeout_ms=self.timings.guided_substep_timeout)
            if page.url != url_before:
                # navigation may remount or unmount the step
                await page.wait_for_idle(self.timings.guided_substep_timeout)
                if await self._step_gone(page, step):
                    return True
                return await self.state(page, step) == StepState.COMPLETED
            return False

        if action == "hover":
            await page.hover_target(self._require_target(step, prompt), self.timings.guided_substep_timeout)
            await page.wait(self.timings.hover_dwell)
            return False

        if action == "formfill":
            await self._fill(page, step, prompt)
            return False

        logger.warning(f"⚠ Unknown guided action '{action}' on step {step.step_id}")
        if prompt.has_continue_control:
            await page.click_prompt_control(contract.PROMPT_CONTINUE_LABEL, self.timings.guided_substep_timeout)
        return False

    def _require_target(self, step: TestableStep, prompt: SubstepPrompt) -> str:
        if not prompt.ref_target:
            raise RuntimeError(f"Guided {prompt.action} on step {step.step_id} has no target")
        return prompt.ref_target

    async def _fill_once(self, page, ref_target: str, value: str) -> Optional[str]:
        before = await page.prompt_attribute(contract.ATTR_PROMPT_FORM_STATE)
        await page.fill_target(ref_target, value, self.timings.guided_substep_timeout)
        await page.wait(self.timings.formfill_debounce)

        revalidated = False

        # a form state left over from before the fill is not a verdict
        async def _validated():
            nonlocal revalidated
            state = await page.prompt_attribute(contract.ATTR_PROMPT_FORM_STATE)
            if state != before:
                revalidated = True
            return revalidated and state in (FORM_VALID, FORM_INVALID)

        await poll_until(page, _validated, self.timings.formfill_validation_timeout, self.timings.guided_poll_interval)
        return await page.prompt_attribute(contract.ATTR_PROMPT_FORM_STATE)

    async def _fill(self, page, step: TestableStep, prompt: SubstepPrompt) -> None:
        ref_target = self._require_target(step, prompt)
        value = prompt.target_value or ""

        if await self._fill_once(page, ref_target, value) != FORM_INVALID:
            return

        logger.warning(f"⚠ Form value rejected on step {step.step_id}, filling again")
        if await self._fill_once(page, ref_target, value) == FORM_INVALID:
            raise RuntimeError(f"Form fill for '{ref_target}' on step {step.step_id} is still invalid after retry")

    async def _wait_for_advance(self, page, step: TestableStep, index: int) -> None:
        budget = self.timings.guided_substep_timeout
        skip_after = budget * self.timings.guided_skip_fraction
        started = time.monotonic()
        skip_clicked = False

        while True:
            state = await self.state(page, step)
            self._raise_on_failure(step, state)
            if state != StepState.EXECUTING or await self._step_gone(page, step):
                return
            if await self.substep_index(page, step) > index:
                return

            waited = elapsed_ms(started)
            if waited >= budget:
                raise TimeoutError(
                    f"Timed out waiting for guided step {step.step_id} to leave substep {index + 1} after {budget}ms"
                )

            if not skip_clicked and waited >= skip_after and await page.prompt_has_control(contract.PROMPT_SKIP_LABEL):
                logger.warning(f"⚠ Substep {index + 1} of {step.step_id} not advancing, using skip")
                await page.click_prompt_control(contract.PROMPT_SKIP_LABEL, self.timings.guided_substep_timeout)
                skip_clicked = True

            await page.wait(self.timings.guided_poll_interval)
