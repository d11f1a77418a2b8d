# stage_hand/step_executor.py
import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import List, Optional

from config.config import DEFAULT_TIMINGS, RunOptions, Timings
from parser import contract
from parser.dsl_models import TestableStep
from parser.statuses import RequirementStatus, SkipReason, StepState
from requirements.resolver import RequirementsResolver
from runner.classification import classify
from stage_hand.artifact_store import ArtifactCollector
from stage_hand.guided_engine import GuidedEngine
from stage_hand.polling import elapsed_ms, poll_until
from stage_hand.result import (
    ArtifactPaths,
    FailedResult,
    PassedResult,
    SkippedResult,
    StepTestResult,
)

logger = logging.getLogger(__name__)


def calculate_step_timeout(step: TestableStep, timings: Timings = DEFAULT_TIMINGS) -> int:
    timeout = timings.step_timeout
    if step.is_guided and step.guided_step_count:
        return timeout + step.guided_step_count * timings.guided_substep_surcharge
    if step.is_multistep and step.internal_action_count > 0:
        return timeout + step.internal_action_count * timings.multistep_action_surcharge
    return timeout


@dataclass
class _StepRun:
    step: TestableStep
    started: float
    console_errors: List[str]
    pre_screenshot: Optional[str] = None
    url_before: Optional[str] = None


def _with_pre(artifacts: Optional[ArtifactPaths], pre_screenshot: Optional[str]) -> Optional[ArtifactPaths]:
    if not pre_screenshot:
        return artifacts
    if artifacts is None:
        return ArtifactPaths(screenshot_pre=pre_screenshot)
    return dataclasses.replace(artifacts, screenshot_pre=pre_screenshot)


class StepExecutor:
    """Takes one discovered step from idle to passed, failed or skipped."""

    def __init__(self, options: Optional[RunOptions] = None):
        self.options = options or RunOptions()
        self.timings = self.options.timings
        self.resolver = RequirementsResolver(self.options.max_fix_attempts, self.timings)
        self.guided = GuidedEngine(self.timings)
        self.artifacts = ArtifactCollector(self.options.artifacts_dir) if self.options.artifacts_dir else None

    async def execute(self, page, step: TestableStep) -> StepTestResult:
        with page.console_errors() as console_errors:
            run = _StepRun(step=step, started=time.monotonic(), console_errors=console_errors)
            try:
                return await self._drive(page, run)
            except Exception as e:
                message = str(e) or type(e).__name__
                logger.error(f"❌ Step {step.step_id} failed: {message}")
                return await self._failed(page, run, message)

    # ─────────── outcomes ───────────

    def _common(self, page, run: _StepRun) -> dict:
        return dict(
            step_id=run.step.step_id,
            duration_ms=elapsed_ms(run.started),
            current_url=page.url,
            skippable=run.step.skippable,
            console_errors=list(run.console_errors),
        )

    def _skipped(self, page, run: _StepRun, reason: SkipReason) -> SkippedResult:
        logger.info(f"⊘ Step {run.step.step_id} skipped ({reason.value})")
        return SkippedResult(reason=reason, **self._common(page, run))

    async def _passed(self, page, run: _StepRun) -> PassedResult:
        artifacts = None
        if self.artifacts and self.options.always_screenshot:
            artifacts = await self.artifacts.on_success(page, run.step.step_id)
        return PassedResult(step_artifacts=_with_pre(artifacts, run.pre_screenshot), **self._common(page, run))

    async def _failed(self, page, run: _StepRun, message: str) -> FailedResult:
        artifacts = None
        if self.artifacts:
            artifacts = await self.artifacts.on_failure(page, run.step.step_id, list(run.console_errors))
            artifacts = _with_pre(artifacts, run.pre_screenshot)
            if artifacts:
                logger.info(f"📸 Artifacts for {run.step.step_id} written to {self.options.artifacts_dir}")
        return FailedResult(
            message=message,
            error_class=classify(message),
            step_artifacts=artifacts,
            **self._common(page, run),
        )

    # ─────────── flow ───────────

    async def _drive(self, page, run: _StepRun) -> StepTestResult:
        step = run.step
        timeout = self.options.timeout_ms or calculate_step_timeout(step, self.timings)

        if step.is_pre_completed:
            return self._skipped(page, run, SkipReason.PRE_COMPLETED)

        try:
            await page.scroll_step_into_view(step.step_id)
        except Exception as e:
            logger.debug(f"scroll into view failed for {step.step_id}: {e}")
        await page.wait(self.timings.scroll_settle)

        if self.artifacts and self.options.always_screenshot:
            run.pre_screenshot = await self.artifacts.pre_step(page, step.step_id)

        requirements, fix_result = await self.resolver.resolve(page, step)
        if not requirements.requirements_met and requirements.status == RequirementStatus.UNMET:
            if step.skippable:
                return self._skipped(page, run, SkipReason.REQUIREMENTS_UNMET)
            if fix_result is not None and not fix_result.success:
                message = (
                    f"Requirements not met after {fix_result.total_attempts} fix attempt(s): "
                    f"{fix_result.failure_reason or 'unknown reason'}"
                )
                logger.error(f"❌ Step {step.step_id}: {message}")
                return await self._failed(page, run, message)
            logger.warning(f"⚠ Step {step.step_id} has unmet requirements and no fix, trying anyway")

        do_it = contract.do_it_button(step.step_id)
        if not await page.wait_attached(do_it, self.timings.control_appear_timeout):
            return self._skipped(page, run, SkipReason.NO_ACTION_CONTROL)

        if await page.is_visible(contract.step_completed(step.step_id)):
            logger.info(f"✓ Step {step.step_id} already satisfied before clicking")
            return await self._passed(page, run)

        await self._click_action_control(page, run, do_it)
        await page.wait(self.timings.post_click_settle)

        if step.is_guided:
            await self.guided.wait_for_executing(page, step)
            await self.guided.run(page, step)
        elif page.url != run.url_before and await page.count(step.test_id) == 0:
            logger.info(f"✓ Step {step.step_id} completed by navigation")
            return await self._passed(page, run)

        await self._wait_for_completion(page, run, timeout)
        return await self._passed(page, run)

    async def _click_action_control(self, page, run: _StepRun, do_it: str) -> None:
        async def _enabled():
            return await page.is_enabled(do_it)

        enable_timeout = self.timings.control_enable_timeout
        if not await poll_until(page, _enabled, enable_timeout, self.timings.completion_poll_interval):
            raise TimeoutError(
                f"Timed out waiting for action control of step {run.step.step_id} to become enabled after {enable_timeout}ms"
            )

        run.url_before = page.url
        await page.click(do_it, enable_timeout)
        logger.debug(f"   → clicked action control for {run.step.step_id}")

    async def _wait_for_completion(self, page, run: _StepRun, timeout: int) -> None:
        step = run.step

        async def _completed():
            if await page.is_visible(contract.step_completed(step.step_id)):
                return True
            if step.is_guided:
                state = StepState.parse(await page.step_attribute(step.step_id, contract.ATTR_STEP_STATE))
                if state in (StepState.ERROR, StepState.CANCELLED):
                    raise RuntimeError(f"Guided step {step.step_id} entered '{state.value}' state")
                if state == StepState.COMPLETED:
                    return True
            # the step may unmount when its action navigates away
            return page.url != run.url_before and await page.count(step.test_id) == 0

        if not await poll_until(page, _completed, timeout, self.timings.completion_poll_interval):
            raise TimeoutError(f"Timed out after {timeout}ms waiting for step {step.step_id} to complete")
