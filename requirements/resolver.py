# requirements/resolver.py
import logging
import time
from typing import Optional, Tuple

from config.config import DEFAULT_TIMINGS, MAX_FIX_ATTEMPTS, Timings
from parser import contract
from parser.dsl_models import TestableStep
from parser.statuses import FixKind, RequirementStatus
from requirements.detector import describe, detect_requirements, wait_for_requirements_check
from stage_hand.polling import elapsed_ms
from stage_hand.result import FixAttemptResult, FixResult, RequirementResult

logger = logging.getLogger(__name__)

NO_FIX_CONTROL = "No fix control available"
FIX_CLICK_FAILED = "Fix control click failed"
STILL_UNMET = "Requirements still not met after fix"


class RequirementsResolver:
    """
    Clicks a step's fix control until its requirements are met.
    Bounded by max_attempts; never raises for a failed attempt.
    """

    def __init__(self, max_attempts: int = MAX_FIX_ATTEMPTS, timings: Timings = DEFAULT_TIMINGS):
        self.max_attempts = max_attempts
        self.timings = timings

    async def click_fix_control(self, page, step: TestableStep, fix_kind: Optional[FixKind]) -> bool:
        fix_id = contract.requirement_fix_button(step.step_id)
        if await page.count(fix_id) == 0:
            return False

        try:
            await page.click(fix_id, self.timings.fix_timeout)
        except Exception as e:
            logger.warning(f"⚠ Fix click failed for step {step.step_id}: {e}")
            return False

        if fix_kind == FixKind.LOCATION:
            await page.wait(self.timings.location_fix_settle)
            await page.wait_for_idle(self.timings.fix_timeout // 2)
        else:
            await page.wait(self.timings.post_fix_settle)

        return await wait_for_requirements_check(page, step.step_id, self.timings)

    async def attempt_fix(self, page, step: TestableStep) -> FixResult:
        started = time.monotonic()
        attempts = []
        success = False
        final_status = RequirementStatus.UNMET
        failure_reason = None

        logger.info(f"🔧 Fixing requirements for {step.step_id} (max {self.max_attempts} attempts)")

        for attempt_number in range(1, self.max_attempts + 1):
            attempt_started = time.monotonic()
            current = await detect_requirements(page, step)

            if current.requirements_met:
                success = True
                final_status = RequirementStatus.MET
                attempts.append(FixAttemptResult(attempt_number, elapsed_ms(attempt_started), True, True))
                break

            if not current.has_fix_control:
                failure_reason = NO_FIX_CONTROL
                attempts.append(
                    FixAttemptResult(attempt_number, elapsed_ms(attempt_started), False, False, NO_FIX_CONTROL)
                )
                break

            logger.debug(f"   → fix attempt {attempt_number}/{self.max_attempts} ({current.fix_kind})")
            if not await self.click_fix_control(page, step, current.fix_kind):
                attempts.append(
                    FixAttemptResult(attempt_number, elapsed_ms(attempt_started), False, False, FIX_CLICK_FAILED)
                )
                continue

            after = await detect_requirements(page, step)
            if after.requirements_met:
                success = True
                final_status = RequirementStatus.MET
                attempts.append(FixAttemptResult(attempt_number, elapsed_ms(attempt_started), True, True))
                logger.info(f"✓ Fix applied for {step.step_id} on attempt {attempt_number}")
                break

            final_status = after.status
            attempts.append(FixAttemptResult(attempt_number, elapsed_ms(attempt_started), False, False, STILL_UNMET))

        if not success and failure_reason is None:
            failure_reason = f"Failed after {len(attempts)} fix attempts"
            logger.warning(f"⚠ {step.step_id}: {failure_reason}")

        return FixResult(
            success=success,
            attempts=attempts,
            total_duration_ms=elapsed_ms(started),
            final_status=final_status,
            failure_reason=failure_reason,
        )

    async def resolve(self, page, step: TestableStep) -> Tuple[RequirementResult, Optional[FixResult]]:
        await wait_for_requirements_check(page, step.step_id, self.timings)
        requirements = await detect_requirements(page, step)
        logger.debug(f"   {step.step_id}: {describe(requirements)}")

        if requirements.requirements_met:
            return requirements, None
        if requirements.status != RequirementStatus.UNMET or not requirements.has_fix_control:
            return requirements, None

        fix_result = await self.attempt_fix(page, step)
        return await detect_requirements(page, step), fix_result
