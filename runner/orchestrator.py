# runner/orchestrator.py
import logging
from typing import List, Optional

from config.config import RunOptions
from parser.dsl_models import TestableStep
from parser.statuses import AbortReason, ErrorClassification, StepStatus
from runner.session import SessionValidator
from stage_hand.artifact_store import ArtifactCollector
from stage_hand.result import AllStepsResult, NotReachedResult
from stage_hand.step_executor import StepExecutor

logger = logging.getLogger(__name__)


class RunOrchestrator:

    def __init__(self, session_validator: SessionValidator, executor: Optional[StepExecutor] = None):
        """
        session_validator → checked every `session_check_interval` steps
        executor          → StepExecutor; built from the run options when omitted
        """
        self.session_validator = session_validator
        self.executor = executor

    def _not_reached(self, page, step: TestableStep, classification=None) -> NotReachedResult:
        return NotReachedResult(
            step_id=step.step_id,
            duration_ms=0,
            current_url=page.url,
            skippable=step.skippable,
            abort_class=classification,
        )

    async def run_all(self, page, steps: List[TestableStep], options: Optional[RunOptions] = None) -> AllStepsResult:
        options = options or RunOptions()
        executor = self.executor or StepExecutor(options)
        interval = max(1, options.session_check_interval)
        outcome = AllStepsResult()

        logger.info(f"🚀 Executing {len(steps)} steps (session check every {interval})")

        for i, step in enumerate(steps):
            if outcome.aborted:
                outcome.results.append(self._not_reached(page, step))
                continue

            if i % interval == 0:
                logger.debug(f"🔐 Validating session before step {i + 1}")
                if not await self.session_validator.is_valid(page):
                    logger.error("❌ Session expired, aborting remaining steps")
                    outcome.aborted = True
                    outcome.abort_reason = AbortReason.AUTH_EXPIRED
                    outcome.abort_message = "Session expired mid-test"
                    outcome.results.extend(
                        self._not_reached(page, s, ErrorClassification.INFRASTRUCTURE) for s in steps[i:]
                    )
                    break

            logger.info(f"▶ [{i + 1}/{len(steps)}] {step.step_id}")
            result = await executor.execute(page, step)
            outcome.results.append(result)

            if options.on_step_complete:
                options.on_step_complete(result, i, len(steps))

            if result.status != StepStatus.FAILED:
                continue
            if step.skippable:
                logger.warning(f"⚠ Skippable step {step.step_id} failed, continuing")
            elif options.stop_on_mandatory_failure:
                logger.error(f"❌ Mandatory step {step.step_id} failed, aborting remaining steps")
                outcome.aborted = True
                outcome.abort_reason = AbortReason.MANDATORY_FAILURE
                outcome.abort_message = f"Mandatory step {step.step_id} failed: {result.error or 'unknown error'}"

        if options.artifacts_dir and options.always_screenshot:
            outcome.final_screenshot = await ArtifactCollector(options.artifacts_dir).final(page)

        return outcome
