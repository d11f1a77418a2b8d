import asyncio
import dataclasses
import os

from parser import contract
from parser.dsl_models import TestableStep
from parser.statuses import AbortReason, ErrorClassification, SkipReason, StepStatus
from parser.step_discovery import discover
from runner.orchestrator import RunOrchestrator
from runner.session import SessionValidator


class ScriptedValidator:
    def __init__(self, answers=None):
        self.answers = list(answers or [])
        self.calls = 0

    async def is_valid(self, page):
        self.calls += 1
        return self.answers.pop(0) if self.answers else True


def _statuses(outcome):
    return [r.status for r in outcome.results]


def test_three_step_guide(page, options):
    page.add_step("welcome", completed=True)
    page.add_step("tour", completes_on_click=False, attrs={contract.ATTR_SUBSTEP_TOTAL: "2"})
    page.add_step("run-query")

    def _start_tour(p):
        p.set_step_attr("tour", contract.ATTR_STEP_STATE, "executing")
        p.set_step_attr("tour", contract.ATTR_SUBSTEP_INDEX, "0")
        p.prompt = {contract.ATTR_PROMPT_ACTION: "noop"}
        p.prompt_buttons = ["Continue →", "Skip"]

    def _continue(p):
        p.set_step_attr("tour", contract.ATTR_SUBSTEP_INDEX, "1")
        p.prompt = {contract.ATTR_PROMPT_ACTION: "button", contract.ATTR_PROMPT_REF_TARGET: "Explore"}

    def _explored(p):
        p.set_step_attr("tour", contract.ATTR_STEP_STATE, "completed")
        p.set_step_attr("tour", contract.ATTR_SUBSTEP_INDEX, "2")
        p.prompt = None
        p.complete("tour")

    page.on_click[contract.do_it_button("tour")] = _start_tour
    page.on_prompt_click["Continue →"] = _continue
    page.on_target_click["Explore"] = _explored

    async def _scenario():
        discovery = await discover(page)
        outcome = await RunOrchestrator(SessionValidator("http://localhost:3000")).run_all(
            page, discovery.steps, options
        )
        return discovery, outcome

    discovery, outcome = asyncio.run(_scenario())

    assert discovery.total_steps == 3
    assert discovery.pre_completed_count == 1
    assert discovery.steps[1].is_guided is True
    assert discovery.steps[1].guided_step_count == 2
    assert _statuses(outcome) == [StepStatus.SKIPPED, StepStatus.PASSED, StepStatus.PASSED]
    assert outcome.results[0].skip_reason == SkipReason.PRE_COMPLETED
    assert page.clicks.count("Continue →") == 1
    assert "Explore" in page.clicks
    assert outcome.aborted is False
    assert outcome.abort_reason is None


def test_mandatory_failure_aborts_the_rest(page, options):
    page.add_step("s1", completes_on_click=False)
    page.add_step("s2")
    page.add_step("s3")
    steps = [TestableStep("s1", 0), TestableStep("s2", 1), TestableStep("s3", 2)]

    outcome = asyncio.run(RunOrchestrator(ScriptedValidator()).run_all(page, steps, options))

    assert _statuses(outcome) == [StepStatus.FAILED, StepStatus.NOT_REACHED, StepStatus.NOT_REACHED]
    assert outcome.aborted is True
    assert outcome.abort_reason == AbortReason.MANDATORY_FAILURE
    assert outcome.abort_message.startswith("Mandatory step s1 failed: ")
    assert outcome.results[1].classification is None
    assert contract.do_it_button("s2") not in page.clicks


def test_skippable_failure_continues(page, options):
    page.add_step("s1", completes_on_click=False, skip=True)
    page.add_step("s2")
    steps = [TestableStep("s1", 0, skippable=True), TestableStep("s2", 1)]

    outcome = asyncio.run(RunOrchestrator(ScriptedValidator()).run_all(page, steps, options))

    assert _statuses(outcome) == [StepStatus.FAILED, StepStatus.PASSED]
    assert outcome.aborted is False


def test_continue_on_mandatory_failure_when_disabled(page, options):
    options = dataclasses.replace(options, stop_on_mandatory_failure=False)
    page.add_step("s1", completes_on_click=False)
    page.add_step("s2")
    steps = [TestableStep("s1", 0), TestableStep("s2", 1)]

    outcome = asyncio.run(RunOrchestrator(ScriptedValidator()).run_all(page, steps, options))

    assert _statuses(outcome) == [StepStatus.FAILED, StepStatus.PASSED]
    assert outcome.aborted is False


def test_session_expiry_marks_current_and_remaining_not_reached(page, options):
    options = dataclasses.replace(options, session_check_interval=2)
    steps = []
    for i in range(4):
        page.add_step(f"s{i}")
        steps.append(TestableStep(f"s{i}", i))

    validator = ScriptedValidator([True, False])
    outcome = asyncio.run(RunOrchestrator(validator).run_all(page, steps, options))

    assert _statuses(outcome) == [
        StepStatus.PASSED,
        StepStatus.PASSED,
        StepStatus.NOT_REACHED,
        StepStatus.NOT_REACHED,
    ]
    assert outcome.aborted is True
    assert outcome.abort_reason == AbortReason.AUTH_EXPIRED
    assert outcome.abort_message == "Session expired mid-test"
    assert [r.classification for r in outcome.results[2:]] == [ErrorClassification.INFRASTRUCTURE] * 2
    assert outcome.results[0].classification is None
    assert validator.calls == 2


def test_expired_session_at_start_runs_nothing(page, options):
    page.add_step("s1")
    page.responses["http://localhost:3000/api/user"] = (401, None)

    outcome = asyncio.run(
        RunOrchestrator(SessionValidator("http://localhost:3000")).run_all(page, [TestableStep("s1", 0)], options)
    )

    assert _statuses(outcome) == [StepStatus.NOT_REACHED]
    assert outcome.abort_reason == AbortReason.AUTH_EXPIRED
    assert page.clicks == []


def test_session_checked_every_interval(page, options):
    options = dataclasses.replace(options, session_check_interval=2)
    steps = []
    for i in range(5):
        page.add_step(f"s{i}")
        steps.append(TestableStep(f"s{i}", i))

    validator = ScriptedValidator()
    outcome = asyncio.run(RunOrchestrator(validator).run_all(page, steps, options))

    assert len(outcome.results) == 5
    assert validator.calls == 3


def test_progress_callback_sees_every_executed_step(page, options):
    seen = []
    options = dataclasses.replace(options, on_step_complete=lambda r, i, total: seen.append((r.step_id, i, total)))
    page.add_step("s1", completes_on_click=False)
    page.add_step("s2")
    steps = [TestableStep("s1", 0), TestableStep("s2", 1)]

    outcome = asyncio.run(RunOrchestrator(ScriptedValidator()).run_all(page, steps, options))

    assert len(outcome.results) == 2
    assert seen == [("s1", 0, 2)]


def test_final_screenshot(page, options, tmp_path):
    options = dataclasses.replace(options, artifacts_dir=str(tmp_path), always_screenshot=True)
    page.add_step("s1")

    outcome = asyncio.run(RunOrchestrator(ScriptedValidator()).run_all(page, [TestableStep("s1", 0)], options))

    assert outcome.final_screenshot == str(tmp_path / "execution-final.png")
    assert os.path.exists(outcome.final_screenshot)
