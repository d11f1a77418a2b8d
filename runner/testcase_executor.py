# runner/testcase_executor.py
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from config.config import RunOptions, Settings
from parser.dsl_models import StepDiscoveryResult
from parser.guide_loader import LoadedGuide
from parser.statuses import ExitCode
from parser.step_discovery import discover, log_discovery_results
from runner import reporter
from runner.orchestrator import RunOrchestrator
from runner.session import (
    AUTH_VALID,
    HOST_REACHABLE,
    PreflightResult,
    SessionValidator,
    format_preflight_results,
    run_preflight_checks,
)
from stage_hand.result import AllStepsResult, RunSummary
from stage_hand.stagehand_runner import guide_session, open_guide

logger = logging.getLogger(__name__)

_PREFLIGHT_EXIT_CODES = {
    HOST_REACHABLE: ExitCode.HOST_UNREACHABLE,
    AUTH_VALID: ExitCode.AUTH_FAILURE,
}


@dataclass
class GuideRunReport:
    exit_code: ExitCode
    message: Optional[str] = None
    preflight: Optional[PreflightResult] = None
    discovery: Optional[StepDiscoveryResult] = None
    outcome: Optional[AllStepsResult] = None
    summary: Optional[RunSummary] = None
    guide: Optional[LoadedGuide] = None
    started_at: Optional[str] = None


def write_abort_file(path: str, outcome: AllStepsResult) -> None:
    data = {
        "abortReason": outcome.abort_reason.value if outcome.abort_reason else None,
        "message": outcome.abort_message,
    }
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f)
    except OSError as e:
        logger.warning(f"⚠ Could not write abort file {path}: {e}")


class GuideTestExecutor:
    """Pre-flight → open guide → discovery → run → summary, for one guide."""

    def __init__(
        self,
        settings: Settings,
        options: Optional[RunOptions] = None,
        skip_preflight: bool = False,
        abort_file: Optional[str] = None,
    ):
        self.settings = settings
        self.options = options or RunOptions()
        self.skip_preflight = skip_preflight
        self.abort_file = abort_file

    async def execute(self, page, guide: Optional[LoadedGuide] = None) -> GuideRunReport:
        report = GuideRunReport(
            exit_code=ExitCode.SUCCESS,
            guide=guide,
            started_at=datetime.now(timezone.utc).isoformat(),
        )

        if not self.skip_preflight:
            report.preflight = await run_preflight_checks(
                page,
                self.settings.base_url,
                plugin_id=self.settings.plugin_id,
                check_path=self.settings.session_check_path,
                timings=self.options.timings,
            )
            reporter.print_preflight_checks(report.preflight.checks)
            if self.options.verbose:
                print(format_preflight_results(report.preflight, verbose=True))
            if not report.preflight.success:
                failed = report.preflight.failed_check
                report.exit_code = _PREFLIGHT_EXIT_CODES.get(failed.name, ExitCode.CONFIGURATION_ERROR)
                report.message = report.preflight.abort_reason
                return report

        if not await open_guide(page, self.settings.base_url, guide):
            report.exit_code = ExitCode.TEST_FAILURE
            report.message = "Guide did not render any interactive step"
            return report

        report.discovery = await discover(page)
        log_discovery_results(report.discovery, self.options.verbose)
        if report.discovery.total_steps == 0:
            report.exit_code = ExitCode.TEST_FAILURE
            report.message = "No interactive steps discovered"
            return report

        reporter.print_header(guide.title if guide else page.url)
        reporter.print_discovery(report.discovery)

        if self.options.on_step_complete is None:
            self.options.on_step_complete = reporter.create_progress_callback()

        validator = SessionValidator(self.settings.base_url, self.settings.session_check_path, self.options.timings)
        report.outcome = await RunOrchestrator(validator).run_all(page, report.discovery.steps, self.options)
        report.summary = reporter.print_summary(report.outcome, self.options.verbose)
        report.exit_code = reporter.exit_code_for(report.outcome)
        report.message = report.outcome.abort_message

        if report.outcome.aborted and self.abort_file:
            write_abort_file(self.abort_file, report.outcome)

        if report.exit_code == ExitCode.SUCCESS:
            logger.info("✅ Guide passed")
        else:
            logger.error(f"❌ Guide failed ({report.exit_code.name})")
        return report

    async def run(self, guide: Optional[LoadedGuide] = None) -> GuideRunReport:
        async with guide_session(self.settings) as page:
            return await self.execute(page, guide)

    async def run_guides(self, guides: Sequence[Optional[LoadedGuide]]) -> List[GuideRunReport]:
        """One browser session per guide, in the order given."""
        reports = []
        for guide in guides:
            if len(guides) > 1:
                print(f"\n📚 Testing: {guide.path}")
            report = await self.run(guide)
            if len(guides) > 1:
                outcome = "✅ Passed" if report.exit_code == ExitCode.SUCCESS else f"❌ Failed ({report.exit_code.name})"
                print(f"   {outcome}")
            reports.append(report)
        return reports


def overall_exit_code(reports: Sequence[GuideRunReport]) -> ExitCode:
    """First non-success code across guides, else SUCCESS."""
    for report in reports:
        if report.exit_code != ExitCode.SUCCESS:
            return report.exit_code
    return ExitCode.SUCCESS
