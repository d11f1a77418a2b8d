# runner/reporter.py
from typing import Callable, List, Optional

from parser.dsl_models import StepDiscoveryResult
from parser.statuses import AbortReason, ExitCode, SkipReason, StepStatus
from stage_hand.result import AllStepsResult, RunSummary, StepTestResult

BOX_WIDTH = 68

STATUS_ICONS = {
    StepStatus.PASSED: "✓",
    StepStatus.FAILED: "✗",
    StepStatus.SKIPPED: "⊘",
    StepStatus.NOT_REACHED: "○",
}

STATUS_SUFFIX = {
    StepStatus.FAILED: " - FAILED",
    StepStatus.SKIPPED: " - SKIPPED",
    StepStatus.NOT_REACHED: " - NOT REACHED",
}


def summarize_results(results: List[StepTestResult]) -> RunSummary:
    failed = [r for r in results if r.status == StepStatus.FAILED]
    return RunSummary(
        total=len(results),
        passed=sum(1 for r in results if r.status == StepStatus.PASSED),
        failed=len(failed),
        skipped=sum(1 for r in results if r.status == StepStatus.SKIPPED),
        not_reached=sum(1 for r in results if r.status == StepStatus.NOT_REACHED),
        mandatory_failed=sum(1 for r in failed if not r.skippable),
        skippable_failed=sum(1 for r in failed if r.skippable),
        total_duration_ms=sum(r.duration_ms for r in results),
    )


def exit_code_for(outcome: AllStepsResult) -> ExitCode:
    if outcome.abort_reason == AbortReason.AUTH_EXPIRED:
        return ExitCode.AUTH_FAILURE
    if summarize_results(outcome.results).success:
        return ExitCode.SUCCESS
    return ExitCode.TEST_FAILURE


def format_duration(duration_ms: int) -> str:
    if duration_ms >= 1000:
        return f"[{duration_ms / 1000:.1f}s]"
    return f"[{round(duration_ms)}ms]"


def _fit(text: str, width: int) -> str:
    if len(text) > width:
        return text[: width - 3] + "..."
    return text.ljust(width)


def format_skip_reason(reason: SkipReason, skippable: bool) -> str:
    note = " (skippable step)" if skippable else ""
    text = {
        SkipReason.PRE_COMPLETED: "already completed before execution",
        SkipReason.NO_ACTION_CONTROL: 'step has no "Do it" button',
        SkipReason.REQUIREMENTS_UNMET: "requirements not met",
    }.get(reason, reason.value)
    return text + note


def format_step_result(result: StepTestResult) -> List[str]:
    icon = STATUS_ICONS[result.status]
    duration = format_duration(result.duration_ms)
    prefix = f"  {icon} "
    text = result.step_id + STATUS_SUFFIX.get(result.status, "")

    lines = [prefix + _fit(text, BOX_WIDTH - len(prefix) - len(duration)) + duration]

    if result.status == StepStatus.SKIPPED and result.skip_reason:
        lines.append(f"    Reason: {format_skip_reason(result.skip_reason, result.skippable)}")

    if result.status == StepStatus.FAILED and result.error:
        max_len = BOX_WIDTH - 12
        error = result.error if len(result.error) <= max_len else result.error[: max_len - 3] + "..."
        lines.append(f"    Error: {error}")
        if result.classification:
            lines.append(f"    Class: {result.classification.value}")

    return lines


def print_step_result(result: StepTestResult) -> None:
    for line in format_step_result(result):
        print(line)


def print_header(guide_title: str) -> None:
    title = f"E2E Test: {guide_title}"
    max_len = BOX_WIDTH - 6
    if len(title) > max_len:
        title = title[: max_len - 3] + "..."

    print(f"╔{'═' * (BOX_WIDTH - 2)}╗")
    print(f"║  {title.ljust(BOX_WIDTH - 4)}║")
    print(f"╚{'═' * (BOX_WIDTH - 2)}╝")
    print()


def print_separator() -> None:
    print("─" * BOX_WIDTH)


def format_summary_line(summary: RunSummary) -> str:
    parts = [f"{summary.passed} passed", f"{summary.failed} failed"]
    if summary.skipped:
        parts.append(f"{summary.skipped} skipped")
    if summary.not_reached:
        parts.append(f"{summary.not_reached} not reached")

    duration = format_duration(summary.total_duration_ms)
    return _fit(f"Summary: {', '.join(parts)}", BOX_WIDTH - len(duration)) + duration


def print_summary(outcome: AllStepsResult, verbose: bool = False) -> RunSummary:
    summary = summarize_results(outcome.results)

    print()
    print_separator()
    print(format_summary_line(summary))
    print_separator()

    if verbose:
        print()
        if summary.failed:
            print("Failure breakdown:")
            if summary.mandatory_failed:
                print(f"  └─ Mandatory failures: {summary.mandatory_failed} (affects overall result)")
            if summary.skippable_failed:
                print(f"  └─ Skippable failures: {summary.skippable_failed} (does not affect overall result)")
        if outcome.aborted:
            print()
            print(f"Test aborted: {outcome.abort_reason.value if outcome.abort_reason else 'unknown'}")
            if outcome.abort_message:
                print(f"  {outcome.abort_message}")
        print()
        print(f"Overall: {'✅ SUCCESS' if summary.success else '❌ FAILURE'}")

    return summary


def print_discovery(result: StepDiscoveryResult) -> None:
    print()
    print(f"📋 Discovered {result.total_steps} steps {format_duration(result.duration_ms)}")
    if result.pre_completed_count or result.no_action_control_count:
        print(
            f"   ({result.pre_completed_count} pre-completed, "
            f"{result.no_action_control_count} without \"Do it\" button)"
        )
    print()


def print_preflight_checks(checks) -> None:
    print("🔍 Pre-flight checks:")
    for check in checks:
        icon = "✓" if check.passed else "✗"
        print(f"   {icon} {check.name} {format_duration(check.duration_ms)}")


def create_progress_callback(
    extra: Optional[Callable[[StepTestResult, int, int], None]] = None
) -> Callable[[StepTestResult, int, int], None]:
    def _on_step_complete(result: StepTestResult, index: int, total: int) -> None:
        print_step_result(result)
        if extra:
            extra(result, index, total)

    return _on_step_complete
