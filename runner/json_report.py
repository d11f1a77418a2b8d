# runner/json_report.py
# Machine-readable run report for CI
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import List

from parser.statuses import StepStatus
from runner.reporter import summarize_results

logger = logging.getLogger(__name__)


def guide_metadata(guide, fallback_title: str) -> dict:
    if guide is None:
        return {"id": None, "title": fallback_title, "path": None}
    return {
        "id": Path(guide.path).stem,
        "title": guide.title,
        "path": guide.path,
    }


def step_entry(result, index: int) -> dict:
    entry = {
        "stepId": result.step_id,
        "index": index,
        "status": result.status.value,
        "duration": result.duration_ms,
        "currentUrl": result.current_url,
        "consoleErrors": list(result.console_errors),
    }
    if result.skip_reason:
        entry["skipReason"] = result.skip_reason.value
    if result.error:
        entry["error"] = result.error
    if result.classification:
        entry["classification"] = result.classification.value
    if result.status == StepStatus.FAILED:
        entry["skippable"] = result.skippable
    if result.artifacts and not result.artifacts.is_empty():
        entry["artifacts"] = {k: v for k, v in asdict(result.artifacts).items() if v}
    return entry


def build_report(run_report, base_url: str) -> dict:
    """One guide's run as a JSON-ready dict."""
    outcome = run_report.outcome
    results = outcome.results if outcome else []
    summary = run_report.summary or summarize_results(results)

    report = {
        "guide": guide_metadata(run_report.guide, base_url),
        "config": {"baseUrl": base_url, "timestamp": run_report.started_at},
        "summary": {
            "total": summary.total,
            "passed": summary.passed,
            "failed": summary.failed,
            "skipped": summary.skipped,
            "notReached": summary.not_reached,
            "duration": summary.total_duration_ms,
            "mandatoryFailed": summary.mandatory_failed,
            "skippableFailed": summary.skippable_failed,
            "success": summary.success,
        },
        "steps": [step_entry(result, i) for i, result in enumerate(results)],
        "exitCode": run_report.exit_code.value,
    }
    if run_report.message:
        report["message"] = run_report.message
    failed_check = run_report.preflight.failed_check if run_report.preflight else None
    if failed_check:
        report["preflight"] = {
            "failedCheck": failed_check.name,
            "reason": run_report.preflight.abort_reason,
        }
    if outcome and outcome.aborted:
        report["aborted"] = True
        if outcome.abort_reason:
            report["abortReason"] = outcome.abort_reason.value
        if outcome.abort_message:
            report["abortMessage"] = outcome.abort_message
    if outcome and outcome.final_screenshot:
        report["finalScreenshot"] = outcome.final_screenshot
    return report


def write_report(path: str, reports: List[dict]) -> None:
    """A single guide is written as one object; several as a list of them."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    data = reports[0] if len(reports) == 1 else reports
    target.write_text(json.dumps(data, indent=2), encoding="utf-8")
    logger.info(f"📝 JSON report written to {path}")
