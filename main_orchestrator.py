# main_orchestrator.py
import asyncio
import dataclasses
import logging
import os

import click

from config.config import DEFAULT_SESSION_CHECK_INTERVAL, RunOptions, Settings, setup_logging
from parser.guide_loader import GuideLoader
from runner.json_report import build_report, write_report
from runner.testcase_executor import GuideTestExecutor, overall_exit_code

logger = logging.getLogger(__name__)


@click.group()
def cli():
    pass


@cli.command()
@click.argument("guides", nargs=-1)
@click.option("--base-url", default=None, help="Host application URL (default: GUIDE_RUNNER_BASE_URL)")
@click.option("--artifacts", "artifacts_dir", default=None, help="Directory for screenshots and DOM snapshots")
@click.option("--output", "output", default=None, help="Write a JSON report of the run here")
@click.option("--always-screenshot", is_flag=True, help="Capture screenshots for passing steps too")
@click.option("--session-check-interval", default=DEFAULT_SESSION_CHECK_INTERVAL, show_default=True, type=click.IntRange(min=1))
@click.option("--timeout", "timeout_ms", default=None, type=click.IntRange(min=1), help="Per-step timeout in ms")
@click.option("--headless/--headed", default=None, help="Run the browser without a window")
@click.option("--continue-on-failure", is_flag=True, help="Keep going after a mandatory step fails")
@click.option("--skip-preflight", is_flag=True, help="Skip host/session/plugin checks")
@click.option("--abort-file", default=None, help="Write abort reason JSON here when a run aborts")
@click.option("-v", "--verbose", is_flag=True)
@click.pass_context
def run(
    ctx,
    guides,
    base_url,
    artifacts_dir,
    output,
    always_screenshot,
    session_check_interval,
    timeout_ms,
    headless,
    continue_on_failure,
    skip_preflight,
    abort_file,
    verbose,
):
    """Run the steps of each GUIDES file in turn, or of the guide already shown at --base-url."""
    setup_logging(verbose)
    settings = Settings.from_env()
    overrides = {
        k: v
        for k, v in dict(base_url=base_url, artifacts_dir=artifacts_dir, headless=headless).items()
        if v is not None
    }
    settings = dataclasses.replace(settings, **overrides)
    logger.debug(f"Base URL: {settings.base_url}, artifacts: {settings.artifacts_dir}, headless: {settings.headless}")

    loader = GuideLoader(os.getcwd())
    loaded = []
    for guide in guides:
        try:
            loaded.append(loader.load(guide))
        except (FileNotFoundError, ValueError) as e:
            raise click.BadParameter(str(e), param_hint="GUIDES")
    if not loaded:
        loaded = [None]

    options = RunOptions(
        timeout_ms=timeout_ms,
        verbose=verbose,
        stop_on_mandatory_failure=not continue_on_failure,
        session_check_interval=session_check_interval,
        artifacts_dir=settings.artifacts_dir,
        always_screenshot=always_screenshot,
    )

    executor = GuideTestExecutor(settings, options, skip_preflight=skip_preflight, abort_file=abort_file)
    reports = asyncio.run(executor.run_guides(loaded))

    for report in reports:
        if report.message:
            click.echo(report.message, err=True)

    if output:
        try:
            write_report(output, [build_report(report, settings.base_url) for report in reports])
        except OSError as e:
            raise click.FileError(output, hint=str(e))

    ctx.exit(overall_exit_code(reports).value)


if __name__ == "__main__":
    cli()
