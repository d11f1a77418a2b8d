# runner/session.py
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from config.config import DEFAULT_TIMINGS, Timings
from stage_hand.polling import elapsed_ms

logger = logging.getLogger(__name__)

HOST_REACHABLE = "host-reachable"
AUTH_VALID = "auth-valid"
PLUGIN_INSTALLED = "plugin-installed"


def join_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


class SessionValidator:
    """Checks that the browser session is still signed in."""

    def __init__(self, base_url: str, check_path: str = "/api/user", timings: Timings = DEFAULT_TIMINGS):
        self.url = join_url(base_url, check_path)
        self.timeout_ms = timings.session_timeout

    async def is_valid(self, page) -> bool:
        try:
            status, _ = await page.get_json(self.url, self.timeout_ms)
        except Exception as e:
            logger.warning(f"⚠ Session check failed: {e}")
            return False
        if not 200 <= status < 300:
            logger.warning(f"⚠ Session check returned HTTP {status}")
            return False
        return True


@dataclass(frozen=True)
class PreflightCheck:
    name: str
    passed: bool
    error: Optional[str] = None
    duration_ms: int = 0


@dataclass
class PreflightResult:
    success: bool
    checks: List[PreflightCheck] = field(default_factory=list)
    abort_reason: Optional[str] = None
    total_duration_ms: int = 0

    @property
    def failed_check(self) -> Optional[PreflightCheck]:
        return next((c for c in self.checks if not c.passed), None)


async def check_host_reachable(page, base_url: str, timings: Timings = DEFAULT_TIMINGS) -> PreflightCheck:
    started = time.monotonic()
    try:
        status, body = await page.get_json(join_url(base_url, "/api/health"), timings.fix_timeout)
    except Exception as e:
        return PreflightCheck(HOST_REACHABLE, False, f"Host not reachable at {base_url}: {e}", elapsed_ms(started))

    if not 200 <= status < 300:
        return PreflightCheck(HOST_REACHABLE, False, f"Health check failed: HTTP {status}", elapsed_ms(started))
    database = (body or {}).get("database")
    if database != "ok":
        return PreflightCheck(
            HOST_REACHABLE, False, f"Host database not healthy: {database or 'unknown'}", elapsed_ms(started)
        )
    return PreflightCheck(HOST_REACHABLE, True, duration_ms=elapsed_ms(started))


async def check_auth_valid(page, validator: SessionValidator) -> PreflightCheck:
    started = time.monotonic()
    if await validator.is_valid(page):
        return PreflightCheck(AUTH_VALID, True, duration_ms=elapsed_ms(started))
    return PreflightCheck(AUTH_VALID, False, "Authentication failed: session is not signed in", elapsed_ms(started))


async def check_plugin_installed(
    page, base_url: str, plugin_id: str, timings: Timings = DEFAULT_TIMINGS
) -> PreflightCheck:
    started = time.monotonic()
    try:
        status, body = await page.get_json(join_url(base_url, f"/api/plugins/{plugin_id}/settings"), timings.fix_timeout)
    except Exception as e:
        return PreflightCheck(PLUGIN_INSTALLED, False, f"Plugin check failed: {e}", elapsed_ms(started))

    if status == 404:
        return PreflightCheck(PLUGIN_INSTALLED, False, f"Plugin {plugin_id} is not installed", elapsed_ms(started))
    if not 200 <= status < 300:
        return PreflightCheck(PLUGIN_INSTALLED, False, f"Plugin check failed: HTTP {status}", elapsed_ms(started))
    if (body or {}).get("enabled") is False:
        return PreflightCheck(
            PLUGIN_INSTALLED, False, f"Plugin {plugin_id} is installed but not enabled", elapsed_ms(started)
        )
    return PreflightCheck(PLUGIN_INSTALLED, True, duration_ms=elapsed_ms(started))


async def run_preflight_checks(
    page,
    base_url: str,
    plugin_id: str = "grafana-pathfinder-app",
    check_path: str = "/api/user",
    timings: Timings = DEFAULT_TIMINGS,
) -> PreflightResult:
    """Host, then session, then plugin. Stops at the first failing check."""
    started = time.monotonic()
    checks = []

    validator = SessionValidator(base_url, check_path, timings)
    steps = (
        lambda: check_host_reachable(page, base_url, timings),
        lambda: check_auth_valid(page, validator),
        lambda: check_plugin_installed(page, base_url, plugin_id, timings),
    )
    for run_check in steps:
        check = await run_check()
        checks.append(check)
        if not check.passed:
            logger.error(f"❌ Pre-flight {check.name} failed: {check.error}")
            return PreflightResult(False, checks, check.error, elapsed_ms(started))
        logger.info(f"✓ Pre-flight {check.name} ({check.duration_ms}ms)")

    return PreflightResult(True, checks, None, elapsed_ms(started))


def format_preflight_results(result: PreflightResult, verbose: bool = False) -> str:
    lines = []
    if verbose:
        lines.append("Pre-flight checks:")
        for check in result.checks:
            mark = "✓" if check.passed else "✗"
            lines.append(f"  {mark} {check.name} [{check.duration_ms}ms]")
            if not check.passed and check.error:
                lines.append(f"    Error: {check.error}")
        lines.append(f"  Total: {result.total_duration_ms}ms")
    elif not result.success:
        for check in result.checks:
            if not check.passed and check.error:
                lines.append(f"Pre-flight failed: {check.error}")
    return "\n".join(lines)
