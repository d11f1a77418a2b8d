import asyncio

from runner.session import (
    AUTH_VALID,
    HOST_REACHABLE,
    PLUGIN_INSTALLED,
    SessionValidator,
    format_preflight_results,
    run_preflight_checks,
)

BASE = "http://localhost:3000"
HEALTH = f"{BASE}/api/health"
USER = f"{BASE}/api/user"
PLUGIN = f"{BASE}/api/plugins/grafana-pathfinder-app/settings"


def _healthy(page):
    page.responses[HEALTH] = (200, {"database": "ok"})
    page.responses[USER] = (200, {"login": "admin"})
    page.responses[PLUGIN] = (200, {"enabled": True})


def test_session_valid_on_2xx(page):
    page.responses[USER] = (200, {"login": "admin"})
    assert asyncio.run(SessionValidator(BASE).is_valid(page)) is True


def test_session_invalid_on_401(page):
    page.responses[USER] = (401, None)
    assert asyncio.run(SessionValidator(BASE).is_valid(page)) is False


def test_session_invalid_when_request_raises(page):
    page.responses[USER] = ConnectionError("net::ERR_CONNECTION_REFUSED")
    assert asyncio.run(SessionValidator(BASE + "/").is_valid(page)) is False


def test_all_preflight_checks_pass(page):
    _healthy(page)

    result = asyncio.run(run_preflight_checks(page, BASE))

    assert result.success is True
    assert [c.name for c in result.checks] == [HOST_REACHABLE, AUTH_VALID, PLUGIN_INSTALLED]
    assert result.failed_check is None


def test_unhealthy_database_fails_host_check(page):
    _healthy(page)
    page.responses[HEALTH] = (200, {"database": "failing"})

    result = asyncio.run(run_preflight_checks(page, BASE))

    assert result.success is False
    assert result.failed_check.name == HOST_REACHABLE
    assert len(result.checks) == 1
    assert "failing" in result.abort_reason


def test_auth_failure_stops_before_plugin_check(page):
    _healthy(page)
    page.responses[USER] = (401, None)

    result = asyncio.run(run_preflight_checks(page, BASE))

    assert result.failed_check.name == AUTH_VALID
    assert len(result.checks) == 2


def test_plugin_not_installed(page):
    _healthy(page)
    page.responses[PLUGIN] = (404, None)

    result = asyncio.run(run_preflight_checks(page, BASE))

    assert result.failed_check.name == PLUGIN_INSTALLED
    assert result.abort_reason == "Plugin grafana-pathfinder-app is not installed"


def test_plugin_not_enabled(page):
    _healthy(page)
    page.responses[PLUGIN] = (200, {"enabled": False})

    result = asyncio.run(run_preflight_checks(page, BASE))

    assert result.abort_reason == "Plugin grafana-pathfinder-app is installed but not enabled"


def test_format_preflight_results(page):
    _healthy(page)
    page.responses[PLUGIN] = (404, None)
    result = asyncio.run(run_preflight_checks(page, BASE))

    assert format_preflight_results(result) == "Pre-flight failed: Plugin grafana-pathfinder-app is not installed"
    verbose = format_preflight_results(result, verbose=True)
    assert verbose.startswith("Pre-flight checks:")
    assert "✗ plugin-installed" in verbose
