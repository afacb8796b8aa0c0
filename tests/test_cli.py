"""CLI tests — click commands against the fake backends."""

import json

import httpx
import pytest
import structlog
from click.testing import CliRunner

from conftest import fail, ok, seed_household
from momentum.cli import main as cli
from momentum.client import MomentumClient


@pytest.fixture
def runner(monkeypatch, test_settings, backend, sleeper, transports):
    def build():
        return MomentumClient(
            test_settings,
            http_transport=backend.transport,
            transport_factory=transports,
            sleep=sleeper,
        )

    monkeypatch.setattr(cli, "MomentumClient", build)
    # Logging stays on structlog defaults; captured, not printed.
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)
    with structlog.testing.capture_logs():
        yield CliRunner()


def test_health_reports_both_backends(runner, backend):
    backend.route("GET", "/health", httpx.Response(200, json={"ok": True}))
    result = runner.invoke(cli.main, ["--log-level", "ERROR", "health"])
    assert result.exit_code == 0
    assert "core" in result.stdout
    assert "bff" in result.stdout
    assert "down" not in result.stdout


def test_health_exits_nonzero_when_down(runner, backend):
    backend.route("GET", "/health", fail(503, "asleep"))
    result = runner.invoke(cli.main, ["--log-level", "ERROR", "health"])
    assert result.exit_code == 1


def test_snapshot_json_with_token(runner, backend):
    seed_household(backend)
    backend.route("GET", "/api/v1/auth/me", ok({"user": {"id": "u1"}, "householdId": "h1"}))

    result = runner.invoke(
        cli.main, ["snapshot", "--json"], env={"MOMENTUM_TOKEN": "T1"}
    )

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["household_id"] == "h1"
    assert [t["id"] for t in data["tasks"]] == ["t1", "t2"]


def test_snapshot_without_credentials_fails(runner):
    result = runner.invoke(
        cli.main,
        ["snapshot"],
        env={"MOMENTUM_TOKEN": "", "MOMENTUM_EMAIL": "", "MOMENTUM_PASSWORD": ""},
    )
    assert result.exit_code == 1


def test_purchase_insufficient_points(runner, backend):
    seed_household(backend)
    backend.route("GET", "/api/v1/auth/me", ok({"user": {"id": "u1"}}))

    result = runner.invoke(
        cli.main,
        ["purchase", "s1", "--member", "m2"],
        env={"MOMENTUM_TOKEN": "T1"},
    )

    assert result.exit_code == 1
    assert backend.calls("POST", "/mobile-bff/store/s1/purchase") == []
