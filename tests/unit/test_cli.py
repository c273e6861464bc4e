"""CLI behaviour tests."""
# ruff: noqa: D103

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

import msgspec

_REPO_ROOT = Path(__file__).resolve().parents[2]


def _run_cli(
    args: list[str], env: dict[str, str] | None = None
) -> subprocess.CompletedProcess[str]:
    base_env = {
        key: value
        for key, value in os.environ.items()
        if not key.startswith("MESHSYNC_")
    }
    base_env["PYTHONPATH"] = str(_REPO_ROOT)
    return subprocess.run(  # noqa: S603 - fixed argv
        [sys.executable, "-m", "meshsync", *args],
        cwd=_REPO_ROOT,
        env={**base_env, **(env or {})},
        text=True,
        capture_output=True,
    )


def test_show_config_prints_effective_settings() -> None:
    result = _run_cli(
        ["show-config", "--namespace", "istio-config"],
        env={
            "MESHSYNC_CONSUL_ENDPOINT": "http://consul:8500",
            "MESHSYNC_AWS_SECRET_ACCESS_KEY": "do-not-print",
        },
    )

    assert result.returncode == 0, result.stderr
    decoded = msgspec.json.decode(result.stdout)
    assert decoded["namespace"] == "istio-config"
    assert decoded["consul_endpoint"] == "http://consul:8500"
    assert decoded["aws_secret_access_key"] == "***"
    assert "do-not-print" not in result.stdout


def test_show_config_rejects_invalid_environment() -> None:
    result = _run_cli(["show-config"], env={"MESHSYNC_SYNC_INTERVAL_S": "-5"})

    assert result.returncode == 1
    assert "invalid configuration" in result.stderr
    assert "MESHSYNC_SYNC_INTERVAL_S" in result.stderr


def test_serve_rejects_invalid_override() -> None:
    result = _run_cli(["serve", "--sync-interval", "0"])

    assert result.returncode == 1
    assert "must be a positive number" in result.stderr


def test_help_lists_commands() -> None:
    result = _run_cli(["--help"])

    assert result.returncode == 0, result.stderr
    assert "serve" in result.stdout
    assert "show-config" in result.stdout
