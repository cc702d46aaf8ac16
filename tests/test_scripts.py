"""Tests for the operational scripts (exit codes and key=value output)."""

from __future__ import annotations

import os
import subprocess
import sys

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _run(script: str, *args: str, env: dict | None = None) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, f"scripts/{script}", *args],
        env=env or os.environ.copy(),
        capture_output=True,
        text=True,
        cwd=PROJECT_ROOT,
        timeout=60,
    )


class TestVerifyRuleParityScript:
    def test_identical_databases_pass(self, _ensure_migrations: None) -> None:
        url = os.environ["DATABASE_URL"]
        result = _run("verify_rule_parity.py", "--core-url", url, "--regulatory-url", url)
        assert result.returncode == 0, result.stderr
        assert "PASS table=RuleVersion" in result.stdout
        assert "passed=4 failed=0" in result.stdout

    def test_missing_urls_exit_non_zero(self) -> None:
        env = {k: v for k, v in os.environ.items() if k not in ("CORE_DATABASE_URL", "REGULATORY_DATABASE_URL")}
        result = _run("verify_rule_parity.py", env=env)
        assert result.returncode == 1
        assert "required" in result.stderr


class TestRunHealthGatesScript:
    def test_empty_database_passes(self, _ensure_migrations: None) -> None:
        result = _run("run_health_gates.py")
        assert result.returncode == 0, result.stderr
        assert "gate=release_integrity" in result.stdout
        assert "fail=0" in result.stdout


class TestRunPipelineStageScript:
    def test_unknown_stage_rejected_by_argparse(self) -> None:
        result = _run("run_pipeline_stage.py", "crawl")
        assert result.returncode == 2
        assert "invalid choice" in result.stderr
