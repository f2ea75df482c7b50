"""
Tests for the CLI and Orchestrator Models.

============================================================
TEST COVERAGE
============================================================
1. Argument parsing and validation
2. Configuration building
3. Registry building and helper listing
4. Batch results and configuration models
============================================================
"""

from datetime import datetime, timezone

import pytest

from core.constants import DEFAULT_NAMESPACE
from orchestrator.cli import build_config, build_registry, create_parser, main, validate_args
from orchestrator.models import BatchResult, OrchestratorConfig, UnitOutcome


# ============================================================
# PARSER TESTS
# ============================================================

class TestParser:
    """Test argument parsing."""

    def test_defaults_are_unset(self):
        args = create_parser().parse_args([])
        assert args.config is None
        assert args.shutdown_deadline is None
        assert args.log_level is None
        assert not args.list_helpers

    def test_validation_rejects_non_positive_values(self):
        args = create_parser().parse_args(["--shutdown-deadline", "0", "--start-timeout", "-1"])
        errors = validate_args(args)
        assert "--shutdown-deadline must be positive" in errors
        assert "--start-timeout must be positive" in errors

    def test_invalid_args_exit_code(self, capsys):
        assert main(["--shutdown-deadline", "-3"]) == 1
        assert "--shutdown-deadline must be positive" in capsys.readouterr().err


# ============================================================
# CONFIGURATION TESTS
# ============================================================

class TestBuildConfig:
    """Test configuration building."""

    def test_cli_overrides_environment(self, monkeypatch):
        monkeypatch.setenv("MIRROR_SHUTDOWN_DEADLINE_SECONDS", "9")
        monkeypatch.setenv("MIRROR_MODULES_ROOT", "/srv/modules")
        args = create_parser().parse_args(["--shutdown-deadline", "2", "--log-format", "json"])

        config = build_config(args)

        assert config.shutdown_deadline_seconds == 2.0
        assert config.modules_root == "/srv/modules"
        assert config.log_format == "json"
        assert config.start_timeout_seconds is None

    def test_registry_contains_builtins(self):
        registry = build_registry(OrchestratorConfig())
        assert "updatenotification" in registry.describe()[DEFAULT_NAMESPACE]

    def test_list_helpers(self, capsys):
        assert main(["--list-helpers"]) == 0
        output = capsys.readouterr().out
        assert "default" in output
        assert "updatenotification" in output


# ============================================================
# MODEL TESTS
# ============================================================

class TestModels:
    """Test orchestrator models."""

    def test_config_validation(self):
        assert OrchestratorConfig().validate() == []
        errors = OrchestratorConfig(
            shutdown_deadline_seconds=-1,
            start_timeout_seconds=0,
            log_format="xml",
        ).validate()
        assert len(errors) == 3

    def test_default_exit_codes(self):
        config = OrchestratorConfig()
        assert config.clean_exit_code == 0
        assert config.forced_exit_code == 124
        assert config.shutdown_deadline_seconds == 3.0

    def test_batch_result(self):
        result = BatchResult(
            operation="start",
            started_at=datetime.now(timezone.utc),
            outcomes=[
                UnitOutcome("a", succeeded=True),
                UnitOutcome("b", succeeded=False, error="boom", error_type="RuntimeError"),
            ],
        )
        assert not result.all_succeeded
        assert result.outcome_for("b").error == "boom"
        assert result.outcome_for("zzz") is None

        data = result.to_dict()
        assert data["succeeded"] == 1
        assert data["failed"] == 1
        assert data["completed_at"] is None

    @pytest.mark.parametrize("value, expected", [("", None), ("1.5", 1.5)])
    def test_start_timeout_from_env(self, monkeypatch, value, expected):
        monkeypatch.setenv("MIRROR_START_TIMEOUT_SECONDS", value)
        assert OrchestratorConfig.from_env().start_timeout_seconds == expected
