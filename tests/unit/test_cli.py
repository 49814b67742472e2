"""Tests for CLI entry point."""

from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

from typer.testing import CliRunner

from boostsec.batch_runner.cli import app
from boostsec.batch_runner.errors import SetupError
from boostsec.batch_runner.models.invocation import InvocationResult
from boostsec.batch_runner.models.policy import ContinuationPolicy

runner = CliRunner()


def _mock_orchestrator(
    results: list[InvocationResult] | None = None,
) -> MagicMock:
    orchestrator = MagicMock()
    orchestrator.run = AsyncMock(return_value=results or [])
    return orchestrator


def _result(exit_status: int) -> InvocationResult:
    now = datetime.now(UTC)
    return InvocationResult(
        test_path=Path("/tests/test_boot.py"),
        record_dir=Path("/results/run"),
        started_at=now,
        finished_at=now,
        duration=1,
        exit_status=exit_status,
    )


def test_main_defaults() -> None:
    """Main runs the tests forever with a strict policy by default."""
    orchestrator = _mock_orchestrator([_result(0)])

    with patch(
        "boostsec.batch_runner.cli.RunOrchestrator", return_value=orchestrator
    ) as mock_cls:
        result = runner.invoke(app, ["tests/test_boot.py"])

    assert result.exit_code == 0
    config, policy = mock_cls.call_args.args
    assert policy == ContinuationPolicy(leniency=0, run_once=False)
    assert mock_cls.call_args.kwargs == {"verbosity": 0, "debug": False, "tag": None}
    assert config.results_dir == Path(".")
    orchestrator.run.assert_awaited_once_with(
        [Path("tests/test_boot.py").resolve()]
    )


def test_main_options() -> None:
    """Repeatable flags are counted and passed on."""
    orchestrator = _mock_orchestrator()

    with patch(
        "boostsec.batch_runner.cli.RunOrchestrator", return_value=orchestrator
    ) as mock_cls:
        result = runner.invoke(
            app,
            [
                "-1",
                "-k",
                "-k",
                "-v",
                "-v",
                "-v",
                "-d",
                "--tag",
                "smoke",
                "--output-dir",
                "/tmp/results",
                "test_a.py",
                "test_b.py",
            ],
        )

    assert result.exit_code == 0, result.output
    config, policy = mock_cls.call_args.args
    assert policy == ContinuationPolicy(leniency=2, run_once=True)
    assert mock_cls.call_args.kwargs == {
        "verbosity": 2,
        "debug": True,
        "tag": "smoke",
    }
    assert config.results_dir == Path("/tmp/results")
    test_paths = orchestrator.run.call_args.args[0]
    assert [p.name for p in test_paths] == ["test_a.py", "test_b.py"]
    assert all(p.is_absolute() for p in test_paths)


def test_main_failed_tests_do_not_change_exit_code() -> None:
    """The batch exit code does not reflect test outcomes."""
    orchestrator = _mock_orchestrator([_result(1)])

    with patch("boostsec.batch_runner.cli.RunOrchestrator", return_value=orchestrator):
        result = runner.invoke(app, ["-1", "test_a.py"])

    assert result.exit_code == 0


def test_main_setup_error() -> None:
    """A setup failure is reported and exits with 1."""
    orchestrator = _mock_orchestrator()
    orchestrator.run = AsyncMock(side_effect=SetupError("Failed to create run dir"))

    with patch("boostsec.batch_runner.cli.RunOrchestrator", return_value=orchestrator):
        result = runner.invoke(app, ["test_a.py"])

    assert result.exit_code == 1
    assert "Error: Failed to create run dir" in result.output


def test_main_loads_config_file(tmp_path: Path) -> None:
    """Main reads the YAML configuration file."""
    config_file = tmp_path / "batch.yaml"
    config_file.write_text("save_video: false\nresults_dir: /srv/results\n")
    orchestrator = _mock_orchestrator()

    with patch(
        "boostsec.batch_runner.cli.RunOrchestrator", return_value=orchestrator
    ) as mock_cls:
        result = runner.invoke(app, ["--config", str(config_file), "test_a.py"])

    assert result.exit_code == 0
    config = mock_cls.call_args.args[0]
    assert config.save_video is False
    assert config.results_dir == Path("/srv/results")


def test_main_missing_config_file(tmp_path: Path) -> None:
    """Main exits with error for a missing configuration file."""
    result = runner.invoke(
        app, ["--config", str(tmp_path / "missing.yaml"), "test_a.py"]
    )

    assert result.exit_code == 1
    assert "Config file not found" in result.output


def test_main_requires_tests() -> None:
    """Main needs at least one test program."""
    result = runner.invoke(app, ["-1"])

    assert result.exit_code != 0
