"""CLI entry point for the batch test runner."""

import asyncio
import logging
import sys
from pathlib import Path

import typer

from boostsec.batch_runner.config_loader import load_config
from boostsec.batch_runner.errors import SetupError
from boostsec.batch_runner.models.policy import ContinuationPolicy
from boostsec.batch_runner.orchestrator import RunOrchestrator

logger = logging.getLogger(__name__)

LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO, 2: logging.DEBUG}

app = typer.Typer()


def configure_logging(verbosity: int) -> None:
    """Send diagnostics to stderr at a level matching ``verbosity``."""
    logging.basicConfig(
        level=LOG_LEVELS[verbosity],
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
        force=True,  # Force reconfiguration even if already set up
    )


@app.command()
def main(
    tests: list[Path] = typer.Argument(  # noqa: B008
        ..., help="Test programs to run, in order"
    ),
    run_once: bool = typer.Option(
        False, "-1", "--run-once", help="Run the tests once instead of forever"
    ),
    keep_going: int = typer.Option(
        0,
        "-k",
        "--keep-going",
        count=True,
        help="Continue after infrastructure failures; twice to continue after "
        "any failure",
    ),
    debug: bool = typer.Option(
        False, "-d", "--debug", help="Dump intermediate images for debugging"
    ),
    verbose: int = typer.Option(
        0,
        "-v",
        "--verbose",
        count=True,
        help="Show the test's stdout; twice to also show its stderr",
    ),
    tag: str | None = typer.Option(
        None, "-t", "--tag", help="Tag appended to run directory names"
    ),
    config: Path | None = typer.Option(  # noqa: B008
        None, "--config", help="YAML configuration file"
    ),
    output_dir: Path | None = typer.Option(  # noqa: B008
        None, "--output-dir", help="Directory receiving the run records"
    ),
) -> None:
    """Run test programs repeatedly, recording the outcome of every run."""
    verbosity = min(verbose, 2)
    configure_logging(verbosity)

    try:
        supervisor_config = load_config(config)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Failed to load configuration: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if output_dir is not None:
        supervisor_config.results_dir = output_dir

    policy = ContinuationPolicy(leniency=keep_going, run_once=run_once)
    test_paths = [test.resolve() for test in tests]

    logger.info(f"Tests: {[str(p) for p in test_paths]}")
    logger.info(f"Leniency: {policy.leniency}, run once: {policy.run_once}")
    logger.info(f"Results directory: {supervisor_config.results_dir}")

    orchestrator = RunOrchestrator(
        supervisor_config, policy, verbosity=verbosity, debug=debug, tag=tag
    )

    try:
        results = asyncio.run(orchestrator.run(test_paths))
    except SetupError as e:
        logger.error(f"Setup failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    passed = sum(1 for r in results if r.succeeded)
    logger.info(f"Batch finished: {passed}/{len(results)} runs passed")


if __name__ == "__main__":  # pragma: no cover
    app()
