"""Run orchestrator driving the repeat loop over a list of tests."""

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

import typer

from boostsec.batch_runner.cancellation import CancellationController
from boostsec.batch_runner.classifier import classify
from boostsec.batch_runner.diagnostics import capture_screenshot, generate_report
from boostsec.batch_runner.log_multiplexer import start_multiplexers
from boostsec.batch_runner.metadata import git_revision, relative_path
from boostsec.batch_runner.models.config import SupervisorConfig
from boostsec.batch_runner.models.invocation import InvocationResult, TestInvocation
from boostsec.batch_runner.models.policy import ContinuationPolicy, Decision
from boostsec.batch_runner.process_supervisor import (
    build_command,
    launch,
    normalize_exit_status,
)
from boostsec.batch_runner.run_record import RunRecord

logger = logging.getLogger(__name__)


class RunOrchestrator:
    """Runs each test in turn, repeating the list until told to stop."""

    def __init__(
        self,
        config: SupervisorConfig,
        policy: ContinuationPolicy,
        *,
        verbosity: int = 0,
        debug: bool = False,
        tag: str | None = None,
        cancellation: CancellationController | None = None,
    ) -> None:
        """Initialize orchestrator with configuration and operator options."""
        self.config = config
        self.policy = policy
        self.verbosity = verbosity
        self.debug = debug
        self.tag = tag
        self.cancellation = cancellation or CancellationController()

    async def run(self, test_paths: Sequence[Path]) -> list[InvocationResult]:
        """Run ``test_paths`` until the policy or the operator stops the loop.

        Args:
            test_paths: Absolute paths of the test programs, in run order

        Returns:
            Results of every invocation, in the order they ran

        Raises:
            SetupError: If a run record or its metadata cannot be prepared

        """
        results: list[InvocationResult] = []
        with self.cancellation.handle_signals():
            while True:
                for test_path in test_paths:
                    result = await self.run_test(test_path)
                    results.append(result)

                    decision = classify(
                        result.exit_status,
                        self.policy,
                        stop_requested=self.cancellation.stop,
                    )
                    if decision is Decision.STOP:
                        logger.info(f"Stopping after {test_path}")
                        return results

                if self.policy.run_once:
                    return results

    async def run_test(self, test_path: Path) -> InvocationResult:
        """Run a single test and finalize its run record."""
        record = RunRecord.create(self.config.results_dir, self.tag)
        record.mark_current()

        test_dir = test_path.parent
        git_commit = await git_revision(test_dir)
        test_name = await relative_path(test_dir, test_path)
        record.write_metadata(git_commit, test_name)

        invocation = TestInvocation(
            test_path=test_path,
            record_dir=record.path.resolve(),
            verbosity=self.verbosity,
            debug=self.debug,
            save_video=self.config.save_video,
        )
        self._announce(test_name, record)

        child = await launch(build_command(self.config, invocation), record.path)
        drains = start_multiplexers(child.process, record.path, self.verbosity)

        self.cancellation.attach(child.pid)
        try:
            returncode = await self.cancellation.wait_for(child)
        finally:
            self.cancellation.detach()
        duration = child.elapsed()
        finished_at = datetime.now().astimezone()

        await asyncio.gather(*drains)

        exit_status = normalize_exit_status(returncode)
        record.write_outcome(duration, exit_status)
        if exit_status != 0:
            await capture_screenshot(
                self.config.screenshot_command, record.screenshot_path
            )
        self._report_outcome(test_name, exit_status)

        await generate_report(self.config.report_command, record.path)
        record.mark_latest()

        return InvocationResult(
            test_path=test_path,
            record_dir=record.path,
            started_at=child.started_at,
            finished_at=finished_at,
            duration=duration,
            exit_status=exit_status,
        )

    def _announce(self, test_name: str, record: RunRecord) -> None:
        if self.verbosity > 0:
            typer.echo(f"\nRunning test {test_name}")
            typer.echo(f"  Record: {record.path}")
            typer.echo("-" * 70)
        else:
            typer.echo(f"{test_name} ... ", nl=False)

    def _report_outcome(self, test_name: str, exit_status: int) -> None:
        status = "OK" if exit_status == 0 else "FAILED"
        if self.verbosity > 0:
            typer.echo("-" * 70)
            typer.echo(f"{test_name} ... {status}")
        else:
            typer.echo(status)
