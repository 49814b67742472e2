"""Two-stage handling of operator interrupts.

The first interrupt lets the running test finish and stops the loop; the
second kills the whole process tree of the running test.
"""

import asyncio
import logging
import signal
from collections.abc import Callable, Iterator
from contextlib import contextmanager, suppress
from enum import Enum

import typer

from boostsec.batch_runner.process_supervisor import (
    SupervisedProcess,
    kill_process_tree,
)

logger = logging.getLogger(__name__)


class CancellationState(Enum):
    """Escalation level of operator interrupts."""

    RUNNING = "running"
    INTERRUPT_REQUESTED = "interrupt_requested"
    KILL_REQUESTED = "kill_requested"


class CancellationController:
    """Shared interrupt state for the run loop and the signal handler.

    ``interrupted`` is set when the current wait was preempted by an
    interrupt and is reset at the start of every wait. ``stop`` is set on the
    first interrupt and never cleared.
    """

    def __init__(
        self, kill_tree: Callable[[int], object] = kill_process_tree
    ) -> None:
        """Initialize in the RUNNING state."""
        self.state = CancellationState.RUNNING
        self.interrupted = False
        self.stop = False
        self._kill_tree = kill_tree
        self._target_pid: int | None = None
        self._interrupt_event = asyncio.Event()

    def attach(self, pid: int) -> None:
        """Make ``pid`` the process tree killed on a second interrupt.

        A child attached after the second interrupt is killed at once.
        """
        self._target_pid = pid
        if self.state is CancellationState.KILL_REQUESTED:
            logger.info(f"Exit already requested; killing pid {pid}")
            self._kill_tree(pid)

    def detach(self) -> None:
        """Forget the current child once it has exited."""
        self._target_pid = None

    def handle_interrupt(self) -> None:
        """Advance the state machine on an operator interrupt."""
        self.interrupted = True
        if self.state is CancellationState.RUNNING:
            self.state = CancellationState.INTERRUPT_REQUESTED
            self.stop = True
            typer.echo(
                "\nReceived interrupt; waiting for current test to complete. "
                "Press Ctrl-C again to exit immediately.",
                err=True,
            )
        else:
            self.state = CancellationState.KILL_REQUESTED
            typer.echo("\nReceived interrupt; exiting immediately.", err=True)
            if self._target_pid is not None:
                self._kill_tree(self._target_pid)
        self._interrupt_event.set()

    @contextmanager
    def handle_signals(self) -> Iterator["CancellationController"]:
        """Route SIGINT to :meth:`handle_interrupt` on the running loop."""
        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGINT, self.handle_interrupt)
        try:
            yield self
        finally:
            loop.remove_signal_handler(signal.SIGINT)

    async def wait_for(self, child: SupervisedProcess) -> int:
        """Wait until ``child`` has really exited and return its return code.

        An interrupt wakes the wait up early; the wait is then issued again on
        the same child instead of being mistaken for its exit.
        """
        wait_task = asyncio.ensure_future(child.wait())
        try:
            while True:
                self.interrupted = False
                self._interrupt_event.clear()
                interrupt_task = asyncio.ensure_future(self._interrupt_event.wait())
                done, _ = await asyncio.wait(
                    {wait_task, interrupt_task},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                interrupt_task.cancel()
                with suppress(asyncio.CancelledError):
                    await interrupt_task
                if wait_task in done:
                    return wait_task.result()
                logger.info(f"Wait on pid {child.pid} interrupted; waiting again")
        finally:
            if not wait_task.done():
                wait_task.cancel()
