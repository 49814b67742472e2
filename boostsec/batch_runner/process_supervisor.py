"""Launch test programs and terminate their process trees."""

import asyncio
import logging
import os
import signal
import time
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

import psutil

from boostsec.batch_runner.errors import SetupError
from boostsec.batch_runner.models.config import SupervisorConfig
from boostsec.batch_runner.models.invocation import TestInvocation

logger = logging.getLogger(__name__)


class SupervisedProcess:
    """Handle on a running test program and its start time."""

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        """Record the start time of ``process``."""
        self.process = process
        self.started_at = datetime.now().astimezone()
        self._start = time.monotonic()

    @property
    def pid(self) -> int:
        """Process ID of the child."""
        return self.process.pid

    async def wait(self) -> int:
        """Wait for the child to exit and return its return code.

        Safe to call again after the child has exited; the same return code
        is returned every time.
        """
        return await self.process.wait()

    def elapsed(self) -> int:
        """Whole seconds elapsed since the child was started."""
        return int(time.monotonic() - self._start)


def build_command(config: SupervisorConfig, invocation: TestInvocation) -> list[str]:
    """Build the runner command line for ``invocation``."""
    command = [*config.runner_command, invocation.verbosity_flag]
    if invocation.video_path is not None:
        command += ["--save-video", str(invocation.video_path)]
    command.append(str(invocation.test_path))
    return command


async def launch(command: Sequence[str], cwd: Path) -> SupervisedProcess:
    """Start ``command`` in its own session with piped output streams.

    Args:
        command: Program and arguments to execute
        cwd: Working directory of the child

    Returns:
        Handle on the running child

    Raises:
        SetupError: If the child or its output pipes cannot be created

    """
    logger.info(f"Launching: {' '.join(command)}")
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as e:
        raise SetupError(f"Failed to launch {command[0]}: {e}") from e

    logger.debug(f"Started pid {process.pid}")
    return SupervisedProcess(process)


def normalize_exit_status(returncode: int) -> int:
    """Convert a return code to a shell-style exit status.

    A child killed by signal N is reported as 128 + N.
    """
    if returncode < 0:
        return 128 - returncode
    return returncode


def collect_descendant_pids(pid: int) -> list[int]:
    """Return the IDs of every descendant of ``pid``, children first."""
    try:
        children = psutil.Process(pid).children(recursive=True)
    except psutil.NoSuchProcess:
        return []
    return [child.pid for child in children]


def kill_process_tree(pid: int) -> list[int]:
    """Send SIGKILL to ``pid``, its process group and all its descendants.

    Descendants are collected before anything is killed, so helpers that left
    the child's process group are still reached.

    Returns:
        The process IDs that were signalled

    """
    descendants = collect_descendant_pids(pid)

    try:
        pgid = os.getpgid(pid)
    except ProcessLookupError:
        pgid = None

    if pgid is not None and pgid != os.getpgrp():
        try:
            os.killpg(pgid, signal.SIGKILL)
        except ProcessLookupError:
            pass

    signalled: list[int] = []
    for target in [*descendants, pid]:
        try:
            os.kill(target, signal.SIGKILL)
        except ProcessLookupError:
            continue
        except PermissionError as e:
            logger.warning(f"Cannot kill pid {target}: {e}")
            continue
        signalled.append(target)

    logger.info(f"Killed process tree of pid {pid}: {signalled}")
    return signalled
