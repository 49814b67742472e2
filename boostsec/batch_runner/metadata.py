"""Source-control metadata about the test being run."""

import asyncio
import logging
from pathlib import Path

from boostsec.batch_runner.errors import SetupError

logger = logging.getLogger(__name__)


async def _run_git(test_dir: Path, *args: str) -> str:
    """Run a git command in ``test_dir`` and return its stripped stdout.

    Raises:
        SetupError: If git cannot be run or exits with an error

    """
    try:
        process = await asyncio.create_subprocess_exec(
            "git",
            *args,
            cwd=test_dir,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise SetupError(f"Failed to run git in {test_dir}: {e}") from e

    stdout, stderr = await process.communicate()

    if process.returncode != 0:
        error_msg = stderr.decode(errors="replace").strip()
        logger.error(f"git {' '.join(args)} failed with exit code {process.returncode}")
        raise SetupError(f"Git command failed in {test_dir}: {error_msg}")

    return stdout.decode(errors="replace").strip()


async def git_revision(test_dir: Path) -> str:
    """Describe the git revision checked out in ``test_dir``.

    Args:
        test_dir: Directory containing the test program

    Returns:
        Revision descriptor (e.g., "v1.2-3-gabc1234-dirty")

    Raises:
        SetupError: If the directory is not inside a git repository

    """
    return await _run_git(test_dir, "describe", "--always", "--dirty")


async def relative_path(test_dir: Path, test_path: Path) -> str:
    """Path of ``test_path`` relative to the root of its git repository.

    Args:
        test_dir: Directory containing the test program
        test_path: Absolute path of the test program

    Returns:
        Repository-relative path (e.g., "tests/smoke/test_boot.py")

    Raises:
        SetupError: If the directory is not inside a git repository

    """
    prefix = await _run_git(test_dir, "rev-parse", "--show-prefix")
    return f"{prefix}{test_path.name}"
