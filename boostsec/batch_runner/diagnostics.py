"""Best-effort report generation and failure screenshots.

Failures here are logged and never interrupt the run loop.
"""

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

logger = logging.getLogger(__name__)


async def _run_best_effort(command: Sequence[str]) -> bool:
    """Run ``command`` to completion, returning False on any failure."""
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.warning(f"Failed to run {command[0]}: {e}")
        return False

    _, stderr = await process.communicate()

    if process.returncode != 0:
        logger.warning(
            f"{' '.join(command)} exited with {process.returncode}: "
            f"{stderr.decode(errors='replace').strip()}"
        )
        return False
    return True


async def generate_report(command: Sequence[str] | None, record_dir: Path) -> bool:
    """Generate the report for a finished run record."""
    if not command:
        return False
    logger.info(f"Generating report for {record_dir}")
    return await _run_best_effort([*command, str(record_dir)])


async def capture_screenshot(command: Sequence[str] | None, output_path: Path) -> bool:
    """Save a screenshot of the device under test to ``output_path``."""
    if not command:
        return False
    logger.debug(f"Capturing screenshot to {output_path}")
    return await _run_best_effort([*command, str(output_path)])
