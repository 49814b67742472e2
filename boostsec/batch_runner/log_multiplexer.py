"""Tee a child's output streams into timestamped log files."""

import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "[%Y-%m-%d %H:%M:%S.%f %z] "

# Minimum verbosity at which each stream is mirrored to the operator.
STDOUT_VERBOSITY = 1
STDERR_VERBOSITY = 2

READ_SIZE = 64 * 1024
# Output without a newline is cut into lines of at most this many bytes.
MAX_LINE_LENGTH = 1024 * 1024


def stamp_line(line: bytes, now: datetime | None = None) -> str:
    """Decode ``line`` and prefix it with its capture time."""
    if now is None:
        now = datetime.now().astimezone()
    text = line.decode(errors="replace")
    if not text.endswith("\n"):
        text += "\n"
    return now.strftime(TIMESTAMP_FORMAT) + text


def split_lines(
    buffer: bytes, max_length: int = MAX_LINE_LENGTH
) -> tuple[list[bytes], bytes]:
    """Split the complete lines off the front of ``buffer``.

    Lines keep their newline. A run of ``max_length`` bytes without a newline
    counts as a complete line.

    Returns:
        The complete lines and the unterminated remainder

    """
    lines: list[bytes] = []
    start = 0
    while True:
        end = buffer.find(b"\n", start, start + max_length)
        if end != -1:
            lines.append(buffer[start : end + 1])
            start = end + 1
        elif len(buffer) - start >= max_length:
            lines.append(buffer[start : start + max_length])
            start += max_length
        else:
            break
    return lines, buffer[start:]


def select_sink(verbosity: int, threshold: int, stream: TextIO) -> TextIO | None:
    """Return ``stream`` if ``verbosity`` reaches ``threshold``, else None."""
    if verbosity >= threshold:
        return stream
    return None


async def tee_stream(
    reader: asyncio.StreamReader, log_path: Path, sink: TextIO | None = None
) -> int:
    """Copy every line from ``reader`` to ``log_path`` and ``sink``.

    Returns once the stream reaches end-of-file.

    Args:
        reader: Output stream of the child process
        log_path: Log file the stamped lines are appended to
        sink: Operator-visible stream, or None to only log

    Returns:
        Number of lines captured

    """
    count = 0
    pending = b""
    with log_path.open("a", encoding="utf-8") as log_file:
        while True:
            chunk = await reader.read(READ_SIZE)
            if chunk:
                lines, pending = split_lines(pending + chunk)
            else:
                lines, pending = ([pending] if pending else []), b""

            for line in lines:
                stamped = stamp_line(line)
                log_file.write(stamped)
                log_file.flush()
                if sink is not None:
                    sink.write(stamped)
                    sink.flush()
            count += len(lines)

            if not chunk:
                break

    logger.debug(f"Captured {count} lines into {log_path}")
    return count


def start_multiplexers(
    process: asyncio.subprocess.Process, record_dir: Path, verbosity: int
) -> list[asyncio.Task[int]]:
    """Start draining both output streams of ``process`` concurrently.

    Args:
        process: Child whose stdout and stderr are pipes
        record_dir: Run record directory receiving stdout.log and stderr.log
        verbosity: Operator verbosity level

    Returns:
        One task per stream; both must be awaited before the run is finalized

    """
    if process.stdout is None or process.stderr is None:
        raise ValueError("Child process was started without output pipes")

    return [
        asyncio.create_task(
            tee_stream(
                process.stdout,
                record_dir / "stdout.log",
                select_sink(verbosity, STDOUT_VERBOSITY, sys.stdout),
            ),
            name=f"tee-stdout-{process.pid}",
        ),
        asyncio.create_task(
            tee_stream(
                process.stderr,
                record_dir / "stderr.log",
                select_sink(verbosity, STDERR_VERBOSITY, sys.stderr),
            ),
            name=f"tee-stderr-{process.pid}",
        ),
    ]
