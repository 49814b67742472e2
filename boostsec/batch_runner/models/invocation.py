"""Models for a single execution attempt of a test program."""

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field


class TestInvocation(BaseModel):
    """One execution attempt of a single test program."""

    __test__ = False

    test_path: Path = Field(..., description="Absolute path to the test program")
    record_dir: Path = Field(..., description="Run record directory for this attempt")
    verbosity: int = Field(default=0, ge=0, le=2, description="Operator verbosity")
    debug: bool = Field(default=False, description="Dump intermediate debug images")
    save_video: bool = Field(default=True, description="Record a video of the run")

    @property
    def verbosity_flag(self) -> str:
        """Verbosity flag handed to the test runner."""
        return "-vv" if self.debug else "-v"

    @property
    def video_path(self) -> Path | None:
        """Destination of the run video, if recording is enabled."""
        if not self.save_video:
            return None
        return self.record_dir / "video.webm"


class InvocationResult(BaseModel):
    """Final outcome of a test invocation."""

    test_path: Path = Field(..., description="Absolute path to the test program")
    record_dir: Path = Field(..., description="Run record directory")
    started_at: datetime = Field(..., description="Wall-clock start of the child")
    finished_at: datetime = Field(..., description="Wall-clock end of the wait")
    duration: int = Field(..., ge=0, description="Elapsed time in whole seconds")
    exit_status: int = Field(..., description="Exit status of the test program")

    @property
    def succeeded(self) -> bool:
        """True if the test program exited with status 0."""
        return self.exit_status == 0
