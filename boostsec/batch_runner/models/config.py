"""Configuration for the external programs the supervisor drives."""

from pathlib import Path

from pydantic import BaseModel, Field


class SupervisorConfig(BaseModel):
    """Commands and locations used by the batch runner."""

    runner_command: list[str] = Field(
        default_factory=lambda: ["stbt", "run"],
        min_length=1,
        description="Command that launches a single test program",
    )
    save_video: bool = Field(
        default=True, description="Ask the runner to record a video of each run"
    )
    report_command: list[str] | None = Field(
        default_factory=lambda: ["stbt", "batch", "report", "--html-only"],
        description="Report generator; the record directory is appended",
    )
    screenshot_command: list[str] | None = Field(
        default_factory=lambda: ["stbt", "screenshot"],
        description="Screenshot capture on failure; the output path is appended",
    )
    results_dir: Path = Field(
        default=Path("."), description="Directory holding run records and aliases"
    )
