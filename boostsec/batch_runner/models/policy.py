"""Continuation policy captured from the command line at startup."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Decision(str, Enum):
    """Whether the run loop proceeds after an invocation."""

    CONTINUE = "continue"
    STOP = "stop"


class ContinuationPolicy(BaseModel):
    """Operator tolerance for failing tests.

    ``leniency`` 0 stops on any failure, 1 tolerates infrastructure failures
    (exit status greater than 1) and 2 tolerates every failure.
    """

    model_config = ConfigDict(frozen=True)

    leniency: int = Field(default=0, ge=0, description="Number of -k flags given")
    run_once: bool = Field(default=False, description="Run the test list only once")
