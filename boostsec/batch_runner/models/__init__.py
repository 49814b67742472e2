"""Data models for test invocations, run policy and configuration."""

from boostsec.batch_runner.models.config import SupervisorConfig
from boostsec.batch_runner.models.invocation import InvocationResult, TestInvocation
from boostsec.batch_runner.models.policy import ContinuationPolicy, Decision

__all__ = [
    "ContinuationPolicy",
    "Decision",
    "InvocationResult",
    "SupervisorConfig",
    "TestInvocation",
]
