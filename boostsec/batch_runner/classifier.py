"""Decide whether the run loop continues after a test."""

from boostsec.batch_runner.models.policy import ContinuationPolicy, Decision

# Exit status 1 is a failure of the system under test; anything above is a
# failure of the test infrastructure.
SYSTEM_UNDER_TEST_FAILURE = 1


def classify(
    exit_status: int, policy: ContinuationPolicy, *, stop_requested: bool = False
) -> Decision:
    """Map an exit status to a continuation decision.

    Args:
        exit_status: Exit status of the finished test
        policy: Operator continuation policy
        stop_requested: True once the operator has interrupted the run

    Returns:
        CONTINUE if the next test may start, STOP otherwise

    """
    if stop_requested:
        return Decision.STOP
    if exit_status == 0:
        return Decision.CONTINUE
    if exit_status > SYSTEM_UNDER_TEST_FAILURE and policy.leniency >= 1:
        return Decision.CONTINUE
    if policy.leniency >= 2:
        return Decision.CONTINUE
    return Decision.STOP
