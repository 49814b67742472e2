"""Errors raised by the batch runner."""


class SetupError(RuntimeError):
    """A run record or its inputs could not be prepared.

    Setup errors abort the whole batch run.
    """
