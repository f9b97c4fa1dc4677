class TracerError(Exception):
    """Base class for failures surfaced to the visualizer as an error frame."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class InstrumentationError(TracerError):
    """The snippet could not be parsed or rewritten."""


class ExecutionError(TracerError):
    """The snippet threw, or the runtime failed while running it."""


class ExecutionTimeout(ExecutionError):
    """The snippet did not finish within the time or step budget."""
