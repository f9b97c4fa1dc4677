import logging

import quickjs

from errors import ExecutionError, ExecutionTimeout
from events import error_event
from probe_runtime import BUDGET_EXPRESSION, EVENTS_EXPRESSION, load_events, prelude

logger = logging.getLogger(__name__)

# First line of the exception QuickJS raises when the time limit interrupts a run.
INTERRUPTED = "InternalError: interrupted"


class SandboxExecutor:
    """Runs instrumented code in a fresh QuickJS context per call.

    The context only sees the ECMAScript built-ins and the probe runtime; it is
    created for one execution and dropped afterwards. Nothing calls back into
    Python while the snippet runs: the recorded events are read back in one
    piece once it has finished.
    """

    def __init__(self, time_limit=2.0, memory_limit=64 * 1024 * 1024, max_stack=1024 * 1024, max_events=10000):
        self.time_limit = time_limit
        self.memory_limit = memory_limit
        self.max_stack = max_stack
        self.max_events = max_events

    @classmethod
    def from_settings(cls, settings):
        return cls(
            time_limit=settings.time_limit,
            memory_limit=settings.memory_limit,
            max_stack=settings.max_stack,
            max_events=settings.max_events,
        )

    def _new_context(self):
        context = quickjs.Context()
        context.set_memory_limit(self.memory_limit)
        context.set_max_stack_size(self.max_stack)
        context.eval(prelude(self.max_events))
        # The budget starts once the runtime is installed.
        context.set_time_limit(self.time_limit)
        return context

    def _budget_exceeded(self, context):
        try:
            return bool(context.eval(BUDGET_EXPRESSION))
        except quickjs.JSException:
            # the context can be unusable after running out of memory
            return False

    def _steps_timeout(self):
        logger.warning("Probe budget of %d events exhausted", self.max_events)
        return ExecutionTimeout(f"Execution timed out: your program did not finish within {self.max_events} steps")

    def execute_or_raise(self, instrumented_source):
        """Return the recorded events, raising ExecutionError on failure."""
        context = self._new_context()
        try:
            context.eval(instrumented_source)
        except quickjs.JSException as e:
            if self._budget_exceeded(context):
                raise self._steps_timeout() from e
            lines = str(e).strip().splitlines()
            message = lines[0].strip() if lines else "Unknown error"
            if message == INTERRUPTED:
                raise ExecutionTimeout(
                    f"Execution timed out: your program did not finish within {self.time_limit:g}s"
                ) from e
            raise ExecutionError(message) from e
        if self._budget_exceeded(context):
            # the snippet caught the budget error itself and carried on
            raise self._steps_timeout()
        return load_events(context.eval(EVENTS_EXPRESSION))

    def execute(self, instrumented_source):
        """Return the recorded events, or a single ``error`` event on failure.

        Events recorded before a failure are discarded.
        """
        try:
            events = self.execute_or_raise(instrumented_source)
        except ExecutionTimeout as e:
            logger.warning("Snippet timed out: %s", e.message)
            return [error_event(e.message)]
        except ExecutionError as e:
            logger.warning("Snippet failed: %s", e.message)
            return [error_event(e.message)]
        logger.debug("Snippet recorded %d events", len(events))
        return events
