import logging

from errors import InstrumentationError
from js_instrumenter import instrument_source
from run_selector import select_run
from sandbox import SandboxExecutor
from settings import load_settings
from trace_reducer import error_frame, reduce_events

logger = logging.getLogger(__name__)


class JSTracer:
    def __init__(self, settings=None):
        self.settings = settings or load_settings()
        self.executor = SandboxExecutor.from_settings(self.settings)

    def trace(self, code):
        """
        Instruments, runs and reduces a JavaScript snippet.
        Returns the list of Frame objects (possibly empty, or one error frame).
        """
        try:
            instrumented = instrument_source(code)
        except InstrumentationError as e:
            logger.warning("Instrumentation failed: %s", e.message)
            return [error_frame(e.message)]

        events = self.executor.execute(instrumented)
        run = select_run(events)
        frames = reduce_events(run)
        logger.info("Traced snippet: %d events, %d in run, %d frames", len(events), len(run), len(frames))
        return frames

    def run(self, code):
        """Same as trace(), as JSON-serializable dictionaries."""
        return [frame.to_dict() for frame in self.trace(code)]
