class HalogMetricsError(Exception):
    """Base class for all failures raised while exporting or collecting halog statistics."""


class ToolExecutionError(HalogMetricsError):
    """The external summarizer could not be found or exited with a non-zero status."""


class ParseError(HalogMetricsError):
    """A single row or timestamp could not be parsed; always recovered by skipping it."""


class SinkConnectionError(HalogMetricsError):
    """The statistics database could not be opened or initialized."""


class SinkWriteError(HalogMetricsError):
    """Writing to a sink failed after the connection succeeded."""
