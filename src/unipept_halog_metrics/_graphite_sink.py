"""Delivery of metrics to Graphite over the Carbon plaintext protocol."""

import collections
import socket
import time
from typing import Annotated

from pydantic import Field, validate_call

from ._error_collection import _collect_error
from ._globals import _GRAPHITE_UNSAFE_CHARACTER_REGEX

MetricRecord = collections.namedtuple("MetricRecord", ["path", "value"])


def sanitize_graphite_segment(segment: str) -> str:
    """Replace every character that is not safe inside a single segment of a Graphite metric path."""
    return _GRAPHITE_UNSAFE_CHARACTER_REGEX.sub(repl="_", string=str(segment))


def format_metric_lines(metric_records: list[MetricRecord], timestamp: int) -> str:
    """Render metrics as Carbon plaintext, `<path> <value> <timestamp>` per line, sharing one timestamp."""
    return "".join(f"{metric_record.path} {metric_record.value} {timestamp}\n" for metric_record in metric_records)


@validate_call
def publish_to_graphite(
    *,
    host: str,
    port: Annotated[int, Field(ge=1, le=65535)],
    metric_records: list[MetricRecord],
    timeout_in_seconds: float = 10.0,
    task_id: str | None = None,
) -> bool:
    """
    Send a batch of metrics to a Carbon plaintext receiver over a single TCP connection.

    Delivery is best effort: failures are collected and reported through the return value, never raised,
    so that the next scheduled run can simply try again.

    Parameters
    ----------
    host : str
        The Graphite/Carbon host.
    port : int
        The Carbon plaintext TCP port (usually 2003).
    metric_records : list of MetricRecord
        The metrics to send. An empty list opens no connection.
    timeout_in_seconds : float, default: 10.0
        The timeout of every socket operation.
    task_id : str, optional
        Tag for the error collection file.

    Returns
    -------
    bool
        Whether all metrics were delivered and the connection was closed cleanly.
    """
    if len(metric_records) == 0:
        return True

    try:
        with socket.create_connection(address=(host, port), timeout=timeout_in_seconds) as connection:
            payload = format_metric_lines(metric_records=metric_records, timestamp=int(time.time()))
            connection.sendall(payload.encode("utf-8"))

            # Graceful close: signal the end of the batch and wait until the receiver closes its side
            connection.shutdown(socket.SHUT_WR)
            while connection.recv(4096):
                pass
    except OSError as exception:
        message = f"Failed to send {len(metric_records)} metrics to Graphite at {host}:{port}."
        _collect_error(message=message, error_type="graphite", task_id=task_id, exception=exception)

        return False

    return True
