"""Periodic export of live HAProxy statistics per backend node to Graphite."""

import datetime
import pathlib
import uuid
from typing import Annotated

from pydantic import Field, validate_call

from ._columnar_aggregator import RunningStat, aggregate_halog_rows, node_name_from_server_field
from ._config import DEFAULT_METRIC_PREFIX
from ._error_collection import _collect_error
from ._exceptions import ToolExecutionError
from ._globals import DEFAULT_SERVER_STATISTICS_ARGUMENTS, SERVER_STATISTICS_LAYOUT
from ._graphite_sink import MetricRecord, publish_to_graphite, sanitize_graphite_segment
from ._halog_summarizer import HalogSummarizer, Summarizer
from ._log_window_filter import _filter_recent_log_file


@validate_call(config=dict(arbitrary_types_allowed=True))
def export_live_metrics(
    *,
    log_file_path: pathlib.Path,
    graphite_host: str,
    graphite_port: Annotated[int, Field(ge=1, le=65535)],
    summarizer: Summarizer | None = None,
    window_in_seconds: int = Field(ge=0, default=60),
    metric_prefix: str = DEFAULT_METRIC_PREFIX,
    now: datetime.datetime | None = None,
    maximum_buffer_size_in_bytes: int = Field(ge=1, default=10**8),
) -> int:
    """
    Run one export cycle: summarize the HAProxy log per node and send the results to Graphite.

    Two metrics are reported per node:
      - `<metric_prefix>.<node>.request_count`: the cumulative number of requests in the whole log file.
      - `<metric_prefix>.<node>.avg_response_time`: the average response time over the last `window_in_seconds`.

    Failures never raise; they are collected in the errors folder and reflected in the exit status, so that the
    scheduler simply triggers the next cycle.

    Parameters
    ----------
    log_file_path : file path
        The path to the HAProxy log file.
    graphite_host : str
        The Graphite/Carbon host.
    graphite_port : int
        The Carbon plaintext TCP port.
    summarizer : Summarizer, optional
        Produces the per-server statistics. Defaults to running `halog` from the PATH.
    window_in_seconds : int, default: 60
        The size of the window for the average response times.
    metric_prefix : str, default: "halog_live.unipeptapi"
        The Graphite path under which the node metrics are reported.
    now : datetime.datetime, optional
        The end of the window. Defaults to the current time.
    maximum_buffer_size_in_bytes : int, default: 100 MB
        The theoretical maximum amount of RAM (in bytes) to use on each buffer iteration when scanning the log
        for recent lines. The request counts stream the log into the summarizer without buffering it.

    Returns
    -------
    int
        The exit status of the cycle: 0 on full success, 1 if any part failed.
    """
    summarizer = summarizer or HalogSummarizer()
    task_id = str(uuid.uuid4())[:5]
    exit_status = 0

    try:
        request_counts = _summarize_server_statistics(
            summarizer=summarizer, task_id=task_id, log_file_path=log_file_path
        )
    except (OSError, ToolExecutionError) as exception:
        message = f"Failed to count the requests per node in '{log_file_path}'."
        _collect_error(message=message, error_type="halog", task_id=task_id, exception=exception)
        return 1

    metric_records = [
        MetricRecord(
            path=f"{metric_prefix}.{sanitize_graphite_segment(node)}.request_count", value=running_stat.total_count
        )
        for node, running_stat in request_counts.items()
    ]

    try:
        # The log may have been rotated away since the request counts were taken
        recent_log_lines = _filter_recent_log_file(
            log_file_path=log_file_path,
            window_in_seconds=window_in_seconds,
            now=now,
            maximum_buffer_size_in_bytes=maximum_buffer_size_in_bytes,
            show_progress=False,
        )

        # No recent traffic simply means no averages this cycle
        recent_response_times = dict()
        if len(recent_log_lines) != 0:
            recent_response_times = _summarize_server_statistics(
                summarizer=summarizer, task_id=task_id, input_text="\n".join(recent_log_lines) + "\n"
            )
    except (OSError, ValueError, ToolExecutionError) as exception:
        message = f"Failed to compute the average response times per node in '{log_file_path}'."
        _collect_error(message=message, error_type="halog", task_id=task_id, exception=exception)
        recent_response_times = dict()
        exit_status = 1

    metric_records += [
        MetricRecord(
            path=f"{metric_prefix}.{sanitize_graphite_segment(node)}.avg_response_time",
            value=running_stat.weighted_average,
        )
        for node, running_stat in recent_response_times.items()
        if running_stat.total_count > 0
    ]

    is_published = publish_to_graphite(
        host=graphite_host, port=graphite_port, metric_records=metric_records, task_id=task_id
    )
    if not is_published:
        exit_status = 1

    return exit_status


def _summarize_server_statistics(
    *, summarizer: Summarizer, task_id: str, **summarizer_input
) -> dict[str, RunningStat]:
    rows = summarizer.summarize(arguments=DEFAULT_SERVER_STATISTICS_ARGUMENTS, **summarizer_input)

    return aggregate_halog_rows(
        rows=rows,
        column_layout=SERVER_STATISTICS_LAYOUT,
        key_transform=node_name_from_server_field,
        task_id=task_id,
    )
