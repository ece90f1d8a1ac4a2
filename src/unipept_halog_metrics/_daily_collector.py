"""Daily collection of HAProxy statistics per endpoint, node and traffic source into the statistics database."""

import datetime
import sqlite3
import uuid
from collections.abc import Sequence

import pandas
import tqdm
from pydantic import Field, FilePath, validate_call

from ._buffered_text_reader import BufferedTextReader
from ._columnar_aggregator import (
    RunningStat,
    aggregate_halog_rows,
    node_name_from_server_field,
    normalize_endpoint_path,
)
from ._config import DEFAULT_ACCEPTED_ENDPOINTS, DEFAULT_HOST_PREFIXES
from ._database_sink import DatedRow, replace_day
from ._globals import (
    DEFAULT_SERVER_STATISTICS_ARGUMENTS,
    DEFAULT_URL_STATISTICS_ARGUMENTS,
    ENDPOINT_STATISTICS_TABLE,
    NODE_STATISTICS_TABLE,
    SERVER_STATISTICS_LAYOUT,
    SOURCE_STATISTICS_TABLE,
    URL_STATISTICS_LAYOUT,
)
from ._halog_summarizer import HalogSummarizer, Summarizer
from ._user_agent_classifier import count_requests_by_user_agent_class, count_user_agents


def resolve_collection_date(day_offset: int, today: datetime.date | None = None) -> datetime.date:
    """The calendar date `day_offset` days before `today`; an offset of 1 collects yesterday's log."""
    today = today or datetime.date.today()

    return today - datetime.timedelta(days=day_offset)


def running_stats_to_dated_rows(running_stats: dict[str, RunningStat], date: datetime.date) -> list[DatedRow]:
    return [
        DatedRow(
            date=date,
            group_key=key,
            success_count=running_stat.success_count,
            error_count=running_stat.error_count,
            average_duration=running_stat.weighted_average,
        )
        for key, running_stat in running_stats.items()
    ]


@validate_call(config=dict(arbitrary_types_allowed=True))
def collect_daily_statistics(
    *,
    log_file_path: FilePath,
    connection: sqlite3.Connection,
    date: datetime.date,
    summarizer: Summarizer | None = None,
    accepted_endpoints: Sequence[str] = DEFAULT_ACCEPTED_ENDPOINTS,
    host_prefixes: Sequence[str] = DEFAULT_HOST_PREFIXES,
    maximum_buffer_size_in_bytes: int = Field(ge=1, default=10**8),
    show_progress: bool = False,
) -> dict[str, list[DatedRow]]:
    """
    Summarize a full day of HAProxy logs and replace the statistics of that date in the database.

    The log file is expected to contain the traffic of `date` only (i.e., a log rotated daily).
    All three summaries are computed before anything is written, so a failing summarizer leaves the database
    untouched. Each table is then replaced in its own transaction.

    Parameters
    ----------
    log_file_path : file path
        The path to the HAProxy log file of the day.
    connection : sqlite3.Connection
        An open connection to the statistics database.
    date : datetime.date
        The calendar date the statistics are stored under.
    summarizer : Summarizer, optional
        Produces the per-URL and per-server statistics. Defaults to running `halog` from the PATH.
    accepted_endpoints : sequence of strings
        Only endpoints containing one of these substrings are stored.
    host_prefixes : sequence of strings
        Scheme and host prefixes stripped from the requested URLs.
    maximum_buffer_size_in_bytes : int, default: 100 MB
        The theoretical maximum amount of RAM (in bytes) to use on each buffer iteration when counting the user
        agents. The summaries stream the log into the summarizer without buffering it.
    show_progress : bool, default: False
        Whether to display a progress bar while counting the user agents.

    Returns
    -------
    dict
        The rows written to each table.

    Raises
    ------
    OSError
        If the log file cannot be read.
    ValueError
        If a line of the log exceeds the buffer size.
    ToolExecutionError
        If the summarizer fails.
    SinkWriteError
        If replacing the rows of any table fails.
    """
    summarizer = summarizer or HalogSummarizer()
    task_id = str(uuid.uuid4())[:5]

    endpoint_statistics = aggregate_halog_rows(
        rows=summarizer.summarize(arguments=DEFAULT_URL_STATISTICS_ARGUMENTS, log_file_path=log_file_path),
        column_layout=URL_STATISTICS_LAYOUT,
        key_transform=lambda endpoint: normalize_endpoint_path(endpoint=endpoint, host_prefixes=host_prefixes),
        accepted_keys=accepted_endpoints,
        task_id=task_id,
    )
    node_statistics = aggregate_halog_rows(
        rows=summarizer.summarize(arguments=DEFAULT_SERVER_STATISTICS_ARGUMENTS, log_file_path=log_file_path),
        column_layout=SERVER_STATISTICS_LAYOUT,
        key_transform=node_name_from_server_field,
        task_id=task_id,
    )

    # Only one buffer of lines is held in memory at a time
    buffered_text_reader = BufferedTextReader(
        file_path=log_file_path, maximum_buffer_size_in_bytes=maximum_buffer_size_in_bytes
    )
    progress_bar_iterator = tqdm.tqdm(
        iterable=buffered_text_reader,
        total=len(buffered_text_reader),
        desc=f"Counting user agents in {log_file_path.name}...",
        leave=False,
        disable=not show_progress,
    )
    user_agent_counts = count_user_agents(
        log_lines=(log_line for log_lines_buffer in progress_bar_iterator for log_line in log_lines_buffer)
    )
    requests_by_user_agent_class = count_requests_by_user_agent_class(user_agent_counts=user_agent_counts)

    rows_by_table = {
        ENDPOINT_STATISTICS_TABLE: running_stats_to_dated_rows(running_stats=endpoint_statistics, date=date),
        NODE_STATISTICS_TABLE: running_stats_to_dated_rows(running_stats=node_statistics, date=date),
        SOURCE_STATISTICS_TABLE: [
            DatedRow(
                date=date,
                group_key=str(user_agent_class),
                success_count=request_count,
                error_count=0,
                average_duration=None,
            )
            for user_agent_class, request_count in requests_by_user_agent_class.items()
        ],
    }

    for table, dated_rows in rows_by_table.items():
        replace_day(connection=connection, table=table, date=date, dated_rows=dated_rows)

    return rows_by_table


def dated_rows_to_data_frame(rows_by_table: dict[str, list[DatedRow]]) -> pandas.DataFrame:
    """Tabulate the collected rows of all tables, e.g. for a TSV summary of the run."""
    data_frame = pandas.DataFrame(
        data=[
            {"table": table, **dated_row._asdict()}
            for table, dated_rows in rows_by_table.items()
            for dated_row in dated_rows
        ],
        columns=["table", *DatedRow._fields],
    )
    data_frame["date"] = data_frame["date"].map(lambda date: date.isoformat())

    return data_frame
