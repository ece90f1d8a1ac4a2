"""Call the HAProxy statistics exporter and collector from the command line."""

import pathlib
import sys

import click

from ._config import (
    DEFAULT_GRAPHITE_HOST,
    DEFAULT_GRAPHITE_PORT,
    DEFAULT_HAPROXY_LOG_FILE_PATH,
    DEFAULT_WINDOW_IN_SECONDS,
    load_configuration,
)
from ._daily_collector import collect_daily_statistics, dated_rows_to_data_frame, resolve_collection_date
from ._database_sink import connect_to_database
from ._error_collection import _collect_error
from ._exceptions import SinkConnectionError, SinkWriteError, ToolExecutionError
from ._halog_summarizer import HalogSummarizer
from ._live_exporter import export_live_metrics

_EXIT_STATUS_CYCLE_FAILED = 1
_EXIT_STATUS_WRITE_FAILED = 3


@click.command(name="unipept_halog_live")
@click.option(
    "--haproxy_log_file_path",
    help="Path to the HAProxy log file.",
    required=False,
    type=click.Path(dir_okay=False, path_type=pathlib.Path),
    default=DEFAULT_HAPROXY_LOG_FILE_PATH,
    show_default=True,
)
@click.option(
    "--graphite_host",
    help="The Graphite/Carbon host.",
    required=False,
    type=str,
    default=DEFAULT_GRAPHITE_HOST,
    show_default=True,
)
@click.option(
    "--graphite_port",
    help="The Graphite/Carbon plaintext TCP port.",
    required=False,
    type=click.IntRange(min=1, max=65535),
    default=DEFAULT_GRAPHITE_PORT,
    show_default=True,
)
@click.option(
    "--window_in_seconds",
    help="The number of most recent seconds of the log over which to average the response times.",
    required=False,
    type=click.IntRange(min=0),
    default=DEFAULT_WINDOW_IN_SECONDS,
    show_default=True,
)
@click.option(
    "--halog_executable",
    help="The name or path of the halog binary.",
    required=False,
    type=str,
    default="halog",
    show_default=True,
)
def _export_live_metrics_cli(
    haproxy_log_file_path: pathlib.Path,
    graphite_host: str,
    graphite_port: int,
    window_in_seconds: int,
    halog_executable: str,
) -> None:
    """
    Report the request count and recent average response time of every backend node to Graphite.

    Intended to run every few seconds from a systemd timer. Failures are written to the errors folder in
    ~/.unipept_halog_metrics and result in exit status 1; the next run simply tries again.
    """
    configuration = _load_configuration_or_fail()

    exit_status = export_live_metrics(
        log_file_path=haproxy_log_file_path,
        graphite_host=graphite_host,
        graphite_port=graphite_port,
        summarizer=HalogSummarizer(executable=halog_executable),
        window_in_seconds=window_in_seconds,
        metric_prefix=configuration["metric_prefix"],
    )
    if exit_status != 0:
        click.echo("Exporting live metrics failed; see the errors folder for details.", err=True)

    sys.exit(exit_status)


@click.command(name="unipept_halog_collect")
@click.option(
    "--haproxy_log_file_path",
    help="Path to the HAProxy log file containing the traffic of a single day.",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=pathlib.Path),
)
@click.option(
    "--database_file_path",
    help="Path to the SQLite statistics database. It is created and initialized if it does not exist yet.",
    required=True,
    type=click.Path(dir_okay=False, writable=True, path_type=pathlib.Path),
)
@click.option(
    "--day_offset",
    help="Store the statistics under the date this many days before today (1 for a log rotated at midnight).",
    required=False,
    type=click.IntRange(min=0),
    default=1,
    show_default=True,
)
@click.option(
    "--halog_executable",
    help="The name or path of the halog binary.",
    required=False,
    type=str,
    default="halog",
    show_default=True,
)
@click.option(
    "--summary_file_path",
    help="Optionally write all collected rows to this TSV file as well.",
    required=False,
    type=click.Path(dir_okay=False, writable=True, path_type=pathlib.Path),
    default=None,
)
@click.option(
    "--show_progress",
    help="Display a progress bar while reading the log file.",
    is_flag=True,
    default=False,
)
def _collect_daily_statistics_cli(
    haproxy_log_file_path: pathlib.Path,
    database_file_path: pathlib.Path,
    day_offset: int,
    halog_executable: str,
    summary_file_path: pathlib.Path | None,
    show_progress: bool,
) -> None:
    """
    Replace the endpoint, node and source statistics of one day in the statistics database.

    Exit status 1 means halog or the database could not be reached and nothing was written;
    exit status 3 means writing failed and the affected table kept its previous rows for that day.
    """
    configuration = _load_configuration_or_fail()
    date = resolve_collection_date(day_offset=day_offset)

    try:
        connection = connect_to_database(database_file_path=database_file_path)
    except SinkConnectionError as exception:
        _collect_error(message=str(exception), error_type="database", exception=exception)
        click.echo(f"{exception} {exception.__cause__}", err=True)
        sys.exit(_EXIT_STATUS_CYCLE_FAILED)

    try:
        rows_by_table = collect_daily_statistics(
            log_file_path=haproxy_log_file_path,
            connection=connection,
            date=date,
            summarizer=HalogSummarizer(executable=halog_executable),
            accepted_endpoints=configuration["accepted_endpoints"],
            host_prefixes=configuration["host_prefixes"],
            show_progress=show_progress,
        )
    except (OSError, ValueError, ToolExecutionError) as exception:
        message = f"Collecting statistics for {date.isoformat()} failed."
        _collect_error(message=message, error_type="halog", exception=exception)
        click.echo(f"Collecting statistics for {date.isoformat()} failed: {exception}", err=True)
        sys.exit(_EXIT_STATUS_CYCLE_FAILED)
    except SinkWriteError as exception:
        _collect_error(message=str(exception), error_type="database", exception=exception)
        click.echo(f"{exception} {exception.__cause__}", err=True)
        sys.exit(_EXIT_STATUS_WRITE_FAILED)
    finally:
        connection.close()

    if summary_file_path is not None:
        summary = dated_rows_to_data_frame(rows_by_table=rows_by_table)
        summary.to_csv(path_or_buf=summary_file_path, sep="\t", header=True, index=False)

    for table, dated_rows in rows_by_table.items():
        click.echo(f"Stored {len(dated_rows)} rows in {table} for {date.isoformat()}.")


def _load_configuration_or_fail() -> dict:
    try:
        return load_configuration()
    except (OSError, ValueError) as exception:
        _collect_error(message=str(exception), error_type="configuration", exception=exception)
        raise click.ClickException(message=str(exception)) from exception
