"""
Storage of daily statistics in an SQL database.

Each table holds one row per (date, key). Writing a date always replaces everything stored for that date, so a
collection can be re-run for the same day without producing duplicates.
"""

import collections
import datetime
import pathlib
import sqlite3

from pydantic import validate_call

from ._exceptions import SinkConnectionError, SinkWriteError
from ._globals import _KNOWN_TABLES, _TABLE_TO_KEY_COLUMN, SOURCE_STATISTICS_TABLE

DatedRow = collections.namedtuple(
    "DatedRow", ["date", "group_key", "success_count", "error_count", "average_duration"]
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS endpoint_stats (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    date TEXT NOT NULL,
    endpoint TEXT NOT NULL,
    req_successful INTEGER,
    req_error INTEGER,
    avg_duration REAL
);
CREATE UNIQUE INDEX IF NOT EXISTS endpoint_stats_date_endpoint ON endpoint_stats (date, endpoint);

CREATE TABLE IF NOT EXISTS node_stats (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    date TEXT NOT NULL,
    node TEXT NOT NULL,
    req_successful INTEGER,
    req_error INTEGER,
    avg_duration REAL
);
CREATE UNIQUE INDEX IF NOT EXISTS node_stats_date_node ON node_stats (date, node);

CREATE TABLE IF NOT EXISTS source_stats (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    date TEXT NOT NULL,
    source TEXT NOT NULL,
    req_total INTEGER
);
CREATE UNIQUE INDEX IF NOT EXISTS source_stats_date_source ON source_stats (date, source);
"""


def connect_to_database(database_file_path: str | pathlib.Path) -> sqlite3.Connection:
    """Open (and if needed create) the statistics database and make sure all tables exist."""
    try:
        connection = sqlite3.connect(database=database_file_path)
        initialize_schema(connection=connection)
    except sqlite3.Error as exception:
        raise SinkConnectionError(f"Unable to open the statistics database at '{database_file_path}'.") from exception

    return connection


def initialize_schema(connection: sqlite3.Connection) -> None:
    connection.executescript(_SCHEMA)
    connection.commit()


@validate_call(config=dict(arbitrary_types_allowed=True))
def replace_day(
    *, connection: sqlite3.Connection, table: str, date: datetime.date, dated_rows: list[DatedRow]
) -> None:
    """
    Replace all statistics stored in `table` for `date` by `dated_rows`, within a single transaction.

    Parameters
    ----------
    connection : sqlite3.Connection
        An open DB-API connection to the statistics database.
    table : str
        One of "endpoint_stats", "node_stats" or "source_stats".
    date : datetime.date
        The calendar date being replaced.
    dated_rows : list of DatedRow
        The new rows; all of them must belong to `date`.

    Raises
    ------
    SinkWriteError
        If any statement fails. The transaction is rolled back, leaving the previous rows for the date intact.
    """
    if table not in _KNOWN_TABLES:
        raise ValueError(f"Unknown statistics table '{table}'! Choose one of {list(_KNOWN_TABLES)}.")

    mismatched_rows = [dated_row for dated_row in dated_rows if dated_row.date != date]
    if len(mismatched_rows) != 0:
        raise ValueError(f"All rows should belong to {date.isoformat()}, but found {mismatched_rows}.")

    key_column = _TABLE_TO_KEY_COLUMN[table]
    if table == SOURCE_STATISTICS_TABLE:
        insert_statement = f"INSERT INTO {table} (date, {key_column}, req_total) VALUES (?, ?, ?)"
        parameters = [(date.isoformat(), dated_row.group_key, dated_row.success_count) for dated_row in dated_rows]
    else:
        insert_statement = (
            f"INSERT INTO {table} (date, {key_column}, req_successful, req_error, avg_duration) VALUES (?, ?, ?, ?, ?)"
        )
        parameters = [
            (
                date.isoformat(),
                dated_row.group_key,
                dated_row.success_count,
                dated_row.error_count,
                dated_row.average_duration,
            )
            for dated_row in dated_rows
        ]

    try:
        # The connection context manager commits on success and rolls back on any exception
        with connection:
            connection.execute(f"DELETE FROM {table} WHERE date = ?", (date.isoformat(),))
            for parameter in parameters:
                connection.execute(insert_statement, parameter)
    except sqlite3.Error as exception:
        message = f"Failed to replace the rows of {table} for {date.isoformat()}; the previous rows were kept."
        raise SinkWriteError(message) from exception
