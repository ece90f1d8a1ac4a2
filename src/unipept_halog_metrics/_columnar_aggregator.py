"""
Aggregation of the tabular output of `halog` into per-key running statistics.

The strategy is to...

1) Split each data line on the delimiter of its column layout and pick out the key, count and average fields.
2) Turn the raw key into an aggregation key (e.g., `all_handlers/selma` -> `selma`) and drop unwanted keys.
3) Fold the counts and average into a RunningStat per key, weighting the averages by their request counts.

A malformed line is skipped (and collected as an error); it never fails the whole batch.

The weighted merge assumes that repeated rows for the same key describe disjoint sets of requests.
Feeding it cumulative totals of overlapping requests would count those requests twice.
"""

import dataclasses
import math
import re
import uuid
from collections.abc import Callable, Iterable, Sequence

import pandas
from pydantic import validate_call

from ._config import DEFAULT_HOST_PREFIXES
from ._error_collection import _collect_error
from ._exceptions import ParseError
from ._globals import _HalogColumnLayout


@dataclasses.dataclass
class RunningStat:
    """The number of requests, failed requests and their average duration observed for one key so far."""

    total_count: int = 0
    error_count: int = 0
    weighted_average: float = 0.0

    @property
    def success_count(self) -> int:
        return self.total_count - self.error_count

    def fold(self, *, count: int, average: float, error_count: int = 0) -> None:
        """Fold a partial observation of `count` requests with mean `average` into this statistic."""
        if count < 0 or error_count < 0:
            raise ValueError(f"Counts should not be negative, but received `{count=}` and `{error_count=}`.")

        # Nothing observed
        if count == 0:
            return None

        new_total_count = self.total_count + count
        self.weighted_average = (average * count + self.weighted_average * self.total_count) / new_total_count
        self.total_count = new_total_count
        self.error_count += min(error_count, count)

    def merge(self, other: "RunningStat") -> None:
        self.fold(count=other.total_count, average=other.weighted_average, error_count=other.error_count)


def node_name_from_server_field(server_field: str) -> str:
    """Reduce a `backend/server` field of `halog -srv` to the name of the server, e.g. `all_handlers/selma`."""
    return server_field.rsplit("/", maxsplit=1)[-1]


def normalize_endpoint_path(endpoint: str, host_prefixes: Iterable[str] = DEFAULT_HOST_PREFIXES) -> str:
    """
    Reduce a requested URL to its path, so that equivalent requests share one key.

    Strips a leading known scheme and host, the query string, and duplicate slashes.
    """
    for host_prefix in host_prefixes:
        if endpoint.startswith(host_prefix):
            endpoint = endpoint[len(host_prefix) :]
            break

    path = endpoint.split("?", maxsplit=1)[0]
    path = re.sub(pattern=r"/{2,}", repl="/", string=path)

    return path or "/"


@validate_call
def aggregate_halog_rows(
    *,
    rows: Iterable[str],
    column_layout: _HalogColumnLayout,
    key_transform: Callable[[str], str] | None = None,
    accepted_keys: Sequence[str] | None = None,
    task_id: str | None = None,
) -> dict[str, RunningStat]:
    """
    Group the data lines of `halog` output by key and fold them into running statistics.

    Parameters
    ----------
    rows : iterable of strings
        The data lines of the summary; header and status line must already be removed.
    column_layout : HalogColumnLayout
        The delimiter and positions of the fields, e.g. `SERVER_STATISTICS_LAYOUT` or `URL_STATISTICS_LAYOUT`.
    key_transform : callable, optional
        Turns the raw key field into the aggregation key. Defaults to using the raw field unchanged.
    accepted_keys : sequence of strings, optional
        If given, only keys containing at least one of these substrings are kept.
        A single string is rejected, since it would match per character.
    task_id : str, optional
        Tag for the error collection file of skipped lines. Defaults to a random identifier.

    Returns
    -------
    dict
        The running statistic of each aggregation key, in order of first appearance.
    """
    key_transform = key_transform or (lambda raw_key: raw_key)
    task_id = task_id or str(uuid.uuid4())[:5]

    running_stats: dict[str, RunningStat] = dict()
    for row in rows:
        if row.strip() == "":
            continue

        try:
            raw_key, total_count, error_count, average = _parse_halog_row(row=row, column_layout=column_layout)
        except ParseError as exception:
            _collect_error(message=str(exception), error_type="row", task_id=task_id)
            continue

        key = key_transform(raw_key)
        if not key:
            continue
        if accepted_keys is not None and not any(accepted_key in key for accepted_key in accepted_keys):
            continue

        running_stat = running_stats.setdefault(key, RunningStat())
        running_stat.fold(count=total_count, average=average, error_count=error_count)

    return running_stats


def _parse_halog_row(*, row: str, column_layout: _HalogColumnLayout) -> tuple[str, int, int, float]:
    fields = row.split(column_layout.delimiter)

    try:
        raw_key = fields[column_layout.key_column]
        total_count = int(fields[column_layout.total_count_column])
        average = float(fields[column_layout.average_column])

        if column_layout.error_count_column is not None:
            error_count = int(fields[column_layout.error_count_column])
        elif column_layout.ok_count_column is not None:
            error_count = max(total_count - int(fields[column_layout.ok_count_column]), 0)
        else:
            error_count = 0
    except (IndexError, ValueError) as exception:
        raise ParseError(f"Unable to parse halog line '{row}': {exception}") from exception

    if not math.isfinite(average):
        raise ParseError(f"Non-finite average parsed from halog line '{row}'.")
    if total_count < 0 or error_count < 0:
        raise ParseError(f"Negative count parsed from halog line '{row}'.")
    if raw_key == "":
        raise ParseError(f"Empty key parsed from halog line '{row}'.")

    return raw_key, total_count, error_count, average


def running_stats_to_data_frame(running_stats: dict[str, RunningStat], key_name: str = "key") -> pandas.DataFrame:
    """Tabulate running statistics, one row per key, sorted by key."""
    data_frame = pandas.DataFrame(
        data={
            key_name: list(running_stats.keys()),
            "total_count": [running_stat.total_count for running_stat in running_stats.values()],
            "success_count": [running_stat.success_count for running_stat in running_stats.values()],
            "error_count": [running_stat.error_count for running_stat in running_stats.values()],
            "weighted_average": [running_stat.weighted_average for running_stat in running_stats.values()],
        }
    )
    data_frame = data_frame.sort_values(by=key_name)
    data_frame.index = range(len(data_frame))

    return data_frame
