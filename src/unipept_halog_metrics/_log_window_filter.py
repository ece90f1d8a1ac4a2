"""
Selection of the most recent lines of an HAProxy log.

rsyslog prefixes every HAProxy log line with an ISO-8601/RFC3339 timestamp, e.g.

    2025-10-21T10:08:04.123456+02:00 haproxy[1234]: ...

Some syslog templates split the timezone off into a second token:

    2025-10-21T10:08:04 +02:00 haproxy[1234]: ...

Lines without a usable timestamp (foreign programs, truncated writes) never belong to a window.
"""

import datetime
import pathlib
from collections.abc import Iterable

import tqdm
from pydantic import Field, FilePath, validate_call

from ._buffered_text_reader import BufferedTextReader
from ._globals import _ISO_TIMESTAMP_REGEX, _TIMEZONE_OFFSET_REGEX


def parse_log_line_timestamp(tokens: list[str]) -> datetime.datetime | None:
    """
    Parse the timestamp from the leading whitespace-separated tokens of a log line.

    Returns a timezone-aware datetime, or None if the tokens do not start with an ISO-8601 timestamp.
    Timestamps without any offset are interpreted in the local timezone.
    """
    if len(tokens) == 0:
        return None

    match = _ISO_TIMESTAMP_REGEX.match(tokens[0])
    if match is None:
        return None

    offset = match["offset"]
    if offset is None and len(tokens) > 1 and _TIMEZONE_OFFSET_REGEX.match(tokens[1]) is not None:
        offset = tokens[1]

    try:
        timestamp = datetime.datetime.strptime(match["moment"], "%Y-%m-%dT%H:%M:%S")

        fraction = match["fraction"]
        if fraction is not None:
            # Digits beyond microsecond precision are truncated
            timestamp = timestamp.replace(microsecond=int(fraction[1:7].ljust(6, "0")))

        if offset is None:
            return timestamp.astimezone()

        return timestamp.replace(tzinfo=_parse_timezone_offset(offset=offset))
    except ValueError:
        # Shaped like a timestamp, but not a real moment in time (e.g., month 13 or offset +25:00)
        return None


def _parse_timezone_offset(*, offset: str) -> datetime.timezone:
    if offset in ("Z", "z"):
        return datetime.timezone.utc

    sign = -1 if offset[0] == "-" else 1
    digits = offset[1:].replace(":", "")
    hours, minutes = int(digits[:2]), int(digits[2:])

    return datetime.timezone(sign * datetime.timedelta(hours=hours, minutes=minutes))


def filter_recent_log_lines(
    log_lines: Iterable[str],
    window_in_seconds: int,
    now: datetime.datetime | None = None,
) -> list[str]:
    """
    Keep only the log lines whose timestamp lies within the last `window_in_seconds` before `now`.

    The lower bound is inclusive and the original order of the lines is preserved.

    Parameters
    ----------
    log_lines : iterable of strings
        The raw lines of the log.
    window_in_seconds : int
        The size of the window.
    now : datetime.datetime, optional
        The end of the window. Defaults to the current time; naive values are interpreted as local time.
    """
    if window_in_seconds < 0:
        raise ValueError(f"The window should not be negative, but received `{window_in_seconds=}`.")

    now = now or datetime.datetime.now()
    if now.tzinfo is None:
        now = now.astimezone()
    cutoff = now - datetime.timedelta(seconds=window_in_seconds)

    recent_log_lines = [
        log_line
        for log_line in log_lines
        if (timestamp := parse_log_line_timestamp(tokens=log_line.split()[:2])) is not None and timestamp >= cutoff
    ]

    return recent_log_lines


@validate_call
def filter_recent_log_file(
    *,
    log_file_path: FilePath,
    window_in_seconds: int = Field(ge=0, default=60),
    now: datetime.datetime | None = None,
    maximum_buffer_size_in_bytes: int = Field(ge=1, default=10**8),
    show_progress: bool = False,
) -> list[str]:
    """
    Read an HAProxy log file and keep only the lines of the last `window_in_seconds`.

    Parameters
    ----------
    log_file_path : file path
        The path to the HAProxy log file.
    window_in_seconds : int, default: 60
        The size of the window.
    now : datetime.datetime, optional
        The end of the window. Defaults to the current time.
    maximum_buffer_size_in_bytes : int, default: 100 MB
        The theoretical maximum amount of RAM (in bytes) to use on each buffer iteration when reading the file.
    show_progress : bool, default: False
        Whether to display a progress bar over the buffers.
    """
    return _filter_recent_log_file(
        log_file_path=log_file_path,
        window_in_seconds=window_in_seconds,
        now=now,
        maximum_buffer_size_in_bytes=maximum_buffer_size_in_bytes,
        show_progress=show_progress,
    )


def _filter_recent_log_file(
    *,
    log_file_path: pathlib.Path,
    window_in_seconds: int,
    now: datetime.datetime | None,
    maximum_buffer_size_in_bytes: int,
    show_progress: bool,
) -> list[str]:
    # The end of the window is fixed once for all buffers
    now = now or datetime.datetime.now()

    buffered_text_reader = BufferedTextReader(
        file_path=log_file_path, maximum_buffer_size_in_bytes=maximum_buffer_size_in_bytes
    )
    progress_bar_iterator = tqdm.tqdm(
        iterable=buffered_text_reader,
        total=len(buffered_text_reader),
        desc="Filtering recent log lines...",
        leave=False,
        disable=not show_progress,
    )

    recent_log_lines = [
        log_line
        for log_lines_buffer in progress_bar_iterator
        for log_line in filter_recent_log_lines(
            log_lines=log_lines_buffer, window_in_seconds=window_in_seconds, now=now
        )
    ]

    return recent_log_lines
