import datetime
import importlib.metadata
import traceback

from ._config import UNIPEPT_HALOG_METRICS_BASE_FOLDER_PATH

_ERRORS_FOLDER_PATH = UNIPEPT_HALOG_METRICS_BASE_FOLDER_PATH / "errors"


def _collect_error(
    message: str, error_type: str, task_id: str | None = None, exception: BaseException | None = None
) -> None:
    """
    Append an error report to a text file in the base folder, so failures of unattended runs can be reviewed.

    Parameters
    ----------
    message : str
        A description of what went wrong.
        The report is prefixed with the time of collection and padded with empty lines for readability.
    error_type : str
        The kind of error being collected; used as a tag in the file name.
        Examples include "row", "halog", "graphite", and "database".
    task_id : str or None, optional
        An identifier of the run that produced the error, also used as a tag in the file name.
    exception : BaseException, optional
        If given, its type, message and traceback are appended to the report.
    """
    _ERRORS_FOLDER_PATH.mkdir(exist_ok=True)

    version = importlib.metadata.version(distribution_name="unipept_halog_metrics")
    now = datetime.datetime.now()

    file_name = f"v{version}_{now.strftime('%y%m%d')}_{error_type}_errors"
    if task_id is not None:
        file_name += f"_{task_id}"
    error_collection_file_path = _ERRORS_FOLDER_PATH / f"{file_name}.txt"

    report = f"[{now.isoformat(timespec='seconds')}] {message}"
    if exception is not None:
        formatted_traceback = "".join(traceback.format_exception(exception))
        report += f"\n\n{type(exception).__name__}: {exception}\n\n{formatted_traceback}"

    with open(file=error_collection_file_path, mode="a") as io:
        io.write(f"{report}\n\n")
