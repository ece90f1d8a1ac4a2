"""
Invocation of the external `halog` summarizer shipped with HAProxy.

`halog` reads raw HAProxy log text on stdin and writes a table to stdout. The output contract relied upon here is:

  - exactly one header line (e.g., `#srv_name 1xx 2xx ...`),
  - zero or more data lines,
  - one trailing status line (e.g., `1234 lines in, 12 lines out, 0 parsing errors`).

Only the data lines are handed on to the aggregator.
"""

import abc
import pathlib
import subprocess
from collections.abc import Sequence

from ._exceptions import ToolExecutionError


def strip_header_and_status_lines(stdout: str) -> list[str]:
    """Remove the header line, the trailing status line, and any blank lines from the output of `halog`."""
    lines = [line.rstrip() for line in stdout.splitlines()[1:]]
    lines = [line for line in lines if line != ""]

    return lines[:-1]


class Summarizer(abc.ABC):
    """Something that turns raw log text into the data lines of a per-key statistics table."""

    @abc.abstractmethod
    def summarize(
        self,
        *,
        arguments: Sequence[str],
        log_file_path: str | pathlib.Path | None = None,
        input_text: str | None = None,
    ) -> list[str]:
        """
        Run the summarizer on a log file or on a piece of log text.

        Parameters
        ----------
        arguments : sequence of strings
            The command line arguments selecting the kind of summary (e.g., `("-s", "-1", "-H", "-srv")`).
        log_file_path : str or pathlib.Path, optional
            A log file to stream into the summarizer. Exactly one of `log_file_path` and `input_text` is given.
        input_text : str, optional
            The raw log text.

        Returns
        -------
        list of strings
            The data lines of the summary, without header or status line.

        Raises
        ------
        OSError
            If `log_file_path` cannot be opened.
        ToolExecutionError
            If the summarizer itself fails.
        """


def _check_summarizer_input(*, log_file_path: str | pathlib.Path | None, input_text: str | None) -> None:
    if (log_file_path is None) == (input_text is None):
        raise ValueError("Exactly one of `log_file_path` and `input_text` should be given.")


class HalogSummarizer(Summarizer):
    def __init__(self, *, executable: str = "halog", timeout_in_seconds: float | None = 300.0):
        """
        Summarize log text by piping it through the `halog` binary.

        Parameters
        ----------
        executable : str, default: "halog"
            The name or path of the `halog` binary; names are resolved on the PATH.
        timeout_in_seconds : float, optional
            Abort the invocation if `halog` does not finish in time.
        """
        self.executable = executable
        self.timeout_in_seconds = timeout_in_seconds

    def summarize(
        self,
        *,
        arguments: Sequence[str],
        log_file_path: str | pathlib.Path | None = None,
        input_text: str | None = None,
    ) -> list[str]:
        _check_summarizer_input(log_file_path=log_file_path, input_text=input_text)
        command = [self.executable, *arguments]

        # A log file is handed over as stdin, so it is never held in memory
        if log_file_path is not None:
            with open(file=log_file_path, mode="rb") as log_file:
                stdout = self._run(command=command, stdin=log_file)
        else:
            stdout = self._run(command=command, input=input_text)

        return strip_header_and_status_lines(stdout=stdout)

    def _run(self, *, command: list[str], **stdin_options) -> str:
        try:
            completed_process = subprocess.run(
                command,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout_in_seconds,
                check=True,
                **stdin_options,
            )
        except OSError as exception:
            message = f"Failed to execute `{self.executable}`. Is it installed and in PATH?"
            raise ToolExecutionError(message) from exception
        except subprocess.CalledProcessError as exception:
            message = (
                f"`{' '.join(command)}` exited with status {exception.returncode}.\n\n"
                f"stderr:\n{exception.stderr}"
            )
            raise ToolExecutionError(message) from exception
        except subprocess.TimeoutExpired as exception:
            message = f"`{' '.join(command)}` did not finish within {self.timeout_in_seconds} seconds."
            raise ToolExecutionError(message) from exception

        return completed_process.stdout
