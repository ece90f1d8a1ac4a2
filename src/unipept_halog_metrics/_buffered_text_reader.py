import math
import pathlib


class BufferedTextReader:
    def __init__(self, *, file_path: str | pathlib.Path, maximum_buffer_size_in_bytes: int = 10**8):
        """
        Lazily read a (possibly very large) HAProxy log file as lists of complete lines.

        Parameters
        ----------
        file_path : string or pathlib.Path
            The path to the log file to be read.
        maximum_buffer_size_in_bytes : int, default: 100 MB
            The theoretical maximum amount of RAM (in bytes) to be used by each buffer.
        """
        self.file_path = pathlib.Path(file_path)
        self.maximum_buffer_size_in_bytes = maximum_buffer_size_in_bytes

        # Decoding roughly triples the footprint of the raw bytes
        self.buffer_size_in_bytes = max(int(maximum_buffer_size_in_bytes / 3), 1)

        self.total_file_size = self.file_path.stat().st_size
        self.offset = 0

    def __len__(self) -> int:
        """An upper bound on the number of buffers, for progress reporting."""
        return math.ceil(self.total_file_size / self.buffer_size_in_bytes)

    def __iter__(self):
        return self

    def __next__(self) -> list[str]:
        """Retrieve the next buffer of lines, or raise StopIteration once the file is exhausted."""
        if self.offset >= self.total_file_size:
            raise StopIteration

        with open(file=self.file_path, mode="rb", buffering=0) as io:
            io.seek(self.offset)
            intermediate_bytes = io.read(self.buffer_size_in_bytes)

        if len(intermediate_bytes) < self.buffer_size_in_bytes:
            self.offset = self.total_file_size
            return self._decode(intermediate_bytes)

        # Anything after the last line break is incomplete and is read again at the start of the next buffer
        last_line_break_index = intermediate_bytes.rfind(b"\n")
        if last_line_break_index == -1:
            raise ValueError(
                f"BufferedTextReader encountered a line at offset {self.offset} that exceeds the buffer size! "
                "Try increasing the `maximum_buffer_size_in_bytes` to account for this line."
            )

        self.offset += last_line_break_index + 1

        return self._decode(intermediate_bytes[: last_line_break_index + 1])

    @staticmethod
    def _decode(raw_bytes: bytes) -> list[str]:
        # Log files occasionally contain bytes from malformed requests
        return raw_bytes.decode(encoding="utf-8", errors="replace").splitlines()
