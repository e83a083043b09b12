"""CommandLogSink implementation for git/svn command output.

Output is forwarded line by line to a logger and, optionally, appended to a
log file so the raw transcript of a publish run can be inspected later.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol, TextIO

logger = logging.getLogger(__name__)


class CommandLogSink(Protocol):
    """Destination for the stdout/stderr of SCM commands."""

    def write_stdout(self, data: str) -> None:  # pragma: no cover - protocol
        ...

    def write_stderr(self, data: str) -> None:  # pragma: no cover - protocol
        ...


class FileCommandLogSink:
    """CommandLogSink that writes to a logger and an optional file.

    Stdout lines are logged at debug level, stderr lines at info level since
    git reports progress there.
    """

    def __init__(
        self,
        command_logger: Optional[logging.Logger] = None,
        log_file_path: Optional[Path] = None,
    ) -> None:
        """Initialize sink with logger and file destination.

        Args:
            command_logger: Logger receiving output lines (module logger if None)
            log_file_path: Optional file to append raw output to
        """
        self.command_logger = command_logger or logger
        self.log_file_path = Path(log_file_path) if log_file_path else None
        self._file_handle: Optional[TextIO] = None

        if self.log_file_path is not None:
            try:
                self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
                self._file_handle = open(self.log_file_path, "a", encoding="utf-8")
            except OSError as exc:
                # Logger output is still available
                logger.warning(
                    "Failed to open log file %s: %s. Continuing with logger-only output.",
                    self.log_file_path,
                    exc,
                )
                self._file_handle = None

    def _write(self, data: str, level: int) -> None:
        if not data:
            return

        for line in data.splitlines():
            if line.strip():
                self.command_logger.log(level, line)

        if self._file_handle:
            try:
                self._file_handle.write(data)
                if not data.endswith("\n"):
                    self._file_handle.write("\n")
                self._file_handle.flush()
            except OSError as exc:
                logger.warning(
                    "Error writing to log file %s: %s", self.log_file_path, exc
                )

    def write_stdout(self, data: str) -> None:
        """Write command stdout to logger and file."""
        self._write(data, logging.DEBUG)

    def write_stderr(self, data: str) -> None:
        """Write command stderr to logger and file."""
        self._write(data, logging.INFO)

    def close(self) -> None:
        """Close log file handle. Should be called when the run is complete."""
        if self._file_handle:
            try:
                self._file_handle.close()
            finally:
                self._file_handle = None

    def __enter__(self) -> "FileCommandLogSink":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - ensures file is closed."""
        self.close()
