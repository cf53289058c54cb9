"""Exceptions raised while exporting and publishing snapshots."""

from typing import List, Optional


class ExporterError(Exception):
    """Base class for export run failures."""


class DatabaseConnectionError(ExporterError):
    """The database could not be opened or did not answer the liveness check."""


class ViewQueryError(ExporterError):
    def __init__(self, target_name: str, message: str) -> None:
        super().__init__(f"Error querying view {target_name}: {message}")
        self.target_name = target_name


class SnapshotFormatError(ExporterError):
    """A JSON fragment could not be embedded into an export document."""


class PublishError(ExporterError):
    """A git step failed. Keeps the command and its combined output for the log."""

    def __init__(self, command: List[str], returncode: Optional[int], output: str) -> None:
        self.command = command
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"{' '.join(command)} failed (exit status {returncode}), output: {output.strip()}"
        )
