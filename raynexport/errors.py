"""Exception hierarchy for scene export failures."""

from __future__ import annotations

from pathlib import Path


class ExportError(Exception):
    """Base class for every failure raised by an export run."""


class DirectoryCreationFailed(ExportError):
    """Raised when the export directory cannot be created."""

    def __init__(self, path: str | Path, reason: str = "") -> None:
        self.path = Path(path)
        message = f"could not create export directory {self.path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class FileOpenFailed(ExportError):
    """Raised when the descriptor or payload file cannot be opened."""

    def __init__(self, path: str | Path, reason: str = "") -> None:
        self.path = Path(path)
        message = f"could not open {self.path} for writing"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class HeaderLayoutInconsistency(ExportError):
    """Raised when payload header bookkeeping does not add up.

    This signals a defect in component counting.  The payload would be
    unreadable, so the export must be abandoned.
    """

    def __init__(self, expected: int, actual: int, what: str = "header cursor") -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"{what} at byte {actual}, expected {expected}")


class GeometryBufferMissing(ExportError):
    """Raised when a mesh lacks a required buffer (positions or faces)."""

    def __init__(self, attribute: str, mesh_name: str = "") -> None:
        self.attribute = attribute
        self.mesh_name = mesh_name
        label = f" on mesh {mesh_name!r}" if mesh_name else ""
        super().__init__(f"required '{attribute}' buffer is empty{label}")


class GeometryValueOutOfRange(ExportError):
    """Raised when a buffer value cannot be stored in its payload type."""

    def __init__(self, attribute: str, value: float, mesh_name: str = "") -> None:
        self.attribute = attribute
        self.value = value
        self.mesh_name = mesh_name
        label = f" on mesh {mesh_name!r}" if mesh_name else ""
        super().__init__(f"'{attribute}' value {value!r} does not fit the payload type{label}")
